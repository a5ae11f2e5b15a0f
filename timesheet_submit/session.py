"""
Browser session controller for one form destination.

Wraps Playwright in an explicit state machine so the row processor can only
touch the form once the session has signed in and the form has rendered:

    UNSTARTED -> STARTED -> AUTHENTICATED -> READY -> SUBMITTING
        -> SUBMITTED_OK | SUBMIT_FAILED -> READY ... -> CLOSED
"""
import enum
import logging
from typing import Any, Callable, Dict, Optional

from playwright.sync_api import sync_playwright

from timesheet_submit.config import get_app_config
from timesheet_submit.fields import FieldSpec
from timesheet_submit.play.pages.form_page import FormPage
from timesheet_submit.play.pages.login_page import LoginPage, LoginStepError
from timesheet_submit.quarters import FormDestination
from timesheet_submit.utils import dynamic_wait, get_screenshot_path, retry

logger = logging.getLogger(__name__)

NAVIGATION_ATTEMPTS = 3


class SessionState(str, enum.Enum):
    UNSTARTED = "unstarted"
    STARTED = "started"
    AUTHENTICATED = "authenticated"
    READY = "ready"
    SUBMITTING = "submitting"
    SUBMITTED_OK = "submitted_ok"
    SUBMIT_FAILED = "submit_failed"
    CLOSED = "closed"


class SessionStateError(RuntimeError):
    """An operation was called in a state that does not allow it."""


class SessionNotStartedError(SessionStateError):
    """The browser is not running (start() not called, or already closed)."""


class SessionNavigationError(RuntimeError):
    """The destination page could not be reached or never became usable."""


class AuthenticationError(RuntimeError):
    """Signing in to the destination failed."""


_FORM_STATES = {
    SessionState.AUTHENTICATED,
    SessionState.READY,
    SessionState.SUBMITTED_OK,
    SessionState.SUBMIT_FAILED,
}


class SessionController:
    """
    Owns the Playwright browser, context and page for one destination.

    Use as a context manager so the browser is always released:

        with SessionController(destination) as session:
            session.authenticate(email, password)
            session.wait_for_form_ready()
            ...
    """

    def __init__(
            self,
            destination: FormDestination,
            app_config: Optional[Dict[str, Any]] = None,
            playwright_factory: Callable[[], Any] = sync_playwright,
        ) -> None:
        self.destination = destination
        self.app_config = app_config or get_app_config()
        self._playwright_factory = playwright_factory

        self.state = SessionState.UNSTARTED
        self.recovery_failures = 0

        self._playwright = None
        self._browser = None
        self._context = None
        self._page = None
        self._form_page: Optional[FormPage] = None

    def __enter__(self) -> "SessionController":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def form_id(self) -> str:
        return self.destination.form_id

    @property
    def page(self):
        if self._page is None or self.state in (SessionState.UNSTARTED, SessionState.CLOSED):
            raise SessionNotStartedError("Browser session is not started")
        return self._page

    def _require_state(self, operation: str, *allowed: SessionState) -> None:
        if self.state in (SessionState.UNSTARTED, SessionState.CLOSED):
            raise SessionNotStartedError(f"Cannot {operation}: browser session is not started")
        if self.state not in allowed:
            raise SessionStateError(f"Cannot {operation} while session is {self.state.value}")

    def start(self) -> None:
        """Launch Chromium and open a page. A no-op if already started."""
        if self.state == SessionState.CLOSED:
            raise SessionStateError("Cannot restart a closed session")
        if self.state != SessionState.UNSTARTED:
            return

        logger.info(f"Starting browser session for form {self.form_id}")
        self._playwright = self._playwright_factory().start()
        try:
            self._browser = self._playwright.chromium.launch(
                headless=self.app_config["headless"],
                slow_mo=self.app_config["slow_mo"],
            )
            self._context = self._browser.new_context()
            self._context.set_default_timeout(self.app_config["default_timeout"])
            self._page = self._context.new_page()
        except Exception:
            self._release()
            raise

        self._form_page = FormPage(self._page, field_timeout=int(self.app_config["global_timeout"] * 1000))
        self.state = SessionState.STARTED

    def navigate_to_base(self, url: Optional[str] = None) -> None:
        """
        Load the destination form URL (or ``url``), retrying transient navigation failures.

        Raises:
            SessionNavigationError: If every attempt fails
        """
        url = url or self.destination.base_url
        goto = retry(max_attempts=NAVIGATION_ATTEMPTS, delay=1.0)(self.page.goto)
        try:
            goto(url, wait_until="domcontentloaded", timeout=int(self.app_config["global_timeout"] * 1000))
        except Exception as e:
            raise SessionNavigationError(f"Could not load {url}: {e}") from e

    def authenticate(self, email: str, password: str) -> None:
        """
        Sign in and land on the form.

        Raises:
            SessionNotStartedError: If start() has not been called
            AuthenticationError: If navigation or any required login step fails
        """
        self._require_state("authenticate", SessionState.STARTED)
        logger.info(f"Authenticating as {email}")

        login_url = self.app_config.get("login_url")
        try:
            self.navigate_to_base(login_url)
            login_page = LoginPage(self.page, step_timeout=int(self.app_config["global_timeout"] * 1000))
            login_page.login(email, password)
            if login_url:
                self.navigate_to_base()
        except (SessionNavigationError, LoginStepError) as e:
            self.capture_screenshot("login_failure")
            raise AuthenticationError(str(e)) from e

        self.state = SessionState.AUTHENTICATED
        logger.info("Authentication complete")

    def wait_for_form_ready(self) -> None:
        """
        Block until the form can be filled.

        The form counts as ready when the project field is visible and
        enabled, or when the DOM has stopped changing over a sampling window.
        After a confirmed submission the form is reloaded first so the next
        row starts from a blank form.

        Raises:
            SessionNotStartedError: If start() has not been called
            SessionNavigationError: If the form is not ready within the global timeout
        """
        self._require_state("wait for form", *_FORM_STATES)

        if self.state == SessionState.SUBMITTED_OK:
            self.navigate_to_base()

        sample_ms = self.app_config["dom_stability_sample_ms"]
        ready = dynamic_wait(
            lambda: self._form_page.is_form_ready() or self._form_page.is_dom_stable(sample_ms),
            timeout=self.app_config["global_timeout"],
            base_interval=self.app_config["dynamic_wait_base"],
            multiplier=self.app_config["dynamic_wait_multiplier"],
            operation_name="form ready",
            sleep=self._form_page.pause,
        )
        if not ready:
            raise SessionNavigationError(
                f"Form {self.form_id} not ready after {self.app_config['global_timeout']}s"
            )
        self.state = SessionState.READY

    def inject_field(self, spec: FieldSpec, value: Any, project: Optional[str] = None) -> None:
        """Fill one field; ``project`` selects the project-specific tool field."""
        self._require_state("inject field", SessionState.READY)
        self._form_page.fill_field(spec, value, project)

    def submit(self) -> bool:
        """
        Submit the form and wait for confirmation.

        Returns:
            True when the submission was confirmed, False otherwise
        """
        self._require_state("submit", SessionState.READY)
        self.state = SessionState.SUBMITTING
        try:
            ok = self._form_page.submit_and_confirm(
                self.destination.success_url_patterns,
                verify_timeout=self.app_config["submit_verify_timeout"],
                base_interval=self.app_config["dynamic_wait_base"],
                multiplier=self.app_config["dynamic_wait_multiplier"],
            )
        except Exception:
            self.state = SessionState.SUBMIT_FAILED
            raise
        self.state = SessionState.SUBMITTED_OK if ok else SessionState.SUBMIT_FAILED
        return ok

    def recover(self) -> bool:
        """
        Best-effort return to the blank form after an error.

        Never raises; failures are logged and counted in ``recovery_failures``.
        """
        if self.state in (SessionState.UNSTARTED, SessionState.CLOSED, SessionState.STARTED):
            return False
        try:
            logger.info("Attempting recovery")
            self.navigate_to_base()
        except Exception as e:
            self.recovery_failures += 1
            logger.error(f"Could not recover from page error: {e}")
            return False
        self.state = SessionState.AUTHENTICATED
        return True

    def capture_screenshot(self, label: str) -> Optional[str]:
        """Full-page screenshot when enabled; returns the path or None."""
        if not self.app_config.get("screenshots_enabled") or self._page is None:
            return None
        try:
            path = get_screenshot_path(label, self.app_config["screenshot_dir"])
            self._page.screenshot(path=path, full_page=True)
            logger.info(f"Screenshot saved to {path}")
            return path
        except Exception as e:
            logger.warning(f"Failed to take screenshot: {e}")
            return None

    def _release(self) -> None:
        for name, resource in (("context", self._context), ("browser", self._browser)):
            if resource is not None:
                try:
                    resource.close()
                except Exception as e:
                    logger.warning(f"Error closing {name}: {e}")
        if self._playwright is not None:
            try:
                self._playwright.stop()
            except Exception as e:
                logger.warning(f"Error stopping Playwright: {e}")

        self._page = None
        self._context = None
        self._browser = None
        self._playwright = None
        self._form_page = None

    def close(self) -> None:
        """Release all browser resources. Safe to call more than once."""
        if self.state == SessionState.CLOSED:
            return
        logger.info(f"Closing browser session for form {self.form_id}")
        self._release()
        self.state = SessionState.CLOSED
