"""
Page Object Model for a Smartsheet timesheet form.
Encapsulates field filling and submission confirmation.
"""
from fnmatch import fnmatch
from typing import Any, List, Optional, Sequence
import logging

from playwright.sync_api import Page, Locator, Response

from timesheet_submit.fields import FieldSpec, resolve_field_locator
from timesheet_submit.play.pages.base_page import BasePage
from timesheet_submit.play.pages.login_page import LANDING_LOCATOR
from timesheet_submit.utils import dynamic_wait

logger = logging.getLogger(__name__)

SUBMIT_BUTTON_LOCATOR = "button[data-client-id='form_submit_btn']"
SUBMIT_BUTTON_FALLBACK_LOCATORS = [
    "button:has-text('Submit')",
    "input[type='submit']",
    "button[type='submit']",
    "button[aria-label*='submit']",
]

SUBMIT_SUCCESS_INDICATORS = [
    "submissionid",
    "confirmation",
    "success! we've captured your submission",
    "form submitted successfully",
    "thank you for your submission",
]

SUCCESS_STATUS_RANGE = range(200, 300)


def matches_success_response(url: str, status: int, method: str, patterns: Sequence[str]) -> bool:
    """True for a 2xx POST whose URL matches one of the success globs."""
    if method.upper() != "POST" or status not in SUCCESS_STATUS_RANGE:
        return False
    return any(fnmatch(url, pattern) for pattern in patterns)


def has_success_content(body: str) -> bool:
    """Response body carries a submission id or a success message."""
    body = body.lower()
    return any(indicator in body for indicator in SUBMIT_SUCCESS_INDICATORS)


class FormPage(BasePage):
    """Represents a quarter's timesheet form."""

    def __init__(self, page: Page, field_timeout: int = 10000) -> None:
        super().__init__(page)
        self.field_timeout = field_timeout

    @property
    def project_input(self) -> Locator:
        """The project field doubles as the "form is ready" marker."""
        return self.page.locator(LANDING_LOCATOR).first

    def is_form_ready(self) -> bool:
        """Project field is visible and enabled."""
        try:
            return self.project_input.is_visible() and self.project_input.is_enabled()
        except Exception:
            return False

    def field_locator(self, spec: FieldSpec, project: Optional[str] = None) -> Locator:
        return self.page.locator(resolve_field_locator(spec, project)).first

    def fill_field(self, spec: FieldSpec, value: Any, project: Optional[str] = None) -> None:
        """
        Fill a single field.

        Dropdown fields are typed into and confirmed with Enter once the
        listbox has rendered its options.

        Raises:
            playwright TimeoutError: If the field never becomes visible
        """
        field = self.field_locator(spec, project)
        self.wait_for_element(field, state="visible", timeout=self.field_timeout)
        field.fill("")
        field.fill(str(value))

        if spec.is_dropdown:
            options = self.page.get_by_role("option")
            if not self.is_element_visible(lambda: options.first, timeout=2000):
                logger.debug(f"No dropdown options rendered for {spec.key}")
            field.press("Enter")

        logger.debug(f"Filled field {spec.key}")

    def find_submit_button(self, timeout: int = 10000) -> Locator:
        """
        Locate an enabled submit button, trying the primary locator first.

        Raises:
            RuntimeError: If no usable submit button is found
        """
        try:
            primary = self.page.locator(SUBMIT_BUTTON_LOCATOR).first
            self.wait_for_element(primary, state="visible", timeout=timeout)
            if primary.is_enabled():
                return primary
        except Exception:
            logger.debug("Primary submit button not found, trying fallbacks")

        for selector in SUBMIT_BUTTON_FALLBACK_LOCATORS:
            candidate = self.page.locator(selector).first
            if candidate.is_visible() and candidate.is_enabled():
                logger.debug(f"Using fallback submit button: {selector}")
                return candidate

        raise RuntimeError("No submit button found")

    def has_success_indicator(self) -> bool:
        try:
            body_text = self.page.locator("body").inner_text(timeout=1000).lower()
        except Exception:
            return False
        return any(indicator in body_text for indicator in SUBMIT_SUCCESS_INDICATORS)

    def submit_and_confirm(
            self,
            success_url_patterns: Sequence[str],
            verify_timeout: float = 10.0,
            base_interval: float = 0.1,
            multiplier: float = 1.2,
        ) -> bool:
        """
        Click submit and wait for evidence the submission was accepted.

        Evidence is either a matching 2xx POST response whose body carries a
        submission id or success message, or a success message rendered in
        the page. Response bodies are read from the polling loop rather than
        the event handler.

        Args:
            success_url_patterns: URL globs of the submission endpoint(s)
            verify_timeout: Seconds to wait for evidence
            base_interval: First polling interval in seconds
            multiplier: Backoff multiplier between polls

        Returns:
            True if the submission was confirmed, False otherwise
        """
        candidates: List[Response] = []
        confirmed: List[str] = []

        def on_response(response: Response) -> None:
            if matches_success_response(
                response.url, response.status, response.request.method, success_url_patterns
            ):
                candidates.append(response)

        def check_responses() -> bool:
            while candidates:
                response = candidates.pop(0)
                try:
                    body = response.text()
                except Exception as e:
                    logger.debug(f"Could not read response body from {response.url}: {e}")
                    continue
                if has_success_content(body):
                    confirmed.append(response.url)
                else:
                    logger.debug(f"Response from {response.url} has no submission confirmation")
            return bool(confirmed)

        self.page.on("response", on_response)
        try:
            self.find_submit_button().click()
            ok = dynamic_wait(
                lambda: check_responses() or self.has_success_indicator(),
                timeout=verify_timeout,
                base_interval=base_interval,
                multiplier=multiplier,
                operation_name="form submission verification",
                sleep=self.pause,
            )
        finally:
            self.page.remove_listener("response", on_response)

        if ok:
            method = "http" if confirmed else "dom"
            logger.info(f"Submission confirmed via {method}")
        else:
            logger.warning("Submission could not be confirmed")
        return ok
