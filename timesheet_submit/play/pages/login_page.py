"""
Page Object Model for the Smartsheet / Microsoft sign-in flow.

The flow is described as data (LOGIN_STEPS) because the exact sequence of
screens depends on the tenant: some steps only appear for SSO accounts or when
the "Stay signed in?" prompt is enabled, so those are marked optional.
"""
from dataclasses import dataclass
from typing import List, Optional, Sequence
import logging

from playwright.sync_api import Page, Locator

from timesheet_submit.play.pages.base_page import BasePage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoginStep:
    """One action of the sign-in recipe."""
    name: str
    action: str  # "wait", "input" or "click"
    locator: str
    value_key: Optional[str] = None
    optional: bool = False
    sensitive: bool = False


LANDING_LOCATOR = "input[aria-label='Project Task']"

LOGIN_STEPS: List[LoginStep] = [
    LoginStep("Wait for Login Form", "wait", "#loginEmail", optional=True),
    LoginStep("Email Input", "input", "#loginEmail", value_key="email", optional=True, sensitive=True),
    LoginStep("Continue", "click", "#formControl", optional=True),
    LoginStep("Wait for SSO Choice", "wait", "a.clsJspButtonWide", optional=True),
    LoginStep("Login with company account", "click", "a.clsJspButtonWide", optional=True),
    LoginStep("Wait for AAD Email", "wait", "#i0116"),
    LoginStep("AAD Email", "input", "#i0116", value_key="email", sensitive=True),
    LoginStep("AAD Next", "click", "#idSIButton9", optional=True),
    LoginStep("Wait for Password", "wait", "#passwordInput"),
    LoginStep("Password Input", "input", "#passwordInput", value_key="password", sensitive=True),
    LoginStep("Password Submit", "click", "#submitButton", optional=True),
    LoginStep("Stay Signed In Prompt", "wait", "#idBtn_Back", optional=True),
    LoginStep("Stay Signed In - No", "click", "#idBtn_Back", optional=True),
    LoginStep("Wait for Form Page Ready", "wait", LANDING_LOCATOR),
]


class LoginStepError(Exception):
    """A required sign-in step could not be completed."""

    def __init__(self, step: LoginStep, cause: Exception) -> None:
        super().__init__(f"Login step '{step.name}' failed: {cause}")
        self.step = step


class LoginPage(BasePage):
    """Represents the sign-in pages in front of the form."""

    def __init__(
            self,
            page: Page,
            steps: Sequence[LoginStep] = LOGIN_STEPS,
            step_timeout: int = 10000,
            optional_step_timeout: int = 3000,
        ) -> None:
        super().__init__(page)
        self.steps = list(steps)
        self.step_timeout = step_timeout
        self.optional_step_timeout = optional_step_timeout

    @property
    def landing_element(self) -> Locator:
        """Element that is only visible once we are signed in and on the form."""
        return self.page.locator(LANDING_LOCATOR).first

    def is_logged_in(self, timeout: int = 2000) -> bool:
        return self.is_element_visible(self.landing_element, timeout=timeout)

    def run_step(self, step: LoginStep, email: str, password: str) -> None:
        """
        Execute a single login step.

        Raises:
            playwright TimeoutError: If the element does not show up in time
        """
        timeout = self.optional_step_timeout if step.optional else self.step_timeout
        locator = self.page.locator(step.locator).first

        if step.action == "wait":
            self.wait_for_element(locator, state="visible", timeout=timeout)
        elif step.action == "input":
            value = email if step.value_key == "email" else password
            self.wait_for_element(locator, state="visible", timeout=timeout)
            locator.fill(value)
        elif step.action == "click":
            self.wait_for_element(locator, state="visible", timeout=timeout)
            locator.click()
        else:
            raise ValueError(f"Unknown login action: {step.action}")

    def login(self, email: str, password: str) -> None:
        """
        Perform the complete sign-in flow.

        Skips everything when the form is already reachable (existing session
        cookie). Failed optional steps are logged and skipped.

        Raises:
            LoginStepError: If a required step fails
        """
        if self.is_logged_in():
            logger.info("Already signed in, skipping login steps")
            return

        for step in self.steps:
            try:
                self.run_step(step, email, password)
                logger.debug(f"Login step completed: {step.name}")
            except Exception as e:
                if step.optional:
                    logger.debug(f"Optional login step skipped: {step.name}")
                    continue
                logger.error(f"Login step failed: {step.name}")
                raise LoginStepError(step, e) from e
