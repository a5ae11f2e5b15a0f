"""Page Object Model classes for the Playwright automation."""

from .base_page import BasePage
from .login_page import LoginPage, LoginStep, LoginStepError, LOGIN_STEPS
from .form_page import FormPage

__all__ = [
    "BasePage",
    "LoginPage",
    "LoginStep",
    "LoginStepError",
    "LOGIN_STEPS",
    "FormPage",
]
