"""Timesheet submission automation: quarterly Smartsheet forms driven by Playwright."""

__version__ = "0.1.0"
