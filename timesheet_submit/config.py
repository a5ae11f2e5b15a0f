"""
Configuration management for timesheet submission automation.
"""
import os
import json
import logging
from pathlib import Path
from typing import Optional, Dict, Any

from dotenv import load_dotenv

from timesheet_submit.submit_models import SubmitCredentials

load_dotenv()  # Load .env file if it exists

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


def get_app_config() -> Dict[str, Any]:
    """
    Get application configuration settings.

    Timeouts ending in ``_timeout`` are seconds, except ``default_timeout``
    which is the Playwright default in milliseconds.

    Returns:
        Dictionary with application configuration
    """
    return {
        "headless": _env_bool("TIMESHEET_HEADLESS", "true"),
        "slow_mo": int(os.getenv("TIMESHEET_SLOW_MO", "0")),
        "default_timeout": int(os.getenv("TIMESHEET_DEFAULT_TIMEOUT", "30000")),
        "global_timeout": float(os.getenv("TIMESHEET_GLOBAL_TIMEOUT", "10")),
        "dynamic_wait_base": float(os.getenv("TIMESHEET_WAIT_BASE", "0.2")),
        "dynamic_wait_multiplier": float(os.getenv("TIMESHEET_WAIT_MULTIPLIER", "1.2")),
        "dom_stability_sample_ms": int(os.getenv("TIMESHEET_DOM_STABILITY_MS", "300")),
        "submit_verify_timeout": float(os.getenv("TIMESHEET_SUBMIT_VERIFY_TIMEOUT", "10")),
        "max_submit_attempts": int(os.getenv("TIMESHEET_MAX_SUBMIT_ATTEMPTS", "2")),
        "login_url": os.getenv("TIMESHEET_LOGIN_URL") or None,
        "screenshots_enabled": _env_bool("TIMESHEET_SCREENSHOTS", "true"),
        "screenshot_dir": os.getenv("TIMESHEET_SCREENSHOT_DIR", "screenshots"),
        "quarters_file": os.getenv("TIMESHEET_QUARTERS_FILE") or None,
    }


def load_credentials(
    email: Optional[str] = None,
    config_path: Optional[str] = None,
) -> SubmitCredentials:
    """
    Load form login credentials from a JSON file or environment variables.

    The file may hold a single ``{"email": ..., "password": ...}`` object or a
    list of them; ``email`` selects one when several are present.

    Args:
        email: Optional email to select
        config_path: Path to credentials.json. If None, looks beside this module.

    Returns:
        SubmitCredentials

    Raises:
        ValueError: If no matching credentials are configured
    """
    if config_path is None:
        config_path = Path(__file__).parent / "credentials.json"

    config_file = Path(config_path)

    if config_file.exists():
        try:
            with open(config_file, "r") as f:
                data = json.load(f)
        except Exception as e:
            logger.error(f"Error loading credentials from {config_file}: {e}")
            raise

        records = data if isinstance(data, list) else [data]
        for record in records:
            if email and record.get("email", "").lower() != email.lower():
                continue
            if record.get("email") and record.get("password"):
                logger.info(f"Loaded credentials for {record['email']} from {config_file}")
                return SubmitCredentials(email=record["email"], password=record["password"])

        raise ValueError(f"No credentials for {email or 'any user'} in {config_file}")

    logger.debug(f"Credentials file not found: {config_file}. Trying environment variables.")
    env_email = os.getenv("TIMESHEET_EMAIL")
    env_password = os.getenv("TIMESHEET_PASSWORD")

    if env_email and env_password and (not email or env_email.lower() == email.lower()):
        logger.info("Loaded credentials from environment variables")
        return SubmitCredentials(email=env_email, password=env_password)

    raise ValueError(
        "No credentials found. Either create credentials.json, store them with "
        "credentials.store, or set TIMESHEET_EMAIL and TIMESHEET_PASSWORD."
    )


def validate_config(app_config: Optional[Dict[str, Any]] = None) -> bool:
    """
    Validate application configuration.

    Returns:
        True if configuration is valid

    Raises:
        ValueError: If configuration is invalid
    """
    from timesheet_submit.quarters import get_quarter_definitions

    app_config = app_config or get_app_config()
    try:
        if app_config["max_submit_attempts"] < 1:
            raise ValueError("TIMESHEET_MAX_SUBMIT_ATTEMPTS must be at least 1")
        if app_config["global_timeout"] <= 0:
            raise ValueError("TIMESHEET_GLOBAL_TIMEOUT must be positive")

        quarters = get_quarter_definitions(app_config["quarters_file"])
        if not quarters:
            raise ValueError("No quarters configured")

        logger.info("Configuration validated successfully")
        logger.info(f"Quarters: {', '.join(q.id for q in quarters)}")
        logger.info(f"Max submit attempts: {app_config['max_submit_attempts']}")
        return True
    except Exception as e:
        logger.error(f"Configuration validation failed: {e}")
        raise
