"""
Utility functions for timesheet submission automation.
"""
import logging
import sys
import time
from datetime import datetime
from functools import wraps
from pathlib import Path
from typing import Callable, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from timesheet_submit.submit_models import SubmissionResult


class ColoredFormatter(logging.Formatter):
    """Custom formatter that adds colors to log levels."""
    COLORS = {
        "DEBUG": "\033[94m",      # Blue
        "INFO": "\033[92m",       # Green
        "WARNING": "\033[93m",    # Yellow
        "ERROR": "\033[91m",      # Red
        "CRITICAL": "\033[91m",   # Red
        "RESET": "\033[0m",       # Reset to default color
    }

    def format(self, record):
        log_message = super().format(record)
        if getattr(record, "no_color", False):
            return log_message
        color = self.COLORS.get(record.levelname, self.COLORS["RESET"])
        return f"{color}{log_message}{self.COLORS['RESET']}"


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(verbose: bool = False, log_file: Optional[str] = None) -> None:
    """
    Set up logging configuration with colored console output.

    Args:
        verbose: If True, set log level to DEBUG
        log_file: Optional path to an additional (uncolored) log file
    """
    log_level = logging.DEBUG if verbose else logging.INFO

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(ColoredFormatter(LOG_FORMAT))
    handlers = [stream_handler]

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handlers.insert(0, file_handler)

    logging.basicConfig(level=log_level, format=LOG_FORMAT, handlers=handlers)


def retry(max_attempts: int = 3, delay: float = 1.0, backoff: float = 2.0):
    """
    Decorator for retrying a function on failure.

    Args:
        max_attempts: Maximum number of attempts
        delay: Initial delay between retries in seconds
        backoff: Multiplier for delay after each retry

    Example:
        @retry(max_attempts=3, delay=1.0)
        def my_function():
            ...
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            current_delay = delay
            last_exception = None
            logger = logging.getLogger(__name__)
            name = getattr(func, "__name__", repr(func))

            for attempt in range(max_attempts):
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    last_exception = e
                    if attempt < max_attempts - 1:
                        logger.warning(
                            f"Attempt {attempt + 1} failed for {name}: {e}. "
                            f"Retrying in {current_delay} seconds..."
                        )
                        time.sleep(current_delay)
                        current_delay *= backoff
                    else:
                        logger.error(f"All {max_attempts} attempts failed for {name}")

            raise last_exception
        return wrapper
    return decorator


def dynamic_wait(
    condition: Callable[[], bool],
    timeout: float = 10.0,
    base_interval: float = 0.2,
    multiplier: float = 1.2,
    max_interval: float = 2.0,
    operation_name: str = "condition",
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> bool:
    """
    Poll ``condition`` with exponential backoff until it is true or time runs out.

    Exceptions raised by ``condition`` count as "not yet".

    Args:
        condition: Zero-argument callable returning truthy when done
        timeout: Overall bound in seconds
        base_interval: First polling interval in seconds
        multiplier: Growth factor applied to the interval after each poll
        max_interval: Cap on a single polling interval
        operation_name: Used in debug logging
        sleep: Sleep function (injectable for tests)
        clock: Monotonic clock (injectable for tests)

    Returns:
        True if the condition became true within ``timeout``, else False
    """
    logger = logging.getLogger(__name__)
    deadline = clock() + timeout
    interval = base_interval

    while True:
        try:
            if condition():
                return True
        except Exception as e:
            logger.debug(f"Waiting for {operation_name}: {e}")

        remaining = deadline - clock()
        if remaining <= 0:
            logger.debug(f"Timed out after {timeout}s waiting for {operation_name}")
            return False
        sleep(min(interval, max_interval, remaining))
        interval *= multiplier


def format_result_message(result: "SubmissionResult") -> str:
    """
    Format a submission result into a readable message.

    Args:
        result: The SubmissionResult object

    Returns:
        Formatted message string
    """
    status = "SUCCESS" if result.ok else "FAILED"
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

    message = (
        f"[{status}] {timestamp}: {result.success_count}/{result.total_processed} submitted, "
        f"{result.removed_count} removed"
    )
    if result.error:
        message += f" (Error: {result.error})"
    return message


def ensure_directory(path: str) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        path: Path to the directory

    Returns:
        Path object for the directory
    """
    dir_path = Path(path)
    dir_path.mkdir(parents=True, exist_ok=True)
    return dir_path


def get_screenshot_path(label: str, screenshot_dir: str = "screenshots") -> str:
    """
    Generate a timestamped screenshot path.

    Args:
        label: Short description, e.g. ``row_3_failure``
        screenshot_dir: Directory for screenshots

    Returns:
        Path string for the screenshot
    """
    screenshots_dir = ensure_directory(screenshot_dir)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    label_safe = label.replace(" ", "_").replace("/", "_")
    return str(screenshots_dir / f"{label_safe}_{timestamp}.png")
