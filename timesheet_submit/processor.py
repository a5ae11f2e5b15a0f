"""
Row processing for one browser session.

Each row goes through: skip-if-complete, field building, required-field
check, quarter routing guard, fill, submit with bounded retries. A failure in
one row is recorded and the session is recovered; the batch carries on.
"""
import logging
import math
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from timesheet_submit.fields import (
    COMPLETE_STATUS,
    FIELD_DEFINITIONS,
    FIELD_ORDER,
    STATUS_COLUMN,
    build_fields_from_row,
    is_absent_value,
    parse_row_date_to_iso,
    validate_required_fields,
)
from timesheet_submit.quarters import QuarterDefinition, get_quarter_for_date
from timesheet_submit.submit_models import AutomationResult, SubmitCredentials

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, str], None]

LOGIN_START_PROGRESS = 10
LOGIN_DONE_PROGRESS = 20
ROW_PROGRESS_SPAN = 60


class RowError(Exception):
    """A row-level problem that is reported without touching the form."""


def row_progress(index: int, total: int) -> int:
    """Progress after finishing row ``index`` (0-based) of ``total``."""
    return LOGIN_DONE_PROGRESS + math.floor(ROW_PROGRESS_SPAN * (index + 1) / total)


class RowProcessor:
    """
    Drives a started session over an ordered list of label-keyed rows.

    ``session`` must offer authenticate / wait_for_form_ready / inject_field /
    submit / recover / capture_screenshot and a ``form_id`` (see
    session.SessionController).
    """

    def __init__(
            self,
            session: Any,
            max_submit_attempts: int = 2,
            progress_callback: Optional[ProgressCallback] = None,
            quarters: Optional[Sequence[QuarterDefinition]] = None,
            status_column: str = STATUS_COLUMN,
            complete_value: str = COMPLETE_STATUS,
        ) -> None:
        if max_submit_attempts < 1:
            raise ValueError("max_submit_attempts must be at least 1")
        self.session = session
        self.max_submit_attempts = max_submit_attempts
        self.progress_callback = progress_callback
        self.quarters = quarters
        self.status_column = status_column
        self.complete_value = complete_value

    def _emit_progress(self, percent: int, message: str) -> None:
        if self.progress_callback is None:
            return
        try:
            self.progress_callback(percent, message)
        except Exception as e:
            logger.warning(f"Progress callback failed: {e}")

    def run(self, rows: Sequence[Mapping[str, Any]], credentials: SubmitCredentials) -> AutomationResult:
        """
        Authenticate, then process every row in order.

        A login failure is fatal: every row is reported failed (flagged
        ``fatal``) with the same message and nothing is submitted.
        """
        result = AutomationResult(total_rows=len(rows))
        if not rows:
            logger.info("No rows to process")
            return result

        self._emit_progress(LOGIN_START_PROGRESS, "Logging in")
        try:
            self.session.authenticate(credentials.email, credentials.password)
        except Exception as e:
            message = f"Automation failed: {e}"
            logger.error(message)
            result.fatal_error = message
            for index in range(len(rows)):
                result.record_failure(index, message, fatal=True)
            return result
        self._emit_progress(LOGIN_DONE_PROGRESS, "Login complete")

        for index, row in enumerate(rows):
            if self._is_complete(row):
                logger.debug(f"Skipping completed row {index + 1}")
                self._emit_progress(row_progress(index, len(rows)), f"Skipping completed row {index + 1}")
                continue

            try:
                self.process_row(row, index)
                result.record_success(index)
                logger.info(f"Row {index + 1}/{len(rows)} submitted")
            except RowError as e:
                logger.warning(f"Row {index + 1} not submitted: {e}")
                result.record_failure(index, str(e))
            except Exception as e:
                logger.error(f"Error processing row {index + 1}: {e}", exc_info=True)
                result.record_failure(index, str(e))
                self.session.capture_screenshot(f"row_{index + 1}_error")
                self.session.recover()

            self._emit_progress(row_progress(index, len(rows)), f"Completed row {index + 1}")

        logger.info(
            f"Processed {len(rows)} rows: {result.success_count} submitted, "
            f"{result.failure_count} failed"
        )
        return result

    def _is_complete(self, row: Mapping[str, Any]) -> bool:
        return str(row.get(self.status_column) or "").strip() == self.complete_value

    def check_quarter(self, fields: Mapping[str, Any]) -> None:
        """
        Refuse rows that belong to another quarter's form.

        Raises:
            RowError: If the date is unparseable or routes to a different form
        """
        raw_date = fields["date"]
        iso_date = parse_row_date_to_iso(raw_date)
        if iso_date is None:
            raise RowError(f"Invalid date format: {raw_date}")

        quarter = get_quarter_for_date(iso_date, self.quarters)
        if quarter is not None and quarter.form_id != self.session.form_id:
            raise RowError(
                f"Date {raw_date} belongs to {quarter.name} but form configured for different quarter"
            )

    def fill_fields(self, fields: Mapping[str, Any]) -> None:
        project = fields.get("project_code")
        for key in FIELD_ORDER:
            if key not in fields or is_absent_value(fields[key]):
                continue
            self.session.inject_field(FIELD_DEFINITIONS[key], fields[key], project=project)

    def process_row(self, row: Mapping[str, Any], index: int) -> None:
        """
        Fill and submit a single row.

        Raises:
            RowError: For validation, routing or exhausted-retry failures
            Exception: Anything the session raises; the caller recovers
        """
        fields: Dict[str, Any] = build_fields_from_row(row)

        missing: List[str] = validate_required_fields(fields)
        if missing:
            logger.debug(f"Row {index + 1} missing {missing}")
            raise RowError("Missing required fields")

        self.check_quarter(fields)

        self.session.wait_for_form_ready()
        self.fill_fields(fields)

        for attempt in range(1, self.max_submit_attempts + 1):
            if attempt > 1:
                logger.info(f"Retrying row {index + 1} (attempt {attempt}/{self.max_submit_attempts})")
                self.session.wait_for_form_ready()
                self.fill_fields(fields)
            if self.session.submit():
                return
            logger.warning(f"Submission attempt {attempt} failed for row {index + 1}")

        self.session.capture_screenshot(f"row_{index + 1}_submit_failure")
        self.session.recover()
        raise RowError(f"Form submission failed after {self.max_submit_attempts} attempts")
