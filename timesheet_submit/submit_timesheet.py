#!/usr/bin/env python3
"""
Main automation script for submitting pending timesheet entries.
Reads pending entries, submits them quarter by quarter, and reconciles storage.
"""
import sys
import argparse
import logging
import math
import threading
from typing import Any, Callable, Dict, List, Optional

from timesheet_submit.config import get_app_config, load_credentials, validate_config
from timesheet_submit.credentials.store import CredentialsNotFoundError, get_credentials
from timesheet_submit.db.config import StorageConfig
from timesheet_submit.db.database import Database
from timesheet_submit.db.repository import get_pending_entries
from timesheet_submit.fields import entry_to_row
from timesheet_submit.processor import ProgressCallback, RowProcessor
from timesheet_submit.quarters import get_quarter_by_id, get_quarter_definitions, group_entries_by_quarter
from timesheet_submit.reconciler import DB_UPDATE_FAILED_MESSAGE, Reconciler
from timesheet_submit.session import SessionController
from timesheet_submit.submit_models import AutomationResult, SubmissionResult, SubmitCredentials
from timesheet_submit.utils import format_result_message, setup_logging

logger = logging.getLogger(__name__)

ALREADY_RUNNING_MESSAGE = "A submission is already in progress. Please wait for it to finish."

_submission_lock = threading.Lock()


def is_submission_in_progress() -> bool:
    return _submission_lock.locked()


def _snapshot_entries(entries) -> List[Dict[str, Any]]:
    """Detach what the run needs from ORM objects before their session closes."""
    return [{"id": entry.id, "date": entry.date, "row": entry_to_row(entry)} for entry in entries]


def _merge(total: SubmissionResult, part: SubmissionResult) -> None:
    total.submitted_ids.extend(part.submitted_ids)
    total.removed_ids.extend(part.removed_ids)
    if part.error and not total.error:
        total.error = part.error


def _quarter_progress(
        progress_callback: Optional[ProgressCallback],
        position: int,
        count: int,
    ) -> Optional[ProgressCallback]:
    """Squeeze one quarter's 0-100 progress into its slice of the whole run."""
    if progress_callback is None:
        return None
    start = 100 * position / count
    span = 100 / count

    def scaled(percent: int, message: str) -> None:
        progress_callback(math.floor(start + span * percent / 100), message)

    return scaled


def submit_pending_entries(
    database: Database,
    credentials: SubmitCredentials,
    app_config: Optional[Dict[str, Any]] = None,
    progress_callback: Optional[ProgressCallback] = None,
    session_factory: Callable[..., Any] = SessionController,
) -> SubmissionResult:
    """
    Submit every pending entry, one browser session per quarter.

    Only one run may be active per process; a concurrent call returns an
    error result immediately instead of waiting.

    Args:
        database: Storage holding the entries
        credentials: Login for the form
        app_config: Application configuration (defaults to get_app_config())
        progress_callback: Optional ``(percent, message)`` observer
        session_factory: Builds a session for a FormDestination (injectable for tests)

    Returns:
        SubmissionResult aggregated over all quarters
    """
    if not _submission_lock.acquire(blocking=False):
        logger.warning("Submission requested while another is running")
        return SubmissionResult(ok=False, error=ALREADY_RUNNING_MESSAGE)

    try:
        app_config = app_config or get_app_config()
        quarters = get_quarter_definitions(app_config.get("quarters_file"))

        with database.session_scope() as db:
            pending = _snapshot_entries(get_pending_entries(db))

        if not pending:
            logger.info("No pending entries to submit")
            return SubmissionResult(ok=True, total_processed=0)

        logger.info(f"Found {len(pending)} pending entries")
        groups = group_entries_by_quarter(pending, quarters)
        unrouted = len(pending) - sum(len(group) for group in groups.values())
        if unrouted:
            logger.warning(f"{unrouted} entries fall outside configured quarters and stay pending")

        if not groups:
            return SubmissionResult(
                ok=False,
                total_processed=len(pending),
                error=f"No pending entries fall within a configured quarter ({len(pending)} left pending)",
            )

        total = SubmissionResult(ok=False, total_processed=len(pending))
        reconciler = Reconciler(database)
        any_submitted = False
        storage_failed = False

        for position, (quarter_id, group) in enumerate(groups.items()):
            quarter = get_quarter_by_id(quarter_id, quarters)
            entry_ids = [item["id"] for item in group]
            rows = [item["row"] for item in group]
            logger.info(f"Submitting {len(rows)} entries to {quarter.name} form")

            try:
                with session_factory(quarter.destination, app_config) as session:
                    processor = RowProcessor(
                        session,
                        max_submit_attempts=app_config["max_submit_attempts"],
                        progress_callback=_quarter_progress(progress_callback, position, len(groups)),
                        quarters=quarters,
                    )
                    automation = processor.run(rows, credentials)
            except Exception as e:
                message = f"Automation failed: {e}"
                logger.error(f"{quarter.name}: {message}", exc_info=True)
                automation = AutomationResult(total_rows=len(rows), fatal_error=message)
                for index in range(len(rows)):
                    automation.record_failure(index, message, fatal=True)

            for failure in automation.errors:
                logger.info(f"{quarter.name} row {failure.index + 1}: {failure.message}")

            part = reconciler.reconcile(entry_ids, automation)
            any_submitted = any_submitted or part.success_count > 0
            if part.error == DB_UPDATE_FAILED_MESSAGE:
                storage_failed = True
                total.error = part.error
            _merge(total, part)

        total.ok = any_submitted and not storage_failed
        if progress_callback is not None:
            try:
                progress_callback(100, "Submission complete")
            except Exception as e:
                logger.warning(f"Progress callback failed: {e}")
        return total
    finally:
        _submission_lock.release()


def resolve_credentials(database: Database, email: Optional[str] = None) -> SubmitCredentials:
    """Stored (encrypted) credentials first, then credentials.json / environment."""
    try:
        with database.session_scope() as db:
            credentials = get_credentials(db)
        if not email or credentials.email.lower() == email.lower():
            return credentials
    except (CredentialsNotFoundError, ValueError) as e:
        logger.debug(f"No usable stored credentials: {e}")
    return load_credentials(email=email)


def main():
    """Main execution function."""
    parser = argparse.ArgumentParser(description="Submit pending timesheet entries to the quarterly forms")
    parser.add_argument("--headless", action="store_true", help="Run browser in headless mode")
    parser.add_argument("--headed", action="store_true", help="Show the browser window")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument("--log-file", type=str, help="Path to log file")
    parser.add_argument("--database-url", type=str, help="SQLAlchemy database URL")
    parser.add_argument("--email", type=str, help="Submit as this user")
    parser.add_argument("--max-attempts", type=int, help="Submit attempts per row")

    args = parser.parse_args()

    setup_logging(verbose=args.verbose, log_file=args.log_file)

    try:
        app_config = get_app_config()
        if args.headless:
            app_config["headless"] = True
        if args.headed:
            app_config["headless"] = False
        if args.max_attempts:
            app_config["max_submit_attempts"] = args.max_attempts

        logger.info("Validating configuration...")
        validate_config(app_config)

        storage_config = StorageConfig.from_env()
        if args.database_url:
            storage_config = StorageConfig(database_url=args.database_url, echo=storage_config.echo)
        database = Database(storage_config)

        credentials = resolve_credentials(database, email=args.email)
        logger.info(f"Headless mode: {app_config['headless']}")

        result = submit_pending_entries(
            database,
            credentials,
            app_config=app_config,
            progress_callback=lambda percent, message: logger.info(f"[{percent:3d}%] {message}"),
        )

        logger.info(f"\n{'='*60}")
        logger.info("SUMMARY")
        logger.info(f"{'='*60}")
        logger.info(format_result_message(result))
        logger.info(f"Submitted ids: {result.submitted_ids}")
        logger.info(f"Removed ids: {result.removed_ids}")
        logger.info(f"{'='*60}\n")

        sys.exit(0 if result.ok else 1)

    except KeyboardInterrupt:
        logger.info("\nInterrupted by user")
        sys.exit(130)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
