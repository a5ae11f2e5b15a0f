"""
Apply automation outcomes back to storage.

Submitted rows become Submitted, rows that failed on their own merits are
removed, and everything else (rows never reached, rows failed by a run-level
error) is left pending for the next run.
"""
import logging
from typing import List, Sequence

from timesheet_submit.db.database import Database
from timesheet_submit.db.repository import mark_entries_submitted, remove_failed_entries
from timesheet_submit.submit_models import AutomationResult, SubmissionResult

logger = logging.getLogger(__name__)

DB_UPDATE_FAILED_MESSAGE = (
    "Submission succeeded but database update failed. "
    "Entries may be submitted again on the next run."
)


def map_indices_to_ids(entry_ids: Sequence[int], indices: Sequence[int]) -> List[int]:
    """Translate row indices into entry ids, ignoring indices out of range."""
    ids = []
    for index in indices:
        if 0 <= index < len(entry_ids):
            ids.append(entry_ids[index])
        else:
            logger.warning(f"Ignoring out-of-range row index {index}")
    return ids


class Reconciler:
    """Writes an AutomationResult into storage for the entries it was run on."""

    def __init__(self, database: Database) -> None:
        self.database = database

    def reconcile(self, entry_ids: Sequence[int], result: AutomationResult) -> SubmissionResult:
        """
        Update storage for one automation run.

        Args:
            entry_ids: Ids of the entries, in the same order as the rows given to the processor
            result: Outcome of that run

        Returns:
            SubmissionResult describing what changed in storage
        """
        submitted_ids = map_indices_to_ids(entry_ids, result.submitted_indices)
        failed_ids = map_indices_to_ids(
            entry_ids, [failure.index for failure in result.errors if not failure.fatal]
        )

        outcome = SubmissionResult(
            ok=result.ok,
            submitted_ids=submitted_ids,
            total_processed=result.total_rows,
            error=result.fatal_error,
        )

        if submitted_ids:
            try:
                with self.database.session_scope() as db:
                    mark_entries_submitted(db, submitted_ids)
            except Exception as e:
                logger.error(f"Failed to mark entries {submitted_ids} as submitted: {e}", exc_info=True)
                outcome.ok = False
                outcome.error = DB_UPDATE_FAILED_MESSAGE
                # Keep the ids so callers know which entries did reach the form
                return outcome

        if failed_ids:
            try:
                with self.database.session_scope() as db:
                    remove_failed_entries(db, failed_ids)
                outcome.removed_ids = failed_ids
            except Exception as e:
                logger.error(f"Failed to remove failed entries {failed_ids}: {e}", exc_info=True)

        logger.info(
            f"Reconciled {len(entry_ids)} entries: {len(outcome.submitted_ids)} submitted, "
            f"{len(outcome.removed_ids)} removed"
        )
        return outcome
