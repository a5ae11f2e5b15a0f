"""
Queries and status transitions for timesheet entries.

All functions take an open SQLAlchemy session; transaction boundaries belong
to the caller (see Database.session_scope).
"""
import datetime as dt
import logging
from typing import List, Optional, Sequence

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .models import EntryStatus, TimesheetEntry

logger = logging.getLogger(__name__)


class DuplicateEntryError(ValueError):
    """An entry with the same date, start time, project and task already exists."""


class ReconciliationError(RuntimeError):
    """Stored state did not match what a status transition expected."""


def get_pending_entries(db: Session) -> List[TimesheetEntry]:
    """Pending entries (status IS NULL), ordered by date then start time."""
    stmt = (
        select(TimesheetEntry)
        .where(TimesheetEntry.status.is_(None))
        .order_by(TimesheetEntry.date, TimesheetEntry.time_in)
    )
    return list(db.scalars(stmt))


def get_entries_by_ids(db: Session, entry_ids: Sequence[int]) -> List[TimesheetEntry]:
    if not entry_ids:
        return []
    stmt = select(TimesheetEntry).where(TimesheetEntry.id.in_(entry_ids)).order_by(TimesheetEntry.id)
    return list(db.scalars(stmt))


def insert_entry(
    db: Session,
    date: dt.date,
    time_in: int,
    time_out: int,
    project: str,
    task_description: str,
    tool: Optional[str] = None,
    detail_charge_code: Optional[str] = None,
) -> TimesheetEntry:
    """
    Insert a pending entry.

    Raises:
        DuplicateEntryError: If the (date, time_in, project, task_description)
            combination already exists
        ValueError: If the times are out of range or not quarter-hour aligned
    """
    if not (0 <= time_in < time_out <= 1440):
        raise ValueError(f"Invalid time range {time_in}-{time_out}")
    if time_in % 15 or time_out % 15:
        raise ValueError("Times must be multiples of 15 minutes")

    entry = TimesheetEntry(
        date=date,
        time_in=time_in,
        time_out=time_out,
        project=project,
        tool=tool,
        detail_charge_code=detail_charge_code,
        task_description=task_description,
    )
    try:
        with db.begin_nested():
            db.add(entry)
    except IntegrityError as e:
        raise DuplicateEntryError(
            f"Entry already exists for {date} at {time_in} ({project}: {task_description})"
        ) from e
    return entry


def mark_entries_submitted(
    db: Session,
    entry_ids: Sequence[int],
    submitted_at: Optional[dt.datetime] = None,
) -> int:
    """
    Move pending entries to Submitted.

    Returns:
        Number of rows updated

    Raises:
        ReconciliationError: If fewer rows were updated than ids given
            (an id was unknown or no longer pending)
    """
    if not entry_ids:
        return 0

    submitted_at = submitted_at or dt.datetime.now(dt.timezone.utc)
    stmt = (
        update(TimesheetEntry)
        .where(TimesheetEntry.id.in_(entry_ids), TimesheetEntry.status.is_(None))
        .values(status=EntryStatus.SUBMITTED.value, submitted_at=submitted_at)
        .execution_options(synchronize_session=False)
    )
    updated = db.execute(stmt).rowcount
    if updated != len(set(entry_ids)):
        raise ReconciliationError(
            f"Expected to mark {len(set(entry_ids))} entries submitted, updated {updated}"
        )
    logger.info(f"Marked {updated} entries as submitted")
    return updated


def remove_failed_entries(db: Session, entry_ids: Sequence[int]) -> int:
    """
    Permanently delete entries that failed submission.

    Only entries that are still pending are removed.

    Returns:
        Number of rows deleted
    """
    if not entry_ids:
        return 0

    stmt = (
        delete(TimesheetEntry)
        .where(TimesheetEntry.id.in_(entry_ids), TimesheetEntry.status.is_(None))
        .execution_options(synchronize_session=False)
    )
    deleted = db.execute(stmt).rowcount
    logger.info(f"Removed {deleted} failed entries")
    return deleted
