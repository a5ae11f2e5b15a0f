"""
Database module for timesheet storage with SQLAlchemy.
"""
from .models import Base, Credential, EntryStatus, TimesheetEntry
from .database import Database
from .config import StorageConfig
from .repository import (
    DuplicateEntryError,
    ReconciliationError,
    get_entries_by_ids,
    get_pending_entries,
    insert_entry,
    mark_entries_submitted,
    remove_failed_entries,
)

__all__ = [
    "Base",
    "Credential",
    "EntryStatus",
    "TimesheetEntry",
    "Database",
    "StorageConfig",
    "DuplicateEntryError",
    "ReconciliationError",
    "get_entries_by_ids",
    "get_pending_entries",
    "insert_entry",
    "mark_entries_submitted",
    "remove_failed_entries",
]
