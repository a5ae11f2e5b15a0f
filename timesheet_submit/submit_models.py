"""
Data models for the timesheet submission workflow.

These are dataclass models passed between the Playwright automation and the
reconciliation step. For database models (SQLAlchemy), see db.models.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class SubmitCredentials:
    """
    Plaintext login for the form's sign-in flow.

    Only held for the duration of a run; the persisted copy is encrypted
    (see credentials.store).
    """
    email: str
    password: str

    def __repr__(self) -> str:
        return f"SubmitCredentials(email={self.email!r}, password='***')"


@dataclass
class RowFailure:
    """
    A row that did not get submitted.

    ``fatal`` marks failures caused by a run-level error (login, browser
    launch) rather than by the row itself; such rows stay pending.
    """
    index: int
    message: str
    fatal: bool = False


@dataclass
class AutomationResult:
    """Outcome of one automation run over an ordered list of rows."""
    submitted_indices: List[int] = field(default_factory=list)
    errors: List[RowFailure] = field(default_factory=list)
    total_rows: int = 0
    fatal_error: Optional[str] = None

    @property
    def success_count(self) -> int:
        return len(self.submitted_indices)

    @property
    def failure_count(self) -> int:
        return len(self.errors)

    @property
    def ok(self) -> bool:
        """True when at least one row was submitted, or there was nothing to do."""
        return self.total_rows == 0 or self.success_count > 0

    def record_success(self, index: int) -> None:
        self.submitted_indices.append(index)

    def record_failure(self, index: int, message: str, fatal: bool = False) -> None:
        self.errors.append(RowFailure(index=index, message=message, fatal=fatal))


@dataclass
class SubmissionResult:
    """
    Final result of a submission run, after reconciliation with storage.
    """
    ok: bool
    submitted_ids: List[int] = field(default_factory=list)
    removed_ids: List[int] = field(default_factory=list)
    total_processed: int = 0
    error: Optional[str] = None

    @property
    def success_count(self) -> int:
        return len(self.submitted_ids)

    @property
    def removed_count(self) -> int:
        return len(self.removed_ids)

    def to_dict(self) -> Dict[str, Any]:
        """Serialise with the camelCase keys consumers expect."""
        data: Dict[str, Any] = {
            "ok": self.ok,
            "submittedIds": list(self.submitted_ids),
            "removedIds": list(self.removed_ids),
            "totalProcessed": self.total_processed,
            "successCount": self.success_count,
            "removedCount": self.removed_count,
        }
        if self.error:
            data["error"] = self.error
        return data
