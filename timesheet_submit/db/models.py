"""
SQLAlchemy database models.
"""
from __future__ import annotations

import enum
import datetime as dt

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Integer,
    LargeBinary,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
)


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class EntryStatus(str, enum.Enum):
    """Stored status values. A NULL status means the entry is still pending."""
    SUBMITTED = "Complete"


class TimesheetEntry(Base):
    """One block of logged time, waiting for (or past) submission."""
    __tablename__ = "timesheet"
    __table_args__ = (
        CheckConstraint("time_in BETWEEN 0 AND 1439", name="ck_timesheet_time_in_range"),
        CheckConstraint("time_out BETWEEN 1 AND 1440", name="ck_timesheet_time_out_range"),
        CheckConstraint("time_in % 15 = 0", name="ck_timesheet_time_in_quarter_hour"),
        CheckConstraint("time_out % 15 = 0", name="ck_timesheet_time_out_quarter_hour"),
        CheckConstraint("time_out > time_in", name="ck_timesheet_time_order"),
        UniqueConstraint(
            "date", "time_in", "project", "task_description",
            name="uq_timesheet_date_time_project_task",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)

    # Minutes since midnight
    time_in: Mapped[int] = mapped_column(Integer, nullable=False)
    time_out: Mapped[int] = mapped_column(Integer, nullable=False)

    project: Mapped[str] = mapped_column(String(255), nullable=False)
    tool: Mapped[str | None] = mapped_column(String(255), nullable=True)
    detail_charge_code: Mapped[str | None] = mapped_column(String(255), nullable=True)
    task_description: Mapped[str] = mapped_column(Text, nullable=False)

    # NULL = pending
    status: Mapped[str | None] = mapped_column(String(32), nullable=True, index=True)
    submitted_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    @property
    def hours(self) -> float:
        return (self.time_out - self.time_in) / 60

    def __repr__(self) -> str:
        return (
            f"TimesheetEntry(id={self.id}, date={self.date}, project={self.project!r}, "
            f"hours={self.hours}, status={self.status!r})"
        )


class Credential(Base):
    """Encrypted login for an external service (AES-GCM ciphertext + nonce)."""
    __tablename__ = "credentials"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    service: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False)

    enc_password: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    nonce_password: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)

    # Bookkeeping
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[dt.datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=func.now()
    )
