"""
Module: ledger_kernel.models.report_snapshot
Responsibility: ORM model for locked period reports (month-end, year-end).
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - (report_type, label) is unique (uq_report_snapshot_type_label).  At
      most one snapshot exists per period, and concurrent first requests are
      settled by this constraint.
    - Snapshots are immutable once created.  A later backdated posting does
      not change a locked snapshot.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any

from sqlalchemy import JSON, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base


class SnapshotType(str, Enum):
    """Kinds of period snapshot."""

    MONTH_END = "month-end"
    YEAR_END = "year-end"


class ReportSnapshot(Base):
    """A computed period report, frozen at first request."""

    __tablename__ = "report_snapshots"
    __table_args__ = (
        UniqueConstraint("report_type", "label", name="uq_report_snapshot_type_label"),
    )

    report_type: Mapped[SnapshotType] = mapped_column(String(20), nullable=False)

    # "2025-08" for month-end, "2025" for year-end
    label: Mapped[str] = mapped_column(String(20), nullable=False)

    range_start: Mapped[date] = mapped_column(nullable=False)

    range_end: Mapped[date] = mapped_column(nullable=False)

    data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    locked_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    generated_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<ReportSnapshot {self.report_type} {self.label}>"
