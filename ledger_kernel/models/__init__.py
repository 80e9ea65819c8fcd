"""SQLAlchemy models for the ledger kernel."""

from ledger_kernel.models.account import Account, AccountType
from ledger_kernel.models.journal import (
    JournalLine,
    JournalTransaction,
    LineSide,
    PeriodBucket,
)
from ledger_kernel.models.report_snapshot import ReportSnapshot, SnapshotType

__all__ = [
    "Account",
    "AccountType",
    "JournalLine",
    "JournalTransaction",
    "LineSide",
    "PeriodBucket",
    "ReportSnapshot",
    "SnapshotType",
]
