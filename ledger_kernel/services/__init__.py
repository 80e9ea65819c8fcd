"""Services for the ledger kernel (write side)."""

from ledger_kernel.services.account_service import AccountService
from ledger_kernel.services.event_publisher import (
    EventEnvelope,
    EventPublisher,
    InMemoryEventPublisher,
    LoggingEventPublisher,
    NullEventPublisher,
    PendingEvent,
    build_journal_created_event,
    publish_after_commit,
)
from ledger_kernel.services.journal_poster import (
    JournalPoster,
    PostingResult,
    WriteStatus,
)
from ledger_kernel.services.snapshot_service import SnapshotResult, SnapshotService

__all__ = [
    "AccountService",
    "EventEnvelope",
    "EventPublisher",
    "InMemoryEventPublisher",
    "JournalPoster",
    "LoggingEventPublisher",
    "NullEventPublisher",
    "PendingEvent",
    "PostingResult",
    "SnapshotResult",
    "SnapshotService",
    "WriteStatus",
    "build_journal_created_event",
    "publish_after_commit",
]
