"""
Event notification for newly posted journals.

Responsibility:
    Builds the ``journal.created`` envelope and hands it to an external
    publish interface (message broker adapter, webhook relay...).  From the
    ledger's point of view publishing is fire-and-forget: a publisher
    failure is logged and reported as ``False``, never raised, and never
    rolls back the posting.

Envelope::

    {
      "event_id": "<uuid4>",
      "event_type": "journal.created",
      "timestamp": "<ISO-8601 UTC>",
      "data": {
        "journal_id", "doc_no", "doc_type", "date", "memo",
        "entries": [...], "total_debit", "total_credit"
      },
      "metadata": {"service": "...", "version": "..."}
    }

Amounts are serialized as strings to keep 2dp exactness across transports.

Delivery waits for the transaction:
    ``publish_after_commit`` queues the envelope on the session.  It is
    handed to the publisher when the outermost transaction commits, and
    dropped if that transaction (or the SAVEPOINT it was queued in) rolls
    back, or the session closes without committing.  Subscribers therefore
    never hear about a journal that is not in the ledger.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, runtime_checkable
from uuid import uuid4

from sqlalchemy import event
from sqlalchemy.orm import Session, SessionTransaction

from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import PostedTransaction
from ledger_kernel.logging_config import get_logger

logger = get_logger("services.event_publisher")

JOURNAL_CREATED = "journal.created"


@dataclass(frozen=True)
class EventEnvelope:
    event_id: str
    event_type: str
    timestamp: str
    data: dict[str, Any]
    metadata: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_type": self.event_type,
            "timestamp": self.timestamp,
            "data": self.data,
            "metadata": self.metadata,
        }


@runtime_checkable
class EventPublisher(Protocol):
    """Outbound publish interface."""

    def publish(self, envelope: EventEnvelope) -> None:
        """Deliver the envelope.  May raise; the caller contains the failure."""
        ...


class NullEventPublisher:
    """Discards every event."""

    def publish(self, envelope: EventEnvelope) -> None:
        return None


class LoggingEventPublisher:
    """Writes every event to the structured log.  Useful without a broker."""

    def publish(self, envelope: EventEnvelope) -> None:
        logger.info(
            "event_published",
            extra={"event_type": envelope.event_type, "event_id": envelope.event_id,
                   "payload": envelope.data},
        )


class InMemoryEventPublisher:
    """Collects events in a list (tests, local runs)."""

    def __init__(self) -> None:
        self.events: list[EventEnvelope] = []

    def publish(self, envelope: EventEnvelope) -> None:
        self.events.append(envelope)

    def of_type(self, event_type: str) -> list[EventEnvelope]:
        return [e for e in self.events if e.event_type == event_type]


def build_journal_created_event(
    posted: PostedTransaction,
    clock: Clock,
    service: str = "ledger-core",
    version: str = "1.0",
) -> EventEnvelope:
    return EventEnvelope(
        event_id=str(uuid4()),
        event_type=JOURNAL_CREATED,
        timestamp=clock.now().isoformat(),
        data={
            "journal_id": str(posted.id),
            "doc_no": posted.doc_no,
            "doc_type": posted.doc_type,
            "date": posted.date.isoformat(),
            "memo": posted.memo,
            "entries": [line.to_dict() for line in posted.lines],
            "total_debit": str(posted.total_debit),
            "total_credit": str(posted.total_credit),
        },
        metadata={"service": service, "version": version},
    )


def publish_safely(publisher: EventPublisher, envelope: EventEnvelope) -> bool:
    """
    Publish without letting a publisher failure escape.

    Returns:
        True if the publisher accepted the event, False if it raised.
    """
    try:
        publisher.publish(envelope)
    except Exception:
        logger.error(
            "event_publish_failed",
            extra={"event_type": envelope.event_type, "event_id": envelope.event_id,
                   "doc_no": envelope.data.get("doc_no")},
            exc_info=True,
        )
        return False
    logger.debug(
        "event_publish_succeeded",
        extra={"event_type": envelope.event_type, "event_id": envelope.event_id},
    )
    return True


# =========================================================================
# Commit-bound delivery
# =========================================================================

_PENDING_KEY = "ledger_pending_events"


class DeliveryState(str, Enum):
    PENDING = "pending"
    PUBLISHED = "published"
    FAILED = "failed"
    DISCARDED = "discarded"


class PendingEvent:
    """An envelope waiting for its transaction to commit."""

    def __init__(
        self,
        publisher: EventPublisher,
        envelope: EventEnvelope,
        owner: SessionTransaction | None,
    ) -> None:
        self.publisher = publisher
        self.envelope = envelope
        self.owner = owner
        self.state = DeliveryState.PENDING

    @property
    def published(self) -> bool:
        return self.state == DeliveryState.PUBLISHED


def _pending(session: Session) -> list[PendingEvent]:
    return session.info.setdefault(_PENDING_KEY, [])


def _within(owner: SessionTransaction | None, boundary: SessionTransaction) -> bool:
    while owner is not None:
        if owner is boundary:
            return True
        owner = owner.parent
    return False


def _discard(session: Session, events: list[PendingEvent], reason: str) -> None:
    queue = _pending(session)
    for pending in events:
        pending.state = DeliveryState.DISCARDED
        queue.remove(pending)
        logger.info(
            "event_discarded",
            extra={"event_type": pending.envelope.event_type,
                   "event_id": pending.envelope.event_id,
                   "doc_no": pending.envelope.data.get("doc_no"),
                   "reason": reason},
        )


def _on_commit(session: Session) -> None:
    # Also fires when a SAVEPOINT is released; only the outermost commit counts.
    if session.in_nested_transaction():
        return
    queue = _pending(session)
    ready, queue[:] = list(queue), []
    for pending in ready:
        ok = publish_safely(pending.publisher, pending.envelope)
        pending.state = DeliveryState.PUBLISHED if ok else DeliveryState.FAILED


def _on_soft_rollback(session: Session, previous_transaction: SessionTransaction) -> None:
    if not previous_transaction.nested:
        return
    doomed = [p for p in _pending(session) if _within(p.owner, previous_transaction)]
    _discard(session, doomed, "savepoint_rolled_back")


def _on_transaction_end(session: Session, transaction: SessionTransaction) -> None:
    if transaction.parent is None:
        _discard(session, list(_pending(session)), "transaction_not_committed")


def publish_after_commit(
    session: Session, publisher: EventPublisher, envelope: EventEnvelope
) -> PendingEvent:
    """
    Queue ``envelope`` for delivery when ``session`` commits.

    Returns:
        The PendingEvent; its ``state`` moves to PUBLISHED or FAILED at
        commit, or DISCARDED on rollback.
    """
    if not session.info.get(_PENDING_KEY + "_hooked"):
        event.listen(session, "after_commit", _on_commit)
        event.listen(session, "after_soft_rollback", _on_soft_rollback)
        event.listen(session, "after_transaction_end", _on_transaction_end)
        session.info[_PENDING_KEY + "_hooked"] = True

    owner = session.get_nested_transaction() or session.get_transaction()
    pending = PendingEvent(publisher, envelope, owner)
    _pending(session).append(pending)
    logger.debug(
        "event_queued",
        extra={"event_type": envelope.event_type, "event_id": envelope.event_id},
    )
    return pending
