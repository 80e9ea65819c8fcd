"""
JournalPoster -- balanced, idempotent journal posting.

Responsibility:
    Turns a caller-supplied set of LineSpecs into one persisted
    JournalTransaction:

        1. enrichment   -- batch-resolve account codes against the CoA
        2. balance      -- per-line round2, debits == credits
        3. guardrails   -- ordered policy rules (bank / member context ...)
        4. idempotency  -- existing doc_no is returned unchanged
        5. persistence  -- header + lines in one SAVEPOINT
        6. notification -- ``journal.created`` for new posts only, delivered
                           when the caller commits

Architecture position:
    Kernel > Services -- imperative shell, flushes within the caller's
    transaction.  Reads the CoA through AccountSelector and existing
    transactions through JournalTransaction queries.

Invariants enforced:
    - Every referenced account exists (UnknownAccountError).
    - Debits == credits at 2dp (UnbalancedJournalError).
    - At least two lines, none negative (InvalidJournalError).
    - doc_no uniqueness via the uq_journal_doc_no constraint.  A duplicate
      insert caused by a concurrent poster is converted into the
      AlreadyExists arm of the tagged insert result, never surfaced.
    - All validation happens before any write, and the insert runs inside
      a SAVEPOINT, so a failed post leaves nothing behind.

Failure modes:
    - Validation errors listed above (never retried).
    - SQLAlchemyError from the database (transient; caller may retry).
    - A publisher failure is logged (event_publish_failed) and does not fail
      the post.  A rolled back post publishes nothing (event_discarded).

Audit relevance:
    Every step logs a structured record keyed by doc_no
    (journal_post_started, balance_validated, journal_post_idempotent,
    concurrent_insert_conflict, journal_posted).
"""

import time
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import (
    AlreadyExists,
    EnrichedLine,
    Inserted,
    InsertResult,
    LineSpec,
    PostedTransaction,
    StoredLine,
    WriteStatus,
    to_stored_line,
)
from ledger_kernel.domain.guardrails import Guardrail, GuardrailContext, evaluate_guardrails
from ledger_kernel.domain.values import ZERO, LineSide, round2
from ledger_kernel.exceptions import (
    InvalidJournalError,
    UnbalancedJournalError,
    UnknownAccountError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.journal import JournalLine, JournalTransaction
from ledger_kernel.selectors.account_selector import AccountSelector
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.event_publisher import (
    EventPublisher,
    NullEventPublisher,
    PendingEvent,
    build_journal_created_event,
    publish_after_commit,
)

logger = get_logger("services.journal_poster")

MIN_LINES = 2


@dataclass(frozen=True)
class PostingResult:
    """
    Result of JournalPoster.post_balanced_journal().

    Both arms carry the persisted transaction; ``status`` tells whether this
    call wrote it.  ``notification`` is the queued ``journal.created`` event
    of a new post; ``event_published`` turns true once the caller has
    committed and the publisher accepted it.
    """

    status: WriteStatus
    transaction: PostedTransaction
    notification: PendingEvent | None = None

    @classmethod
    def written(cls, transaction: PostedTransaction, notification: PendingEvent) -> "PostingResult":
        return cls(
            status=WriteStatus.WRITTEN,
            transaction=transaction,
            notification=notification,
        )

    @classmethod
    def already_exists(cls, transaction: PostedTransaction) -> "PostingResult":
        """Idempotent success: the doc_no was already posted."""
        return cls(status=WriteStatus.ALREADY_EXISTS, transaction=transaction)

    @property
    def is_new(self) -> bool:
        return self.status == WriteStatus.WRITTEN

    @property
    def event_published(self) -> bool:
        return self.notification is not None and self.notification.published

    @property
    def doc_no(self) -> str:
        return self.transaction.doc_no


class JournalPoster(BaseService[JournalTransaction]):
    """
    The single writer of JournalTransaction rows.

    Contract:
        ``post_balanced_journal`` either raises a validation error having
        written nothing, or returns a PostingResult whose transaction is
        present in the caller's session.

    Guarantees:
        - Posting the same doc_no twice yields one row; both calls return
          equal PostedTransactions.
        - Replays never notify.
        - Nothing is published for a post the caller does not commit.

    Non-goals:
        - Does NOT commit.  The caller owns the transaction boundary.
        - Does NOT compare a replayed request's lines with the stored ones;
          doc_no alone identifies the document.
    """

    def __init__(
        self,
        session: Session,
        guardrails: Sequence[Guardrail],
        clock: Clock | None = None,
        publisher: EventPublisher | None = None,
        event_service: str = "ledger-core",
        event_version: str = "1.0",
    ):
        super().__init__(session)
        self._guardrails = tuple(guardrails)
        self._clock = clock or SystemClock()
        self._publisher = publisher or NullEventPublisher()
        self._event_service = event_service
        self._event_version = event_version
        self._accounts = AccountSelector(session)

    def post_balanced_journal(
        self,
        date: date,
        doc_type: str,
        doc_no: str,
        memo: str,
        lines: Sequence[LineSpec],
    ) -> PostingResult:
        """
        Validate and persist one balanced transaction.

        Raises:
            InvalidJournalError: fewer than two lines, negative amount or no doc_no.
            UnknownAccountError: a line references a code missing from the CoA.
            UnbalancedJournalError: debits != credits after 2dp rounding.
            GuardrailViolationError / MissingMemberContextError: policy rules.
        """
        t0 = time.monotonic()
        doc_type = getattr(doc_type, "value", doc_type)

        with LogContext.bind(doc_no=doc_no):
            logger.info(
                "journal_post_started",
                extra={"doc_type": doc_type, "line_count": len(lines), "date": date},
            )

            self._validate_shape(doc_no, lines)
            enriched = self._enrich(lines)
            self._validate_balance(doc_no, enriched)
            evaluate_guardrails(
                self._guardrails,
                GuardrailContext(doc_type=doc_type, doc_no=doc_no, lines=tuple(enriched)),
            )

            outcome = self._insert(
                date, doc_type, doc_no, memo, [to_stored_line(line) for line in enriched]
            )

            if isinstance(outcome, AlreadyExists):
                logger.info(
                    "journal_post_idempotent",
                    extra={"journal_id": outcome.record.id},
                )
                return PostingResult.already_exists(outcome.record)

            posted = outcome.record
            notification = publish_after_commit(
                self.session,
                self._publisher,
                build_journal_created_event(
                    posted, self._clock, self._event_service, self._event_version
                ),
            )

            logger.info(
                "journal_posted",
                extra={
                    "journal_id": posted.id,
                    "doc_type": doc_type,
                    "total_debit": posted.total_debit,
                    "event_id": notification.envelope.event_id,
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                },
            )
            return PostingResult.written(posted, notification)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _validate_shape(self, doc_no: str, lines: Sequence[LineSpec]) -> None:
        if not doc_no or not doc_no.strip():
            raise InvalidJournalError("doc_no is required")
        if len(lines) < MIN_LINES:
            raise InvalidJournalError(
                f"at least {MIN_LINES} lines required, got {len(lines)}", doc_no
            )
        for line in lines:
            if line.amount < 0:
                raise InvalidJournalError(
                    f"negative amount {line.amount} on account {line.account_code}", doc_no
                )

    def _enrich(self, lines: Sequence[LineSpec]) -> list[EnrichedLine]:
        """Resolve all distinct codes in one lookup and attach CoA metadata."""
        codes = {line.account_code for line in lines}
        accounts = {a.code: a for a in self._accounts.find_accounts_by_code(codes)}
        missing = codes - accounts.keys()
        if missing:
            raise UnknownAccountError(list(missing))

        return [
            EnrichedLine(
                line_seq=seq,
                spec=line,
                account=accounts[line.account_code],
                amount=round2(line.amount),
            )
            for seq, line in enumerate(lines)
        ]

    def _validate_balance(self, doc_no: str, lines: list[EnrichedLine]) -> None:
        debit_total = sum((l.amount for l in lines if l.side == LineSide.DEBIT), ZERO)
        credit_total = sum((l.amount for l in lines if l.side == LineSide.CREDIT), ZERO)
        if debit_total != credit_total:
            raise UnbalancedJournalError(debit_total, credit_total, doc_no)

        logger.debug(
            "balance_validated",
            extra={
                "debit_total": debit_total,
                "credit_total": credit_total,
                "accounts": [l.label for l in lines],
            },
        )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _get_existing(self, doc_no: str) -> JournalTransaction | None:
        return self.session.scalars(
            select(JournalTransaction).where(JournalTransaction.doc_no == doc_no)
        ).first()

    def _build_model(
        self, date: date, doc_type: str, doc_no: str, memo: str, lines: list[StoredLine]
    ) -> JournalTransaction:
        txn = JournalTransaction(
            date=date,
            doc_type=doc_type,
            doc_no=doc_no,
            memo=memo or "",
            created_at=self._clock.now(),
        )
        txn.lines = [
            JournalLine(
                line_seq=line.line_seq,
                account_code=line.account_code,
                side=line.side.value,
                amount=line.amount,
                member_id=line.member_id,
                application_id=line.application_id,
                period_bucket=line.period_bucket.value if line.period_bucket else None,
                revenue_sub_type=line.revenue_sub_type,
                adj_sub_type=line.adj_sub_type,
                category_name=line.category_name,
            )
            for line in lines
        ]
        return txn

    def _insert(
        self, date: date, doc_type: str, doc_no: str, memo: str, lines: list[StoredLine]
    ) -> InsertResult[PostedTransaction]:
        """
        Insert unless doc_no exists.

        Returns:
            Inserted(tx) when this call wrote the row, AlreadyExists(tx) when
            the row was found on lookup or won a concurrent race.
        """
        existing = self._get_existing(doc_no)
        if existing is not None:
            return AlreadyExists(PostedTransaction.from_model(existing))

        txn = self._build_model(date, doc_type, doc_no, memo, lines)
        try:
            with self.session.begin_nested():
                self.session.add(txn)
                self.session.flush()
        except IntegrityError:
            logger.warning("concurrent_insert_conflict", extra={"table": "journal_transactions"})
            winner = self._get_existing(doc_no)
            if winner is None:
                raise
            return AlreadyExists(PostedTransaction.from_model(winner))

        return Inserted(PostedTransaction.from_model(txn))
