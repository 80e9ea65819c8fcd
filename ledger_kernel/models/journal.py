"""
Module: ledger_kernel.models.journal
Responsibility: ORM models for the append-only ledger: JournalTransaction
    (header) and JournalLine (individual debit/credit lines).
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/values.py only.

Invariants enforced:
    - doc_no is unique (uq_journal_doc_no).  It is the idempotency key for
      posting; the database constraint is what settles concurrent races.
    - Lines are written in the same flush as their header
      (cascade="all, delete-orphan").  A transaction is never partially
      persisted.
    - Debits == credits at 2dp.  Enforced by JournalPoster before the write;
      is_balanced is available for verification.
    - Rows are never updated or deleted by the kernel.  Corrections are new
      adjusting transactions.

Audit relevance:
    The journal is the only source of truth for every report.  There are no
    stored balances.
"""

import datetime as dt
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import Base, TrackedBase, UUIDString
from ledger_kernel.domain.values import LineSide, PeriodBucket


class JournalTransaction(TrackedBase):
    """
    A posted ledger transaction.

    Contract:
        Created exactly once per doc_no by JournalPoster.  Never updated or
        deleted.

    Guarantees:
        - At least two lines, ordered by line_seq.
        - Debit total equals credit total.
    """

    __tablename__ = "journal_transactions"
    __table_args__ = (
        UniqueConstraint("doc_no", name="uq_journal_doc_no"),
        Index("idx_journal_date", "date"),
        Index("idx_journal_doc_type", "doc_type"),
    )

    date: Mapped[dt.date] = mapped_column(nullable=False)

    # Invoice, CreditNote, Receipt, WriteOff, Claim, Settlement, ...
    doc_type: Mapped[str] = mapped_column(String(30), nullable=False)

    doc_no: Mapped[str] = mapped_column(String(100), nullable=False)

    memo: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    lines: Mapped[list["JournalLine"]] = relationship(
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="JournalLine.line_seq",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<JournalTransaction {self.doc_no} {self.doc_type} {self.date}>"

    @property
    def total_debits(self) -> Decimal:
        return sum(
            (line.amount for line in self.lines if line.side == LineSide.DEBIT),
            Decimal("0"),
        )

    @property
    def total_credits(self) -> Decimal:
        return sum(
            (line.amount for line in self.lines if line.side == LineSide.CREDIT),
            Decimal("0"),
        )

    @property
    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits


class JournalLine(Base):
    """
    A single debit or credit line of a JournalTransaction.

    This is the stored shape: the raw account code plus the member and tag
    fields.  Display labels never reach this table.
    """

    __tablename__ = "journal_lines"
    __table_args__ = (
        Index("idx_line_transaction", "transaction_id"),
        Index("idx_line_account", "account_code"),
        Index("idx_line_member", "member_id"),
    )

    transaction_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("journal_transactions.id"),
        nullable=False,
    )

    line_seq: Mapped[int] = mapped_column(Integer, nullable=False)

    account_code: Mapped[str] = mapped_column(
        String(20),
        ForeignKey("accounts.code"),
        nullable=False,
    )

    side: Mapped[LineSide] = mapped_column(String(10), nullable=False)

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    member_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    application_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    period_bucket: Mapped[PeriodBucket | None] = mapped_column(
        String(10), nullable=True
    )

    revenue_sub_type: Mapped[str | None] = mapped_column(String(50), nullable=True)

    adj_sub_type: Mapped[str | None] = mapped_column(String(50), nullable=True)

    category_name: Mapped[str | None] = mapped_column(String(100), nullable=True)

    transaction: Mapped[JournalTransaction] = relationship(back_populates="lines")

    def __repr__(self) -> str:
        return f"<JournalLine {self.account_code} {self.side} {self.amount}>"
