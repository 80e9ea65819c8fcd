"""
Module: ledger_kernel.selectors.journal_selector
Responsibility: Read access to posted journal transactions: lookup by
    document number, filtered/sorted/paginated listing, and per-member
    statements.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Page size defaults to 50 and is clamped to [1, 200]; skip is clamped
      to >= 0.
    - Listing order is deterministic: date, then created_at, then doc_no.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

from sqlalchemy import func, select

from ledger_kernel.domain.dtos import PostedTransaction
from ledger_kernel.domain.values import ZERO, LineSide, round2
from ledger_kernel.models.journal import JournalLine, JournalTransaction
from ledger_kernel.selectors.base import BaseSelector

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200


class JournalSort(str, Enum):
    """Listing order."""

    DATE_DESC = "-date"
    DATE_ASC = "date"


@dataclass(frozen=True)
class JournalFilter:
    date_from: date | None = None
    date_to: date | None = None
    doc_type: str | None = None
    member_id: str | None = None


@dataclass(frozen=True)
class Pagination:
    """Offset pagination, normalized on construction."""

    skip: int = 0
    limit: int = DEFAULT_PAGE_SIZE

    def __post_init__(self) -> None:
        limit = self.limit if self.limit else DEFAULT_PAGE_SIZE
        object.__setattr__(self, "limit", min(max(int(limit), 1), MAX_PAGE_SIZE))
        object.__setattr__(self, "skip", max(int(self.skip or 0), 0))


@dataclass(frozen=True)
class JournalPage:
    items: tuple[PostedTransaction, ...]
    total: int
    skip: int
    limit: int


@dataclass(frozen=True)
class MemberStatementLine:
    date: date
    doc_type: str
    doc_no: str
    memo: str
    account_code: str
    side: LineSide
    amount: Decimal
    period_bucket: str | None
    running_balance: Decimal


@dataclass(frozen=True)
class MemberStatement:
    """A member's ledger activity with opening and closing balances (debit - credit)."""

    member_id: str
    start: date | None
    end: date | None
    opening_balance: Decimal
    lines: tuple[MemberStatementLine, ...]

    @property
    def closing_balance(self) -> Decimal:
        return self.lines[-1].running_balance if self.lines else self.opening_balance


class JournalSelector(BaseSelector[JournalTransaction]):
    """Selector for journal transactions."""

    def find_by_doc_no(self, doc_no: str) -> PostedTransaction | None:
        """Return the transaction posted under ``doc_no``, or None."""
        model = self.session.scalars(
            select(JournalTransaction).where(JournalTransaction.doc_no == doc_no)
        ).first()
        return PostedTransaction.from_model(model) if model is not None else None

    def _filtered(self, stmt, journal_filter: JournalFilter):
        if journal_filter.date_from is not None:
            stmt = stmt.where(JournalTransaction.date >= journal_filter.date_from)
        if journal_filter.date_to is not None:
            stmt = stmt.where(JournalTransaction.date <= journal_filter.date_to)
        if journal_filter.doc_type is not None:
            stmt = stmt.where(JournalTransaction.doc_type == journal_filter.doc_type)
        if journal_filter.member_id is not None:
            stmt = stmt.where(
                JournalTransaction.lines.any(JournalLine.member_id == journal_filter.member_id)
            )
        return stmt

    def query_transactions(
        self,
        journal_filter: JournalFilter | None = None,
        sort: JournalSort = JournalSort.DATE_DESC,
        page: Pagination | None = None,
    ) -> JournalPage:
        """
        List transactions matching ``journal_filter``.

        Returns:
            JournalPage with the requested slice and the total match count.
        """
        journal_filter = journal_filter or JournalFilter()
        page = page or Pagination()

        if JournalSort(sort) is JournalSort.DATE_DESC:
            order = (
                JournalTransaction.date.desc(),
                JournalTransaction.created_at.desc(),
                JournalTransaction.doc_no.desc(),
            )
        else:
            order = (
                JournalTransaction.date.asc(),
                JournalTransaction.created_at.asc(),
                JournalTransaction.doc_no.asc(),
            )

        stmt = self._filtered(select(JournalTransaction), journal_filter)
        models = self.session.scalars(
            stmt.order_by(*order).offset(page.skip).limit(page.limit)
        ).all()

        count_stmt = self._filtered(
            select(func.count()).select_from(JournalTransaction), journal_filter
        )
        total = self.session.scalar(count_stmt) or 0

        return JournalPage(
            items=tuple(PostedTransaction.from_model(m) for m in models),
            total=total,
            skip=page.skip,
            limit=page.limit,
        )

    def member_statement(
        self,
        member_id: str,
        start: date | None = None,
        end: date | None = None,
    ) -> MemberStatement:
        """
        Lines attributed to ``member_id`` in ascending date order.

        The opening balance covers every line dated before ``start``.
        """
        opening = ZERO
        if start is not None:
            before = self.session.execute(
                select(JournalLine.side, JournalLine.amount)
                .join(JournalTransaction, JournalLine.transaction_id == JournalTransaction.id)
                .where(JournalLine.member_id == member_id)
                .where(JournalTransaction.date < start)
            )
            for side, amount in before:
                opening += _signed(side, amount)

        stmt = (
            select(JournalTransaction, JournalLine)
            .join(JournalLine, JournalLine.transaction_id == JournalTransaction.id)
            .where(JournalLine.member_id == member_id)
            .order_by(
                JournalTransaction.date.asc(),
                JournalTransaction.created_at.asc(),
                JournalTransaction.doc_no.asc(),
                JournalLine.line_seq.asc(),
            )
        )
        if start is not None:
            stmt = stmt.where(JournalTransaction.date >= start)
        if end is not None:
            stmt = stmt.where(JournalTransaction.date <= end)

        running = opening
        lines = []
        for txn, line in self.session.execute(stmt):
            running += _signed(line.side, line.amount)
            lines.append(
                MemberStatementLine(
                    date=txn.date,
                    doc_type=txn.doc_type,
                    doc_no=txn.doc_no,
                    memo=txn.memo,
                    account_code=line.account_code,
                    side=LineSide(line.side),
                    amount=round2(line.amount),
                    period_bucket=line.period_bucket,
                    running_balance=running,
                )
            )

        return MemberStatement(
            member_id=member_id,
            start=start,
            end=end,
            opening_balance=opening,
            lines=tuple(lines),
        )


def _signed(side: str, amount) -> Decimal:
    value = round2(amount)
    return value if side == LineSide.DEBIT else -value
