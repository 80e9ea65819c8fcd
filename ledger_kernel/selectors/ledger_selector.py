"""
Module: ledger_kernel.selectors.ledger_selector
Responsibility: Aggregate queries over posted journal lines: the generic
    ``aggregate_lines`` primitive, the trial balance, member-tracked balances
    and clearing-account movement.  The ledger is a derived view over
    JournalLine rows; there are no stored balances anywhere.
Architecture position: Kernel > Selectors.  May import from models/,
    domain/ and selectors/base.py.

Invariants enforced:
    - No stored balances.  Every figure is computed at query time from the
      immutable log, so there is no cache to invalidate.
    - Debit and credit are summed separately and rounded to 2dp; net is
      always debit - credit (debit-positive convention).

Failure modes:
    - Returns empty lists when no lines match.
    - SQLAlchemyError propagates to the caller (the reporting service wraps
      it as a retryable ReportComputationError).
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any

from sqlalchemy import case, func, select

from ledger_kernel.domain.values import ZERO, LineSide, round2
from ledger_kernel.models.account import Account
from ledger_kernel.models.journal import JournalLine, JournalTransaction
from ledger_kernel.selectors.base import BaseSelector

_GROUPABLE_COLUMNS = {
    "account_code": JournalLine.account_code,
    "member_id": JournalLine.member_id,
    "application_id": JournalLine.application_id,
    "period_bucket": JournalLine.period_bucket,
}


@dataclass(frozen=True)
class LineFilter:
    """Which lines an aggregate covers.  ``None`` means unbounded."""

    date_from: date | None = None
    date_to: date | None = None
    account_codes: tuple[str, ...] | None = None
    member_id: str | None = None


@dataclass(frozen=True)
class AggregateRow:
    """One group of an aggregate query."""

    keys: dict[str, Any] = field(hash=False)
    debit: Decimal
    credit: Decimal

    @property
    def net(self) -> Decimal:
        return self.debit - self.credit


@dataclass(frozen=True)
class TrialBalanceRow:
    """A single row of a trial balance."""

    account_code: str
    account_name: str
    account_type: str
    debit: Decimal
    credit: Decimal

    @property
    def net(self) -> Decimal:
        """Net balance (debits - credits)."""
        return self.debit - self.credit


def _debit_sum():
    return func.sum(
        case((JournalLine.side == LineSide.DEBIT.value, JournalLine.amount), else_=0)
    )


def _credit_sum():
    return func.sum(
        case((JournalLine.side == LineSide.CREDIT.value, JournalLine.amount), else_=0)
    )


def _money(value: Any) -> Decimal:
    return ZERO if value is None else round2(value)


class LedgerSelector(BaseSelector[JournalLine]):
    """
    Selector for ledger aggregates.

    Contract:
        Reads whatever is committed (or flushed in the caller's session) at
        call time.  Never mutates.

    Guarantees:
        - All amounts are Decimal rounded to 2dp.
        - Results are sorted by their group keys.
    """

    def _apply_filter(self, stmt, line_filter: LineFilter):
        if line_filter.date_from is not None:
            stmt = stmt.where(JournalTransaction.date >= line_filter.date_from)
        if line_filter.date_to is not None:
            stmt = stmt.where(JournalTransaction.date <= line_filter.date_to)
        if line_filter.account_codes is not None:
            stmt = stmt.where(JournalLine.account_code.in_(line_filter.account_codes))
        if line_filter.member_id is not None:
            stmt = stmt.where(JournalLine.member_id == line_filter.member_id)
        return stmt

    def aggregate_lines(
        self,
        line_filter: LineFilter,
        group_by: tuple[str, ...] = ("account_code",),
    ) -> list[AggregateRow]:
        """
        Sum debits and credits of matching lines per group.

        Args:
            line_filter: Date range / account / member restriction.
            group_by: Any of account_code, member_id, application_id,
                period_bucket.

        Raises:
            ValueError: on an unknown group column.
        """
        unknown = [name for name in group_by if name not in _GROUPABLE_COLUMNS]
        if unknown:
            raise ValueError(f"Cannot group journal lines by {', '.join(unknown)}")
        if line_filter.account_codes is not None and not line_filter.account_codes:
            return []

        columns = [_GROUPABLE_COLUMNS[name] for name in group_by]
        stmt = (
            select(*columns, _debit_sum().label("debit"), _credit_sum().label("credit"))
            .select_from(JournalLine)
            .join(JournalTransaction, JournalLine.transaction_id == JournalTransaction.id)
            .group_by(*columns)
            .order_by(*columns)
        )
        stmt = self._apply_filter(stmt, line_filter)

        rows = []
        for row in self.session.execute(stmt):
            mapping = row._mapping
            rows.append(
                AggregateRow(
                    keys={name: mapping[name] for name in group_by},
                    debit=_money(mapping["debit"]),
                    credit=_money(mapping["credit"]),
                )
            )
        return rows

    def trial_balance(self, start: date | None, end: date | None) -> list[TrialBalanceRow]:
        """
        Per-account debit/credit totals for transactions dated in [start, end].

        Only accounts with activity in the range appear.  Sorted by account
        code ascending.
        """
        stmt = (
            select(
                Account.code,
                Account.description,
                Account.account_type,
                _debit_sum().label("debit"),
                _credit_sum().label("credit"),
            )
            .select_from(JournalLine)
            .join(JournalTransaction, JournalLine.transaction_id == JournalTransaction.id)
            .join(Account, Account.code == JournalLine.account_code)
            .group_by(Account.code, Account.description, Account.account_type)
            .order_by(Account.code)
        )
        stmt = self._apply_filter(stmt, LineFilter(date_from=start, date_to=end))

        return [
            TrialBalanceRow(
                account_code=code,
                account_name=description,
                account_type=str(getattr(account_type, "value", account_type)),
                debit=_money(debit),
                credit=_money(credit),
            )
            for code, description, account_type, debit, credit in self.session.execute(stmt)
        ]

    def member_tracked_balances(
        self, as_of: date, account_codes: tuple[str, ...]
    ) -> list[AggregateRow]:
        """Lines dated on or before ``as_of`` grouped by member identity and account."""
        return self.aggregate_lines(
            LineFilter(date_to=as_of, account_codes=account_codes),
            group_by=("member_id", "application_id", "account_code"),
        )

    def clearing_movement(
        self, start: date | None, end: date | None, clearing_codes: tuple[str, ...]
    ) -> list[AggregateRow]:
        """Net movement per clearing account in [start, end]."""
        return self.aggregate_lines(
            LineFilter(date_from=start, date_to=end, account_codes=clearing_codes),
            group_by=("account_code",),
        )
