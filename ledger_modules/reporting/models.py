"""
Ledger Report Models (``ledger_modules.reporting.models``).

Responsibility
--------------
Frozen dataclass value objects for the derived reports: trial balance,
income statement, member balances, clearing reconciliation and the
composite period report stored in month-end / year-end snapshots.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Built by the
pure functions in ``statements.py`` and returned by ``ReportingService``.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction).
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* ``to_dict()`` renders Decimal as string so a snapshot payload round-trips
  through JSON without losing precision.

Audit relevance
---------------
* ``ReportMetadata`` records the period and the generation timestamp (from
  the injected clock) for reproducibility.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


# =========================================================================
# Enums
# =========================================================================


class ReportType(str, Enum):
    """Types of ledger reports."""

    TRIAL_BALANCE = "trial_balance"
    INCOME_STATEMENT = "income_statement"
    MEMBERS_BALANCES = "members_balances"
    CLEARING_RECONCILIATION = "clearing_reconciliation"
    PERIOD_REPORT = "period_report"


# =========================================================================
# Rendering
# =========================================================================


def render_to_dict(obj: object) -> Any:
    """
    Convert a report dataclass to plain JSON-ready data.

    Decimal -> str, UUID -> str, date -> ISO string, Enum -> value,
    dataclasses -> dicts, tuples -> lists.
    """
    if obj is None:
        return None
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (list, tuple)):
        return [render_to_dict(item) for item in obj]
    if isinstance(obj, dict):
        return {str(k): render_to_dict(v) for k, v in obj.items()}
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {
            f.name: render_to_dict(getattr(obj, f.name))
            for f in dataclasses.fields(obj)
        }
    if isinstance(obj, (str, int, float, bool)):
        return obj
    return str(obj)


class _Renderable:
    def to_dict(self) -> dict[str, Any]:
        return render_to_dict(self)


# =========================================================================
# Report Metadata (common to all reports)
# =========================================================================


@dataclass(frozen=True)
class ReportMetadata:
    """Metadata attached to every report."""

    report_type: ReportType
    generated_at: str  # ISO format timestamp from injected clock
    period_start: date | None = None
    period_end: date | None = None
    label: str | None = None


# =========================================================================
# Trial Balance
# =========================================================================


@dataclass(frozen=True)
class TrialBalanceLineItem:
    account_code: str
    account_name: str
    account_type: str
    debit: Decimal
    credit: Decimal
    net: Decimal  # debit - credit


@dataclass(frozen=True)
class TrialBalanceReport(_Renderable):
    metadata: ReportMetadata
    lines: tuple[TrialBalanceLineItem, ...]
    total_debits: Decimal
    total_credits: Decimal
    is_balanced: bool

    def line(self, account_code: str) -> TrialBalanceLineItem | None:
        for item in self.lines:
            if item.account_code == account_code:
                return item
        return None


# =========================================================================
# Income Statement
# =========================================================================


@dataclass(frozen=True)
class IncomeStatementLine:
    account_code: str
    account_name: str
    amount: Decimal  # positive in the section's natural direction


@dataclass(frozen=True)
class IncomeStatementSection:
    name: str
    lines: tuple[IncomeStatementLine, ...]
    total: Decimal


@dataclass(frozen=True)
class IncomeStatementReport(_Renderable):
    """
    Membership P&L.

    profit = total_income - total_contra_income - total_expenses
    """

    metadata: ReportMetadata
    income: IncomeStatementSection
    contra_income: IncomeStatementSection
    expenses: IncomeStatementSection
    profit: Decimal

    @property
    def net_income(self) -> Decimal:
        return self.income.total - self.contra_income.total


# =========================================================================
# Member Balances
# =========================================================================


@dataclass(frozen=True)
class MemberBalanceLine:
    """
    One member's position.

    ``ar`` is the receivable (debit - credit); ``poa`` is the credit held on
    payment on account (credit - debit).  Positive ``net`` means the member
    owes the organization; negative means the organization holds credit.
    """

    member_id: str
    ar: Decimal
    poa: Decimal
    net: Decimal


@dataclass(frozen=True)
class MembersBalanceReport(_Renderable):
    metadata: ReportMetadata
    as_of: date
    members: tuple[MemberBalanceLine, ...]
    total_ar: Decimal
    total_poa: Decimal
    total_net: Decimal

    def member(self, member_id: str) -> MemberBalanceLine | None:
        for row in self.members:
            if row.member_id == member_id:
                return row
        return None


# =========================================================================
# Clearing Reconciliation
# =========================================================================


@dataclass(frozen=True)
class ClearingLine:
    account_code: str
    account_name: str
    debit: Decimal
    credit: Decimal
    net: Decimal  # still held in clearing at the end of the range


@dataclass(frozen=True)
class ClearingReconciliationReport(_Renderable):
    metadata: ReportMetadata
    lines: tuple[ClearingLine, ...]
    total_net: Decimal


# =========================================================================
# Composite period report (snapshot payload)
# =========================================================================


@dataclass(frozen=True)
class PeriodReport(_Renderable):
    metadata: ReportMetadata
    trial_balance: TrialBalanceReport
    income_statement: IncomeStatementReport
    members: MembersBalanceReport
    clearing: ClearingReconciliationReport
