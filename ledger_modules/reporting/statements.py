"""
Pure report transformation functions.

These functions turn selector rows into report objects.  ZERO I/O.
ZERO side effects.

All monetary values are Decimal. All inputs/outputs are frozen dataclasses.

Functions in this module follow the ledger_kernel/domain/ purity convention:
- No database access
- No clock access (the generation timestamp arrives in ReportMetadata)
- Deterministic: same inputs always produce same outputs
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import date
from decimal import Decimal

from ledger_kernel.domain.values import ZERO, round2
from ledger_kernel.models.account import AccountType
from ledger_kernel.selectors.ledger_selector import AggregateRow, TrialBalanceRow
from ledger_modules.reporting.models import (
    ClearingLine,
    ClearingReconciliationReport,
    IncomeStatementLine,
    IncomeStatementReport,
    IncomeStatementSection,
    MemberBalanceLine,
    MembersBalanceReport,
    ReportMetadata,
    TrialBalanceLineItem,
    TrialBalanceReport,
)

UNATTRIBUTED = "unattributed"


# =========================================================================
# 1. TRIAL BALANCE
# =========================================================================


def build_trial_balance(
    rows: Sequence[TrialBalanceRow],
    metadata: ReportMetadata,
) -> TrialBalanceReport:
    """Trial balance rows in account-code order with column totals."""
    lines = tuple(
        TrialBalanceLineItem(
            account_code=row.account_code,
            account_name=row.account_name,
            account_type=row.account_type,
            debit=round2(row.debit),
            credit=round2(row.credit),
            net=round2(row.net),
        )
        for row in sorted(rows, key=lambda r: r.account_code)
    )
    total_debits = round2(sum((l.debit for l in lines), ZERO))
    total_credits = round2(sum((l.credit for l in lines), ZERO))
    return TrialBalanceReport(
        metadata=metadata,
        lines=lines,
        total_debits=total_debits,
        total_credits=total_credits,
        is_balanced=total_debits == total_credits,
    )


# =========================================================================
# 2. INCOME STATEMENT
# =========================================================================


def _section(name: str, rows: Sequence[TrialBalanceRow], flip: bool) -> IncomeStatementSection:
    lines = tuple(
        IncomeStatementLine(
            account_code=row.account_code,
            account_name=row.account_name,
            amount=round2(-row.net if flip else row.net),
        )
        for row in rows
    )
    return IncomeStatementSection(
        name=name,
        lines=lines,
        total=round2(sum((l.amount for l in lines), ZERO)),
    )


def build_income_statement(
    rows: Sequence[TrialBalanceRow],
    metadata: ReportMetadata,
) -> IncomeStatementReport:
    """
    Partition a trial balance into income, contra income and expenses.

    Income accounts carry credit balances, so their debit-positive net is
    negated.  Contra income and expenses carry debit balances and are shown
    as they are; both reduce profit.
    """
    by_type: dict[str, list[TrialBalanceRow]] = {}
    for row in sorted(rows, key=lambda r: r.account_code):
        by_type.setdefault(row.account_type, []).append(row)

    income = _section("Income", by_type.get(AccountType.INCOME.value, []), flip=True)
    contra = _section(
        "Contra income", by_type.get(AccountType.CONTRA_INCOME.value, []), flip=False
    )
    expenses = _section("Expenses", by_type.get(AccountType.EXPENSE.value, []), flip=False)

    return IncomeStatementReport(
        metadata=metadata,
        income=income,
        contra_income=contra,
        expenses=expenses,
        profit=round2(income.total - contra.total - expenses.total),
    )


# =========================================================================
# 3. MEMBER BALANCES
# =========================================================================


def member_key(member_id: str | None, application_id: str | None, application_prefix: str) -> str:
    """The identity a member-tracked line is attributed to."""
    if member_id:
        return member_id
    if application_id:
        return f"{application_prefix}{application_id}"
    return UNATTRIBUTED


def fold_member_balances(
    rows: Sequence[AggregateRow],
    ar_code: str,
    poa_code: str,
    application_prefix: str,
    as_of: date,
    metadata: ReportMetadata,
) -> MembersBalanceReport:
    """
    Fold (member, account) aggregates into one row per member.

    ``rows`` are grouped by member_id, application_id and account_code.
    Money held against an application appears under
    ``<application_prefix><application_id>``.
    """
    ar: dict[str, Decimal] = {}
    poa: dict[str, Decimal] = {}
    for row in rows:
        key = member_key(row.keys.get("member_id"), row.keys.get("application_id"), application_prefix)
        code = row.keys.get("account_code")
        if code == ar_code:
            ar[key] = ar.get(key, ZERO) + row.net
        elif code == poa_code:
            poa[key] = poa.get(key, ZERO) - row.net

    members = tuple(
        MemberBalanceLine(
            member_id=key,
            ar=round2(ar.get(key, ZERO)),
            poa=round2(poa.get(key, ZERO)),
            net=round2(ar.get(key, ZERO) - poa.get(key, ZERO)),
        )
        for key in sorted(ar.keys() | poa.keys())
    )
    return MembersBalanceReport(
        metadata=metadata,
        as_of=as_of,
        members=members,
        total_ar=round2(sum((m.ar for m in members), ZERO)),
        total_poa=round2(sum((m.poa for m in members), ZERO)),
        total_net=round2(sum((m.net for m in members), ZERO)),
    )


# =========================================================================
# 4. CLEARING RECONCILIATION
# =========================================================================


def build_clearing_reconciliation(
    rows: Sequence[AggregateRow],
    account_names: Mapping[str, str],
    metadata: ReportMetadata,
) -> ClearingReconciliationReport:
    """Net movement per clearing account, sorted by code."""
    lines = tuple(
        ClearingLine(
            account_code=row.keys["account_code"],
            account_name=account_names.get(row.keys["account_code"], ""),
            debit=round2(row.debit),
            credit=round2(row.credit),
            net=round2(row.net),
        )
        for row in sorted(rows, key=lambda r: r.keys["account_code"])
    )
    return ClearingReconciliationReport(
        metadata=metadata,
        lines=lines,
        total_net=round2(sum((l.net for l in lines), ZERO)),
    )
