"""
Ledger reporting: trial balance, income statement, member balances,
clearing reconciliation and locked month-end / year-end snapshots.
"""

from ledger_modules.reporting.config import ReportingConfig
from ledger_modules.reporting.models import (
    ClearingLine,
    ClearingReconciliationReport,
    IncomeStatementLine,
    IncomeStatementReport,
    IncomeStatementSection,
    MemberBalanceLine,
    MembersBalanceReport,
    PeriodReport,
    ReportMetadata,
    ReportType,
    TrialBalanceLineItem,
    TrialBalanceReport,
    render_to_dict,
)
from ledger_modules.reporting.periods import PeriodRange, month_range, year_range
from ledger_modules.reporting.service import ReportingService

__all__ = [
    "ClearingLine",
    "ClearingReconciliationReport",
    "IncomeStatementLine",
    "IncomeStatementReport",
    "IncomeStatementSection",
    "MemberBalanceLine",
    "MembersBalanceReport",
    "PeriodRange",
    "PeriodReport",
    "ReportMetadata",
    "ReportType",
    "ReportingConfig",
    "ReportingService",
    "TrialBalanceLineItem",
    "TrialBalanceReport",
    "month_range",
    "render_to_dict",
    "year_range",
]
