"""Selectors for the ledger kernel (read side)."""

from ledger_kernel.selectors.account_selector import AccountSelector
from ledger_kernel.selectors.journal_selector import (
    JournalFilter,
    JournalPage,
    JournalSelector,
    JournalSort,
    MemberStatement,
    MemberStatementLine,
    Pagination,
)
from ledger_kernel.selectors.ledger_selector import (
    AggregateRow,
    LedgerSelector,
    LineFilter,
    TrialBalanceRow,
)

__all__ = [
    "AccountSelector",
    "AggregateRow",
    "JournalFilter",
    "JournalPage",
    "JournalSelector",
    "JournalSort",
    "LedgerSelector",
    "LineFilter",
    "MemberStatement",
    "MemberStatementLine",
    "Pagination",
    "TrialBalanceRow",
]
