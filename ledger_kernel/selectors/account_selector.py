"""
Module: ledger_kernel.selectors.account_selector
Responsibility: Chart of accounts lookups.  The posting engine resolves every
    distinct account code of a transaction with one batch query through
    find_accounts_by_code().
Architecture position: Kernel > Selectors.
"""

from collections.abc import Iterable

from sqlalchemy import select

from ledger_kernel.domain.dtos import AccountInfo
from ledger_kernel.models.account import Account
from ledger_kernel.selectors.base import BaseSelector


class AccountSelector(BaseSelector[Account]):
    """Read access to the chart of accounts."""

    def find_accounts_by_code(self, codes: Iterable[str]) -> list[AccountInfo]:
        """
        Resolve account codes in a single query.

        Unknown codes are simply absent from the result; the caller decides
        whether that is an error.
        """
        wanted = sorted(set(codes))
        if not wanted:
            return []
        rows = self.session.scalars(
            select(Account).where(Account.code.in_(wanted)).order_by(Account.code)
        )
        return [AccountInfo.from_model(row) for row in rows]
