"""
AccountService -- administrative maintenance of the chart of accounts.

Responsibility:
    Seeds accounts from configuration.  The posting engine only ever reads
    accounts; this is the one writer.

Invariants enforced:
    - Seeding is idempotent: codes already present are left untouched,
      including their flags.  Changing an existing account is an
      administrative decision, not a side effect of loading configuration.
"""

from collections.abc import Iterable

from sqlalchemy import select

from ledger_kernel.domain.dtos import AccountInfo
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account, AccountType
from ledger_kernel.services.base import BaseService

logger = get_logger("services.account_service")


class AccountService(BaseService[Account]):
    """Writes Account rows.  Flushes; never commits."""

    def seed_accounts(self, accounts: Iterable[AccountInfo]) -> int:
        """
        Insert every account whose code is not yet present.

        Returns:
            Number of accounts inserted.
        """
        accounts = list(accounts)
        existing = set(
            self.session.scalars(
                select(Account.code).where(Account.code.in_([a.code for a in accounts]))
            )
        )

        added = 0
        for info in accounts:
            if info.code in existing:
                continue
            self.session.add(
                Account(
                    code=info.code,
                    description=info.description,
                    account_type=AccountType(info.account_type).value,
                    is_cash=info.is_cash,
                    is_clearing=info.is_clearing,
                    is_member_tracked=info.is_member_tracked,
                    is_revenue=info.is_revenue,
                    is_contra_revenue=info.is_contra_revenue,
                )
            )
            existing.add(info.code)
            added += 1

        self.session.flush()
        logger.info(
            "accounts_seeded",
            extra={"added": added, "skipped": len(accounts) - added},
        )
        return added
