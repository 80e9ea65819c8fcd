"""
Module: ledger_kernel.models.account
Responsibility: ORM model for the chart of accounts.  Each Account row maps an
    account code to its accounting type and the behavioural flags the posting
    engine and the report aggregator rely on.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Account.code is unique (uq_account_code).  Journal lines reference
      accounts by code, so the code is the natural key.
    - Accounts are maintained by administrative action (configuration
      seeding).  The posting engine reads them and never mutates them.

Audit relevance:
    The flags decide which guardrails apply to a line (member tracking) and
    where the account lands in reports (revenue, contra revenue, clearing).
"""

from enum import Enum

from sqlalchemy import Boolean, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase


class AccountType(str, Enum):
    """Types of accounts in the chart of accounts."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    INCOME = "income"
    CONTRA_INCOME = "contra_income"
    EXPENSE = "expense"


class Account(TrackedBase):
    """
    Chart of Accounts entry.

    Contract:
        Account.code is globally unique.  Every account code referenced by a
        journal line must exist here.

    Guarantees:
        - account_type is one of the AccountType values.
        - Flags default to False.
    """

    __tablename__ = "accounts"
    __table_args__ = (
        UniqueConstraint("code", name="uq_account_code"),
        Index("idx_account_type", "account_type"),
    )

    code: Mapped[str] = mapped_column(String(20), nullable=False)

    description: Mapped[str] = mapped_column(String(255), nullable=False)

    account_type: Mapped[AccountType] = mapped_column(String(20), nullable=False)

    # Cash on hand / bank
    is_cash: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Holds money in transit until a settlement moves it to the bank
    is_clearing: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Lines need a member identity and period bucket
    is_member_tracked: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )

    is_revenue: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    is_contra_revenue: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.description}>"
