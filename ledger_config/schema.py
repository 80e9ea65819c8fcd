"""
Ledger configuration schema.

Frozen dataclasses the YAML configuration set is parsed into.  The loader
builds them; everything else reads them.

    LedgerConfigSet
      ├── accounts: tuple[AccountDef, ...]      (chart_of_accounts.yaml)
      └── policy: LedgerPolicy                  (ledger_policy.yaml)
            ├── roles: AccountRoles
            ├── clearing_accounts: {method: code}
            ├── processors: {name: ProcessorDef}
            └── categories: tuple[CategoryDef, ...]
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType
from typing import Mapping

from ledger_kernel.domain.dtos import AccountInfo


@dataclass(frozen=True)
class AccountDef:
    """One chart of accounts entry as authored in YAML."""

    code: str
    description: str
    account_type: str
    is_cash: bool = False
    is_clearing: bool = False
    is_member_tracked: bool = False
    is_revenue: bool = False
    is_contra_revenue: bool = False

    def to_account_info(self) -> AccountInfo:
        return AccountInfo(
            code=self.code,
            description=self.description,
            account_type=self.account_type,
            is_cash=self.is_cash,
            is_clearing=self.is_clearing,
            is_member_tracked=self.is_member_tracked,
            is_revenue=self.is_revenue,
            is_contra_revenue=self.is_contra_revenue,
        )


@dataclass(frozen=True)
class AccountRoles:
    """Account codes the membership operations post to."""

    bank: str
    accounts_receivable: str
    payment_on_account: str
    contra_income: str
    write_off: str
    processing_fee: str
    processing_fee_vat: str


@dataclass(frozen=True)
class ProcessorDef:
    """Card processor fee schedule and the clearing method it settles through."""

    name: str
    clearing: str
    percentage: Decimal
    fixed_fee: Decimal
    vat_rate: Decimal


@dataclass(frozen=True)
class CategoryDef:
    """Membership category and the income account its subscriptions credit."""

    name: str
    income_code: str


@dataclass(frozen=True)
class LedgerPolicy:
    version: int
    roles: AccountRoles
    clearing_accounts: Mapping[str, str]
    application_prefix: str
    adjustment_types: tuple[str, ...]
    processors: Mapping[str, ProcessorDef] = field(default_factory=lambda: MappingProxyType({}))
    categories: tuple[CategoryDef, ...] = ()
    event_service: str = "ledger-core"
    event_version: str = "1.0"

    @property
    def clearing_codes(self) -> tuple[str, ...]:
        return tuple(sorted(set(self.clearing_accounts.values())))

    @property
    def member_tracked_codes(self) -> tuple[str, ...]:
        return (self.roles.accounts_receivable, self.roles.payment_on_account)

    def clearing_code_for(self, method: str) -> str | None:
        return self.clearing_accounts.get(method)

    def category(self, name: str) -> CategoryDef | None:
        for category in self.categories:
            if category.name == name:
                return category
        return None

    def application_member_id(self, application_id: str) -> str:
        return f"{self.application_prefix}{application_id}"


@dataclass(frozen=True)
class LedgerConfigSet:
    """A complete, validated configuration set."""

    name: str
    checksum: str
    accounts: tuple[AccountDef, ...]
    policy: LedgerPolicy

    def account(self, code: str) -> AccountDef | None:
        for account in self.accounts:
            if account.code == code:
                return account
        return None

    def account_infos(self) -> tuple[AccountInfo, ...]:
        return tuple(a.to_account_info() for a in self.accounts)
