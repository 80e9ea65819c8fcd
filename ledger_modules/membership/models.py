"""
Membership module value objects.

``PaymentNotice`` is the normalized shape a payment processor integration
hands to the ledger once it has seen a payment.  Amounts arrive in minor
units (cents), the way processors report them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from ledger_kernel.domain.values import round2

SUCCEEDED = "succeeded"


@dataclass(frozen=True)
class PaymentNotice:
    """A processor's report of a payment intent."""

    payment_intent_id: str
    amount: int  # minor units
    currency: str
    status: str
    processor: str = "stripe"
    received_on: date | None = None

    def __post_init__(self):
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise ValueError("PaymentNotice.amount must be integer minor units")
        if self.amount < 0:
            raise ValueError("PaymentNotice.amount cannot be negative")

    @property
    def succeeded(self) -> bool:
        return self.status == SUCCEEDED

    @property
    def major_amount(self) -> Decimal:
        return round2(Decimal(self.amount) / 100)


@dataclass(frozen=True)
class CategoryTerms:
    """A membership category as billed: income account and annual fee."""

    name: str
    income_code: str
    annual_fee: Decimal
