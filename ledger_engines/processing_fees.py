"""
Module: ledger_engines.processing_fees
Responsibility:
    Split a card payment processor's charge into its net fee and the VAT
    charged on that fee, so a receipt can book them to separate accounts.

    fee_no_vat = round2(gross * pct + fixed)
    fee_vat    = round2(fee_no_vat * vat_rate)
    fee_total  = round2(fee_no_vat + fee_vat)

Architecture position:
    Engines -- pure calculation layer, zero I/O.
"""

from dataclasses import dataclass
from decimal import Decimal

from ledger_engines.tracer import traced_engine
from ledger_kernel.domain.values import round2, to_decimal

DEFAULT_PERCENTAGE = Decimal("0.014")
DEFAULT_FIXED_FEE = Decimal("0.25")
DEFAULT_VAT_RATE = Decimal("0.23")


@dataclass(frozen=True)
class FeeBreakdown:
    fee_no_vat: Decimal
    fee_vat: Decimal
    fee_total: Decimal

    @property
    def is_zero(self) -> bool:
        return self.fee_total == 0


@traced_engine("processing_fees", "1.0", fingerprint_fields=("gross", "percentage", "fixed_fee", "vat_rate"))
def fee_breakdown(
    gross: Decimal | int | str,
    percentage: Decimal | str = DEFAULT_PERCENTAGE,
    fixed_fee: Decimal | str = DEFAULT_FIXED_FEE,
    vat_rate: Decimal | str = DEFAULT_VAT_RATE,
) -> FeeBreakdown:
    """
    Break down the processor charge on ``gross``.

    Raises:
        ValueError: on a negative gross amount.
    """
    gross = to_decimal(gross)
    if gross < 0:
        raise ValueError(f"Gross amount must be non-negative, got {gross}")
    fee_no_vat = round2(gross * to_decimal(percentage) + to_decimal(fixed_fee))
    fee_vat = round2(fee_no_vat * to_decimal(vat_rate))
    return FeeBreakdown(
        fee_no_vat=fee_no_vat,
        fee_vat=fee_vat,
        fee_total=round2(fee_no_vat + fee_vat),
    )
