"""
Module: ledger_engines
Responsibility:
    Package entrypoint re-exporting the pure calculation engines used by the
    membership operations: the pro-rata day-count engine and the card
    processing fee breakdown.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import ledger_kernel.domain.values, ledger_kernel.exceptions
    and ledger_kernel.logging_config.  MUST NOT import ledger_modules.

Invariants enforced:
    - Purity: engines never read the clock.  Dates are explicit parameters.
    - Decimal-only arithmetic, rounded half-up to 2dp at the final step.
    - Determinism: identical inputs always produce identical outputs.
"""

from ledger_engines.processing_fees import FeeBreakdown, fee_breakdown
from ledger_engines.prorata import (
    days_in_year,
    inclusive_day_count,
    prorata_for_period,
    prorata_from_date_to_year_end,
    year_bounds,
)

__all__ = [
    "FeeBreakdown",
    "days_in_year",
    "fee_breakdown",
    "inclusive_day_count",
    "prorata_for_period",
    "prorata_from_date_to_year_end",
    "year_bounds",
]
