"""
Module: ledger_engines.prorata
Responsibility:
    Day-weighted fractions of an annual fee within one calendar year.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Day counts are inclusive of both endpoints.
    - The denominator is the length of the single calendar year the period
      lies in (365 or 366).  Periods crossing a year boundary are rejected
      instead of guessing a denominator.
    - Rounding happens once, half-up to 2dp, on the final amount.  Never per
      day, so there is no cumulative drift.

Failure modes:
    - InvalidRangeError when to_date < from_date.
    - CrossYearPeriodError when from_date and to_date are in different years.

Usage:
    from datetime import date
    from decimal import Decimal
    from ledger_engines.prorata import prorata_from_date_to_year_end

    prorata_from_date_to_year_end(Decimal("1200.00"), date(2025, 7, 1))
    # Decimal("604.93")  (184 of 365 days)
"""

from datetime import date
from decimal import Decimal

from ledger_engines.tracer import traced_engine
from ledger_kernel.domain.values import round2, to_decimal
from ledger_kernel.exceptions import CrossYearPeriodError, InvalidRangeError


def days_in_year(year: int) -> int:
    """366 for Gregorian leap years, else 365."""
    is_leap = (year % 4 == 0 and year % 100 != 0) or year % 400 == 0
    return 366 if is_leap else 365


def year_bounds(day: date) -> tuple[date, date]:
    """First and last day of ``day``'s calendar year."""
    return date(day.year, 1, 1), date(day.year, 12, 31)


def inclusive_day_count(from_date: date, to_date: date) -> int:
    """
    Calendar days spanned by [from_date, to_date], both ends included.

    Raises:
        InvalidRangeError: if to_date is before from_date.
    """
    if to_date < from_date:
        raise InvalidRangeError(from_date, to_date)
    return (to_date - from_date).days + 1


@traced_engine("prorata", "1.0", fingerprint_fields=("annual_amount", "from_date", "to_date"))
def prorata_for_period(
    annual_amount: Decimal | int | str,
    from_date: date,
    to_date: date,
) -> Decimal:
    """
    The share of ``annual_amount`` earned over [from_date, to_date].

    Raises:
        CrossYearPeriodError: period spans two calendar years.
        InvalidRangeError: to_date before from_date.
    """
    if from_date.year != to_date.year:
        raise CrossYearPeriodError(from_date, to_date)
    days = inclusive_day_count(from_date, to_date)
    return round2(to_decimal(annual_amount) * days / days_in_year(from_date.year))


def prorata_from_date_to_year_end(
    annual_amount: Decimal | int | str,
    from_date: date,
) -> Decimal:
    """Pro-rata from ``from_date`` to 31 December of the same year."""
    _, year_end = year_bounds(from_date)
    return prorata_for_period(annual_amount, from_date, year_end)
