"""
Report periods.

``month_range("2025-08")`` and ``year_range(2025)`` turn the labels used for
month-end and year-end snapshots into inclusive date ranges.  The label is
normalized, so "2025-8" and "2025-08" address the same snapshot.
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date

from ledger_kernel.domain.dtos import DateRange
from ledger_kernel.exceptions import InvalidPeriodError

MIN_YEAR = 2000
MAX_YEAR = 2100

_MONTH_RE = re.compile(r"^(\d{4})-(\d{1,2})$")


@dataclass(frozen=True)
class PeriodRange(DateRange):
    """A DateRange with the snapshot label it was built from."""

    label: str = ""


def _check_year(year: int, value: object) -> None:
    if not MIN_YEAR <= year <= MAX_YEAR:
        raise InvalidPeriodError(value, f"year must be between {MIN_YEAR} and {MAX_YEAR}")


def month_range(period: str) -> PeriodRange:
    """
    First to last day of a ``YYYY-MM`` month.

    Raises:
        InvalidPeriodError: malformed label, month outside 1-12 or year out of range.
    """
    match = _MONTH_RE.match(str(period).strip())
    if match is None:
        raise InvalidPeriodError(period, "expected YYYY-MM")
    year, month = int(match.group(1)), int(match.group(2))
    _check_year(year, period)
    if not 1 <= month <= 12:
        raise InvalidPeriodError(period, "month must be between 1 and 12")

    last_day = calendar.monthrange(year, month)[1]
    return PeriodRange(
        start=date(year, month, 1),
        end=date(year, month, last_day),
        label=f"{year:04d}-{month:02d}",
    )


def year_range(year: int | str) -> PeriodRange:
    """
    1 January to 31 December of ``year``.

    Raises:
        InvalidPeriodError: not a four digit year or out of range.
    """
    text = str(year).strip()
    if not text.isdigit() or len(text) != 4:
        raise InvalidPeriodError(year, "expected a four digit year")
    value = int(text)
    _check_year(value, year)
    return PeriodRange(start=date(value, 1, 1), end=date(value, 12, 31), label=str(value))
