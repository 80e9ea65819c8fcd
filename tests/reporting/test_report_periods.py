"""
Snapshot period labels.

Verifies:
- month_range and year_range produce inclusive calendar ranges
- Labels are normalized
- Malformed or out of range labels raise InvalidPeriodError
"""

from datetime import date

import pytest

from ledger_kernel.exceptions import InvalidPeriodError
from ledger_modules.reporting.periods import month_range, year_range


class TestMonthRange:
    @pytest.mark.parametrize(
        "label, start, end",
        [
            ("2025-01", date(2025, 1, 1), date(2025, 1, 31)),
            ("2024-02", date(2024, 2, 1), date(2024, 2, 29)),
            ("2025-02", date(2025, 2, 1), date(2025, 2, 28)),
            ("2025-12", date(2025, 12, 1), date(2025, 12, 31)),
        ],
    )
    def test_bounds(self, label, start, end):
        period = month_range(label)
        assert (period.start, period.end) == (start, end)
        assert period.label == label

    def test_single_digit_month_normalized(self):
        assert month_range("2025-8").label == "2025-08"

    @pytest.mark.parametrize("label", ["2025", "2025-00", "2025-13", "25-01", "2025/01", "", "1999-12", "2101-01"])
    def test_invalid(self, label):
        with pytest.raises(InvalidPeriodError):
            month_range(label)


class TestYearRange:
    def test_bounds(self):
        period = year_range(2024)
        assert (period.start, period.end, period.label) == (
            date(2024, 1, 1), date(2024, 12, 31), "2024",
        )

    def test_string_year(self):
        assert year_range("2025").label == "2025"

    @pytest.mark.parametrize("value", ["25", "20251", "abcd", 1999, 2101, "-2025"])
    def test_invalid(self, value):
        with pytest.raises(InvalidPeriodError):
            year_range(value)

    def test_contains(self):
        assert year_range(2025).contains(date(2025, 6, 30))
        assert not year_range(2025).contains(date(2026, 1, 1))
