"""
Unit tests for calendar-month bucketing
"""
from datetime import date, datetime
from decimal import Decimal

import pytest

from fundraising.analytics.buckets import (
    MonthBucket,
    add_months,
    fill_missing_months,
    month_window,
    months_back,
    shift_months,
)


class TestFillMissingMonths:
    """Dense month series from sparse aggregate rows"""

    def test_fills_gaps_in_window(self):
        rows = [
            {"year": 2026, "month": 5, "count": 1, "total": Decimal("50")},
            {"year": 2026, "month": 3, "count": 2, "total": Decimal("200")},
        ]

        buckets = fill_missing_months(rows, date(2026, 1, 1), date(2026, 6, 30))

        assert [(b.year, b.month) for b in buckets] == [(2026, m) for m in range(1, 7)]
        assert [b.count for b in buckets] == [0, 0, 2, 0, 1, 0]
        assert [b.total for b in buckets] == [0, 0, Decimal("200"), 0, Decimal("50"), 0]

    def test_crosses_year_boundary(self):
        rows = [{"year": 2026, "month": 1, "count": 3, "total": Decimal("30")}]

        buckets = fill_missing_months(rows, datetime(2025, 11, 15), datetime(2026, 2, 1))

        assert [(b.year, b.month) for b in buckets] == [(2025, 11), (2025, 12), (2026, 1), (2026, 2)]
        assert buckets[2] == MonthBucket(2026, 1, 3, Decimal("30"))

    def test_ignores_rows_outside_window(self):
        rows = [
            {"year": 2025, "month": 12, "count": 9, "total": Decimal("900")},
            {"year": 2026, "month": 2, "count": 1, "total": Decimal("10")},
        ]

        buckets = fill_missing_months(rows, date(2026, 1, 1), date(2026, 2, 28))

        assert sum(b.count for b in buckets) == 1

    def test_null_total_becomes_zero(self):
        rows = [{"year": 2026, "month": 1, "count": 2, "total": None}]

        buckets = fill_missing_months(rows, date(2026, 1, 1), date(2026, 1, 31))

        assert buckets == [MonthBucket(2026, 1, 2, Decimal("0"))]

    def test_empty_rows(self):
        buckets = fill_missing_months([], date(2026, 1, 1), date(2026, 3, 1))

        assert len(buckets) == 3
        assert all(b.count == 0 and b.total == 0 for b in buckets)


class TestMonthArithmetic:

    def test_add_months_wraps_years(self):
        assert add_months(date(2026, 11, 20), 2) == datetime(2027, 1, 1)
        assert add_months(date(2026, 1, 31), -1) == datetime(2025, 12, 1)

    def test_months_back_includes_anchor_month(self):
        assert months_back(datetime(2026, 10, 19, 12), 12) == datetime(2025, 11, 1)
        assert months_back(datetime(2026, 10, 19), 1) == datetime(2026, 10, 1)

    def test_months_back_rejects_empty_window(self):
        with pytest.raises(ValueError):
            months_back(date(2026, 10, 1), 0)

    def test_month_window_end_is_next_month(self):
        start, end = month_window(datetime(2026, 10, 19), 6)

        assert start == datetime(2026, 5, 1)
        assert end == datetime(2026, 11, 1)

    def test_shift_months_keeps_day_and_time(self):
        assert shift_months(datetime(2026, 10, 19, 12, 30), -1) == datetime(2026, 9, 19, 12, 30)
        assert shift_months(datetime(2026, 1, 15), -2) == datetime(2025, 11, 15)

    def test_shift_months_clamps_to_month_end(self):
        assert shift_months(datetime(2026, 3, 31), -1) == datetime(2026, 2, 28)
        assert shift_months(datetime(2028, 3, 30, 8), -1) == datetime(2028, 2, 29, 8)
