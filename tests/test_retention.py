"""
Unit tests for donor retention
"""
from datetime import date, datetime

from fundraising.analytics.retention import calculate_retention, cohort_windows


class TestCalculateRetention:

    def test_overlapping_cohorts(self):
        metrics = calculate_retention({"A", "B", "C"}, {"B", "C", "D"})

        assert metrics.retained_donor_count == 2
        assert metrics.retention_rate == 66.7
        assert metrics.new_donor_count == 1
        assert metrics.this_year_donor_count == 3
        assert metrics.last_year_donor_count == 3

    def test_empty_last_year_is_zero_rate(self):
        metrics = calculate_retention({"A", "B"}, set())

        assert metrics.retention_rate == 0
        assert metrics.retained_donor_count == 0
        assert metrics.new_donor_count == 2

    def test_duplicates_in_input_are_collapsed(self):
        metrics = calculate_retention([1, 1, 2], [1, 1])

        assert metrics.this_year_donor_count == 2
        assert metrics.retention_rate == 100.0

    def test_rounds_half_away_from_zero(self):
        # 1/16 = 6.25%
        metrics = calculate_retention({1}, set(range(1, 17)))

        assert metrics.retention_rate == 6.3


class TestCohortWindows:

    def test_windows_from_date(self):
        windows = cohort_windows(date(2026, 10, 19))

        assert windows.last_year_start == datetime(2025, 1, 1)
        assert windows.this_year_start == datetime(2026, 1, 1)
        assert windows.now == datetime(2026, 10, 19)
