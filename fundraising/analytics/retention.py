"""
Donor retention between two annual cohorts.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable

from fundraising.analytics.buckets import DateLike, year_start
from fundraising.core.numeric import percentage


@dataclass(frozen=True)
class RetentionMetrics:
    this_year_donor_count: int
    last_year_donor_count: int
    retained_donor_count: int
    retention_rate: float
    new_donor_count: int


@dataclass(frozen=True)
class CohortWindows:
    last_year_start: datetime
    this_year_start: datetime
    now: datetime


def cohort_windows(now: DateLike) -> CohortWindows:
    """Last year is [Jan 1 prior year, Jan 1 this year); this year runs to now"""
    this_year = year_start(now)
    return CohortWindows(
        last_year_start=this_year.replace(year=this_year.year - 1),
        this_year_start=this_year,
        now=now if isinstance(now, datetime) else datetime(now.year, now.month, now.day),
    )


def calculate_retention(this_year_donors: Iterable[Any], last_year_donors: Iterable[Any]) -> RetentionMetrics:
    this_year = set(this_year_donors)
    last_year = set(last_year_donors)
    retained = len(this_year & last_year)

    return RetentionMetrics(
        this_year_donor_count=len(this_year),
        last_year_donor_count=len(last_year),
        retained_donor_count=retained,
        retention_rate=percentage(retained, len(last_year), places=1),
        new_donor_count=len(this_year) - retained,
    )
