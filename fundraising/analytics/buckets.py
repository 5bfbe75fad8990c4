"""
Calendar-month bucketing.

Aggregations only return months that had donations; reports need every month
of the window, in order, with zeros for the quiet ones.
"""
import calendar
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Tuple, Union

from fundraising.core.numeric import to_decimal

DateLike = Union[date, datetime]


@dataclass(frozen=True)
class MonthBucket:
    year: int
    month: int
    count: int = 0
    total: Decimal = Decimal("0")


def month_start(value: DateLike) -> datetime:
    """Midnight on the first day of value's month"""
    return datetime(value.year, value.month, 1)


def year_start(value: DateLike) -> datetime:
    return datetime(value.year, 1, 1)


def add_months(value: DateLike, months: int) -> datetime:
    """First day of the month ``months`` away from value's month"""
    index = value.year * 12 + (value.month - 1) + months
    return datetime(index // 12, index % 12 + 1, 1)


def months_back(anchor: DateLike, months: int) -> datetime:
    """Start of a window of ``months`` calendar months ending with anchor's month"""
    if months < 1:
        raise ValueError("months must be at least 1")
    return add_months(anchor, -(months - 1))


def shift_months(value: datetime, months: int) -> datetime:
    """Same day and time ``months`` away, clamped to the last day of a shorter month"""
    index = value.year * 12 + (value.month - 1) + months
    year, month = index // 12, index % 12 + 1
    return value.replace(year=year, month=month, day=min(value.day, calendar.monthrange(year, month)[1]))


def iter_months(start: DateLike, end: DateLike) -> Iterable[Tuple[int, int]]:
    """(year, month) pairs from start's month to end's month, inclusive"""
    year, month = start.year, start.month
    while (year, month) <= (end.year, end.month):
        yield year, month
        month += 1
        if month > 12:
            year, month = year + 1, 1


def fill_missing_months(rows: Iterable[Mapping[str, Any]], start: DateLike, end: DateLike) -> List[MonthBucket]:
    """
    Dense, chronological month series for [start, end].

    ``rows`` are sparse aggregate rows with ``year``, ``month``, ``count`` and
    ``total`` keys, in any order. Months without a row come back with
    ``count=0`` and ``total=0``. Rows outside the window are ignored.
    """
    lookup: Dict[Tuple[int, int], Mapping[str, Any]] = {}
    for row in rows:
        lookup[(int(row["year"]), int(row["month"]))] = row

    buckets = []
    for year, month in iter_months(start, end):
        row = lookup.get((year, month))
        if row is None:
            buckets.append(MonthBucket(year=year, month=month))
        else:
            buckets.append(MonthBucket(
                year=year,
                month=month,
                count=int(row.get("count") or 0),
                total=to_decimal(row.get("total")),
            ))
    return buckets


def month_window(anchor: DateLike, months: int) -> Tuple[datetime, datetime]:
    """(start, end) of the trailing window; end is the first day after anchor's month"""
    return months_back(anchor, months), add_months(anchor, 1)
