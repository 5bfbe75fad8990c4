"""
Declarative aggregation requests.

Analytics code describes *what* it wants (filter, group key, accumulator) and a
``LedgerStore`` implementation decides how to run it. Nothing here knows about
SQL.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Tuple


class FilterOp(str, Enum):
    EQ = "eq"
    NE = "ne"
    IN = "in"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"


@dataclass(frozen=True)
class Filter:
    field: str
    op: FilterOp
    value: Any

    @classmethod
    def eq(cls, field: str, value: Any) -> "Filter":
        return cls(field, FilterOp.EQ, value)

    @classmethod
    def ne(cls, field: str, value: Any) -> "Filter":
        return cls(field, FilterOp.NE, value)

    @classmethod
    def in_(cls, field: str, values) -> "Filter":
        return cls(field, FilterOp.IN, tuple(values))

    @classmethod
    def gte(cls, field: str, value: Any) -> "Filter":
        return cls(field, FilterOp.GTE, value)

    @classmethod
    def lt(cls, field: str, value: Any) -> "Filter":
        return cls(field, FilterOp.LT, value)

    @classmethod
    def lte(cls, field: str, value: Any) -> "Filter":
        return cls(field, FilterOp.LTE, value)


class TimePart(str, Enum):
    """Calendar component used to bucket a timestamp"""
    YEAR = "year"
    MONTH = "month"


@dataclass(frozen=True)
class GroupKey:
    field: str
    part: Optional[TimePart] = None
    alias: Optional[str] = None

    @property
    def name(self) -> str:
        if self.alias:
            return self.alias
        return self.part.value if self.part else self.field


class Accumulator(str, Enum):
    COUNT = "count"
    SUM = "sum"
    AVG = "avg"
    MIN = "min"
    MAX = "max"


@dataclass(frozen=True)
class Metric:
    name: str
    accumulator: Accumulator
    field: Optional[str] = None  # COUNT counts rows when omitted

    @classmethod
    def count(cls, name: str = "count") -> "Metric":
        return cls(name, Accumulator.COUNT)

    @classmethod
    def sum(cls, field: str, name: str = "total") -> "Metric":
        return cls(name, Accumulator.SUM, field)

    @classmethod
    def avg(cls, field: str, name: str) -> "Metric":
        return cls(name, Accumulator.AVG, field)

    @classmethod
    def min(cls, field: str, name: str) -> "Metric":
        return cls(name, Accumulator.MIN, field)

    @classmethod
    def max(cls, field: str, name: str) -> "Metric":
        return cls(name, Accumulator.MAX, field)


@dataclass(frozen=True)
class SortKey:
    """Sort by a group key name, metric name or plain field"""
    name: str
    descending: bool = False


@dataclass(frozen=True)
class AggregationRequest:
    entity: str
    filters: Tuple[Filter, ...] = ()
    group_by: Tuple[GroupKey, ...] = ()
    metrics: Tuple[Metric, ...] = ()
    order_by: Tuple[SortKey, ...] = ()
    limit: Optional[int] = None
    label: str = field(default="aggregate", compare=False)
