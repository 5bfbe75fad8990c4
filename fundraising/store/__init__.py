from .aggregation import (
    Accumulator,
    AggregationRequest,
    Filter,
    FilterOp,
    GroupKey,
    Metric,
    SortKey,
    TimePart,
)
from .ledger import ENTITY_MODELS, LedgerStore, SqlLedgerStore

__all__ = [
    "Accumulator",
    "AggregationRequest",
    "Filter",
    "FilterOp",
    "GroupKey",
    "Metric",
    "SortKey",
    "TimePart",
    "ENTITY_MODELS",
    "LedgerStore",
    "SqlLedgerStore",
]
