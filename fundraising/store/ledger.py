"""
Ledger store: read access to the fundraising records for analytics.

``LedgerStore`` is the contract the analytics code depends on.
``SqlLedgerStore`` runs it on SQLAlchemy, one session per query so independent
queries can run concurrently. Every query goes through the circuit breaker,
which applies the per-query timeout and the bounded retry of transient
failures.
"""
from abc import ABC, abstractmethod
import enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

from sqlalchemy import extract, func, inspect as sa_inspect, select
from sqlalchemy.ext.asyncio import async_sessionmaker
import structlog

from fundraising.core.circuit_breaker import CircuitBreaker, db_circuit_breaker
from fundraising.core.numeric import to_decimal
from fundraising.models import Campaign, CampaignOrganization, Cause, Donation, Donor, Feedback, Organization
from fundraising.store.aggregation import (
    Accumulator,
    AggregationRequest,
    Filter,
    FilterOp,
    GroupKey,
    Metric,
    SortKey,
)

logger = structlog.get_logger(__name__)

ENTITY_MODELS = {
    "organization": Organization,
    "donor": Donor,
    "cause": Cause,
    "campaign": Campaign,
    "campaign_organization": CampaignOrganization,
    "donation": Donation,
    "feedback": Feedback,
}


class LedgerStore(ABC):
    """Queryable view over the ledger entities named in ``ENTITY_MODELS``"""

    @abstractmethod
    async def find(self, entity: str, filters: Sequence[Filter] = (),
                   order_by: Sequence[SortKey] = (), limit: Optional[int] = None) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def get(self, entity: str, entity_id: int) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def aggregate(self, request: AggregationRequest) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def distinct(self, entity: str, field: str, filters: Sequence[Filter] = ()) -> Set[Any]:
        ...

    @abstractmethod
    async def count(self, entity: str, filters: Sequence[Filter] = ()) -> int:
        ...


def _plain(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    return value


class SqlLedgerStore(LedgerStore):
    """LedgerStore backed by an async SQLAlchemy session factory"""

    def __init__(self, session_factory: async_sessionmaker, circuit_breaker: Optional[CircuitBreaker] = None):
        self.session_factory = session_factory
        self.circuit_breaker = circuit_breaker or db_circuit_breaker

    # ------------------------------------------------------------------
    # Translation
    # ------------------------------------------------------------------

    @staticmethod
    def _model(entity: str):
        try:
            return ENTITY_MODELS[entity]
        except KeyError:
            raise ValueError(f"Unknown ledger entity: {entity}")

    @staticmethod
    def _column(model, field: str):
        columns = sa_inspect(model).columns
        if field not in columns:
            raise ValueError(f"{model.__name__} has no column '{field}'")
        return columns[field]

    def _conditions(self, model, filters: Iterable[Filter]) -> list:
        conditions = []
        for condition in filters:
            column = self._column(model, condition.field)
            value = condition.value
            if condition.op == FilterOp.EQ:
                conditions.append(column.is_(None) if value is None else column == value)
            elif condition.op == FilterOp.NE:
                conditions.append(column.is_not(None) if value is None else column != value)
            elif condition.op == FilterOp.IN:
                conditions.append(column.in_(list(value)))
            elif condition.op == FilterOp.GT:
                conditions.append(column > value)
            elif condition.op == FilterOp.GTE:
                conditions.append(column >= value)
            elif condition.op == FilterOp.LT:
                conditions.append(column < value)
            elif condition.op == FilterOp.LTE:
                conditions.append(column <= value)
            else:
                raise ValueError(f"Unsupported filter operator: {condition.op}")
        return conditions

    def _group_expression(self, model, key: GroupKey):
        column = self._column(model, key.field)
        if key.part is None:
            return column.label(key.name)
        return extract(key.part.value, column).label(key.name)

    def _metric_expression(self, model, metric: Metric):
        if metric.accumulator == Accumulator.COUNT:
            expression = func.count() if metric.field is None else func.count(self._column(model, metric.field))
        else:
            if metric.field is None:
                raise ValueError(f"Metric '{metric.name}' needs a field")
            column = self._column(model, metric.field)
            if metric.accumulator == Accumulator.SUM:
                expression = func.coalesce(func.sum(column), 0)
            elif metric.accumulator == Accumulator.AVG:
                expression = func.avg(column)
            elif metric.accumulator == Accumulator.MIN:
                expression = func.min(column)
            elif metric.accumulator == Accumulator.MAX:
                expression = func.max(column)
            else:
                raise ValueError(f"Unsupported accumulator: {metric.accumulator}")
        return expression.label(metric.name)

    def _order_clauses(self, model, order_by: Sequence[SortKey], labelled: Dict[str, Any]) -> list:
        clauses = []
        for key in order_by:
            expression = labelled.get(key.name)
            if expression is None:
                expression = self._column(model, key.name)
            clauses.append(expression.desc() if key.descending else expression.asc())
        return clauses

    def build_aggregate_statement(self, request: AggregationRequest):
        model = self._model(request.entity)
        groups = [self._group_expression(model, key) for key in request.group_by]
        metrics = [self._metric_expression(model, metric) for metric in request.metrics]
        if not groups and not metrics:
            raise ValueError("Aggregation needs at least one group key or metric")

        labelled = {expression.name: expression for expression in groups + metrics}
        statement = select(*groups, *metrics).select_from(model).where(*self._conditions(model, request.filters))
        if groups:
            statement = statement.group_by(*groups)
        statement = statement.order_by(*self._order_clauses(model, request.order_by, labelled))
        if request.limit is not None:
            statement = statement.limit(request.limit)
        return statement

    @staticmethod
    def _shape_row(request: AggregationRequest, row) -> Dict[str, Any]:
        shaped: Dict[str, Any] = {}
        mapping = row._mapping
        for key in request.group_by:
            value = mapping[key.name]
            shaped[key.name] = int(value) if key.part is not None and value is not None else _plain(value)
        for metric in request.metrics:
            value = mapping[metric.name]
            if metric.accumulator == Accumulator.COUNT:
                shaped[metric.name] = int(value or 0)
            elif metric.accumulator in (Accumulator.SUM, Accumulator.AVG):
                shaped[metric.name] = None if value is None else to_decimal(value)
            else:
                shaped[metric.name] = _plain(value)
        return shaped

    @staticmethod
    def _as_dict(instance) -> Dict[str, Any]:
        mapper = sa_inspect(type(instance))
        return {attr.key: getattr(instance, attr.key) for attr in mapper.column_attrs}

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def _run(self, operation: str, statement, handler):
        async def execute():
            async with self.session_factory() as session:
                result = await session.execute(statement)
                return handler(result)

        logger.debug("Ledger query", operation=operation)
        return await self.circuit_breaker.call(execute, operation=operation)

    async def find(self, entity: str, filters: Sequence[Filter] = (),
                   order_by: Sequence[SortKey] = (), limit: Optional[int] = None) -> List[Dict[str, Any]]:
        model = self._model(entity)
        statement = (
            select(model)
            .where(*self._conditions(model, filters))
            .order_by(*self._order_clauses(model, order_by, {}))
        )
        if limit is not None:
            statement = statement.limit(limit)

        return await self._run(
            f"find:{entity}",
            statement,
            lambda result: [self._as_dict(instance) for instance in result.scalars().all()],
        )

    async def get(self, entity: str, entity_id: int) -> Optional[Dict[str, Any]]:
        rows = await self.find(entity, [Filter.eq("id", entity_id)], limit=1)
        return rows[0] if rows else None

    async def aggregate(self, request: AggregationRequest) -> List[Dict[str, Any]]:
        statement = self.build_aggregate_statement(request)
        return await self._run(
            f"aggregate:{request.entity}:{request.label}",
            statement,
            lambda result: [self._shape_row(request, row) for row in result.all()],
        )

    async def distinct(self, entity: str, field: str, filters: Sequence[Filter] = ()) -> Set[Any]:
        model = self._model(entity)
        column = self._column(model, field)
        statement = select(column).where(*self._conditions(model, filters)).distinct()
        return await self._run(
            f"distinct:{entity}.{field}",
            statement,
            lambda result: {_plain(value) for value in result.scalars().all()},
        )

    async def count(self, entity: str, filters: Sequence[Filter] = ()) -> int:
        model = self._model(entity)
        statement = select(func.count()).select_from(model).where(*self._conditions(model, filters))
        return await self._run(f"count:{entity}", statement, lambda result: int(result.scalar_one()))
