from fundraising.core.circuit_breaker import db_circuit_breaker
from fundraising.core.config import get_settings
from fundraising.database.database import AsyncSessionLocal
from fundraising.services.analytics import AnalyticsService
from fundraising.services.totals import TotalsMaintainer
from fundraising.store.ledger import LedgerStore, SqlLedgerStore


def get_ledger_store() -> LedgerStore:
    return SqlLedgerStore(AsyncSessionLocal, db_circuit_breaker)


def get_analytics_service() -> AnalyticsService:
    return AnalyticsService(get_ledger_store(), report_timeout=get_settings().analytics_report_timeout_seconds)


def get_totals_maintainer() -> TotalsMaintainer:
    return TotalsMaintainer(AsyncSessionLocal, circuit_breaker=db_circuit_breaker)
