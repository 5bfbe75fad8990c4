import asyncio
from enum import Enum
from typing import Callable, Any, Optional, Tuple, Type
from datetime import datetime, timedelta

from sqlalchemy.exc import DisconnectionError, OperationalError
import structlog

from fundraising.core.config import get_settings
from fundraising.core.errors import StoreUnavailableError

logger = structlog.get_logger(__name__)

# Failures that may succeed on a second attempt
TRANSIENT_EXCEPTIONS: Tuple[Type[BaseException], ...] = (
    OperationalError,
    DisconnectionError,
    ConnectionError,
    asyncio.TimeoutError,
)


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerError(StoreUnavailableError):
    """Raised while the circuit is open"""
    pass


class CircuitBreaker:
    """Circuit breaker with per-call timeout and bounded retry for store access"""

    def __init__(self,
                 failure_threshold: int = 5,
                 recovery_timeout: timedelta = timedelta(seconds=30),
                 call_timeout: Optional[float] = None,
                 retry_attempts: int = 1,
                 retry_backoff: float = 0.0,
                 transient_exceptions: Tuple[Type[BaseException], ...] = TRANSIENT_EXCEPTIONS):
        """
        Initialize circuit breaker

        Args:
            failure_threshold: Number of transient failures before opening circuit
            recovery_timeout: Time to wait before trying half-open state
            call_timeout: Seconds a single attempt may take (None disables)
            retry_attempts: Total attempts for a call that fails transiently
            retry_backoff: Base delay between attempts, doubled each retry
            transient_exceptions: Exception types eligible for retry
        """
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.call_timeout = call_timeout
        self.retry_attempts = max(1, retry_attempts)
        self.retry_backoff = retry_backoff
        self.transient_exceptions = transient_exceptions

        self.failure_count = 0
        self.last_failure_time: Optional[datetime] = None
        self.state = CircuitState.CLOSED

    def _should_attempt_reset(self) -> bool:
        """Check if we should attempt to reset from OPEN to HALF_OPEN"""
        if self.state != CircuitState.OPEN:
            return False

        if not self.last_failure_time:
            return False

        return datetime.now() - self.last_failure_time >= self.recovery_timeout

    def _on_success(self):
        """Handle successful operation"""
        self.failure_count = 0
        self.last_failure_time = None

        if self.state != CircuitState.CLOSED:
            logger.info("Circuit breaker closed after successful operation")
            self.state = CircuitState.CLOSED

    def _on_failure(self, exception: BaseException):
        """Handle failed operation"""
        self.failure_count += 1
        self.last_failure_time = datetime.now()

        if self.failure_count >= self.failure_threshold or self.state == CircuitState.HALF_OPEN:
            if self.state != CircuitState.OPEN:
                logger.warning("Circuit breaker opened due to failures",
                               failure_count=self.failure_count,
                               threshold=self.failure_threshold,
                               error=str(exception))
                self.state = CircuitState.OPEN

    async def _attempt(self, func: Callable, *args, **kwargs) -> Any:
        if asyncio.iscoroutinefunction(func):
            awaitable = func(*args, **kwargs)
        else:
            awaitable = asyncio.to_thread(func, *args, **kwargs)

        if self.call_timeout is None:
            return await awaitable
        return await asyncio.wait_for(awaitable, timeout=self.call_timeout)

    async def call(self, func: Callable, *args, operation: str = "store_call", **kwargs) -> Any:
        """Execute function with circuit breaker protection"""

        # Check if we should attempt reset
        if self._should_attempt_reset():
            logger.info("Circuit breaker attempting half-open state")
            self.state = CircuitState.HALF_OPEN

        # If circuit is open, fail fast
        if self.state == CircuitState.OPEN:
            raise CircuitBreakerError("Circuit breaker is OPEN - store temporarily unavailable")

        last_error: Optional[BaseException] = None
        for attempt in range(1, self.retry_attempts + 1):
            try:
                result = await self._attempt(func, *args, **kwargs)
                self._on_success()
                return result

            except self.transient_exceptions as e:
                last_error = e
                self._on_failure(e)
                logger.warning("Transient store failure",
                               operation=operation,
                               attempt=attempt,
                               max_attempts=self.retry_attempts,
                               error_type=type(e).__name__,
                               error=str(e))
                if self.state == CircuitState.OPEN or attempt == self.retry_attempts:
                    break
                if self.retry_backoff:
                    await asyncio.sleep(self.retry_backoff * (2 ** (attempt - 1)))

        if isinstance(last_error, asyncio.TimeoutError):
            raise StoreUnavailableError(f"Store query '{operation}' timed out") from last_error
        raise StoreUnavailableError(f"Store query '{operation}' failed: {last_error}") from last_error

    def get_state(self) -> dict:
        """Get current circuit breaker state"""
        return {
            "state": self.state.value,
            "failure_count": self.failure_count,
            "failure_threshold": self.failure_threshold,
            "last_failure_time": self.last_failure_time.isoformat() if self.last_failure_time else None,
            "recovery_timeout_seconds": self.recovery_timeout.total_seconds()
        }


def build_circuit_breaker() -> CircuitBreaker:
    settings = get_settings()
    return CircuitBreaker(
        failure_threshold=settings.circuit_failure_threshold,
        recovery_timeout=timedelta(seconds=settings.circuit_recovery_seconds),
        call_timeout=settings.store_query_timeout_seconds,
        retry_attempts=settings.store_retry_attempts,
        retry_backoff=settings.store_retry_backoff_seconds,
    )


# Global circuit breaker instance for ledger store reads
db_circuit_breaker = build_circuit_breaker()
