"""
Keeps cause and campaign running totals consistent with the donation ledger.

Every donation status change goes through ``TotalsMaintainer``. The status
change, the claim of the donation's applied flag and the total increments
commit in one transaction. Increments are single ``UPDATE ... SET x = x + d``
statements so concurrent confirmations never lose an update, and the applied
flag is claimed with a conditional update so a donation is added at most once
however often its confirmation is delivered. The transaction runs through the
store circuit breaker, so transient database failures are retried a bounded
number of times and then surface as ``StoreUnavailableError``.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Union

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
import structlog

from fundraising.cache.redis import RedisCache, redis_cache
from fundraising.core.circuit_breaker import CircuitBreaker, db_circuit_breaker
from fundraising.core.errors import (
    ConflictError,
    ConsistencyError,
    NotFoundError,
    StoreUnavailableError,
    ValidationError,
)
from fundraising.core.numeric import to_decimal
from fundraising.middleware.metrics import donation_status_transitions_total
from fundraising.models import Campaign, Cause, Donation, DonationStatus, DonationType, can_transition

logger = structlog.get_logger(__name__)

StatusLike = Union[DonationStatus, str]


@dataclass(frozen=True)
class TransitionOutcome:
    donation_id: int
    status: DonationStatus
    applied: bool = False  # amount added to totals by this call
    duplicate: bool = False  # redelivery of a transition already stored
    amount: Decimal = Decimal("0")
    cause_id: Optional[int] = None
    campaign_id: Optional[int] = None


def _status(value: StatusLike) -> DonationStatus:
    try:
        return DonationStatus(value)
    except ValueError:
        raise ValidationError(f"Unknown donation status: {value}")


class TotalsMaintainer:
    """Applies donation status changes and the total increments they imply"""

    def __init__(self, session_factory: async_sessionmaker, cache: Optional[RedisCache] = None,
                 circuit_breaker: Optional[CircuitBreaker] = None):
        self.session_factory = session_factory
        self.cache = cache if cache is not None else redis_cache
        self.circuit_breaker = circuit_breaker or db_circuit_breaker

    async def on_donation_status_changed(self, donation_id: int,
                                         previous_status: StatusLike,
                                         new_status: StatusLike) -> TransitionOutcome:
        previous_status = _status(previous_status)
        new_status = _status(new_status)

        if not can_transition(previous_status, new_status):
            donation_status_transitions_total.labels(new_status=new_status.value, outcome="rejected").inc()
            raise ValidationError(
                f"Donation cannot move from {previous_status.value} to {new_status.value}",
                details={"donation_id": donation_id},
            )

        try:
            outcome = await self.circuit_breaker.call(
                self._transaction, donation_id, previous_status, new_status,
                operation="donation_status_change",
            )
        except ConsistencyError:
            donation_status_transitions_total.labels(new_status=new_status.value, outcome="inconsistent").inc()
            logger.error(
                "Donation already applied to totals before being counted",
                donation_id=donation_id,
                previous_status=previous_status.value,
                new_status=new_status.value,
            )
            raise
        except StoreUnavailableError:
            donation_status_transitions_total.labels(new_status=new_status.value, outcome="unavailable").inc()
            raise

        if outcome.duplicate:
            label = "duplicate"
        elif outcome.applied:
            label = "applied"
        else:
            label = "status_only"
        donation_status_transitions_total.labels(new_status=new_status.value, outcome=label).inc()

        if outcome.applied and outcome.campaign_id is not None:
            await self.cache.invalidate_campaign(outcome.campaign_id)

        logger.info(
            "Donation status changed",
            donation_id=donation_id,
            previous_status=previous_status.value,
            new_status=new_status.value,
            applied=outcome.applied,
            duplicate=outcome.duplicate,
        )
        return outcome

    async def _transaction(self, donation_id: int,
                           previous_status: DonationStatus, new_status: DonationStatus) -> TransitionOutcome:
        # A failed attempt rolls back whole, so a retry either applies once or sees a duplicate
        async with self.session_factory() as session:
            async with session.begin():
                return await self._apply(session, donation_id, previous_status, new_status)

    async def _apply(self, session: AsyncSession, donation_id: int,
                     previous_status: DonationStatus, new_status: DonationStatus) -> TransitionOutcome:
        changed = await session.execute(
            update(Donation)
            .where(Donation.id == donation_id, Donation.status == previous_status)
            .values(status=new_status)
            .execution_options(synchronize_session=False)
        )

        if changed.rowcount == 0:
            current = (await session.execute(
                select(Donation.status).where(Donation.id == donation_id)
            )).scalar_one_or_none()
            if current is None:
                raise NotFoundError(f"Donation {donation_id} not found")
            if current == new_status:
                return TransitionOutcome(donation_id=donation_id, status=new_status, duplicate=True)
            raise ConflictError(
                f"Donation {donation_id} is {current.value}, expected {previous_status.value}",
                details={"donation_id": donation_id, "current_status": current.value},
            )

        donation = (await session.execute(
            select(Donation.type, Donation.amount, Donation.cause_id, Donation.campaign_id)
            .where(Donation.id == donation_id)
        )).one()

        if not new_status.is_counted or donation.type != DonationType.MONEY:
            return TransitionOutcome(
                donation_id=donation_id,
                status=new_status,
                cause_id=donation.cause_id,
                campaign_id=donation.campaign_id,
            )

        claimed = await session.execute(
            update(Donation)
            .where(Donation.id == donation_id, Donation.applied_to_totals.is_(False))
            .values(applied_to_totals=True)
            .execution_options(synchronize_session=False)
        )

        if claimed.rowcount == 0:
            if not previous_status.is_counted:
                raise ConsistencyError(
                    f"Donation {donation_id} was applied to totals before it was counted",
                    details={"donation_id": donation_id},
                )
            # Already counted under the previous status (CONFIRMED -> RECEIVED)
            return TransitionOutcome(
                donation_id=donation_id,
                status=new_status,
                cause_id=donation.cause_id,
                campaign_id=donation.campaign_id,
            )

        amount = to_decimal(donation.amount)
        await session.execute(
            update(Cause)
            .where(Cause.id == donation.cause_id)
            .values(raised_amount=Cause.raised_amount + amount)
            .execution_options(synchronize_session=False)
        )
        if donation.campaign_id is not None:
            await session.execute(
                update(Campaign)
                .where(Campaign.id == donation.campaign_id)
                .values(
                    total_raised_amount=Campaign.total_raised_amount + amount,
                    total_supporters=Campaign.total_supporters + 1,
                )
                .execution_options(synchronize_session=False)
            )

        return TransitionOutcome(
            donation_id=donation_id,
            status=new_status,
            applied=True,
            amount=amount,
            cause_id=donation.cause_id,
            campaign_id=donation.campaign_id,
        )
