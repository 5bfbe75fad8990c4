import asyncio
import json
from typing import Optional

from aiokafka import AIOKafkaConsumer
from aiokafka.errors import KafkaError
from pydantic import ValidationError as SchemaValidationError
import structlog

from fundraising.core.config import get_settings
from fundraising.core.errors import FundraisingError
from fundraising.models import DonationStatus
from fundraising.schemas.events import PaymentEvent
from fundraising.services.totals import TotalsMaintainer, TransitionOutcome

logger = structlog.get_logger(__name__)

# event type -> (expected current status, new status)
EVENT_TRANSITIONS = {
    "payment.verified": (DonationStatus.PENDING, DonationStatus.CONFIRMED),
    "payment.failed": (DonationStatus.PENDING, DonationStatus.FAILED),
    "donation.received": (DonationStatus.CONFIRMED, DonationStatus.RECEIVED),
}


class PaymentEventConsumer:
    """Kafka consumer turning payment events into donation status changes"""

    def __init__(self, maintainer: TotalsMaintainer):
        settings = get_settings()
        self.maintainer = maintainer
        self.consumer: Optional[AIOKafkaConsumer] = None
        self.bootstrap_servers = settings.kafka_bootstrap_servers
        self.topic = settings.kafka_payment_events_topic
        self.group_id = settings.kafka_consumer_group
        self._task: Optional[asyncio.Task] = None

    async def start(self):
        """Initialize and start Kafka consumer"""
        try:
            self.consumer = AIOKafkaConsumer(
                self.topic,
                bootstrap_servers=self.bootstrap_servers,
                group_id=self.group_id,
                value_deserializer=lambda v: json.loads(v.decode("utf-8")),
                auto_offset_reset="earliest",
                enable_auto_commit=True,
            )
            await self.consumer.start()
            self._task = asyncio.create_task(self.consume_events())
            logger.info("Kafka consumer started", bootstrap_servers=self.bootstrap_servers, topic=self.topic)
        except KafkaError as e:
            logger.error("Failed to start Kafka consumer", error=str(e))
            self.consumer = None
            raise

    async def stop(self):
        """Stop Kafka consumer gracefully"""
        if self._task:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None
        if self.consumer:
            try:
                await self.consumer.stop()
                logger.info("Kafka consumer stopped")
            except KafkaError as e:
                logger.error("Error stopping Kafka consumer", error=str(e))
            finally:
                self.consumer = None

    async def consume_events(self):
        """Consume payment events until cancelled"""
        if not self.consumer:
            logger.error("Kafka consumer not initialized")
            return

        logger.info("Listening for payment events", topic=self.topic)
        async for message in self.consumer:
            try:
                await self.handle_event(message.value)
            except FundraisingError as e:
                logger.error(
                    "Failed to apply payment event",
                    error=e.kind,
                    message=str(e),
                    offset=message.offset,
                    partition=message.partition,
                )
            except Exception as e:
                logger.error(
                    "Unexpected error handling payment event",
                    error=str(e),
                    offset=message.offset,
                    partition=message.partition,
                    exc_info=True,
                )

    async def handle_event(self, event: dict) -> Optional[TransitionOutcome]:
        """
        Apply one payment event.

        Unknown event types and malformed payloads are skipped. Domain errors
        (stale or invalid transitions, unknown donations) are logged and the
        event is dropped so one bad message cannot stall the partition.
        Store outages propagate.
        """
        event_type = event.get("event_type") if isinstance(event, dict) else None
        transition = EVENT_TRANSITIONS.get(event_type)
        if transition is None:
            logger.debug("Ignoring event", event_type=event_type)
            return None

        try:
            payment_event = PaymentEvent.model_validate(event)
        except SchemaValidationError as e:
            logger.warning("Malformed payment event", event_type=event_type, error=str(e))
            return None

        previous_status, new_status = transition
        logger.info("Received payment event", event_type=event_type, donation_id=payment_event.donation_id)
        try:
            return await self.maintainer.on_donation_status_changed(
                payment_event.donation_id, previous_status, new_status
            )
        except FundraisingError as e:
            if e.status_code >= 500:
                raise
            logger.warning(
                "Payment event rejected",
                event_type=event_type,
                donation_id=payment_event.donation_id,
                error=e.kind,
                message=e.message,
            )
            return None
