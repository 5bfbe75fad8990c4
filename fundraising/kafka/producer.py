import json
from typing import Any, Dict, Optional

from aiokafka import AIOKafkaProducer
from aiokafka.errors import KafkaError
import structlog

from fundraising.core.config import get_settings
from fundraising.schemas.events import NotificationEvent

logger = structlog.get_logger(__name__)


class EventPublisher:
    """Kafka producer for notification events"""

    def __init__(self, producer: Optional[AIOKafkaProducer] = None):
        settings = get_settings()
        self.producer: Optional[AIOKafkaProducer] = producer
        self.bootstrap_servers = settings.kafka_bootstrap_servers
        self.topic = settings.kafka_notification_topic

    async def start(self):
        """Initialize and start Kafka producer"""
        try:
            self.producer = AIOKafkaProducer(
                bootstrap_servers=self.bootstrap_servers,
                value_serializer=lambda v: json.dumps(v, default=str).encode("utf-8"),
                compression_type="gzip",
                acks="all",  # Wait for all in-sync replicas
                retry_backoff_ms=500,
                request_timeout_ms=30000,
            )
            await self.producer.start()
            logger.info("Kafka producer started", bootstrap_servers=self.bootstrap_servers)
        except KafkaError as e:
            logger.error("Failed to start Kafka producer", error=str(e))
            self.producer = None
            raise

    async def stop(self):
        """Stop Kafka producer gracefully"""
        if self.producer:
            try:
                await self.producer.stop()
                logger.info("Kafka producer stopped")
            except KafkaError as e:
                logger.error("Error stopping Kafka producer", error=str(e))
            finally:
                self.producer = None

    async def publish(self, event: NotificationEvent) -> bool:
        """Publish one event; returns False when the producer is not running or the send fails"""
        if not self.producer:
            logger.debug("Kafka producer not started, dropping event", event_type=event.event_type)
            return False

        try:
            await self.producer.send_and_wait(self.topic, value=event.model_dump(mode="json"))
            logger.info("Published notification event", event_type=event.event_type, topic=self.topic)
            return True
        except KafkaError as e:
            logger.error("Failed to publish event", event_type=event.event_type, error=str(e))
            return False

    async def publish_feedback_received(self, feedback: Dict[str, Any]) -> bool:
        return await self.publish(NotificationEvent(
            event_type="feedback_received",
            organization_id=feedback.get("organization_id"),
            campaign_id=feedback.get("campaign_id"),
            payload=feedback,
        ))

    async def publish_campaign_updated(self, campaign_id: int, organization_ids, payload: Dict[str, Any]) -> bool:
        return await self.publish(NotificationEvent(
            event_type="campaign_updated",
            campaign_id=campaign_id,
            payload={"organization_ids": list(organization_ids), **payload},
        ))


# Global producer instance
event_publisher = EventPublisher()
