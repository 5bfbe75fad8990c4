from .producer import EventPublisher, event_publisher
from .consumer import EVENT_TRANSITIONS, PaymentEventConsumer

__all__ = ["EventPublisher", "event_publisher", "EVENT_TRANSITIONS", "PaymentEventConsumer"]
