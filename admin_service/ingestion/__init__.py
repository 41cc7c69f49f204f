"""
Event Ingestion Module
"""
from .stream_consumer import OrderEventHandler, OrderOutcomeEvent, StreamConsumer

__all__ = [
    "OrderEventHandler",
    "OrderOutcomeEvent",
    "StreamConsumer",
]
