"""
Kafka Stream Consumer

Keeps the dashboard counters current from order lifecycle events:
- Durable consumer group on the order events topic
- Routing key filter (the message key)
- Event validation with pydantic
- Manual offset commits after successful handling
- Redelivery with backoff, then a dead-letter topic
- Metrics and observability
"""

import asyncio
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import structlog
from aiokafka import AIOKafkaConsumer, AIOKafkaProducer, TopicPartition
from aiokafka.errors import KafkaConnectionError
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from prometheus_client import Counter, Histogram

from admin_service.config import Settings, get_settings
from admin_service.errors import ServiceError
from admin_service.services.dashboard import DashboardService

logger = structlog.get_logger(__name__)

SUCCESS_STATUS = "SUCCESS"


def is_permanent_failure(exc: Exception) -> bool:
    """Client-side service errors fail the same way on every redelivery"""
    return isinstance(exc, ServiceError) and exc.status_code < 500


# =============================================================================
# METRICS
# =============================================================================

EVENTS_CONSUMED = Counter(
    "admin_events_consumed_total",
    "Total number of order events consumed",
    ["status"],
)

EVENT_PROCESSING_TIME = Histogram(
    "admin_event_processing_seconds",
    "Time spent handling order events",
)


# =============================================================================
# EVENT MODEL
# =============================================================================

class OrderOutcomeEvent(BaseModel):
    """Outcome of an order, as published by the order service"""

    model_config = ConfigDict(populate_by_name=True)

    status: str
    reason: Optional[str] = None
    created_at: datetime = Field(alias="createdAt")

    @model_validator(mode="before")
    @classmethod
    def unwrap_payload(cls, data: Any) -> Any:
        # In-process publishers wrap the body as {"payload": {...}}
        if isinstance(data, dict) and isinstance(data.get("payload"), dict):
            return data["payload"]
        return data

    @property
    def is_success(self) -> bool:
        return self.status == SUCCESS_STATUS


class OrderEventHandler:
    """Applies an order outcome to the dashboard counters"""

    def __init__(self, dashboard: DashboardService):
        self.dashboard = dashboard

    async def handle(self, event: OrderOutcomeEvent) -> None:
        if event.is_success:
            await self.dashboard.record_metric("orders", event.created_at, 1)
            return

        await self.dashboard.record_metric("failed_orders", event.created_at, 1)
        if event.reason:
            await self.dashboard.record_failure_reason(event.reason, event.created_at, 1)


# =============================================================================
# STREAM CONSUMER
# =============================================================================

@dataclass
class ConsumerConfig:
    """Kafka consumer configuration"""
    topic: str = "admin_order_events"
    routing_key: str = "order_updates"
    group_id: str = "admin-dashboard-stats"
    bootstrap_servers: str = "localhost:9092"
    auto_offset_reset: str = "earliest"
    session_timeout_ms: int = 30000
    heartbeat_interval_ms: int = 10000
    max_retries: int = 3
    retry_backoff_ms: int = 1000

    @property
    def dead_letter_topic(self) -> str:
        return f"{self.topic}.dlq"

    @classmethod
    def from_settings(cls, settings: Settings) -> "ConsumerConfig":
        kafka = settings.kafka
        return cls(
            topic=kafka.topic_order_events,
            routing_key=kafka.routing_key,
            group_id=kafka.consumer_group,
            bootstrap_servers=kafka.bootstrap_servers,
            auto_offset_reset=kafka.auto_offset_reset,
            session_timeout_ms=kafka.session_timeout_ms,
            heartbeat_interval_ms=kafka.heartbeat_interval_ms,
            max_retries=kafka.max_retries,
            retry_backoff_ms=kafka.retry_backoff_ms,
        )


class StreamConsumer:
    """
    Order events consumer.

    One message is handled at a time and its offset is committed only after
    the handler succeeds. A failing message is redelivered by seeking back to
    its offset, up to ``max_retries`` times, then dead-lettered and committed.
    Messages that cannot be parsed go to the dead-letter topic straight away.

    Example:
        consumer = StreamConsumer(OrderEventHandler(dashboard), config)
        await consumer.start()
    """

    def __init__(self, handler: OrderEventHandler, config: Optional[ConsumerConfig] = None):
        self.handler = handler
        self.config = config or ConsumerConfig()

        self._consumer: Optional[AIOKafkaConsumer] = None
        self._producer: Optional[AIOKafkaProducer] = None  # For DLQ
        self._attempts: Dict[tuple, int] = {}
        self._running = False

    async def _create_consumer(self) -> AIOKafkaConsumer:
        """Create and configure Kafka consumer"""
        return AIOKafkaConsumer(
            self.config.topic,
            bootstrap_servers=self.config.bootstrap_servers,
            group_id=self.config.group_id,
            auto_offset_reset=self.config.auto_offset_reset,
            enable_auto_commit=False,  # Manual commit after handling
            max_poll_records=1,
            session_timeout_ms=self.config.session_timeout_ms,
            heartbeat_interval_ms=self.config.heartbeat_interval_ms,
        )

    async def _create_producer(self) -> AIOKafkaProducer:
        """Create producer for dead-letter queue"""
        return AIOKafkaProducer(
            bootstrap_servers=self.config.bootstrap_servers,
            value_serializer=lambda v: json.dumps(v).encode("utf-8"),
            key_serializer=lambda k: k.encode("utf-8") if k else None,
        )

    @staticmethod
    def _decode_key(key: Any) -> Optional[str]:
        if isinstance(key, bytes):
            return key.decode("utf-8", errors="replace")
        return key

    @staticmethod
    def _decode_value(value: Any) -> Any:
        if isinstance(value, (bytes, bytearray)):
            value = value.decode("utf-8")
        if isinstance(value, str):
            return json.loads(value)
        return value

    def _parse_event(self, message: Any) -> OrderOutcomeEvent:
        """Parse raw message value into an order outcome event"""
        return OrderOutcomeEvent.model_validate(self._decode_value(message.value))

    async def _send_to_dlq(self, message: Any, error: str) -> None:
        """Send failed message to dead-letter queue"""
        if not self._producer:
            logger.error("No DLQ producer, dropping failed event", offset=message.offset, error=error)
            return

        raw = message.value
        if isinstance(raw, (bytes, bytearray)):
            raw = raw.decode("utf-8", errors="replace")

        dlq_message = {
            "original_topic": message.topic,
            "original_partition": message.partition,
            "original_offset": message.offset,
            "original_data": raw,
            "error": error,
            "failed_at": datetime.now(timezone.utc).isoformat(),
        }
        await self._producer.send_and_wait(
            self.config.dead_letter_topic,
            value=dlq_message,
            key=self._decode_key(message.key),
        )
        logger.info("Sent event to DLQ", topic=self.config.dead_letter_topic, offset=message.offset)

    async def _commit(self, message: Any) -> None:
        tp = TopicPartition(message.topic, message.partition)
        await self._consumer.commit({tp: message.offset + 1})

    async def handle_message(self, message: Any) -> str:
        """
        Handle one delivered message.

        Returns:
            The outcome: ``skipped``, ``success``, ``retry``, ``dead_lettered``,
            ``rejected`` (handler refused the event, dead-lettered without retries)
            or ``malformed``
        """
        key = self._decode_key(message.key)
        if key != self.config.routing_key:
            logger.debug("Skipping message with foreign routing key", key=key, offset=message.offset)
            await self._commit(message)
            EVENTS_CONSUMED.labels(status="skipped").inc()
            return "skipped"

        try:
            event = self._parse_event(message)
        except (ValueError, ValidationError) as e:
            logger.warning("Event validation failed", error=str(e), offset=message.offset)
            await self._send_to_dlq(message, f"Event parsing failed: {e}")
            await self._commit(message)
            EVENTS_CONSUMED.labels(status="malformed").inc()
            return "malformed"

        attempt_key = (message.topic, message.partition, message.offset)
        start_time = asyncio.get_running_loop().time()
        try:
            with EVENT_PROCESSING_TIME.time():
                await self.handler.handle(event)
        except Exception as e:
            attempts = self._attempts.get(attempt_key, 0) + 1
            self._attempts[attempt_key] = attempts
            logger.error(
                "Event processing error",
                error=str(e),
                offset=message.offset,
                attempt=attempts,
            )

            if is_permanent_failure(e):
                self._attempts.pop(attempt_key, None)
                await self._send_to_dlq(message, str(e))
                await self._commit(message)
                EVENTS_CONSUMED.labels(status="rejected").inc()
                return "rejected"

            if attempts <= self.config.max_retries:
                delay = self.config.retry_backoff_ms * (2 ** (attempts - 1)) / 1000
                await asyncio.sleep(delay)
                self._consumer.seek(TopicPartition(message.topic, message.partition), message.offset)
                EVENTS_CONSUMED.labels(status="retry").inc()
                return "retry"

            self._attempts.pop(attempt_key, None)
            await self._send_to_dlq(message, str(e))
            await self._commit(message)
            EVENTS_CONSUMED.labels(status="dead_lettered").inc()
            return "dead_lettered"

        self._attempts.pop(attempt_key, None)
        await self._commit(message)
        EVENTS_CONSUMED.labels(status="success").inc()
        logger.info(
            "Order event processed",
            status=event.status,
            reason=event.reason,
            duration_ms=round((asyncio.get_running_loop().time() - start_time) * 1000, 2),
        )
        return "success"

    async def start(self) -> None:
        """Start consuming events"""
        logger.info(
            "Starting stream consumer",
            topic=self.config.topic,
            routing_key=self.config.routing_key,
            group_id=self.config.group_id,
        )

        self._consumer = await self._create_consumer()
        self._producer = await self._create_producer()

        try:
            await self._consumer.start()
            await self._producer.start()
            self._running = True

            async for message in self._consumer:
                if not self._running:
                    break
                await self.handle_message(message)

        except KafkaConnectionError as e:
            logger.error("Kafka connection error", error=str(e))
            raise

        finally:
            await self.stop()

    async def stop(self) -> None:
        """Stop the consumer gracefully"""
        if not self._running and self._consumer is None:
            return
        logger.info("Stopping stream consumer")
        self._running = False

        if self._consumer:
            await self._consumer.stop()
            self._consumer = None
        if self._producer:
            await self._producer.stop()
            self._producer = None

        logger.info("Stream consumer stopped")


# =============================================================================
# FACTORY FUNCTIONS
# =============================================================================

def create_stream_consumer(
    dashboard: DashboardService,
    settings: Optional[Settings] = None,
) -> StreamConsumer:
    """Create a configured stream consumer feeding the dashboard"""
    settings = settings or get_settings()
    return StreamConsumer(OrderEventHandler(dashboard), ConsumerConfig.from_settings(settings))


async def start_consumers(dashboard: DashboardService, settings: Optional[Settings] = None) -> None:
    """Run the order events consumer until cancelled (called from main app)"""
    consumer = create_stream_consumer(dashboard, settings)
    try:
        await consumer.start()
    except asyncio.CancelledError:
        await consumer.stop()
        raise
