from collections import deque
from dataclasses import dataclass
from typing import Optional

from kafka import KafkaConsumer
from kafka.errors import KafkaError
from loguru import logger

from .config import BusSettings
from .errors import ConnectivityError, ReadError


@dataclass(frozen=True)
class BusMessage:
    value: bytes
    offset: int
    partition: int = 0
    topic: Optional[str] = None
    timestamp: Optional[int] = None


def create_consumer(settings: BusSettings) -> KafkaConsumer:
    """
    SASL/SCRAM over TLS, committed offsets keyed by the consumer group.
    A brand-new group starts from the newest offset.
    """
    return KafkaConsumer(
        settings.topic,
        bootstrap_servers=settings.brokers,
        group_id=settings.group_id,
        auto_offset_reset=settings.auto_offset_reset,
        enable_auto_commit=True,
        security_protocol=settings.security_protocol,
        sasl_mechanism=settings.sasl_mechanism,
        sasl_plain_username=settings.user_name,
        sasl_plain_password=settings.password,
    )


class KafkaBusReader:
    """
    One message per read_next() call on top of KafkaConsumer.poll().

    poll() may hand back several records at once; extras are kept in
    delivery order and served before polling again.
    """

    def __init__(self, consumer):
        self._consumer = consumer
        self._pending = deque()

    @classmethod
    def from_settings(cls, settings: BusSettings) -> "KafkaBusReader":
        try:
            consumer = create_consumer(settings)
        except KafkaError as e:
            raise ConnectivityError(f"could not create Kafka consumer: {e}") from e
        logger.info(f"📨 Kafka consumer started with group ID: {settings.group_id} (topic={settings.topic})")
        return cls(consumer)

    def read_next(self, timeout: float) -> Optional[BusMessage]:
        """
        Next message, or None when `timeout` seconds pass without one.
        Raises ReadError for any other Kafka failure.
        """
        if not self._pending:
            try:
                batches = self._consumer.poll(timeout_ms=int(timeout * 1000))
            except KafkaError as e:
                raise ReadError(f"error reading Kafka message: {e}") from e

            for records in batches.values():
                for record in records:
                    self._pending.append(
                        BusMessage(
                            value=record.value,
                            offset=record.offset,
                            partition=record.partition,
                            topic=record.topic,
                            timestamp=record.timestamp,
                        )
                    )

        if not self._pending:
            return None
        return self._pending.popleft()

    def close(self) -> None:
        self._consumer.close()
