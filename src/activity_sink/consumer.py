import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Tuple

from loguru import logger

from .bus import BusMessage
from .codec import ActivityEvent, decode_message
from .errors import DecodeError, PersistenceError, ReadError


# =============================================================================
# Batch state (owned by the loop, passed in and handed back)
# =============================================================================
@dataclass(frozen=True)
class Batch:
    messages: Tuple[BusMessage, ...] = ()
    size: int = 1

    def __post_init__(self):
        if self.size < 1:
            raise ValueError(f"batch size must be >= 1, got {self.size}")

    def __len__(self):
        return len(self.messages)

    @property
    def full(self) -> bool:
        return len(self.messages) >= self.size

    def add(self, message: BusMessage) -> "Batch":
        return Batch(self.messages + (message,), self.size)

    def cleared(self) -> "Batch":
        return Batch((), self.size)


@dataclass
class FlushReport:
    inserted: int = 0
    duplicates: int = 0
    decode_failures: int = 0
    persist_failures: int = 0
    offsets: list = field(default_factory=list)

    @property
    def processed(self) -> int:
        return self.inserted + self.duplicates + self.decode_failures + self.persist_failures


# =============================================================================
# Flush
# =============================================================================
def flush_batch(batch: Batch, persist: Callable[[ActivityEvent], bool]) -> Tuple[Batch, FlushReport]:
    """
    Decode and persist every message of `batch` in delivery order.

    A bad message only costs itself: decode and persistence failures are
    logged and counted, the rest of the batch still goes through.
    Returns the emptied batch and a report.
    """
    report = FlushReport()

    for message in batch.messages:
        report.offsets.append(message.offset)

        try:
            event = decode_message(message.value)
        except DecodeError as e:
            report.decode_failures += 1
            logger.error(f"❌ Error decoding message at offset {message.offset}: {e}")
            continue

        try:
            inserted = persist(event)
        except PersistenceError as e:
            report.persist_failures += 1
            logger.error(f"❌ Error inserting data at offset {message.offset}: {e}")
            continue

        if inserted:
            report.inserted += 1
        else:
            report.duplicates += 1

    return batch.cleared(), report


# =============================================================================
# Loop
# =============================================================================
class ConsumeLoop:
    """
    Reading -> (batch full) -> Flushing -> Reading, forever.

    The read timeout is only a polling interval: an empty poll is normal and
    a failed read is logged and retried. Offsets are committed by the Kafka
    client for the consumer group, so a crash means redelivery and the
    gateway's duplicate check absorbs it.
    """

    def __init__(
        self,
        reader,
        gateway,
        batch_size: int = 1,
        read_timeout: float = 10.0,
        error_backoff: float = 0.0,
        sleep=time.sleep,
    ):
        self.reader = reader
        self.gateway = gateway
        self.read_timeout = read_timeout
        self.error_backoff = error_backoff
        self._sleep = sleep
        self.batch = Batch(size=batch_size)

    def step(self) -> Optional[FlushReport]:
        """One read, plus a flush if that read filled the batch."""
        try:
            message = self.reader.read_next(self.read_timeout)
        except ReadError as e:
            logger.error(f"Error reading Kafka message: {e}")
            if self.error_backoff:
                self._sleep(self.error_backoff)
            return None

        if message is None:
            logger.debug("No new messages, waiting...")
            return None

        logger.debug(f"Received message at offset {message.offset}")
        self.batch = self.batch.add(message)

        if self.batch.full:
            return self.flush()
        return None

    def flush(self) -> FlushReport:
        self.batch, report = flush_batch(self.batch, self.gateway.persist)
        if report.processed:
            logger.info(
                f"📦 Batch flushed: inserted={report.inserted} duplicates={report.duplicates} "
                f"decode_failures={report.decode_failures} persist_failures={report.persist_failures}"
            )
        return report

    def run(self, max_reads: Optional[int] = None) -> None:
        """Loop until interrupted; `max_reads` bounds it for tests and tooling."""
        reads = 0
        while max_reads is None or reads < max_reads:
            self.step()
            reads += 1

    def drain(self) -> Optional[FlushReport]:
        """Flush a partially filled batch, e.g. on shutdown."""
        if len(self.batch) == 0:
            return None
        return self.flush()
