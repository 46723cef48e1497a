from collections import namedtuple
from unittest.mock import MagicMock

import pytest
from kafka.errors import KafkaError, NoBrokersAvailable

from activity_sink import bus
from activity_sink.bus import KafkaBusReader
from activity_sink.config import BusSettings
from activity_sink.errors import ConnectivityError, ReadError

Record = namedtuple("Record", "topic partition offset value timestamp")


def _record(offset, value=b"{}"):
    return Record("user-activity", 0, offset, value, 1700000000000)


def test_timeout_returns_none():
    consumer = MagicMock()
    consumer.poll.return_value = {}

    assert KafkaBusReader(consumer).read_next(2.0) is None
    consumer.poll.assert_called_once_with(timeout_ms=2000)


def test_multiple_records_are_served_one_at_a_time_in_order():
    consumer = MagicMock()
    consumer.poll.return_value = {"tp0": [_record(5), _record(6)]}
    reader = KafkaBusReader(consumer)

    assert reader.read_next(1).offset == 5
    assert reader.read_next(1).offset == 6
    assert consumer.poll.call_count == 1


def test_kafka_failure_is_read_error():
    consumer = MagicMock()
    consumer.poll.side_effect = KafkaError("broker gone")

    with pytest.raises(ReadError):
        KafkaBusReader(consumer).read_next(1)


def test_close_closes_consumer():
    consumer = MagicMock()
    KafkaBusReader(consumer).close()
    consumer.close.assert_called_once()


def test_consumer_construction_failure_is_connectivity_error(monkeypatch):
    def no_brokers(settings):
        raise NoBrokersAvailable()

    monkeypatch.setattr(bus, "create_consumer", no_brokers)
    settings = BusSettings(broker="localhost:9092", user_name="u", password="p", topic="user-activity")

    with pytest.raises(ConnectivityError):
        KafkaBusReader.from_settings(settings)
