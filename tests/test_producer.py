import json
from unittest.mock import MagicMock

import pytest

from activity_sink.codec import decode_message
from activity_sink.errors import DecodeError
from activity_sink.producer.data_factory import build_activity_json, build_malformed_json
from activity_sink.producer.producer import next_scenario, run_producer


def test_generated_activity_decodes():
    payload = build_activity_json(user_id="u9", org_id="ORG-001")
    event = decode_message(json.dumps(payload).encode("utf-8"))

    assert event.user_uid == "u9"
    assert event.organization_id == "ORG-001"
    assert len(event.device_user_name) <= 50


def test_malformed_activity_is_rejected():
    for _ in range(20):
        with pytest.raises(DecodeError):
            decode_message(json.dumps(build_malformed_json()))


def test_duplicate_scenario_replays_known_uuid():
    name, batch = next_scenario(["seen-1"], dice=0.01)
    assert "DUPLICATE" in name
    assert batch[0]["activity_uuid"] == "seen-1"


def test_duplicate_scenario_needs_history():
    name, _ = next_scenario([], dice=0.01)
    assert "DUPLICATE" not in name


def test_run_producer_sends_and_flushes():
    producer = MagicMock()

    sent = run_producer(producer, "user-activity", max_messages=3, sleep=lambda s: None)

    assert sent == 3
    assert producer.send.call_count == 3
    assert producer.send.call_args[0][0] == "user-activity"
    assert producer.flush.call_count == 3
