import json
import random
import sys
import time

from kafka import KafkaProducer
from kafka.errors import NoBrokersAvailable
from loguru import logger

from ..config import BusSettings, load_bus_settings, load_environment
from ..errors import ConfigError
from ..utils.logging import setup_logging
from .data_factory import build_activity_json, build_malformed_json


# ---------------------------------------------------------
# ⚙️ Kafka connection
# ---------------------------------------------------------
def create_producer(settings: BusSettings, retry_delay: float = 3.0, sleep=time.sleep):
    """Connect to the brokers, retrying until one answers."""
    producer = None
    logger.info(f"📡 Connecting to Kafka brokers... ({settings.broker})")

    while not producer:
        try:
            producer = KafkaProducer(
                bootstrap_servers=settings.brokers,
                security_protocol=settings.security_protocol,
                sasl_mechanism=settings.sasl_mechanism,
                sasl_plain_username=settings.user_name,
                sasl_plain_password=settings.password,
                value_serializer=lambda x: json.dumps(x, ensure_ascii=False).encode("utf-8"),
                acks=1,
                retries=5,
            )
            logger.info("✅ Kafka connected")
        except NoBrokersAvailable:
            logger.warning(f"⏳ No brokers available, retrying in {retry_delay}s...")
            sleep(retry_delay)
    return producer


# ---------------------------------------------------------
# 🎲 Scenario selection
# ---------------------------------------------------------
def next_scenario(history, dice=None):
    """
    Pick the next batch of payloads.

    - 10%: replay an already-sent activity_uuid (consumer must skip it)
    - 5%: malformed payload (consumer must log and continue)
    - 85%: normal sample
    """
    dice = random.random() if dice is None else dice

    if dice < 0.10 and history:
        replay = random.choice(history)
        return "🔁 [DUPLICATE]", [build_activity_json(activity_uuid=replay)]

    if dice < 0.15:
        return "💥 [MALFORMED]", [build_malformed_json()]

    return "✅ [NORMAL]", [build_activity_json()]


def run_producer(producer, topic, max_messages=None, pause=(0.5, 1.5), sleep=time.sleep):
    history = []
    sent = 0

    while max_messages is None or sent < max_messages:
        name, batch = next_scenario(history)
        for msg in batch:
            producer.send(topic, value=msg)
            sent += 1
            if "activity_uuid" in msg:
                history.append(msg["activity_uuid"])
                del history[:-500]
            logger.info(f"{name} {msg.get('activity_uuid', '<missing>')} | {msg.get('app_name')}")

        producer.flush()
        sleep(random.uniform(*pause))

    return sent


def main() -> int:
    load_environment()
    try:
        settings = load_bus_settings()
    except ConfigError as e:
        setup_logging("INFO")
        logger.critical(f"Configuration error: {e}")
        return 1

    setup_logging()
    producer = create_producer(settings)
    logger.info(f"🚀 Publishing synthetic activity to topic '{settings.topic}'")

    try:
        run_producer(producer, settings.topic)
    except KeyboardInterrupt:
        logger.info("🛑 Producer stopping")
    finally:
        producer.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
