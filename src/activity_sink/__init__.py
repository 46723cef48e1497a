"""
Kafka -> Postgres sink for user-activity events.

- main.py: startup (config, Postgres, schema) + consume loop
- consumer.py: poll loop, batch state, flush
- codec.py: message validation / decoding into ActivityEvent
- schema.py: user_activity table creation and drift repair
- gateway.py: duplicate-safe persist
- repository.py: all SQL
- bus.py: KafkaConsumer wrapper
- producer/: synthetic event generator for local runs
"""

__version__ = "0.1.0"
