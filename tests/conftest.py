import json

import pytest
from loguru import logger
from psycopg2 import errors as pg_errors

from activity_sink.bus import BusMessage
from activity_sink.codec import ACTIVITY_COLUMNS
from activity_sink.producer.data_factory import build_activity_json


class FakeRepository:
    """In-memory stand-in for PostgresRepository. columns=None means no table."""

    table_name = "user_activity"

    def __init__(self, columns=None):
        self.columns = list(columns) if columns is not None else None
        self.rows = {}
        self.failures = {}
        self.calls = []
        self.stale_lookup = False

    def _enter(self, name):
        self.calls.append(name)
        if name in self.failures:
            raise self.failures[name]

    def table_exists(self):
        self._enter("table_exists")
        return self.columns is not None

    def fetch_columns(self):
        self._enter("fetch_columns")
        return [(c, "character varying", "YES", None) for c in self.columns or []]

    def create_table(self):
        self._enter("create_table")
        if self.columns is None:
            self.columns = list(ACTIVITY_COLUMNS)

    def drop_table(self):
        self._enter("drop_table")
        self.columns = None
        self.rows = {}

    def _require_table(self, row=None):
        if self.columns is None:
            raise pg_errors.UndefinedTable('relation "user_activity" does not exist')
        for column in row or ():
            if column not in self.columns:
                raise pg_errors.UndefinedColumn(f'column "{column}" does not exist')

    def activity_exists(self, activity_uuid):
        self._enter("activity_exists")
        self._require_table()
        if self.stale_lookup:
            return False
        return activity_uuid in self.rows

    def insert_activity(self, row):
        self._enter("insert_activity")
        # psycopg2 refuses NUL while quoting, before the server sees the statement
        if any(isinstance(v, str) and "\x00" in v for v in row.values()):
            raise ValueError("A string literal cannot contain NUL (0x00) characters.")
        self._require_table(row)
        if row["activity_uuid"] in self.rows:
            return False
        self.rows[row["activity_uuid"]] = row
        return True

    def count_activities(self):
        self._enter("count_activities")
        return len(self.rows)


class FakeReader:
    """Replays a script of BusMessage / None (timeout) / exception items."""

    def __init__(self, script):
        self.script = list(script)
        self.timeouts = []
        self.closed = False

    def read_next(self, timeout):
        self.timeouts.append(timeout)
        if not self.script:
            return None
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def close(self):
        self.closed = True


def make_message(payload, offset):
    value = payload if isinstance(payload, bytes) else json.dumps(payload).encode("utf-8")
    return BusMessage(value=value, offset=offset, partition=0, topic="user-activity")


@pytest.fixture
def repo():
    return FakeRepository(columns=ACTIVITY_COLUMNS)


@pytest.fixture
def activity():
    return build_activity_json(activity_uuid="a1", user_id="u1")


@pytest.fixture
def log_records():
    records = []
    handler_id = logger.add(lambda m: records.append(m.record), level="DEBUG", format="{message}")
    yield records
    logger.remove(handler_id)
