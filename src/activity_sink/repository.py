import time
from typing import Any, Dict, List, Optional, Tuple

import psycopg2
from loguru import logger

from .codec import ACTIVITY_COLUMNS
from .errors import ConnectivityError
from .utils.logging import mask_dsn


TABLE_NAME = "user_activity"


# =============================================================================
# SQL
# =============================================================================
SQL_PING = "SELECT 1"

SQL_TABLE_EXISTS = """
SELECT COUNT(*)
FROM information_schema.tables
WHERE table_schema = 'public' AND table_name = %(table_name)s
"""

SQL_COLUMNS = """
SELECT column_name, data_type, is_nullable, column_default
FROM information_schema.columns
WHERE table_name = %(table_name)s AND table_schema = 'public'
ORDER BY ordinal_position
"""

SQL_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS user_activity (
  activity_uuid VARCHAR(255) PRIMARY KEY,
  user_uid VARCHAR(255),
  organization_id VARCHAR(255),
  timestamp TIMESTAMP,
  app_name VARCHAR(255),
  url VARCHAR(255),
  page_title VARCHAR(255),
  productivity_status VARCHAR(255),
  meridian VARCHAR(255),
  ip_address VARCHAR(255),
  mac_address VARCHAR(255),
  mouse_movement BOOLEAN,
  mouse_clicks INTEGER,
  keys_clicks INTEGER,
  status INTEGER,
  cpu_usage VARCHAR(255),
  ram_usage VARCHAR(255),
  screenshot_uid VARCHAR(255),
  thumbnail_uid VARCHAR(255),
  device_user_name VARCHAR(50)
);
"""

SQL_DROP_TABLE = "DROP TABLE IF EXISTS user_activity;"

SQL_ACTIVITY_EXISTS = "SELECT COUNT(*) FROM user_activity WHERE activity_uuid = %(activity_uuid)s"

# ON CONFLICT without a target also covers a table whose primary key was lost;
# RETURNING yields no row when the insert was skipped.
SQL_INSERT_ACTIVITY = """
INSERT INTO user_activity (
  {columns}
) VALUES (
  {values}
)
ON CONFLICT DO NOTHING
RETURNING activity_uuid;
""".format(
    columns=",\n  ".join(ACTIVITY_COLUMNS),
    values=",\n  ".join(f"%({c})s" for c in ACTIVITY_COLUMNS),
)

SQL_COUNT_ACTIVITIES = "SELECT COUNT(*) FROM user_activity"


# =============================================================================
# Connection (bounded retry)
# =============================================================================
def connect_db_with_retry(dsn: str, retries: int = 3, delay: float = 3.0, sleep=time.sleep):
    """
    Open a psycopg2 connection, retrying `retries` times in total.

    Raises ConnectivityError once every attempt failed.
    """
    last_error: Optional[Exception] = None
    for attempt in range(1, retries + 1):
        try:
            conn = psycopg2.connect(dsn)
            conn.autocommit = False
            logger.info(f"✅ Postgres connected ({mask_dsn(dsn)})")
            return conn
        except psycopg2.Error as e:
            last_error = e
            logger.warning(f"⏳ Postgres connection failed (attempt {attempt}/{retries}): {e}")
            if attempt < retries:
                sleep(delay)

    raise ConnectivityError(f"could not connect to Postgres after {retries} attempts: {last_error}")


# =============================================================================
# Repository
# =============================================================================
class PostgresRepository:
    """
    All SQL against the destination table lives here.

    Every statement runs in its own transaction: commit on success,
    rollback and re-raise on failure.
    """

    def __init__(self, conn, table_name: str = TABLE_NAME):
        self.conn = conn
        self.table_name = table_name

    def _run(self, sql: str, params: Optional[Dict[str, Any]] = None, fetch: Optional[str] = None):
        try:
            with self.conn.cursor() as cur:
                cur.execute(sql, params)
                if fetch == "one":
                    result = cur.fetchone()
                elif fetch == "all":
                    result = cur.fetchall()
                else:
                    result = None
            self.conn.commit()
            return result
        except Exception:
            self.conn.rollback()
            raise

    # -------------------------------------------------------------------------
    # health
    # -------------------------------------------------------------------------
    def ping(self) -> None:
        try:
            self._run(SQL_PING, fetch="one")
        except psycopg2.Error as e:
            raise ConnectivityError(f"Postgres ping failed: {e}") from e

    def close(self) -> None:
        self.conn.close()

    # -------------------------------------------------------------------------
    # catalog / DDL
    # -------------------------------------------------------------------------
    def table_exists(self) -> bool:
        row = self._run(SQL_TABLE_EXISTS, {"table_name": self.table_name}, fetch="one")
        return bool(row and row[0] > 0)

    def fetch_columns(self) -> List[Tuple[str, str, str, Optional[str]]]:
        """(column_name, data_type, is_nullable, column_default) in table order."""
        rows = self._run(SQL_COLUMNS, {"table_name": self.table_name}, fetch="all")
        return [tuple(r) for r in rows or []]

    def create_table(self) -> None:
        self._run(SQL_CREATE_TABLE)

    def drop_table(self) -> None:
        self._run(SQL_DROP_TABLE)

    # -------------------------------------------------------------------------
    # rows
    # -------------------------------------------------------------------------
    def activity_exists(self, activity_uuid: str) -> bool:
        row = self._run(SQL_ACTIVITY_EXISTS, {"activity_uuid": activity_uuid}, fetch="one")
        return bool(row and row[0] > 0)

    def insert_activity(self, row: Dict[str, Any]) -> bool:
        """True when a row was written, False when the key already existed."""
        returned = self._run(SQL_INSERT_ACTIVITY, row, fetch="one")
        return returned is not None

    def count_activities(self) -> int:
        row = self._run(SQL_COUNT_ACTIVITIES, fetch="one")
        return int(row[0]) if row else 0
