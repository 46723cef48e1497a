import psycopg2
from psycopg2 import errors as pg_errors
from loguru import logger

from .codec import ActivityEvent
from .errors import PersistenceInsertError, PersistenceLookupError

# table or column vanished after startup
SCHEMA_DRIFT_ERRORS = (pg_errors.UndefinedTable, pg_errors.UndefinedColumn)

# parameter adaptation failures (e.g. NUL bytes) surface as ValueError/TypeError
STATEMENT_ERRORS = (psycopg2.Error, ValueError, TypeError)


class PersistenceGateway:
    """
    Create-once writes into user_activity.

    The existence check is a fast path only; the table's primary key and
    ON CONFLICT DO NOTHING decide when two writers race on the same key.

    With a reconciler attached, a missing table or column hit while writing
    triggers one ensure_table() pass and a single retry. A ReconciliationError
    from that pass is not wrapped: the caller has to stop.
    """

    def __init__(self, repo, reconciler=None):
        self.repo = repo
        self.reconciler = reconciler

    def persist(self, event: ActivityEvent) -> bool:
        """
        Store `event` unless its activity_uuid is already present.

        Returns True when a row was written, False for a duplicate.
        Raises PersistenceLookupError / PersistenceInsertError on database
        failures; the caller drops the event.
        """
        uid = event.activity_uuid

        try:
            exists = self._with_schema_repair(self.repo.activity_exists, uid)
        except STATEMENT_ERRORS as e:
            raise PersistenceLookupError(uid, f"lookup failed: {e}") from e

        if exists:
            logger.info(f"Record with activity_uuid {uid} already exists, skipping...")
            return False

        logger.debug(f"Inserting new record for user-id: {event.user_uid}")
        try:
            inserted = self._with_schema_repair(self.repo.insert_activity, event.as_row())
        except STATEMENT_ERRORS as e:
            raise PersistenceInsertError(uid, f"insert failed: {e}") from e

        if not inserted:
            logger.info(f"Record with activity_uuid {uid} was written concurrently, skipping...")
            return False

        logger.info(f"✅ Data inserted successfully (activity_uuid={uid}).")
        self._log_row_count()
        return True

    def _with_schema_repair(self, call, *args):
        try:
            return call(*args)
        except SCHEMA_DRIFT_ERRORS as e:
            if self.reconciler is None:
                raise
            logger.warning(f"Schema drift detected on {self.repo.table_name} ({e}). Reconciling...")
            self.reconciler.ensure_table()
            return call(*args)

    def _log_row_count(self) -> None:
        try:
            total = self.repo.count_activities()
        except STATEMENT_ERRORS as e:
            logger.warning(f"Could not count rows in {self.repo.table_name}: {e}")
            return
        logger.info(f"Total records in {self.repo.table_name} table: {total}")
