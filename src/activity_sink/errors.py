"""Exception hierarchy for the activity sink.

Fatal at startup: ConfigError, ConnectivityError, ReconciliationError.
Per-message (logged, message dropped): ReadError, DecodeError, PersistenceError.
"""


class ActivitySinkError(Exception):
    """Base class for every error raised by the sink."""


class ConfigError(ActivitySinkError):
    """Missing or invalid startup configuration."""


class ConnectivityError(ActivitySinkError):
    """Postgres unreachable at startup."""


class ReconciliationError(ActivitySinkError):
    """Schema check or repair of the destination table failed."""


class ReadError(ActivitySinkError):
    """Kafka read failed for a reason other than the poll timeout."""


class DecodeError(ActivitySinkError):
    """Payload is not a well-formed activity event."""


class PersistenceError(ActivitySinkError):
    """Lookup or insert failed (duplicate-key conflicts excluded)."""

    def __init__(self, activity_uuid, message):
        super().__init__(f"{message} (activity_uuid={activity_uuid})")
        self.activity_uuid = activity_uuid


class PersistenceLookupError(PersistenceError):
    pass


class PersistenceInsertError(PersistenceError):
    pass
