import json
import re
from dataclasses import dataclass, fields
from datetime import datetime
from typing import Any, Dict, Optional, Union

from .errors import DecodeError


# -----------------------------------------------------------------------------
# Field layout: (json key, column name, kind)
# The producer sends "user_id" but the column has always been "user_uid".
# -----------------------------------------------------------------------------
ACTIVITY_FIELDS = (
    ("activity_uuid", "activity_uuid", "str"),
    ("user_id", "user_uid", "str"),
    ("organization_id", "organization_id", "str"),
    ("timestamp", "timestamp", "datetime"),
    ("app_name", "app_name", "str"),
    ("url", "url", "str"),
    ("page_title", "page_title", "str"),
    ("productivity_status", "productivity_status", "str"),
    ("meridian", "meridian", "str"),
    ("ip_address", "ip_address", "str"),
    ("mac_address", "mac_address", "str"),
    ("mouse_movement", "mouse_movement", "bool"),
    ("mouse_clicks", "mouse_clicks", "int"),
    ("keys_clicks", "keys_clicks", "int"),
    ("status", "status", "int"),
    ("cpu_usage", "cpu_usage", "str"),
    ("ram_usage", "ram_usage", "str"),
    ("screenshot_uid", "screenshot_uid", "str"),
    ("thumbnail_uid", "thumbnail_uid", "str"),
    ("device_user_name", "device_user_name", "str"),
)

ACTIVITY_COLUMNS = tuple(column for _, column, _ in ACTIVITY_FIELDS)

# fromisoformat before 3.11 only takes 3 or 6 fraction digits; timestamps may carry nanoseconds.
_FRACTION = re.compile(r"\.(\d+)")


@dataclass(frozen=True)
class ActivityEvent:
    """One user-activity sample. Attribute names follow the table columns."""

    activity_uuid: str
    user_uid: Optional[str] = None
    organization_id: Optional[str] = None
    timestamp: Optional[datetime] = None
    app_name: Optional[str] = None
    url: Optional[str] = None
    page_title: Optional[str] = None
    productivity_status: Optional[str] = None
    meridian: Optional[str] = None
    ip_address: Optional[str] = None
    mac_address: Optional[str] = None
    mouse_movement: Optional[bool] = None
    mouse_clicks: Optional[int] = None
    keys_clicks: Optional[int] = None
    status: Optional[int] = None
    cpu_usage: Optional[str] = None
    ram_usage: Optional[str] = None
    screenshot_uid: Optional[str] = None
    thumbnail_uid: Optional[str] = None
    device_user_name: Optional[str] = None

    def as_row(self) -> Dict[str, Any]:
        """Column name -> value, ready for a named-parameter INSERT."""
        return {f.name: getattr(self, f.name) for f in fields(self)}


# -----------------------------------------------------------------------------
# Per-kind value parsers. None passes through (nullable columns).
# -----------------------------------------------------------------------------
def _parse_dt(value: Any) -> datetime:
    """
    ISO-8601 -> datetime
    - "2026-02-02T10:00:00Z" and "+09:00" offsets are accepted
    - fractional seconds of any length (nanoseconds are truncated)
    - anything else is a decode failure (no silent now() fallback)
    """
    if not isinstance(value, str):
        raise ValueError(f"expected ISO-8601 string, got {type(value).__name__}")

    s = value.strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    s = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), s, count=1)
    return datetime.fromisoformat(s)


def _coerce(kind: str, value: Any) -> Any:
    if value is None:
        return None

    if kind == "str":
        if not isinstance(value, str):
            raise ValueError(f"expected string, got {type(value).__name__}")
        if "\x00" in value:
            raise ValueError("string contains a NUL character")
        return value

    if kind == "bool":
        if not isinstance(value, bool):
            raise ValueError(f"expected boolean, got {type(value).__name__}")
        return value

    if kind == "int":
        # bool is an int subclass in Python but not in JSON
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"expected integer, got {type(value).__name__}")
        return value

    if kind == "datetime":
        return _parse_dt(value)

    raise ValueError(f"unknown field kind {kind!r}")


# -----------------------------------------------------------------------------
# Decoder
# -----------------------------------------------------------------------------
def decode_message(payload: Union[bytes, bytearray, str]) -> ActivityEvent:
    """
    Raw Kafka message value -> ActivityEvent.

    Raises DecodeError when the payload is not UTF-8 JSON, is not an object,
    has no activity_uuid, or carries a field of the wrong type.
    Unknown keys are ignored.
    """
    if isinstance(payload, (bytes, bytearray)):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"payload is not valid UTF-8: {e}") from e

    try:
        data = json.loads(payload)
    except (TypeError, ValueError, RecursionError) as e:
        raise DecodeError(f"payload is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise DecodeError(f"expected a JSON object, got {type(data).__name__}")

    activity_uuid = data.get("activity_uuid")
    if not isinstance(activity_uuid, str) or not activity_uuid.strip():
        raise DecodeError("missing required field: activity_uuid")

    values = {}
    for key, column, kind in ACTIVITY_FIELDS:
        try:
            values[column] = _coerce(kind, data.get(key))
        except ValueError as e:
            raise DecodeError(f"field {key!r}: {e} (activity_uuid={activity_uuid})") from e

    return ActivityEvent(**values)
