import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

from .errors import ConfigError


# =============================================================================
# Environment keys
# =============================================================================
REQUIRED_BUS_KEYS = ("KAFKA_BROKER", "KAFKA_USER_NAME", "KAFKA_PASSWORD", "TOPIC")
REQUIRED_KEYS = ("POSTGRES_CONN_STR",) + REQUIRED_BUS_KEYS

DEFAULT_GROUP_ID = "productivity-tracker-consumer"
DEFAULT_AUTO_OFFSET_RESET = "latest"
DEFAULT_SECURITY_PROTOCOL = "SASL_SSL"
DEFAULT_SASL_MECHANISM = "SCRAM-SHA-256"


@dataclass(frozen=True)
class BusSettings:
    broker: str
    user_name: str
    password: str
    topic: str
    group_id: str = DEFAULT_GROUP_ID
    auto_offset_reset: str = DEFAULT_AUTO_OFFSET_RESET
    security_protocol: str = DEFAULT_SECURITY_PROTOCOL
    sasl_mechanism: str = DEFAULT_SASL_MECHANISM

    @property
    def brokers(self):
        """KAFKA_BROKER may hold a comma separated list."""
        return [b.strip() for b in self.broker.split(",") if b.strip()]


@dataclass(frozen=True)
class Settings:
    postgres_conn_str: str
    bus: BusSettings
    batch_size: int = 1
    read_timeout_seconds: float = 10.0
    read_error_backoff_seconds: float = 1.0
    db_connect_retries: int = 3
    db_connect_retry_delay: float = 3.0
    log_level: str = "INFO"


# =============================================================================
# Parsing helpers
# =============================================================================
def _require(env: Mapping[str, str], keys):
    missing = [k for k in keys if not (env.get(k) or "").strip()]
    if missing:
        raise ConfigError(f"missing required environment variables: {', '.join(missing)}")


def _int(env, key, default, minimum):
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got {raw!r}") from None
    if value < minimum:
        raise ConfigError(f"{key} must be >= {minimum}, got {value}")
    return value


def _float(env, key, default, positive=False):
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"{key} must be a number, got {raw!r}") from None
    if value < 0 or (positive and value == 0):
        bound = "> 0" if positive else ">= 0"
        raise ConfigError(f"{key} must be {bound}, got {value}")
    return value


# =============================================================================
# Loaders
# =============================================================================
def load_environment(dotenv_path: Optional[str] = None) -> bool:
    """Read a .env file into os.environ if one exists. Existing vars win."""
    return load_dotenv(dotenv_path, override=False)


def load_bus_settings(environ: Optional[Mapping[str, str]] = None) -> BusSettings:
    env = os.environ if environ is None else environ
    _require(env, REQUIRED_BUS_KEYS)

    return BusSettings(
        broker=env["KAFKA_BROKER"].strip(),
        user_name=env["KAFKA_USER_NAME"],
        password=env["KAFKA_PASSWORD"],
        topic=env["TOPIC"].strip(),
        group_id=env.get("KAFKA_GROUP_ID") or DEFAULT_GROUP_ID,
        auto_offset_reset=env.get("KAFKA_AUTO_OFFSET_RESET") or DEFAULT_AUTO_OFFSET_RESET,
        security_protocol=env.get("KAFKA_SECURITY_PROTOCOL") or DEFAULT_SECURITY_PROTOCOL,
        sasl_mechanism=env.get("KAFKA_SASL_MECHANISM") or DEFAULT_SASL_MECHANISM,
    )


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from the environment.

    Every key in REQUIRED_KEYS must be present and non-empty, otherwise
    ConfigError lists all the missing ones at once.
    """
    env = os.environ if environ is None else environ
    _require(env, REQUIRED_KEYS)

    return Settings(
        postgres_conn_str=env["POSTGRES_CONN_STR"],
        bus=load_bus_settings(env),
        batch_size=_int(env, "BATCH_SIZE", 1, minimum=1),
        read_timeout_seconds=_float(env, "READ_TIMEOUT_SECONDS", 10.0, positive=True),
        read_error_backoff_seconds=_float(env, "READ_ERROR_BACKOFF_SECONDS", 1.0),
        db_connect_retries=_int(env, "DB_CONNECT_RETRIES", 3, minimum=1),
        db_connect_retry_delay=_float(env, "DB_CONNECT_RETRY_DELAY", 3.0),
        log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
    )
