import sys

from loguru import logger


LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)


def setup_logging(level: str = "INFO"):
    """
    Configure the loguru logger for the sink.

    One stdout sink, same format for the consumer and the dev producer.
    """
    logger.remove()
    logger.add(
        sys.stdout,
        colorize=True,
        format=LOG_FORMAT,
        level=level.upper(),
        backtrace=False,
        diagnose=False,
    )
    logger.info(f"📜 Logging initialized (level={level.upper()})")
    return logger


def mask_dsn(dsn: str) -> str:
    """Hide the password in a postgres URL or key=value DSN."""
    if "://" in dsn and "@" in dsn:
        before_at, after_at = dsn.rsplit("@", 1)
        scheme, creds = before_at.split("://", 1)
        if ":" in creds:
            user = creds.split(":", 1)[0]
            return f"{scheme}://{user}:****@{after_at}"
        return dsn

    parts = []
    for token in dsn.split():
        if token.lower().startswith("password="):
            token = "password=****"
        parts.append(token)
    return " ".join(parts)
