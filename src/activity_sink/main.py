import sys

from loguru import logger

from .bus import KafkaBusReader
from .config import load_environment, load_settings
from .consumer import ConsumeLoop
from .errors import ConfigError, ConnectivityError, ReconciliationError
from .gateway import PersistenceGateway
from .repository import PostgresRepository, connect_db_with_retry
from .schema import SchemaReconciler
from .utils.logging import setup_logging


def main() -> int:
    load_environment()

    try:
        settings = load_settings()
    except ConfigError as e:
        setup_logging("INFO")
        logger.critical(f"Configuration error: {e}")
        return 1

    setup_logging(settings.log_level)
    logger.info("📨 Activity sink starting")

    # -------------------------------------------------------------------------
    # Postgres + schema (fatal on failure)
    # -------------------------------------------------------------------------
    try:
        conn = connect_db_with_retry(
            settings.postgres_conn_str,
            retries=settings.db_connect_retries,
            delay=settings.db_connect_retry_delay,
        )
    except ConnectivityError as e:
        logger.critical(str(e))
        return 1

    repo = PostgresRepository(conn)
    reader = None
    loop = None

    try:
        repo.ping()
        reconciler = SchemaReconciler(repo)
        reconciler.ensure_table()
        reconciler.log_table_structure()

        reader = KafkaBusReader.from_settings(settings.bus)
        loop = ConsumeLoop(
            reader,
            PersistenceGateway(repo, reconciler),
            batch_size=settings.batch_size,
            read_timeout=settings.read_timeout_seconds,
            error_backoff=settings.read_error_backoff_seconds,
        )
        loop.run()

    except (ConnectivityError, ReconciliationError) as e:
        logger.critical(f"Fatal error: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("🛑 Consumer stopping")
        if loop is not None:
            loop.drain()
    finally:
        if reader is not None:
            reader.close()
        repo.close()
        logger.info("✅ DB / Consumer closed")

    return 0


if __name__ == "__main__":
    sys.exit(main())
