import logging

from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from app.core.config import Settings

logger = logging.getLogger(__name__)


def create_db_pool(settings: Settings) -> ConnectionPool:
    return ConnectionPool(
        settings.database_url,
        min_size=settings.db_pool_min,
        max_size=settings.db_pool_max,
        timeout=settings.db_pool_timeout,
        max_waiting=settings.db_pool_max_waiting,
        open=False,
        kwargs={"row_factory": dict_row},
    )


def open_db_pool(pool: ConnectionPool) -> None:
    pool.open()
    logger.info("Database pool opened (min=%s, max=%s)", pool.min_size, pool.max_size)


def close_db_pool(pool: ConnectionPool) -> None:
    pool.close()
    logger.info("Database pool closed")
