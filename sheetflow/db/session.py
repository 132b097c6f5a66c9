import logging

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import declarative_base

from sheetflow.core.config import settings

logger = logging.getLogger(__name__)

_engine = None

Base = declarative_base()


def _report_connection_failure(exc: Exception, database_url: str) -> None:
    """Log high-signal diagnostics when the application cannot reach the database."""
    logger.warning("Could not connect to database: %s", exc)
    logger.warning("The application will start but row store operations will fail until the connection succeeds.")

    try:
        url = make_url(database_url)
    except Exception as parse_error:  # pragma: no cover
        logger.warning("Unable to parse DATABASE_URL (%s); skipping detailed diagnostics.", parse_error)
        return

    logger.warning(
        "Database settings: dialect=%s driver=%s host=%s port=%s database=%s",
        url.get_backend_name(),
        url.get_driver_name() or "default",
        url.host or "localhost",
        url.port or "(default)",
        url.database,
    )


def build_engine(database_url: str, *, timeout_seconds: int = 30) -> Engine:
    """
    Create an engine whose write path is bounded by ``timeout_seconds``.

    SQLite waits on a locked database for ``timeout`` seconds; server databases
    bound both the connect and the pool checkout.
    """
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        return create_engine(
            database_url,
            connect_args={"timeout": timeout_seconds, "check_same_thread": False},
        )
    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_timeout=timeout_seconds,
        connect_args={"connect_timeout": timeout_seconds},
    )


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        _engine = build_engine(settings.database_url, timeout_seconds=settings.row_store_timeout_seconds)
        try:
            # Test connection eagerly so failures surface immediately.
            with _engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception as e:
            _report_connection_failure(e, settings.database_url)
    return _engine
