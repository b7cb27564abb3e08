# salesboard/db.py
"""
Database Connection Management

Version: 1.0.0
Features:
- Singleton pattern with thread-safe double-checked locking
- Connection pooling for server databases, single-file SQLite otherwise
- Health check utilities
- Transaction context manager
"""

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.pool import QueuePool
from sqlalchemy.exc import OperationalError
import logging
import threading
from typing import Tuple, Optional
from contextlib import contextmanager

from .config import config

logger = logging.getLogger(__name__)

# ==================== SINGLETON ENGINE ====================

_engine = None
_engine_lock = threading.Lock()


def get_db_engine() -> Engine:
    """
    Get SQLAlchemy database engine (singleton pattern)

    Thread-safe implementation using double-checked locking.
    Reuses the same engine across all calls to prevent
    connection pool exhaustion.

    Returns:
        SQLAlchemy Engine instance
    """
    global _engine

    if _engine is None:
        with _engine_lock:
            if _engine is None:
                _engine = _create_engine()

    return _engine


def _create_engine() -> Engine:
    """Create new database engine with configured settings"""
    url = config.get_database_url()
    app_config = config.app_config

    logger.info(f"Creating database engine: {config.get_safe_database_url()}")

    if url.startswith("sqlite"):
        engine = create_engine(url, echo=False, future=True)
        logger.info("Database engine created (sqlite)")
        return engine

    pool_size = app_config.get("DB_POOL_SIZE", 5)
    pool_recycle = app_config.get("DB_POOL_RECYCLE", 3600)

    engine = create_engine(
        url,
        poolclass=QueuePool,
        pool_size=pool_size,
        max_overflow=10,
        pool_timeout=30,
        pool_recycle=pool_recycle,
        pool_pre_ping=True,  # Auto-reconnect on stale connections
        echo=False,
        future=True,
    )

    logger.info(f"Database engine created (pool_size={pool_size}, recycle={pool_recycle}s)")

    return engine


# ==================== CONNECTION MANAGEMENT ====================

def check_db_connection(engine: Engine = None) -> Tuple[bool, Optional[str]]:
    """
    Check if database connection is healthy

    Returns:
        Tuple of (is_connected: bool, error_message: str or None)
    """
    try:
        engine = engine or get_db_engine()
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True, None
    except OperationalError as e:
        logger.error(f"Database connection failed: {e}")
        return False, "Cannot connect to database. Please check the connection settings."
    except Exception as e:
        logger.error(f"Database error: {e}")
        return False, f"Database error: {str(e)}"


# ==================== CONTEXT MANAGERS ====================

@contextmanager
def get_transaction(engine: Engine = None):
    """
    Context manager for database transactions

    Usage:
        with get_transaction() as conn:
            conn.execute(text("INSERT INTO ..."))
            conn.execute(text("UPDATE ..."))
            # Auto-commit on success, auto-rollback on exception
    """
    engine = engine or get_db_engine()
    conn = engine.connect()
    trans = conn.begin()
    try:
        yield conn
        trans.commit()
    except Exception:
        trans.rollback()
        raise
    finally:
        conn.close()


# ==================== EXPORTS ====================

__all__ = [
    'get_db_engine',
    'check_db_connection',
    'get_transaction',
]
