"""
Database Connection
===================

Sync engine and session management for the almanac.

One session is one transaction: `get_sync_session()` commits when the block
exits cleanly and rolls back everything written inside it otherwise.
"""

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from almanac.config import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


# =============================================================================
# SYNC ENGINE
# =============================================================================

_engine: Optional[Engine] = None

SyncSessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
)


def get_engine() -> Engine:
    """Return the process engine, creating it from settings on first use."""
    global _engine
    if _engine is None:
        _engine = create_engine(
            settings.sync_database_url,
            pool_pre_ping=True,
            echo=settings.db_echo,
        )
    return _engine


def set_engine(engine: Engine) -> None:
    """Replace the process engine (embedding applications, tests)."""
    global _engine
    _engine = engine


@contextmanager
def get_sync_session() -> Generator[Session, None, None]:
    """Get a synchronous database session wrapped in a transaction."""
    session = SyncSessionLocal(bind=get_engine())
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db() -> None:
    """Create all tables that don't exist yet."""
    # Register the models on Base.metadata
    import almanac.models  # noqa: F401

    Base.metadata.create_all(get_engine())


# =============================================================================
# HEALTH CHECK
# =============================================================================

def check_database_connection() -> bool:
    """Check if database is accessible."""
    try:
        with get_sync_session() as session:
            session.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False
