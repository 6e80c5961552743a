"""
Database Persistence Layer - Core Engine.

============================================================
RESPONSIBILITY
============================================================
Creates the SQLAlchemy engine and sessions for the primary
storage tier.

- SQLite by default, any SQLAlchemy URL via configuration
- Explicit transaction scope with commit/rollback
- Table creation for the collection schema

Engines are created per store instance so tests can point a
store at a temporary database file.

============================================================
"""

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from core.config import get_config
from core.exceptions import StorageTierError


logger = logging.getLogger(__name__)

# =============================================================
# DECLARATIVE BASE
# =============================================================

Base = declarative_base()


# =============================================================
# DATABASE ENGINE
# =============================================================

def get_database_url() -> str:
    """Get database URL from the tracker configuration."""
    return get_config().database_url


def _redact(url: str) -> str:
    return url.split("@")[-1]


def create_database_engine(url: Optional[str] = None, echo: bool = False) -> Engine:
    """
    Create a SQLAlchemy engine for the primary tier.

    SQLite connections are shared across worker threads because
    blocking tier calls run through asyncio.to_thread.
    """
    database_url = url or get_database_url()
    logger.info(f"[database] Creating engine for: {_redact(database_url)}")

    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False

    engine = create_engine(
        database_url,
        echo=echo,
        future=True,
        pool_pre_ping=True,
        connect_args=connect_args,
    )

    @event.listens_for(engine, "connect")
    def on_connect(dbapi_conn, connection_record):
        logger.debug("[database] Connection established")

    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


# =============================================================
# SESSION MANAGEMENT
# =============================================================

@contextmanager
def transaction_scope(factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Context manager for explicit transaction boundaries.

    Commits only if no exception occurs, rolls back on any
    exception and re-raises SQLAlchemy failures as StorageTierError.

    Usage:
        with transaction_scope(factory) as session:
            session.merge(entry)
    """
    session = factory()
    try:
        yield session
        session.commit()
    except SQLAlchemyError as e:
        logger.error(f"[database] Transaction failed, rolling back: {e}")
        session.rollback()
        raise StorageTierError(f"Transaction failed: {e}", tier="sql", cause=e) from e
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# =============================================================
# DATABASE INITIALIZATION
# =============================================================

def create_all_tables(engine: Engine) -> None:
    """Create every table registered on Base (idempotent)."""
    from database import models  # noqa: F401

    try:
        Base.metadata.create_all(bind=engine)
        logger.info("[database] Tables ready")
    except SQLAlchemyError as e:
        logger.error(f"[database] Failed to create tables: {e}")
        raise StorageTierError(f"Table creation failed: {e}", tier="sql", cause=e) from e


__all__ = [
    "Base",
    "create_all_tables",
    "create_database_engine",
    "create_session_factory",
    "get_database_url",
    "transaction_scope",
]
