"""Database configuration with lazy initialization.

Connections are only established when first needed, not at module import time,
so the spreadsheet code and the tests can import the models without a live
database.
"""

from contextlib import contextmanager
from functools import lru_cache
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import NullPool

from app.common.config import get_settings

# Base class for all ORM models - this is safe to initialize at import time
Base = declarative_base()


@lru_cache(maxsize=1)
def get_sync_engine():
    """
    Lazily create the engine on first database access.

    Uses NullPool so every request gets a fresh connection; the API is
    deployed as short-lived workers.
    """
    settings = get_settings()
    return create_engine(
        settings.database_url,
        echo=settings.debug,
        future=True,
        poolclass=NullPool,
    )


@lru_cache(maxsize=1)
def get_session_factory() -> sessionmaker:
    return sessionmaker(
        bind=get_sync_engine(),
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
    )


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """Context manager for database sessions."""
    session: Session = get_session_factory()()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency that provides a database session."""
    with session_scope() as session:
        yield session
