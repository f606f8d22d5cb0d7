"""
TodoHub Database Session Management.

Single entry point for database initialisation plus a context manager for
transactional access. Uses the global EngineRegistry.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Generator, Optional

from sqlalchemy.orm import Session, sessionmaker

from todohub.db.base import Base, engine_registry

ENGINE_NAME = "todohub"

_session_factory: Optional[sessionmaker] = None


def init_db(
    db_url: str,
    create_tables: bool = False,
    echo: bool = False,
    pool_size: int = 10,
    max_overflow: int = 20,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    pool_pre_ping: bool = True,
) -> sessionmaker:
    """
    Register the "todohub" engine and build its session factory.

    Args:
        db_url:        SQLAlchemy URL (sqlite:///todohub.db, postgresql://…).
        create_tables: When True, run Base.metadata.create_all().
        echo:          Log every SQL statement.

    Returns:
        A ``sessionmaker`` bound to the engine. TaskStore, AggregationEngine
        and the CLI take this factory as their persistence collaborator.
    """
    global _session_factory

    # Importing models registers their tables on Base.metadata
    from todohub.db import models  # noqa: F401

    engine_registry.dispose(ENGINE_NAME)
    engine = engine_registry.register(
        ENGINE_NAME, db_url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_timeout=pool_timeout,
        pool_recycle=pool_recycle,
        pool_pre_ping=pool_pre_ping,
        echo=echo,
    )
    if create_tables:
        Base.metadata.create_all(engine)

    _session_factory = engine_registry.get_session_factory(ENGINE_NAME)
    return _session_factory


def get_session() -> Session:
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _session_factory()


@contextmanager
def session_scope(
    factory: Optional[Callable[[], Session]] = None,
) -> Generator[Session, None, None]:
    """
    Context manager for DB sessions with auto-commit/rollback.

    Usage:
        with session_scope(factory) as session:
            session.add(item)
    """
    session = factory() if factory is not None else get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def close_all_sessions() -> None:
    """Dispose all engines. Used during shutdown."""
    global _session_factory
    _session_factory = None
    engine_registry.dispose()
