"""Database session factory and configuration.

Provides database connectivity and session management for the thesis
repository. The engine is created on first use from Settings.DATABASE_URL.
"""

from contextlib import contextmanager
from functools import lru_cache
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .config import get_settings
from .models.base import Base


def build_engine(database_url: str) -> Engine:
    """Create an engine with pool settings appropriate for the dialect."""
    engine_kwargs = {
        "pool_pre_ping": True,  # Verify connections before using
        "echo": False,
    }

    # Pool settings only apply to PostgreSQL (not SQLite)
    if database_url.startswith("sqlite"):
        engine_kwargs["connect_args"] = {"check_same_thread": False}
    else:
        engine_kwargs["pool_size"] = 5
        engine_kwargs["max_overflow"] = 10

    return create_engine(database_url, **engine_kwargs)


@lru_cache()
def get_engine() -> Engine:
    return build_engine(get_settings().DATABASE_URL)


@lru_cache()
def get_session_factory() -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=get_engine())


def init_db(engine: Engine = None) -> None:
    """Create all tables (development and tests; production uses migrations)."""
    Base.metadata.create_all(bind=engine or get_engine())


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """Context manager for database sessions.

    Usage:
        with get_db_session() as session:
            session.query(Thesis).all()

    Automatically commits on success, rolls back on exception.
    """
    session = get_session_factory()()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_db() -> Generator[Session, None, None]:
    """Dependency for FastAPI endpoints.

    Usage:
        @router.get("/theses/{thesis_id}")
        def get_thesis(thesis_id: UUID, db: Session = Depends(get_db)):
            return db.get(Thesis, thesis_id)
    """
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()
