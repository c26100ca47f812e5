"""
Database connection and session management
"""
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Generator

from sqlalchemy import create_engine, pool
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from branchstock.config import settings

logger = logging.getLogger(__name__)


def build_engine(url: str, echo: bool = False):
    """Create an engine; PostgreSQL gets a pooled connection with timeouts."""
    if url.startswith("sqlite"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            echo=echo,
        )
    return create_engine(
        url,
        poolclass=pool.QueuePool,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_pre_ping=True,  # Verify connections before using
        pool_recycle=3600,
        connect_args={
            "connect_timeout": 10,
            "options": f"-c statement_timeout={settings.DB_STATEMENT_TIMEOUT_MS}",
        },
        echo=echo,
    )


engine = build_engine(settings.database_connection_string, echo=settings.DEBUG)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for models
Base = declarative_base()


def utcnow() -> datetime:
    """Python-side timestamp default (microsecond resolution on every backend)."""
    return datetime.now(timezone.utc)


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for FastAPI to get database session
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def atomic(db: Session) -> Generator[Session, None, None]:
    """
    Transaction boundary for one workflow action.

    Everything flushed inside the block (movements, balance cache, status
    flip, history) commits together or not at all.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


def create_tables(bind=None) -> None:
    """Create all tables for the registered models."""
    import branchstock.models  # noqa: F401  (registers mappers)

    Base.metadata.create_all(bind=bind or engine)
    logger.info("Database schema ensured")
