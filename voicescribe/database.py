"""
Database Manager - VoiceScribe

SQLAlchemy engine and sessions for the transcript store.

Features:
- Engine with connection pool (PostgreSQL) or thread-safe SQLite
- Session factory
- Declarative base for ORM models
- get_db() helper for FastAPI

Usage:
    from voicescribe.database import SessionLocal, get_db

    db = SessionLocal()
    try:
        # ... queries
    finally:
        db.close()
"""

from typing import Generator

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool

from voicescribe.config import config
from voicescribe.logger import get_logger

logger = get_logger("system", name=__name__)


def make_engine(url: str) -> Engine:
    """
    Build an engine for the given URL.

    SQLite is shared between the flush thread, the STT workers and the API,
    so check_same_thread is disabled; an in-memory database must keep one
    connection or every session would see an empty schema.
    """
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, echo=False, **kwargs)

    return create_engine(
        url,
        pool_pre_ping=True,          # Test connection before use
        pool_size=5,
        max_overflow=10,
        pool_timeout=30,
        pool_recycle=1800,           # Recycle connections after 30min
        echo=False
    )


# ============================================================================
# ENGINE
# ============================================================================
engine = make_engine(config.DATABASE_URL)

# ============================================================================
# SESSION FACTORY
# ============================================================================
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
    bind=engine
)

# ============================================================================
# DECLARATIVE BASE
# ============================================================================
Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """
    Session generator for FastAPI dependency injection.

    Yields:
        Session: active SQLAlchemy session
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_database() -> bool:
    """
    Create every table.

    Called at bot/API startup and by setup_database.py
    """
    logger.info("Initializing database...")

    try:
        # Register models on Base.metadata
        from voicescribe import models  # noqa: F401

        Base.metadata.create_all(bind=engine)

        logger.info("✅ Database initialized successfully")
        return True

    except Exception as e:
        logger.error(f"❌ Database initialization failed: {e}", exc_info=True)
        return False


def test_connection() -> bool:
    """
    Check the database answers.

    Returns:
        bool: True if connection OK
    """
    try:
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
        finally:
            db.close()
        logger.info("✅ Database connection OK")
        return True
    except Exception as e:
        logger.error(f"❌ Database connection failed: {e}")
        return False

