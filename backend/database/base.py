# backend/database/base.py
"""
SQLAlchemy Base and Engine Configuration

Provides the declarative base for all models and engine factory.

CRITICAL SAFETY: When TESTING=true, this module ONLY connects to the test
database (optical_db_test) unless DATABASE_URL points somewhere explicit
(the test suite uses an in-memory SQLite database).
"""

import logging
import os
from contextlib import contextmanager

from dotenv import load_dotenv
from sqlalchemy import URL, create_engine, make_url
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import OperationalError, TimeoutError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

load_dotenv(override=False)

logger = logging.getLogger(__name__)

# ============================================================================
# CRITICAL: TEST DATABASE SAFETY CHECK
# ============================================================================
IS_TESTING = os.getenv("TESTING", "").lower() in ("true", "1", "yes")
PRODUCTION_DB_NAME = "optical_db"
TEST_DB_NAME = os.getenv("POSTGRES_TEST_DB", "optical_db_test")

db_name = os.getenv("POSTGRES_DB", PRODUCTION_DB_NAME)

# SAFETY: If testing, FORCE use of test database
if IS_TESTING:
    if db_name == PRODUCTION_DB_NAME:
        db_name = TEST_DB_NAME
        logger.warning(
            f"TESTING=true but POSTGRES_DB was production. Forcing test database: {db_name}"
        )
    elif db_name != TEST_DB_NAME:
        logger.warning(f"TESTING=true with custom database: {db_name}")


def _database_url():
    """Resolve the database URL (DATABASE_URL wins over POSTGRES_* parts)."""
    explicit = os.getenv("DATABASE_URL", "").strip()
    if explicit:
        return make_url(explicit)

    # URL.create avoids password exposure in logs
    return URL.create(
        "postgresql",
        username=os.getenv("POSTGRES_USER", "optical_user"),
        password=os.getenv("POSTGRES_PASSWORD", "optical_password"),
        host=os.getenv("POSTGRES_HOST", "localhost"),
        port=int(os.getenv("POSTGRES_PORT", "5432")),
        database=db_name,
    )


DATABASE_URL = _database_url()

# Declarative base for all models
Base = declarative_base()

if DATABASE_URL.get_backend_name() == "sqlite":
    # Single shared connection so in-memory databases survive across sessions
    engine = create_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
else:
    engine = create_engine(
        DATABASE_URL,
        poolclass=QueuePool,
        pool_size=10,
        max_overflow=0,
        pool_pre_ping=True,  # Verify connections before use
        echo=False,  # Set to True for SQL logging during development
        hide_parameters=True,  # Redact password in logs
    )

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def get_session():
    """Get a new SQLAlchemy session (context manager)."""
    try:
        db = SessionLocal()
    except TimeoutError:
        logger.error("Connection pool exhausted (all connections in use)")
        raise
    except OperationalError as e:
        logger.error(f"Database connection failed: {e}")
        raise

    try:
        yield db
    except Exception as e:
        logger.error(f"Session error: {e}")
        db.rollback()  # Explicit rollback on error
        raise
    finally:
        db.close()


def init_db():
    """Create all tables that do not exist yet."""
    from . import models  # noqa: F401  (registers models on Base.metadata)

    Base.metadata.create_all(bind=engine)


def dialect_insert(session):
    """Dialect-specific insert supporting ON CONFLICT ... RETURNING."""
    if session.get_bind().dialect.name == "sqlite":
        return sqlite_insert
    return postgresql_insert
