"""
Database configuration and connection management.

This module provides:
- SQLAlchemy engine and session management
- Connection pooling with sane defaults
- Test database support (SQLite, including in-memory)
- Table definitions for users, subscriptions and the usage ledger
"""
from typing import Optional
from contextlib import contextmanager
from sqlalchemy import create_engine, MetaData, Table, Column, Integer, String, DateTime, Boolean, Text, Index, ForeignKey, UniqueConstraint, CheckConstraint, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import QueuePool, StaticPool
from sqlalchemy.orm import sessionmaker
from sqlalchemy.sql import func
import logging
import os

from buildix.core.config import settings
from buildix.core.errors import StorageUnavailableError


logger = logging.getLogger("buildix")

# SQLAlchemy metadata for table definitions
metadata = MetaData()

# Connection pooling configuration
POOL_SIZE = 10
MAX_OVERFLOW = 20
POOL_TIMEOUT = 30
POOL_RECYCLE = 3600  # Recycle connections after 1 hour
SQLITE_BUSY_TIMEOUT = 30  # seconds

# Global engine and session factory
_engine = None
_SessionLocal = None


def get_database_url() -> Optional[str]:
    """
    Get the database URL from settings or environment.

    For testing, use TEST_DATABASE_URL if available.
    """
    test_url = os.getenv("TEST_DATABASE_URL")
    if test_url:
        return test_url

    return settings.DATABASE_URL


def is_memory_sqlite(url: str) -> bool:
    """True for sqlite:// and any :memory: SQLite URL."""
    if not url.startswith("sqlite"):
        return False
    return url.split("?", 1)[0].endswith("://") or ":memory:" in url


def init_engine(database_url: Optional[str] = None):
    """
    Initialize the SQLAlchemy engine.

    Args:
        database_url: Optional override for DATABASE_URL
    """
    global _engine, _SessionLocal

    url = database_url or get_database_url()

    if not url:
        raise ValueError(
            "DATABASE_URL is not configured. "
            "Set DATABASE_URL in environment or .env file."
        )

    if _engine is not None:
        _engine.dispose()

    if is_memory_sqlite(url):
        # One shared connection so an in-memory database survives across
        # sessions; not safe for concurrent writers, tests only
        _engine = create_engine(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
            echo=False,
        )
    elif url.startswith("sqlite"):
        # Connection per thread; writers wait on the file lock
        _engine = create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT},
            echo=False,
        )
    else:
        # Create engine with connection pooling
        _engine = create_engine(
            url,
            poolclass=QueuePool,
            pool_size=POOL_SIZE,
            max_overflow=MAX_OVERFLOW,
            pool_timeout=POOL_TIMEOUT,
            pool_recycle=POOL_RECYCLE,
            echo=False,  # Set to True for SQL query logging
        )

    # Create session factory
    _SessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=_engine
    )

    return _engine


def get_engine():
    """Get the current SQLAlchemy engine."""
    global _engine
    if _engine is None:
        init_engine()
    return _engine


def get_session_factory():
    """Get the session factory."""
    global _SessionLocal
    if _SessionLocal is None:
        init_engine()
    return _SessionLocal


@contextmanager
def get_db_session():
    """
    Context manager for database sessions.

    Usage:
        with get_db_session() as session:
            session.execute(...)
    """
    SessionLocal = get_session_factory()
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_all_tables():
    """
    Create all tables defined in metadata.

    This is idempotent - tables that already exist will not be recreated.
    """
    engine = get_engine()
    metadata.create_all(bind=engine)


@contextmanager
def storage_guard(operation: str, **context):
    """
    Translate SQLAlchemy failures into StorageUnavailableError.

    Usage:
        with storage_guard("usage.increment", user_id=user_id):
            ...
    """
    try:
        yield
    except SQLAlchemyError as e:
        logger.error(
            "storage.unavailable",
            exc_info=True,
            extra={"operation": operation, "error_type": type(e).__name__, **context},
        )
        raise StorageUnavailableError(f"Storage unavailable during {operation}") from e


def check_connection() -> bool:
    """
    Check if database connection is available.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        engine = get_engine()
        with engine.connect() as conn:
            conn.execute(select(1))
        return True
    except Exception as e:
        logger.warning("Database connection check failed: %s", e)
        return False


# Users mirrored from the identity provider
users = Table(
    'app_users',
    metadata,
    Column('user_id', String(100), primary_key=True),
    Column('email', String(320), nullable=True, unique=True),
    Column('role', String(50), nullable=False, server_default='user'),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Index('idx_users_created_at', 'created_at'),
)

# Subscriptions (1:1 with users; written by the billing webhook)
subscriptions = Table(
    'subscriptions',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('user_id', String(100), ForeignKey('app_users.user_id'), nullable=False, unique=True),
    Column('plan', String(20), nullable=False, server_default='FREE'),
    Column('status', String(20), nullable=False, server_default='ACTIVE'),
    Column('stripe_customer_id', String(100), nullable=True, unique=True),
    Column('stripe_subscription_id', String(100), nullable=True, unique=True),
    Column('stripe_price_id', String(100), nullable=True),
    Column('current_period_start', DateTime(timezone=True), nullable=True),
    Column('current_period_end', DateTime(timezone=True), nullable=True),
    Column('cancel_at_period_end', Boolean, nullable=False, server_default='0'),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Column('updated_at', DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False),
    Index('idx_subscriptions_status', 'status'),
)

# Usage ledger: one row per user per billing cycle
usage_periods = Table(
    'usage_periods',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('user_id', String(100), ForeignKey('app_users.user_id'), nullable=False),
    Column('period_start', DateTime(timezone=True), nullable=False),
    Column('period_end', DateTime(timezone=True), nullable=False),
    Column('prompts_used', Integer, nullable=False, server_default='0'),
    Column('images_used', Integer, nullable=False, server_default='0'),
    Column('figma_exports_used', Integer, nullable=False, server_default='0'),
    Column('html_exports_used', Integer, nullable=False, server_default='0'),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    # Lazy creation races resolve on this constraint
    UniqueConstraint('user_id', 'period_start', name='uq_usage_periods_user_start'),
    CheckConstraint('period_end > period_start', name='ck_usage_periods_window'),
    # Latest-period lookup: (user_id, period_end)
    Index('idx_usage_periods_user_end', 'user_id', 'period_end'),
)

# Billing events (webhook idempotency)
billing_events = Table(
    'billing_events',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('stripe_event_id', String(100), nullable=False, unique=True),
    Column('event_type', String(100), nullable=False, index=True),
    Column('received_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Column('payload_hash', String(64), nullable=False),  # SHA256 hash for deduplication
    Column('processed', Boolean, nullable=False, server_default='0', index=True),
    Column('processed_at', DateTime(timezone=True), nullable=True),
    Column('error', Text, nullable=True),
)

# Site-wide settings (single row, id="default")
site_settings = Table(
    'site_settings',
    metadata,
    Column('id', String(50), primary_key=True),
    Column('enable_gemini', Boolean, nullable=False, server_default='1'),
    Column('enable_claude', Boolean, nullable=False, server_default='1'),
    Column('default_ai_model', String(50), nullable=False, server_default='gemini'),
    Column('updated_at', DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False),
)
