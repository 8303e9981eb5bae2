"""
Relational store for the crowdfund backend.

SQLAlchemy Core tables on one MetaData plus a lazily built engine and
session factory. Services receive a Session and commit or roll back
explicitly; get_db_session() is the commit-on-success wrapper for scripts.
"""
import logging
import os
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, text, MetaData, Table, Column, Integer, String, Date, DateTime, Boolean, JSON, Text, Index, ForeignKey, UniqueConstraint
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.sql import func

from crowdfund.core.config import settings

logger = logging.getLogger("crowdfund")

metadata = MetaData()

# Server-side pool; sqlite uses SQLAlchemy's default pool
POOL_OPTIONS = {
    "pool_size": 10,
    "max_overflow": 20,
    "pool_timeout": 30,
    "pool_recycle": 3600,
    "pool_pre_ping": True,
}

_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None


def get_database_url() -> Optional[str]:
    """TEST_DATABASE_URL from the environment wins over DATABASE_URL."""
    return os.getenv("TEST_DATABASE_URL") or settings.DATABASE_URL


def init_engine(database_url: Optional[str] = None) -> Engine:
    global _engine, _SessionLocal

    url = database_url or get_database_url()
    if not url:
        raise ValueError("DATABASE_URL is not configured (environment or crowdfund/.env)")

    if url.startswith("sqlite"):
        _engine = create_engine(url, connect_args={"check_same_thread": False})
    else:
        _engine = create_engine(url, **POOL_OPTIONS)
    _SessionLocal = sessionmaker(bind=_engine, autocommit=False, autoflush=False)
    return _engine


def get_engine() -> Engine:
    return _engine if _engine is not None else init_engine()


def get_session_factory() -> sessionmaker:
    if _SessionLocal is None:
        init_engine()
    return _SessionLocal


@contextmanager
def get_db_session():
    """Session that commits when the block succeeds and rolls back otherwise."""
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
    """FastAPI dependency; the route (or service) decides when to commit."""
    session = get_session_factory()()
    try:
        yield session
    finally:
        session.close()


def create_all_tables(engine: Optional[Engine] = None) -> None:
    metadata.create_all(bind=engine or get_engine())


def drop_all_tables(engine: Optional[Engine] = None) -> None:
    """Destructive; tests and local development only."""
    metadata.drop_all(bind=engine or get_engine())


def reset_database(engine: Optional[Engine] = None) -> None:
    drop_all_tables(engine)
    create_all_tables(engine)


def check_connection() -> bool:
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.warning(f"Database connection check failed: {e}")
        return False


PLEDGE_STATUSES = ("DRAFT", "WAITING_FOR_PAYMENT", "PAID_INVESTIGATE", "SUCCESSFUL", "CANCELLED")
REWARD_TYPES = ("Goodie", "MembershipType")


def _timestamps():
    return (
        Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
        Column('updated_at', DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False),
    )


# Users and roles

addresses = Table(
    'addresses',
    metadata,
    Column('id', String(36), primary_key=True),
    Column('name', Text, nullable=True),
    Column('line1', Text, nullable=False),
    Column('line2', Text, nullable=True),
    Column('postal_code', String(20), nullable=False),
    Column('city', Text, nullable=False),
    Column('country', Text, nullable=False),
    *_timestamps(),
)

users = Table(
    'users',
    metadata,
    Column('id', String(36), primary_key=True),
    Column('email', String(255), nullable=False, unique=True),
    Column('first_name', Text, nullable=True),
    Column('last_name', Text, nullable=True),
    Column('birthday', Date, nullable=True),
    Column('verified', Boolean, nullable=False, default=False),
    Column('address_id', String(36), ForeignKey('addresses.id'), nullable=True),
    *_timestamps(),
    Index('idx_users_email', 'email'),
)

roles = Table(
    'roles',
    metadata,
    Column('id', String(36), primary_key=True),
    Column('name', String(100), nullable=False, unique=True),
    Column('description', Text, nullable=True),
    *_timestamps(),
)

users_roles = Table(
    'users_roles',
    metadata,
    Column('user_id', String(36), ForeignKey('users.id'), nullable=False),
    Column('role_id', String(36), ForeignKey('roles.id'), nullable=False),
    *_timestamps(),
    UniqueConstraint('user_id', 'role_id', name='uq_users_roles_user_role'),
)

# Catalog

crowdfundings = Table(
    'crowdfundings',
    metadata,
    Column('id', String(36), primary_key=True),
    Column('name', String(100), nullable=False, unique=True),
    Column('begin_date', DateTime(timezone=True), nullable=False),
    Column('end_date', DateTime(timezone=True), nullable=False),
    *_timestamps(),
)

crowdfunding_goals = Table(
    'crowdfunding_goals',
    metadata,
    Column('id', String(36), primary_key=True),
    Column('crowdfunding_id', String(36), ForeignKey('crowdfundings.id'), nullable=False, index=True),
    Column('name', String(100), nullable=False),
    Column('description', Text, nullable=True),
    Column('people', Integer, nullable=False),
    Column('money', Integer, nullable=False),
    *_timestamps(),
)

packages = Table(
    'packages',
    metadata,
    Column('id', String(36), primary_key=True),
    Column('crowdfunding_id', String(36), ForeignKey('crowdfundings.id'), nullable=False, index=True),
    Column('name', String(100), nullable=False),
    *_timestamps(),
)

rewards = Table(
    'rewards',
    metadata,
    Column('id', String(36), primary_key=True),
    Column('reward_type', String(50), nullable=False),  # 'Goodie' | 'MembershipType'
    *_timestamps(),
)

goodies = Table(
    'goodies',
    metadata,
    Column('id', String(36), primary_key=True),
    Column('reward_id', String(36), ForeignKey('rewards.id'), nullable=False, unique=True),
    Column('name', String(100), nullable=False),
    *_timestamps(),
)

membership_types = Table(
    'membership_types',
    metadata,
    Column('id', String(36), primary_key=True),
    Column('reward_id', String(36), ForeignKey('rewards.id'), nullable=False, unique=True),
    Column('name', String(100), nullable=False),
    Column('duration', Integer, nullable=False, default=365),  # days
    Column('price', Integer, nullable=False),
    *_timestamps(),
)

package_options = Table(
    'package_options',
    metadata,
    Column('id', String(36), primary_key=True),
    Column('package_id', String(36), ForeignKey('packages.id'), nullable=False, index=True),
    Column('reward_id', String(36), ForeignKey('rewards.id'), nullable=True),
    Column('min_amount', Integer, nullable=False, default=0),
    Column('max_amount', Integer, nullable=False),
    Column('default_amount', Integer, nullable=False, default=0),
    Column('price', Integer, nullable=False),
    Column('user_price', Boolean, nullable=False, default=False),
    Column('min_user_price', Integer, nullable=False, default=0),
    *_timestamps(),
)

# Pledges

pledges = Table(
    'pledges',
    metadata,
    Column('id', String(36), primary_key=True),
    Column('user_id', String(36), ForeignKey('users.id'), nullable=False),
    Column('package_id', String(36), ForeignKey('packages.id'), nullable=False),
    Column('total', Integer, nullable=False),
    Column('donation', Integer, nullable=False),
    Column('reason', Text, nullable=True),
    Column('status', String(50), nullable=False, default='DRAFT'),
    *_timestamps(),
    Index('idx_pledges_user_id', 'user_id'),
    Index('idx_pledges_status', 'status'),
)

pledge_options = Table(
    'pledge_options',
    metadata,
    Column('pledge_id', String(36), ForeignKey('pledges.id'), primary_key=True),
    Column('template_id', String(36), ForeignKey('package_options.id'), primary_key=True),
    Column('amount', Integer, nullable=False),
    Column('price', Integer, nullable=False),
    *_timestamps(),
)

payment_sources = Table(
    'payment_sources',
    metadata,
    Column('id', String(36), primary_key=True),
    Column('user_id', String(36), ForeignKey('users.id'), nullable=False),
    Column('method', String(50), nullable=False),
    Column('psp_id', String(100), nullable=False),
    Column('psp_payload', JSON, nullable=True),
    *_timestamps(),
    UniqueConstraint('user_id', 'method', name='uq_payment_sources_user_method'),
)

payments = Table(
    'payments',
    metadata,
    Column('id', String(36), primary_key=True),
    Column('method', String(50), nullable=False),
    Column('total', Integer, nullable=False),
    Column('status', String(50), nullable=False),
    Column('psp_id', String(100), nullable=True),
    Column('psp_payload', JSON, nullable=True),
    *_timestamps(),
)

pledge_payments = Table(
    'pledge_payments',
    metadata,
    Column('pledge_id', String(36), ForeignKey('pledges.id'), primary_key=True),
    Column('payment_id', String(36), ForeignKey('payments.id'), primary_key=True),
    Column('payment_type', String(50), nullable=False, default='PLEDGE'),
    *_timestamps(),
)

memberships = Table(
    'memberships',
    metadata,
    Column('id', String(36), primary_key=True),
    Column('user_id', String(36), ForeignKey('users.id'), nullable=False, index=True),
    Column('pledge_id', String(36), ForeignKey('pledges.id'), nullable=False, index=True),
    Column('membership_type_id', String(36), ForeignKey('membership_types.id'), nullable=False),
    Column('begin_date', DateTime(timezone=True), nullable=True),
    Column('voucher_code', String(50), nullable=True, unique=True),
    Column('reduced_price', Boolean, nullable=False, default=False),
    *_timestamps(),
)

# Content

feeds = Table(
    'feeds',
    metadata,
    Column('id', String(36), primary_key=True),
    Column('name', String(100), nullable=False, unique=True),
    Column('comment_max_length', Integer, nullable=True),
    Column('comment_interval', Integer, nullable=True),
    *_timestamps(),
)

comments = Table(
    'comments',
    metadata,
    Column('id', String(36), primary_key=True),
    Column('feed_id', String(36), ForeignKey('feeds.id'), nullable=False, index=True),
    Column('user_id', String(36), ForeignKey('users.id'), nullable=False),
    Column('content', Text, nullable=False),
    Column('up_votes', Integer, nullable=False, default=0),
    Column('down_votes', Integer, nullable=False, default=0),
    Column('votes', JSON, nullable=False, default=lambda: []),  # [{"userId": ..., "vote": 1|-1}]
    Column('published', Boolean, nullable=False, default=True),
    *_timestamps(),
    Index('idx_comments_feed_created', 'feed_id', 'created_at'),
)

testimonials = Table(
    'testimonials',
    metadata,
    Column('id', String(36), primary_key=True),
    Column('user_id', String(36), ForeignKey('users.id'), nullable=False, unique=True),
    Column('role', Text, nullable=True),
    Column('quote', Text, nullable=True),
    Column('image', Text, nullable=True),
    Column('published', Boolean, nullable=False, default=True),
    *_timestamps(),
)

gsheets = Table(
    'gsheets',
    metadata,
    Column('name', String(100), primary_key=True),
    Column('data', JSON, nullable=True),
    *_timestamps(),
)
