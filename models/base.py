"""
SQLAlchemy engine and session factory.

Every component that touches the jobs table (API threads, consumer threads,
the reconciler) uses a sync session created from SessionLocal. Sessions are
short-lived: one per store operation, closed immediately after.

expire_on_commit=False keeps the attributes of returned Job objects readable
after their session is closed.
"""

from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy import create_engine

from config.settings import settings


class Base(DeclarativeBase):
    """Base class for all ORM models. SQLAlchemy uses this to track table metadata."""
    pass


engine = create_engine(settings.database_url, echo=False, pool_pre_ping=True)
SessionLocal = sessionmaker(engine, expire_on_commit=False)
