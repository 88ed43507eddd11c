"""
Base class for all SQLAlchemy ORM models.
All table models inherit from Base so Alembic sees them in Base.metadata.
"""
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy import Column, DateTime
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    """Declarative base for every campaign outreach table."""
    pass


class TimestampMixin:
    """
    Mixin adding created_at / updated_at columns.
    Usage: class Campaign(Base, TimestampMixin):
    """
    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        onupdate=func.now()
    )


def model_to_dict(instance) -> dict:
    """Column values of an ORM instance as a plain dict (no SQLAlchemy state)."""
    if instance is None:
        return None
    return {column.name: getattr(instance, column.name) for column in instance.__table__.columns}


def to_sync_url(url: str) -> str:
    """
    Same database, sync driver: postgresql+asyncpg:// or bare postgresql://
    becomes postgresql+psycopg2:// (Alembic runs synchronously).
    """
    for prefix in ("postgresql+asyncpg://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+psycopg2://" + url[len(prefix):]
    return url
