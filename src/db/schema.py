"""Database tables / schema"""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class DBRecord(Base):
    """One document of the remote store (ex. key "rooms/AB12CD")."""

    __tablename__ = "records"
    key: Mapped[str] = mapped_column(primary_key=True)
    value: Mapped[dict[str, Any]] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(default=utc_now, onupdate=utc_now)


class DBCacheItem(Base):
    """Local key-value cache entry. Values are opaque strings (JSON encoded by the caller)."""

    __tablename__ = "cache_items"
    key: Mapped[str] = mapped_column(primary_key=True)
    value: Mapped[str]
