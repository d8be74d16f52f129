"""
Declarative base, shared mixins and column types.
"""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, TypeDecorator, func
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime that always comes back as UTC.

    PostgreSQL keeps the offset; SQLite drops it, so naive values read back
    are tagged as UTC and aware values are normalised before binding.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TimestampMixin:
    created_at = Column(UTCDateTime(), server_default=func.now(), nullable=False)
    updated_at = Column(UTCDateTime(), server_default=func.now(), onupdate=func.now(), nullable=False)
