"""Column helpers shared by the ORM models."""

from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlalchemy.orm import mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def created_column():
    """`created_at`-style column: set once on insert."""
    return mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


def modified_column():
    """`updated_at`-style column: set on insert, refreshed by the entity store."""
    return mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
