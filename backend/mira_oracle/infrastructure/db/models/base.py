"""
Base Model for SQLModel ORM

Provides common fields shared by the table models.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class IntIdMixin(SQLModel):
    """Auto-incrementing integer primary key."""

    id: Optional[int] = Field(
        default=None,
        primary_key=True,
        description="Database-assigned identifier"
    )


class TimestampMixin(SQLModel):
    """Creation timestamp, stored timezone-aware."""

    created_at: datetime = Field(
        default_factory=utc_now,
        nullable=False,
        sa_type=DateTime(timezone=True),
        description="Record creation timestamp (UTC)"
    )
