"""
Session SQLModel for Mira Oracle

Server-side login sessions referenced by the signed session cookie.
"""

from datetime import datetime

from sqlalchemy import DateTime
from sqlmodel import Field

from mira_oracle.infrastructure.db.models.base import TimestampMixin


class SessionModel(TimestampMixin, table=True):
    """Maps to the 'sessions' table."""

    __tablename__ = "sessions"

    id: str = Field(..., primary_key=True, max_length=64)
    user_id: int = Field(..., foreign_key="users.id", index=True)
    expires_at: datetime = Field(
        ...,
        nullable=False,
        index=True,
        sa_type=DateTime(timezone=True),
    )
