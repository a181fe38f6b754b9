"""
User SQLModel for Mira Oracle

Accounts, credentials, Stripe linkage and pending reset tokens.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Field

from mira_oracle.infrastructure.db.models.base import IntIdMixin, TimestampMixin


class UserModel(IntIdMixin, TimestampMixin, table=True):
    """Maps to the 'users' table."""

    __tablename__ = "users"

    username: str = Field(..., max_length=50, unique=True, index=True)
    email: str = Field(..., max_length=255, unique=True, index=True)
    password_hash: str = Field(..., max_length=255)
    full_name: Optional[str] = Field(default=None, max_length=120)

    # Stripe IDs
    stripe_customer_id: Optional[str] = Field(default=None, unique=True, index=True)
    stripe_subscription_id: Optional[str] = Field(default=None)
    subscription_status: Optional[str] = Field(default=None, max_length=20)

    is_admin: bool = Field(default=False)

    # Password reset (SHA-256 digest of the emailed token)
    reset_token_hash: Optional[str] = Field(default=None, max_length=64, index=True)
    reset_token_expiry: Optional[datetime] = Field(
        default=None,
        sa_type=DateTime(timezone=True),
    )
