"""
Payment SQLModel for Mira Oracle

One row per Stripe charge, one-time or subscription.
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import Column, Numeric
from sqlmodel import Field

from mira_oracle.infrastructure.db.models.base import IntIdMixin, TimestampMixin


class PaymentModel(IntIdMixin, TimestampMixin, table=True):
    """Maps to the 'payments' table."""

    __tablename__ = "payments"

    user_id: int = Field(..., foreign_key="users.id", index=True)
    stripe_payment_intent_id: Optional[str] = Field(default=None, unique=True, index=True)
    amount: Decimal = Field(..., sa_column=Column(Numeric(10, 2), nullable=False))
    currency: str = Field(default="usd", max_length=3)
    payment_type: str = Field(..., max_length=20)
    status: str = Field(default="pending", max_length=20)
