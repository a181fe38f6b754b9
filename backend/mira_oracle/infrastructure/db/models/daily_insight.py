"""
DailyInsight SQLModel for Mira Oracle
"""

from typing import Optional

from sqlalchemy import Column, Text
from sqlmodel import Field

from mira_oracle.infrastructure.db.models.base import IntIdMixin, TimestampMixin


class DailyInsightModel(IntIdMixin, TimestampMixin, table=True):
    """Maps to the 'daily_insights' table. ``date`` is an ISO calendar day."""

    __tablename__ = "daily_insights"

    title: str = Field(..., max_length=200)
    content: str = Field(..., sa_column=Column(Text, nullable=False))
    date: str = Field(..., max_length=10, index=True)
    zodiac_sign: Optional[str] = Field(default=None, max_length=20)
    is_active: bool = Field(default=True)
