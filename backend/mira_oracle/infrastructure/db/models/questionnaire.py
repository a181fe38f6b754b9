"""
Questionnaire SQLModel for Mira Oracle

Birth data and personal context captured before a reading.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import Column, DateTime, JSON, Text
from sqlmodel import Field

from mira_oracle.infrastructure.db.models.base import IntIdMixin, utc_now


class QuestionnaireModel(IntIdMixin, table=True):
    """Maps to the 'questionnaires' table."""

    __tablename__ = "questionnaires"

    user_id: int = Field(..., foreign_key="users.id", index=True)

    birth_date: str = Field(..., max_length=32)
    birth_time: str = Field(..., max_length=32)
    birth_city: str = Field(..., max_length=120)
    birth_country: str = Field(..., max_length=120)
    zodiac_sign: str = Field(..., max_length=20)

    personality_traits: List[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )
    spiritual_goals: Optional[str] = Field(default=None, sa_column=Column(Text))
    relationship_history: Optional[str] = Field(default=None, sa_column=Column(Text))
    life_intentions: Optional[str] = Field(default=None, sa_column=Column(Text))
    specific_questions: Optional[str] = Field(default=None, sa_column=Column(Text))

    completed_at: datetime = Field(
        default_factory=utc_now,
        nullable=False,
        sa_type=DateTime(timezone=True),
    )
