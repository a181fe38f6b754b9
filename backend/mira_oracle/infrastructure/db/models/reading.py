"""
Reading SQLModel for Mira Oracle
"""

from sqlalchemy import Column, Text
from sqlmodel import Field

from mira_oracle.infrastructure.db.models.base import IntIdMixin, TimestampMixin


class ReadingModel(IntIdMixin, TimestampMixin, table=True):
    """Maps to the 'readings' table."""

    __tablename__ = "readings"

    user_id: int = Field(..., foreign_key="users.id", index=True)
    questionnaire_id: int = Field(..., foreign_key="questionnaires.id", index=True)
    title: str = Field(..., max_length=200)
    content: str = Field(..., sa_column=Column(Text, nullable=False))
    reading_type: str = Field(default="birth_chart", max_length=40)
    is_paid: bool = Field(default=False)
