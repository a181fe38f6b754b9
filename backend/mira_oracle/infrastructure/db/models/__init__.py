"""
SQLModel ORM Models for Mira Oracle

Exports all database models for Alembic autogenerate and application use.
Import models here to register them with SQLModel.metadata.
"""

from mira_oracle.infrastructure.db.models.base import (
    IntIdMixin,
    TimestampMixin,
    utc_now,
)
from mira_oracle.infrastructure.db.models.user import UserModel
from mira_oracle.infrastructure.db.models.questionnaire import QuestionnaireModel
from mira_oracle.infrastructure.db.models.reading import ReadingModel
from mira_oracle.infrastructure.db.models.payment import PaymentModel
from mira_oracle.infrastructure.db.models.daily_insight import DailyInsightModel
from mira_oracle.infrastructure.db.models.session import SessionModel


__all__ = [
    # Base
    "IntIdMixin",
    "TimestampMixin",
    "utc_now",
    # Tables
    "UserModel",
    "QuestionnaireModel",
    "ReadingModel",
    "PaymentModel",
    "DailyInsightModel",
    "SessionModel",
]
