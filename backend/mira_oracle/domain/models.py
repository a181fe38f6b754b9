"""
Domain Models for Mira Oracle

Pure Python/Pydantic models with no framework dependencies.
These models define the core business entities and validation rules.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel


ZODIAC_SIGNS = (
    "Aries", "Taurus", "Gemini", "Cancer", "Leo", "Virgo",
    "Libra", "Scorpio", "Sagittarius", "Capricorn", "Aquarius", "Pisces",
)


class SubscriptionStatus(str, Enum):
    """Subscription lifecycle status. A user without one stores None."""
    ACTIVE = "active"
    CANCELED = "canceled"
    PAST_DUE = "past_due"


class ReadingType(str, Enum):
    """Known reading kinds."""
    BIRTH_CHART = "birth_chart"
    TRANSIT = "transit"
    COMPATIBILITY = "compatibility"


class PaymentType(str, Enum):
    ONE_TIME = "one_time"
    SUBSCRIPTION = "subscription"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class CamelModel(BaseModel):
    """Base for API-facing models: camelCase on the wire, snake_case in code."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Entity(BaseModel):
    """Base for stored entities. Instances are snapshots, never live rows."""

    model_config = ConfigDict(from_attributes=True, frozen=True)


def normalize_zodiac_sign(value: str) -> str:
    sign = value.strip().capitalize()
    if sign not in ZODIAC_SIGNS:
        raise ValueError(f"Unknown zodiac sign: {value}")
    return sign


# =============================================================================
# Entities
# =============================================================================

class User(Entity):
    """Complete user record, including credentials. Never sent to clients."""
    id: int
    username: str
    email: str
    password_hash: str
    full_name: Optional[str] = None
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None
    subscription_status: Optional[SubscriptionStatus] = None
    is_admin: bool = False
    reset_token_hash: Optional[str] = None
    reset_token_expiry: Optional[datetime] = None
    created_at: datetime


class Questionnaire(Entity):
    id: int
    user_id: int
    birth_date: str
    birth_time: str
    birth_city: str
    birth_country: str
    zodiac_sign: str
    personality_traits: List[str] = Field(default_factory=list)
    spiritual_goals: Optional[str] = None
    relationship_history: Optional[str] = None
    life_intentions: Optional[str] = None
    specific_questions: Optional[str] = None
    completed_at: datetime


class Reading(Entity):
    id: int
    user_id: int
    questionnaire_id: int
    title: str
    content: str
    reading_type: str
    is_paid: bool = False
    created_at: datetime


class Payment(Entity):
    id: int
    user_id: int
    stripe_payment_intent_id: Optional[str] = None
    amount: Decimal
    currency: str = "usd"
    payment_type: PaymentType
    status: PaymentStatus
    created_at: datetime


class DailyInsight(Entity):
    id: int
    title: str
    content: str
    date: str
    zodiac_sign: Optional[str] = None
    is_active: bool = True
    created_at: datetime


class Session(Entity):
    """Server-side session record keyed by an opaque identifier."""
    id: str
    user_id: int
    expires_at: datetime
    created_at: datetime


# =============================================================================
# Create / Update Schemas
# =============================================================================

class UserCreate(BaseModel):
    """Internal schema for storing a new user (password already hashed)."""
    username: str
    email: str
    password_hash: str
    full_name: Optional[str] = None
    is_admin: bool = False


class QuestionnaireCreate(CamelModel):
    """Questionnaire intake payload."""
    birth_date: str = Field(..., min_length=1, max_length=32)
    birth_time: str = Field(..., min_length=1, max_length=32)
    birth_city: str = Field(..., min_length=1, max_length=120)
    birth_country: str = Field(..., min_length=1, max_length=120)
    zodiac_sign: str = Field(..., min_length=1, max_length=20)
    personality_traits: List[str] = Field(default_factory=list, max_length=30)
    spiritual_goals: Optional[str] = Field(None, max_length=5000)
    relationship_history: Optional[str] = Field(None, max_length=5000)
    life_intentions: Optional[str] = Field(None, max_length=5000)
    specific_questions: Optional[str] = Field(None, max_length=5000)

    @field_validator("birth_date", "birth_time", "birth_city", "birth_country")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Field cannot be empty or whitespace only")
        return v.strip()

    @field_validator("zodiac_sign")
    @classmethod
    def validate_zodiac_sign(cls, v: str) -> str:
        return normalize_zodiac_sign(v)

    @field_validator("personality_traits")
    @classmethod
    def strip_traits(cls, v: List[str]) -> List[str]:
        return [trait.strip() for trait in v if trait.strip()]


class ReadingCreate(BaseModel):
    user_id: int
    questionnaire_id: int
    title: str
    content: str
    reading_type: str = ReadingType.BIRTH_CHART.value
    is_paid: bool = False


class PaymentCreate(BaseModel):
    user_id: int
    stripe_payment_intent_id: Optional[str] = None
    amount: Decimal = Field(..., ge=0, decimal_places=2)
    currency: str = "usd"
    payment_type: PaymentType
    status: PaymentStatus = PaymentStatus.PENDING


class DailyInsightCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1, max_length=5000)
    date: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}$")
    zodiac_sign: Optional[str] = None
    is_active: bool = True

    @field_validator("zodiac_sign")
    @classmethod
    def validate_zodiac_sign(cls, v: Optional[str]) -> Optional[str]:
        return normalize_zodiac_sign(v) if v else None


class DailyInsightUpdate(CamelModel):
    """Partial update. All fields optional."""
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    content: Optional[str] = Field(None, min_length=1, max_length=5000)
    date: Optional[str] = Field(None, pattern=r"^\d{4}-\d{2}-\d{2}$")
    zodiac_sign: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("title", "content", "date", "is_active")
    @classmethod
    def reject_null(cls, v):
        # Omit a field to keep it; only zodiacSign can be cleared
        if v is None:
            raise ValueError("Field cannot be null")
        return v

    @field_validator("zodiac_sign")
    @classmethod
    def validate_zodiac_sign(cls, v: Optional[str]) -> Optional[str]:
        return normalize_zodiac_sign(v) if v else None


# =============================================================================
# Auth Request Schemas
# =============================================================================

class RegisterRequest(CamelModel):
    username: str = Field(..., min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_.-]+$")
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    full_name: Optional[str] = Field(None, max_length=120)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class LoginRequest(CamelModel):
    email: EmailStr
    # No length policy here: any wrong password is a credentials failure
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class ForgotPasswordRequest(CamelModel):
    email: EmailStr

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class ResetPasswordRequest(CamelModel):
    token: str = Field(..., min_length=1, max_length=256)
    password: str = Field(..., min_length=6, max_length=128)


class PaymentIntentRequest(CamelModel):
    """One-time charge, in dollars."""
    amount: float = Field(..., gt=0, le=10000)


# =============================================================================
# Public Views
# =============================================================================

class UserPublic(CamelModel):
    """User fields safe to return to a client."""
    id: int
    username: str
    email: str
    full_name: Optional[str] = None
    is_admin: bool = False
    subscription_status: Optional[SubscriptionStatus] = None
    created_at: datetime


class QuestionnairePublic(CamelModel):
    id: int
    user_id: int
    birth_date: str
    birth_time: str
    birth_city: str
    birth_country: str
    zodiac_sign: str
    personality_traits: List[str]
    spiritual_goals: Optional[str] = None
    relationship_history: Optional[str] = None
    life_intentions: Optional[str] = None
    specific_questions: Optional[str] = None
    completed_at: datetime


class ReadingPublic(CamelModel):
    id: int
    user_id: int
    questionnaire_id: int
    title: str
    content: str
    reading_type: str
    is_paid: bool
    created_at: datetime


class PaymentPublic(CamelModel):
    id: int
    user_id: int
    stripe_payment_intent_id: Optional[str] = None
    amount: float
    currency: str
    payment_type: PaymentType
    status: PaymentStatus
    created_at: datetime


class DailyInsightPublic(CamelModel):
    id: int
    title: str
    content: str
    date: str
    zodiac_sign: Optional[str] = None
    is_active: bool
    created_at: datetime


class AdminStats(CamelModel):
    total_users: int
    monthly_revenue: float
    readings_generated: int
    subscriptions: int
