"""
Storage Interface for Mira Oracle

Abstract access layer shared by every storage backend.
Route handlers and services depend on this interface only, so the
in-memory and relational implementations are interchangeable.

Conventions:
- Lookups return None for a missing record and never raise.
- Partial updates raise NotFoundError when the record is absent.
- Creates raise ConflictError on a duplicate unique key and
  NotFoundError when a referenced record does not exist.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from mira_oracle.domain.models import (
    DailyInsight,
    DailyInsightCreate,
    DailyInsightUpdate,
    Payment,
    PaymentCreate,
    PaymentStatus,
    Questionnaire,
    QuestionnaireCreate,
    Reading,
    ReadingCreate,
    Session,
    SubscriptionStatus,
    User,
    UserCreate,
)


DEFAULT_PAGE_SIZE = 100


class Storage(ABC):
    """Access layer for users, questionnaires, readings, payments, insights and sessions."""

    # =========================================================================
    # Users
    # =========================================================================

    @abstractmethod
    async def get_user(self, user_id: int) -> Optional[User]:
        """Get a user by primary key."""

    @abstractmethod
    async def get_user_by_username(self, username: str) -> Optional[User]:
        """Get a user by unique username."""

    @abstractmethod
    async def get_user_by_email(self, email: str) -> Optional[User]:
        """Get a user by unique email."""

    @abstractmethod
    async def get_user_by_stripe_customer_id(self, customer_id: str) -> Optional[User]:
        """Get the user linked to a Stripe customer."""

    @abstractmethod
    async def create_user(self, data: UserCreate) -> User:
        """
        Store a new user.

        Raises:
            ConflictError: username or email already taken
        """

    @abstractmethod
    async def update_user_stripe_info(
        self,
        user_id: int,
        stripe_customer_id: Optional[str],
        stripe_subscription_id: Optional[str],
    ) -> User:
        """Set the Stripe customer and subscription references."""

    @abstractmethod
    async def update_user_subscription_status(
        self,
        user_id: int,
        status: Optional[SubscriptionStatus],
    ) -> User:
        """Set the subscription status (None clears it)."""

    @abstractmethod
    async def update_user_reset_token(
        self,
        user_id: int,
        token_hash: str,
        expiry: datetime,
    ) -> None:
        """Store a password reset token digest with its absolute expiry."""

    @abstractmethod
    async def get_user_by_reset_token(
        self,
        token_hash: str,
        now: datetime,
    ) -> Optional[User]:
        """Get the user holding an unexpired reset token digest."""

    @abstractmethod
    async def update_user_password(self, user_id: int, password_hash: str) -> None:
        """Replace the stored password hash."""

    @abstractmethod
    async def clear_user_reset_token(self, user_id: int) -> None:
        """Remove any pending reset token."""

    @abstractmethod
    async def reset_user_password(
        self,
        token_hash: str,
        password_hash: str,
        now: datetime,
    ) -> Optional[User]:
        """
        Consume a reset token and set a new password in one atomic step.

        Returns:
            The updated user, or None if the token is unknown or expired.
        """

    @abstractmethod
    async def get_all_users(
        self,
        skip: int = 0,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> List[User]:
        """List users in id order."""

    @abstractmethod
    async def count_users(self) -> int:
        """Total number of users."""

    @abstractmethod
    async def count_users_by_subscription_status(
        self,
        status: SubscriptionStatus,
    ) -> int:
        """Number of users with the given subscription status."""

    # =========================================================================
    # Questionnaires
    # =========================================================================

    @abstractmethod
    async def create_questionnaire(
        self,
        user_id: int,
        data: QuestionnaireCreate,
    ) -> Questionnaire:
        """
        Store a questionnaire for a user.

        Raises:
            NotFoundError: the user does not exist
        """

    @abstractmethod
    async def get_questionnaire_by_id(self, questionnaire_id: int) -> Optional[Questionnaire]:
        """Get a questionnaire by primary key."""

    @abstractmethod
    async def get_questionnaires_by_user_id(self, user_id: int) -> List[Questionnaire]:
        """All questionnaires of a user, oldest first."""

    @abstractmethod
    async def get_all_questionnaires(
        self,
        skip: int = 0,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> List[Questionnaire]:
        """List questionnaires in id order."""

    # =========================================================================
    # Readings
    # =========================================================================

    @abstractmethod
    async def create_reading(self, data: ReadingCreate) -> Reading:
        """
        Store a reading.

        Raises:
            NotFoundError: the user or questionnaire does not exist
        """

    @abstractmethod
    async def get_reading_by_id(self, reading_id: int) -> Optional[Reading]:
        """Get a reading by primary key."""

    @abstractmethod
    async def get_readings_by_user_id(self, user_id: int) -> List[Reading]:
        """All readings of a user, oldest first."""

    @abstractmethod
    async def get_readings_by_questionnaire_id(self, questionnaire_id: int) -> List[Reading]:
        """All readings generated from a questionnaire."""

    @abstractmethod
    async def get_all_readings(
        self,
        skip: int = 0,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> List[Reading]:
        """List readings in id order."""

    @abstractmethod
    async def count_readings(self) -> int:
        """Total number of readings."""

    # =========================================================================
    # Payments
    # =========================================================================

    @abstractmethod
    async def create_payment(self, data: PaymentCreate) -> Payment:
        """
        Store a payment record.

        Raises:
            NotFoundError: the user does not exist
            ConflictError: a payment for the same Stripe payment intent exists
        """

    @abstractmethod
    async def get_payments_by_user_id(self, user_id: int) -> List[Payment]:
        """All payments of a user, oldest first."""

    @abstractmethod
    async def update_payment_status(
        self,
        stripe_payment_intent_id: str,
        status: PaymentStatus,
    ) -> Payment:
        """
        Set the status of the payment tied to a Stripe payment intent.

        Raises:
            NotFoundError: no payment references the intent
        """

    @abstractmethod
    async def get_all_payments(
        self,
        skip: int = 0,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> List[Payment]:
        """List payments in id order."""

    @abstractmethod
    async def sum_payments(self, status: PaymentStatus) -> Decimal:
        """Sum of amounts over payments with the given status."""

    # =========================================================================
    # Daily Insights
    # =========================================================================

    @abstractmethod
    async def create_daily_insight(self, data: DailyInsightCreate) -> DailyInsight:
        """Store a daily insight."""

    @abstractmethod
    async def get_daily_insight_by_id(self, insight_id: int) -> Optional[DailyInsight]:
        """Get an insight by primary key."""

    @abstractmethod
    async def get_daily_insight_by_date(
        self,
        date: str,
        zodiac_sign: Optional[str] = None,
    ) -> Optional[DailyInsight]:
        """
        First active insight for a date.

        Without a zodiac sign the first active match wins. With one, an
        insight scoped to that sign wins over an unscoped one, and insights
        scoped to other signs never match.
        """

    @abstractmethod
    async def get_all_daily_insights(
        self,
        skip: int = 0,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> List[DailyInsight]:
        """List insights in id order."""

    @abstractmethod
    async def update_daily_insight(
        self,
        insight_id: int,
        data: DailyInsightUpdate,
    ) -> DailyInsight:
        """Apply the fields set on ``data``."""

    # =========================================================================
    # Sessions
    # =========================================================================

    @abstractmethod
    async def create_session(self, user_id: int, expires_at: datetime) -> Session:
        """
        Open a session for a user.

        Raises:
            NotFoundError: the user does not exist
        """

    @abstractmethod
    async def get_session(self, session_id: str, now: datetime) -> Optional[Session]:
        """Get a session that has not expired."""

    @abstractmethod
    async def delete_session(self, session_id: str) -> bool:
        """Delete a session. Returns False if it did not exist."""

    @abstractmethod
    async def delete_expired_sessions(self, now: datetime) -> int:
        """Purge expired sessions. Returns the number removed."""

    async def close(self) -> None:
        """Release backend resources."""
