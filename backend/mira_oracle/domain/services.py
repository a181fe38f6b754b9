"""
Domain Services for Mira Oracle

Business operations composed from the storage layer and the external
integrations:
- AuthService: registration, login sessions, password reset
- ReadingService: questionnaire intake and reading generation
- BillingService: Stripe payment intents and the monthly subscription
- compute_admin_stats: dashboard aggregates
"""

import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional, Tuple

from mira_oracle.config.settings import get_settings
from mira_oracle.domain.models import (
    AdminStats,
    Payment,
    PaymentCreate,
    PaymentStatus,
    PaymentType,
    Questionnaire,
    QuestionnaireCreate,
    Reading,
    ReadingCreate,
    ReadingType,
    RegisterRequest,
    Session,
    SubscriptionStatus,
    User,
    UserCreate,
)
from mira_oracle.domain.readings import (
    READING_TITLE,
    build_reading_prompt,
    render_template_reading,
)
from mira_oracle.infrastructure.ai.gemini_service import GeminiService
from mira_oracle.infrastructure.email.email_service import EmailService
from mira_oracle.infrastructure.exceptions import (
    AIServiceError,
    AuthenticationError,
    ConflictError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from mira_oracle.infrastructure.payments.stripe_service import (
    StripeService,
    dollars_to_cents,
)
from mira_oracle.infrastructure.security import (
    hash_password,
    hash_reset_token,
    new_reset_token,
    verify_password,
)
from mira_oracle.infrastructure.storage.base import Storage


logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Authentication
# =============================================================================

class AuthService:
    """
    Account and session management.

    Handles:
    - Registration with unique username/email
    - Credential checks that fail identically for unknown emails
    - Server-side sessions with rotation on login
    - Single-use password reset tokens
    """

    def __init__(self, storage: Storage, email_service: EmailService):
        self._storage = storage
        self._email = email_service
        settings = get_settings()
        self._session_ttl = timedelta(hours=settings.session_ttl_hours)
        self._reset_ttl = timedelta(minutes=settings.reset_token_ttl_minutes)

    async def register(self, data: RegisterRequest) -> User:
        """
        Create an account.

        Raises:
            ConflictError: email or username already in use
        """
        if await self._storage.get_user_by_email(data.email):
            raise ConflictError("Email already registered", operation="create", table="users")
        if await self._storage.get_user_by_username(data.username):
            raise ConflictError("Username already taken", operation="create", table="users")

        return await self._storage.create_user(
            UserCreate(
                username=data.username,
                email=data.email,
                password_hash=hash_password(data.password),
                full_name=data.full_name,
            )
        )

    async def authenticate(self, email: str, password: str) -> User:
        """
        Check credentials.

        Raises:
            AuthenticationError: unknown email or wrong password
        """
        user = await self._storage.get_user_by_email(email)
        if not verify_password(password, user.password_hash if user else None):
            logger.info("Failed login attempt")
            raise AuthenticationError("Invalid credentials")
        return user

    async def open_session(
        self,
        user_id: int,
        previous_session_id: Optional[str] = None,
    ) -> Session:
        """Issue a new session, discarding the one the client held before."""
        if previous_session_id:
            await self._storage.delete_session(previous_session_id)
        return await self._storage.create_session(user_id, utc_now() + self._session_ttl)

    async def close_session(self, session_id: Optional[str]) -> None:
        if session_id:
            await self._storage.delete_session(session_id)

    async def resolve_session(self, session_id: str) -> Optional[User]:
        """User behind a live session, or None."""
        session = await self._storage.get_session(session_id, utc_now())
        if session is None:
            return None
        return await self._storage.get_user(session.user_id)

    async def request_password_reset(self, email: str) -> None:
        """
        Email a reset link when the account exists.

        Callers answer the same way either way, so delivery problems are
        logged rather than raised.
        """
        user = await self._storage.get_user_by_email(email)
        if user is None:
            logger.info("Password reset requested for unknown email")
            return

        token = new_reset_token()
        await self._storage.update_user_reset_token(
            user.id,
            hash_reset_token(token),
            utc_now() + self._reset_ttl,
        )

        try:
            await self._email.send_password_reset_email(user.email, token)
        except UpstreamError:
            logger.error(f"Could not deliver reset email for user {user.id}", exc_info=True)

    async def reset_password(self, token: str, new_password: str) -> User:
        """
        Consume a reset token and set the new password.

        Raises:
            ValidationError: token unknown, expired or already used
        """
        user = await self._storage.reset_user_password(
            hash_reset_token(token),
            hash_password(new_password),
            utc_now(),
        )
        if user is None:
            raise ValidationError("Invalid or expired reset token")

        logger.info(f"Password reset for user {user.id}")
        return user


# =============================================================================
# Readings
# =============================================================================

class ReadingService:
    """Questionnaire intake and reading lookup."""

    def __init__(self, storage: Storage, gemini: Optional[GeminiService] = None):
        self._storage = storage
        self._gemini = gemini

    async def compose_reading(self, user: User, answers: QuestionnaireCreate) -> str:
        """Reading text from Gemini, or from the template when Gemini is unavailable."""
        name = user.full_name or user.username

        if self._gemini is not None:
            try:
                return await self._gemini.generate_reading(build_reading_prompt(answers, name))
            except AIServiceError:
                logger.warning("Gemini reading failed, using template", exc_info=True)

        return render_template_reading(answers, name)

    async def submit_questionnaire(
        self,
        user: User,
        answers: QuestionnaireCreate,
    ) -> Tuple[Questionnaire, Reading]:
        """Store a questionnaire and the reading generated from it."""
        # Compose first so a generation problem stores nothing
        content = await self.compose_reading(user, answers)

        questionnaire = await self._storage.create_questionnaire(user.id, answers)
        reading = await self._storage.create_reading(
            ReadingCreate(
                user_id=user.id,
                questionnaire_id=questionnaire.id,
                title=READING_TITLE,
                content=content,
                reading_type=ReadingType.BIRTH_CHART.value,
                is_paid=False,
            )
        )

        logger.info(f"Created reading {reading.id} for questionnaire {questionnaire.id}")
        return questionnaire, reading

    async def list_readings(self, user: User) -> List[Reading]:
        return await self._storage.get_readings_by_user_id(user.id)

    async def get_reading(self, user: User, reading_id: int) -> Reading:
        """
        A reading owned by ``user``.

        Raises:
            NotFoundError: missing, or owned by someone else
        """
        reading = await self._storage.get_reading_by_id(reading_id)
        if reading is None or reading.user_id != user.id:
            raise NotFoundError("Reading not found", operation="read", table="readings")
        return reading


# =============================================================================
# Billing
# =============================================================================

class BillingService:
    """Stripe-backed purchases recorded in storage."""

    def __init__(self, storage: Storage, stripe_service: StripeService):
        self._storage = storage
        self._stripe = stripe_service

    async def create_payment_intent(self, user: User, amount: float) -> Tuple[str, Payment]:
        """
        Start a one-time charge of ``amount`` dollars.

        Returns:
            The intent's client secret and the pending payment record
        """
        intent = await self._stripe.create_payment_intent(dollars_to_cents(amount), user.id)

        payment = await self._storage.create_payment(
            PaymentCreate(
                user_id=user.id,
                stripe_payment_intent_id=intent.id,
                amount=Decimal(str(amount)).quantize(Decimal("0.01")),
                currency=get_settings().default_currency,
                payment_type=PaymentType.ONE_TIME,
                status=PaymentStatus.PENDING,
            )
        )
        return intent.client_secret, payment

    async def get_or_create_subscription(self, user: User) -> Tuple[str, Optional[str]]:
        """
        Return the user's subscription, creating customer and subscription if needed.

        Returns:
            Subscription id and the client secret for its pending payment
        """
        if user.stripe_subscription_id:
            client_secret = await self._stripe.get_subscription_client_secret(
                user.stripe_subscription_id
            )
            return user.stripe_subscription_id, client_secret

        customer_id = user.stripe_customer_id
        if not customer_id:
            customer = await self._stripe.create_customer(
                user.id,
                user.email,
                name=user.full_name or user.username,
            )
            customer_id = customer.id
            await self._storage.update_user_stripe_info(user.id, customer_id, None)

        subscription = await self._stripe.create_subscription(customer_id)
        await self._storage.update_user_stripe_info(user.id, customer_id, subscription.id)

        return subscription.id, _latest_client_secret(subscription)


def _latest_client_secret(subscription) -> Optional[str]:
    """Client secret from an expanded ``latest_invoice.payment_intent``."""
    invoice = subscription.get("latest_invoice")
    if not invoice or isinstance(invoice, str):
        return None
    payment_intent = invoice.get("payment_intent")
    if not payment_intent or isinstance(payment_intent, str):
        return None
    return payment_intent.get("client_secret")


# =============================================================================
# Admin
# =============================================================================

async def compute_admin_stats(storage: Storage) -> AdminStats:
    """Dashboard totals over the whole store."""
    revenue = await storage.sum_payments(PaymentStatus.COMPLETED)
    return AdminStats(
        total_users=await storage.count_users(),
        monthly_revenue=float(revenue),
        readings_generated=await storage.count_readings(),
        subscriptions=await storage.count_users_by_subscription_status(SubscriptionStatus.ACTIVE),
    )
