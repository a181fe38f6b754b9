"""
SQL Storage for Mira Oracle

Storage implementation over async SQLAlchemy and the SQLModel tables.
Each operation runs in its own session scope (commit on success,
rollback on error). Table rows never leave this module: every result
is mapped to an immutable domain entity.
"""

import logging
import secrets
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError

from mira_oracle.domain.models import (
    DailyInsight,
    DailyInsightCreate,
    DailyInsightUpdate,
    Payment,
    PaymentCreate,
    PaymentStatus,
    PaymentType,
    Questionnaire,
    QuestionnaireCreate,
    Reading,
    ReadingCreate,
    Session,
    SubscriptionStatus,
    User,
    UserCreate,
)
from mira_oracle.infrastructure.db.database import DatabaseManager, get_db_manager
from mira_oracle.infrastructure.db.models import (
    DailyInsightModel,
    PaymentModel,
    QuestionnaireModel,
    ReadingModel,
    SessionModel,
    UserModel,
)
from mira_oracle.infrastructure.exceptions import ConflictError, NotFoundError
from mira_oracle.infrastructure.storage.base import DEFAULT_PAGE_SIZE, Storage


logger = logging.getLogger(__name__)


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; everything stored is UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SQLStorage(Storage):
    """Relational storage backed by DATABASE_URL."""

    def __init__(self, db: Optional[DatabaseManager] = None):
        self._db = db or get_db_manager()

    async def close(self) -> None:
        await self._db.close()

    # =========================================================================
    # Users
    # =========================================================================

    async def _fetch_user(self, *criteria) -> Optional[User]:
        async with self._db.session() as session:
            result = await session.execute(select(UserModel).where(*criteria))
            model = result.scalars().first()
            return self._user_to_domain(model) if model else None

    async def get_user(self, user_id: int) -> Optional[User]:
        return await self._fetch_user(UserModel.id == user_id)

    async def get_user_by_username(self, username: str) -> Optional[User]:
        return await self._fetch_user(UserModel.username == username)

    async def get_user_by_email(self, email: str) -> Optional[User]:
        return await self._fetch_user(UserModel.email == email)

    async def get_user_by_stripe_customer_id(self, customer_id: str) -> Optional[User]:
        return await self._fetch_user(UserModel.stripe_customer_id == customer_id)

    async def create_user(self, data: UserCreate) -> User:
        async with self._db.session() as session:
            taken = await session.execute(
                select(UserModel.email, UserModel.username).where(
                    or_(UserModel.email == data.email, UserModel.username == data.username)
                )
            )
            for email, _ in taken.all():
                if email == data.email:
                    raise ConflictError("Email already registered", operation="create", table="users")
                raise ConflictError("Username already taken", operation="create", table="users")

            model = UserModel(**data.model_dump())
            session.add(model)
            try:
                await session.flush()
            except IntegrityError as e:
                raise ConflictError(
                    "User already exists", operation="create", table="users", original_error=e
                )

            logger.info(f"Created user {model.id}")
            return self._user_to_domain(model)

    async def _update_user(self, user_id: int, **changes) -> User:
        async with self._db.session() as session:
            model = await session.get(UserModel, user_id)
            if model is None:
                raise NotFoundError(f"User {user_id} not found", operation="update", table="users")

            for field, value in changes.items():
                setattr(model, field, value)
            await session.flush()
            return self._user_to_domain(model)

    async def update_user_stripe_info(
        self,
        user_id: int,
        stripe_customer_id: Optional[str],
        stripe_subscription_id: Optional[str],
    ) -> User:
        return await self._update_user(
            user_id,
            stripe_customer_id=stripe_customer_id,
            stripe_subscription_id=stripe_subscription_id,
        )

    async def update_user_subscription_status(
        self,
        user_id: int,
        status: Optional[SubscriptionStatus],
    ) -> User:
        return await self._update_user(
            user_id,
            subscription_status=status.value if status else None,
        )

    async def update_user_reset_token(
        self,
        user_id: int,
        token_hash: str,
        expiry: datetime,
    ) -> None:
        await self._update_user(user_id, reset_token_hash=token_hash, reset_token_expiry=expiry)

    async def get_user_by_reset_token(
        self,
        token_hash: str,
        now: datetime,
    ) -> Optional[User]:
        return await self._fetch_user(
            UserModel.reset_token_hash == token_hash,
            UserModel.reset_token_expiry > now,
        )

    async def update_user_password(self, user_id: int, password_hash: str) -> None:
        await self._update_user(user_id, password_hash=password_hash)

    async def clear_user_reset_token(self, user_id: int) -> None:
        await self._update_user(user_id, reset_token_hash=None, reset_token_expiry=None)

    async def reset_user_password(
        self,
        token_hash: str,
        password_hash: str,
        now: datetime,
    ) -> Optional[User]:
        async with self._db.session() as session:
            user_id = await session.scalar(
                select(UserModel.id).where(UserModel.reset_token_hash == token_hash)
            )
            if user_id is None:
                return None

            # Conditional update: a concurrent reset that got here first
            # leaves no matching row behind
            result = await session.execute(
                update(UserModel)
                .where(
                    UserModel.id == user_id,
                    UserModel.reset_token_hash == token_hash,
                    UserModel.reset_token_expiry > now,
                )
                .values(
                    password_hash=password_hash,
                    reset_token_hash=None,
                    reset_token_expiry=None,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                return None

            model = await session.get(UserModel, user_id)
            return self._user_to_domain(model)

    async def get_all_users(
        self,
        skip: int = 0,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> List[User]:
        async with self._db.session() as session:
            result = await session.execute(
                select(UserModel).order_by(UserModel.id).offset(skip).limit(limit)
            )
            return [self._user_to_domain(m) for m in result.scalars().all()]

    async def count_users(self) -> int:
        async with self._db.session() as session:
            return await session.scalar(select(func.count()).select_from(UserModel))

    async def count_users_by_subscription_status(
        self,
        status: SubscriptionStatus,
    ) -> int:
        async with self._db.session() as session:
            return await session.scalar(
                select(func.count())
                .select_from(UserModel)
                .where(UserModel.subscription_status == status.value)
            )

    # =========================================================================
    # Questionnaires
    # =========================================================================

    async def create_questionnaire(
        self,
        user_id: int,
        data: QuestionnaireCreate,
    ) -> Questionnaire:
        async with self._db.session() as session:
            if await session.get(UserModel, user_id) is None:
                raise NotFoundError(
                    f"User {user_id} not found", operation="create", table="questionnaires"
                )

            model = QuestionnaireModel(user_id=user_id, **data.model_dump())
            session.add(model)
            await session.flush()
            return self._questionnaire_to_domain(model)

    async def get_questionnaire_by_id(self, questionnaire_id: int) -> Optional[Questionnaire]:
        async with self._db.session() as session:
            model = await session.get(QuestionnaireModel, questionnaire_id)
            return self._questionnaire_to_domain(model) if model else None

    async def get_questionnaires_by_user_id(self, user_id: int) -> List[Questionnaire]:
        async with self._db.session() as session:
            result = await session.execute(
                select(QuestionnaireModel)
                .where(QuestionnaireModel.user_id == user_id)
                .order_by(QuestionnaireModel.id)
            )
            return [self._questionnaire_to_domain(m) for m in result.scalars().all()]

    async def get_all_questionnaires(
        self,
        skip: int = 0,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> List[Questionnaire]:
        async with self._db.session() as session:
            result = await session.execute(
                select(QuestionnaireModel)
                .order_by(QuestionnaireModel.id)
                .offset(skip)
                .limit(limit)
            )
            return [self._questionnaire_to_domain(m) for m in result.scalars().all()]

    # =========================================================================
    # Readings
    # =========================================================================

    async def create_reading(self, data: ReadingCreate) -> Reading:
        async with self._db.session() as session:
            if await session.get(UserModel, data.user_id) is None:
                raise NotFoundError(
                    f"User {data.user_id} not found", operation="create", table="readings"
                )
            if await session.get(QuestionnaireModel, data.questionnaire_id) is None:
                raise NotFoundError(
                    f"Questionnaire {data.questionnaire_id} not found",
                    operation="create",
                    table="readings",
                )

            model = ReadingModel(**data.model_dump())
            session.add(model)
            await session.flush()
            return self._reading_to_domain(model)

    async def get_reading_by_id(self, reading_id: int) -> Optional[Reading]:
        async with self._db.session() as session:
            model = await session.get(ReadingModel, reading_id)
            return self._reading_to_domain(model) if model else None

    async def _list_readings(self, *criteria, skip: int = 0, limit: Optional[int] = None) -> List[Reading]:
        statement = select(ReadingModel).where(*criteria).order_by(ReadingModel.id).offset(skip)
        if limit is not None:
            statement = statement.limit(limit)
        async with self._db.session() as session:
            result = await session.execute(statement)
            return [self._reading_to_domain(m) for m in result.scalars().all()]

    async def get_readings_by_user_id(self, user_id: int) -> List[Reading]:
        return await self._list_readings(ReadingModel.user_id == user_id)

    async def get_readings_by_questionnaire_id(self, questionnaire_id: int) -> List[Reading]:
        return await self._list_readings(ReadingModel.questionnaire_id == questionnaire_id)

    async def get_all_readings(
        self,
        skip: int = 0,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> List[Reading]:
        return await self._list_readings(skip=skip, limit=limit)

    async def count_readings(self) -> int:
        async with self._db.session() as session:
            return await session.scalar(select(func.count()).select_from(ReadingModel))

    # =========================================================================
    # Payments
    # =========================================================================

    async def create_payment(self, data: PaymentCreate) -> Payment:
        async with self._db.session() as session:
            if await session.get(UserModel, data.user_id) is None:
                raise NotFoundError(
                    f"User {data.user_id} not found", operation="create", table="payments"
                )

            if data.stripe_payment_intent_id is not None:
                existing = await session.scalar(
                    select(PaymentModel.id).where(
                        PaymentModel.stripe_payment_intent_id == data.stripe_payment_intent_id
                    )
                )
                if existing is not None:
                    raise ConflictError(
                        f"Payment for intent {data.stripe_payment_intent_id} already recorded",
                        operation="create",
                        table="payments",
                    )

            model = PaymentModel(
                user_id=data.user_id,
                stripe_payment_intent_id=data.stripe_payment_intent_id,
                amount=data.amount,
                currency=data.currency,
                payment_type=data.payment_type.value,
                status=data.status.value,
            )
            session.add(model)
            try:
                await session.flush()
            except IntegrityError as e:
                raise ConflictError(
                    "Payment already recorded", operation="create", table="payments", original_error=e
                )
            return self._payment_to_domain(model)

    async def get_payments_by_user_id(self, user_id: int) -> List[Payment]:
        async with self._db.session() as session:
            result = await session.execute(
                select(PaymentModel)
                .where(PaymentModel.user_id == user_id)
                .order_by(PaymentModel.id)
            )
            return [self._payment_to_domain(m) for m in result.scalars().all()]

    async def update_payment_status(
        self,
        stripe_payment_intent_id: str,
        status: PaymentStatus,
    ) -> Payment:
        async with self._db.session() as session:
            result = await session.execute(
                select(PaymentModel)
                .where(PaymentModel.stripe_payment_intent_id == stripe_payment_intent_id)
                .order_by(PaymentModel.id)
            )
            model = result.scalars().first()
            if model is None:
                raise NotFoundError(
                    f"No payment for intent {stripe_payment_intent_id}",
                    operation="update",
                    table="payments",
                )

            model.status = status.value
            await session.flush()
            return self._payment_to_domain(model)

    async def get_all_payments(
        self,
        skip: int = 0,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> List[Payment]:
        async with self._db.session() as session:
            result = await session.execute(
                select(PaymentModel).order_by(PaymentModel.id).offset(skip).limit(limit)
            )
            return [self._payment_to_domain(m) for m in result.scalars().all()]

    async def sum_payments(self, status: PaymentStatus) -> Decimal:
        async with self._db.session() as session:
            total = await session.scalar(
                select(func.sum(PaymentModel.amount)).where(PaymentModel.status == status.value)
            )
            return Decimal(str(total)) if total is not None else Decimal("0")

    # =========================================================================
    # Daily Insights
    # =========================================================================

    async def create_daily_insight(self, data: DailyInsightCreate) -> DailyInsight:
        async with self._db.session() as session:
            model = DailyInsightModel(**data.model_dump())
            session.add(model)
            await session.flush()
            return self._insight_to_domain(model)

    async def get_daily_insight_by_id(self, insight_id: int) -> Optional[DailyInsight]:
        async with self._db.session() as session:
            model = await session.get(DailyInsightModel, insight_id)
            return self._insight_to_domain(model) if model else None

    async def get_daily_insight_by_date(
        self,
        date: str,
        zodiac_sign: Optional[str] = None,
    ) -> Optional[DailyInsight]:
        statement = (
            select(DailyInsightModel)
            .where(DailyInsightModel.date == date, DailyInsightModel.is_active.is_(True))
            .order_by(DailyInsightModel.id)
        )
        if zodiac_sign is not None:
            statement = statement.where(
                or_(
                    DailyInsightModel.zodiac_sign == zodiac_sign,
                    DailyInsightModel.zodiac_sign.is_(None),
                )
            )

        async with self._db.session() as session:
            result = await session.execute(statement)
            candidates = result.scalars().all()

        if not candidates:
            return None
        if zodiac_sign is not None:
            scoped = [m for m in candidates if m.zodiac_sign == zodiac_sign]
            if scoped:
                return self._insight_to_domain(scoped[0])
        return self._insight_to_domain(candidates[0])

    async def get_all_daily_insights(
        self,
        skip: int = 0,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> List[DailyInsight]:
        async with self._db.session() as session:
            result = await session.execute(
                select(DailyInsightModel)
                .order_by(DailyInsightModel.id)
                .offset(skip)
                .limit(limit)
            )
            return [self._insight_to_domain(m) for m in result.scalars().all()]

    async def update_daily_insight(
        self,
        insight_id: int,
        data: DailyInsightUpdate,
    ) -> DailyInsight:
        async with self._db.session() as session:
            model = await session.get(DailyInsightModel, insight_id)
            if model is None:
                raise NotFoundError(
                    f"Daily insight {insight_id} not found",
                    operation="update",
                    table="daily_insights",
                )

            for field, value in data.model_dump(exclude_unset=True).items():
                setattr(model, field, value)
            await session.flush()
            return self._insight_to_domain(model)

    # =========================================================================
    # Sessions
    # =========================================================================

    async def create_session(self, user_id: int, expires_at: datetime) -> Session:
        async with self._db.session() as session:
            if await session.get(UserModel, user_id) is None:
                raise NotFoundError(
                    f"User {user_id} not found", operation="create", table="sessions"
                )

            model = SessionModel(
                id=secrets.token_urlsafe(32),
                user_id=user_id,
                expires_at=expires_at,
            )
            session.add(model)
            await session.flush()
            return self._session_to_domain(model)

    async def get_session(self, session_id: str, now: datetime) -> Optional[Session]:
        async with self._db.session() as session:
            result = await session.execute(
                select(SessionModel).where(
                    SessionModel.id == session_id,
                    SessionModel.expires_at > now,
                )
            )
            model = result.scalar_one_or_none()
            return self._session_to_domain(model) if model else None

    async def delete_session(self, session_id: str) -> bool:
        async with self._db.session() as session:
            result = await session.execute(
                delete(SessionModel).where(SessionModel.id == session_id)
            )
            return result.rowcount > 0

    async def delete_expired_sessions(self, now: datetime) -> int:
        async with self._db.session() as session:
            result = await session.execute(
                delete(SessionModel).where(SessionModel.expires_at <= now)
            )
            return result.rowcount

    # =========================================================================
    # Mapping Methods
    # =========================================================================

    def _user_to_domain(self, model: UserModel) -> User:
        """Convert database model to domain entity."""
        return User(
            id=model.id,
            username=model.username,
            email=model.email,
            password_hash=model.password_hash,
            full_name=model.full_name,
            stripe_customer_id=model.stripe_customer_id,
            stripe_subscription_id=model.stripe_subscription_id,
            subscription_status=(
                SubscriptionStatus(model.subscription_status)
                if model.subscription_status else None
            ),
            is_admin=model.is_admin,
            reset_token_hash=model.reset_token_hash,
            reset_token_expiry=_utc(model.reset_token_expiry),
            created_at=_utc(model.created_at),
        )

    def _questionnaire_to_domain(self, model: QuestionnaireModel) -> Questionnaire:
        return Questionnaire(
            id=model.id,
            user_id=model.user_id,
            birth_date=model.birth_date,
            birth_time=model.birth_time,
            birth_city=model.birth_city,
            birth_country=model.birth_country,
            zodiac_sign=model.zodiac_sign,
            personality_traits=list(model.personality_traits or []),
            spiritual_goals=model.spiritual_goals,
            relationship_history=model.relationship_history,
            life_intentions=model.life_intentions,
            specific_questions=model.specific_questions,
            completed_at=_utc(model.completed_at),
        )

    def _reading_to_domain(self, model: ReadingModel) -> Reading:
        return Reading(
            id=model.id,
            user_id=model.user_id,
            questionnaire_id=model.questionnaire_id,
            title=model.title,
            content=model.content,
            reading_type=model.reading_type,
            is_paid=model.is_paid,
            created_at=_utc(model.created_at),
        )

    def _payment_to_domain(self, model: PaymentModel) -> Payment:
        return Payment(
            id=model.id,
            user_id=model.user_id,
            stripe_payment_intent_id=model.stripe_payment_intent_id,
            amount=Decimal(str(model.amount)),
            currency=model.currency,
            payment_type=PaymentType(model.payment_type),
            status=PaymentStatus(model.status),
            created_at=_utc(model.created_at),
        )

    def _insight_to_domain(self, model: DailyInsightModel) -> DailyInsight:
        return DailyInsight(
            id=model.id,
            title=model.title,
            content=model.content,
            date=model.date,
            zodiac_sign=model.zodiac_sign,
            is_active=model.is_active,
            created_at=_utc(model.created_at),
        )

    def _session_to_domain(self, model: SessionModel) -> Session:
        return Session(
            id=model.id,
            user_id=model.user_id,
            expires_at=_utc(model.expires_at),
            created_at=_utc(model.created_at),
        )
