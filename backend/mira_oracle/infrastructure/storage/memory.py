"""
In-Memory Storage for Mira Oracle

Process-local implementation of the Storage interface, used for tests
and single-process development. Records are kept in dicts keyed by
auto-incrementing integers; every mutation runs under one lock so
identifiers are never reused and read-modify-write updates are atomic.
"""

import itertools
import logging
import secrets
import threading
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, TypeVar

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
from mira_oracle.infrastructure.exceptions import ConflictError, NotFoundError
from mira_oracle.infrastructure.storage.base import DEFAULT_PAGE_SIZE, Storage


logger = logging.getLogger(__name__)

T = TypeVar("T")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _page(records: Iterable[T], skip: int, limit: int) -> List[T]:
    return list(records)[skip:skip + limit]


class MemoryStorage(Storage):
    """Dict-backed storage. Safe for concurrent coroutines and threads."""

    def __init__(self):
        self._lock = threading.Lock()
        self._users: Dict[int, User] = {}
        self._questionnaires: Dict[int, Questionnaire] = {}
        self._readings: Dict[int, Reading] = {}
        self._payments: Dict[int, Payment] = {}
        self._insights: Dict[int, DailyInsight] = {}
        self._sessions: Dict[str, Session] = {}
        self._user_ids = itertools.count(1)
        self._questionnaire_ids = itertools.count(1)
        self._reading_ids = itertools.count(1)
        self._payment_ids = itertools.count(1)
        self._insight_ids = itertools.count(1)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _find_user(self, predicate: Callable[[User], bool]) -> Optional[User]:
        return next((u for u in self._users.values() if predicate(u)), None)

    def _require_user(self, user_id: int) -> User:
        user = self._users.get(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found", operation="update", table="users")
        return user

    def _replace_user(self, user_id: int, **changes) -> User:
        with self._lock:
            updated = self._require_user(user_id).model_copy(update=changes)
            self._users[user_id] = updated
            return updated

    # =========================================================================
    # Users
    # =========================================================================

    async def get_user(self, user_id: int) -> Optional[User]:
        return self._users.get(user_id)

    async def get_user_by_username(self, username: str) -> Optional[User]:
        return self._find_user(lambda u: u.username == username)

    async def get_user_by_email(self, email: str) -> Optional[User]:
        return self._find_user(lambda u: u.email == email)

    async def get_user_by_stripe_customer_id(self, customer_id: str) -> Optional[User]:
        return self._find_user(lambda u: u.stripe_customer_id == customer_id)

    async def create_user(self, data: UserCreate) -> User:
        with self._lock:
            if self._find_user(lambda u: u.email == data.email):
                raise ConflictError("Email already registered", operation="create", table="users")
            if self._find_user(lambda u: u.username == data.username):
                raise ConflictError("Username already taken", operation="create", table="users")

            user = User(id=next(self._user_ids), created_at=_now(), **data.model_dump())
            self._users[user.id] = user

        logger.info(f"Created user {user.id}")
        return user

    async def update_user_stripe_info(
        self,
        user_id: int,
        stripe_customer_id: Optional[str],
        stripe_subscription_id: Optional[str],
    ) -> User:
        return self._replace_user(
            user_id,
            stripe_customer_id=stripe_customer_id,
            stripe_subscription_id=stripe_subscription_id,
        )

    async def update_user_subscription_status(
        self,
        user_id: int,
        status: Optional[SubscriptionStatus],
    ) -> User:
        return self._replace_user(user_id, subscription_status=status)

    async def update_user_reset_token(
        self,
        user_id: int,
        token_hash: str,
        expiry: datetime,
    ) -> None:
        self._replace_user(user_id, reset_token_hash=token_hash, reset_token_expiry=expiry)

    def _find_by_reset_token(self, token_hash: str, now: datetime) -> Optional[User]:
        return self._find_user(
            lambda u: u.reset_token_hash is not None
            and secrets.compare_digest(u.reset_token_hash, token_hash)
            and u.reset_token_expiry is not None
            and u.reset_token_expiry > now
        )

    async def get_user_by_reset_token(
        self,
        token_hash: str,
        now: datetime,
    ) -> Optional[User]:
        return self._find_by_reset_token(token_hash, now)

    async def update_user_password(self, user_id: int, password_hash: str) -> None:
        self._replace_user(user_id, password_hash=password_hash)

    async def clear_user_reset_token(self, user_id: int) -> None:
        self._replace_user(user_id, reset_token_hash=None, reset_token_expiry=None)

    async def reset_user_password(
        self,
        token_hash: str,
        password_hash: str,
        now: datetime,
    ) -> Optional[User]:
        with self._lock:
            user = self._find_by_reset_token(token_hash, now)
            if user is None:
                return None

            updated = user.model_copy(update={
                "password_hash": password_hash,
                "reset_token_hash": None,
                "reset_token_expiry": None,
            })
            self._users[user.id] = updated
            return updated

    async def get_all_users(
        self,
        skip: int = 0,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> List[User]:
        return _page(self._users.values(), skip, limit)

    async def count_users(self) -> int:
        return len(self._users)

    async def count_users_by_subscription_status(
        self,
        status: SubscriptionStatus,
    ) -> int:
        return sum(1 for u in list(self._users.values()) if u.subscription_status == status)

    # =========================================================================
    # Questionnaires
    # =========================================================================

    async def create_questionnaire(
        self,
        user_id: int,
        data: QuestionnaireCreate,
    ) -> Questionnaire:
        with self._lock:
            if user_id not in self._users:
                raise NotFoundError(
                    f"User {user_id} not found", operation="create", table="questionnaires"
                )

            questionnaire = Questionnaire(
                id=next(self._questionnaire_ids),
                user_id=user_id,
                completed_at=_now(),
                **data.model_dump(),
            )
            self._questionnaires[questionnaire.id] = questionnaire
            return questionnaire

    async def get_questionnaire_by_id(self, questionnaire_id: int) -> Optional[Questionnaire]:
        return self._questionnaires.get(questionnaire_id)

    async def get_questionnaires_by_user_id(self, user_id: int) -> List[Questionnaire]:
        return [q for q in list(self._questionnaires.values()) if q.user_id == user_id]

    async def get_all_questionnaires(
        self,
        skip: int = 0,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> List[Questionnaire]:
        return _page(self._questionnaires.values(), skip, limit)

    # =========================================================================
    # Readings
    # =========================================================================

    async def create_reading(self, data: ReadingCreate) -> Reading:
        with self._lock:
            if data.user_id not in self._users:
                raise NotFoundError(
                    f"User {data.user_id} not found", operation="create", table="readings"
                )
            if data.questionnaire_id not in self._questionnaires:
                raise NotFoundError(
                    f"Questionnaire {data.questionnaire_id} not found",
                    operation="create",
                    table="readings",
                )

            reading = Reading(id=next(self._reading_ids), created_at=_now(), **data.model_dump())
            self._readings[reading.id] = reading
            return reading

    async def get_reading_by_id(self, reading_id: int) -> Optional[Reading]:
        return self._readings.get(reading_id)

    async def get_readings_by_user_id(self, user_id: int) -> List[Reading]:
        return [r for r in list(self._readings.values()) if r.user_id == user_id]

    async def get_readings_by_questionnaire_id(self, questionnaire_id: int) -> List[Reading]:
        return [
            r for r in list(self._readings.values())
            if r.questionnaire_id == questionnaire_id
        ]

    async def get_all_readings(
        self,
        skip: int = 0,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> List[Reading]:
        return _page(self._readings.values(), skip, limit)

    async def count_readings(self) -> int:
        return len(self._readings)

    # =========================================================================
    # Payments
    # =========================================================================

    async def create_payment(self, data: PaymentCreate) -> Payment:
        with self._lock:
            if data.user_id not in self._users:
                raise NotFoundError(
                    f"User {data.user_id} not found", operation="create", table="payments"
                )
            intent_id = data.stripe_payment_intent_id
            if intent_id is not None and any(
                p.stripe_payment_intent_id == intent_id for p in self._payments.values()
            ):
                raise ConflictError(
                    f"Payment for intent {intent_id} already recorded",
                    operation="create",
                    table="payments",
                )

            payment =Payment(id=next(self._payment_ids), created_at=_now(), **data.model_dump())
            self._payments[payment.id] = payment
            return payment

    async def get_payments_by_user_id(self, user_id: int) -> List[Payment]:
        return [p for p in list(self._payments.values()) if p.user_id == user_id]

    async def update_payment_status(
        self,
        stripe_payment_intent_id: str,
        status: PaymentStatus,
    ) -> Payment:
        with self._lock:
            payment = next(
                (
                    p for p in self._payments.values()
                    if p.stripe_payment_intent_id == stripe_payment_intent_id
                ),
                None,
            )
            if payment is None:
                raise NotFoundError(
                    f"No payment for intent {stripe_payment_intent_id}",
                    operation="update",
                    table="payments",
                )

            updated = payment.model_copy(update={"status": status})
            self._payments[payment.id] = updated
            return updated

    async def get_all_payments(
        self,
        skip: int = 0,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> List[Payment]:
        return _page(self._payments.values(), skip, limit)

    async def sum_payments(self, status: PaymentStatus) -> Decimal:
        return sum(
            (p.amount for p in list(self._payments.values()) if p.status == status),
            Decimal("0"),
        )

    # =========================================================================
    # Daily Insights
    # =========================================================================

    async def create_daily_insight(self, data: DailyInsightCreate) -> DailyInsight:
        with self._lock:
            insight = DailyInsight(
                id=next(self._insight_ids),
                created_at=_now(),
                **data.model_dump(),
            )
            self._insights[insight.id] = insight
            return insight

    async def get_daily_insight_by_id(self, insight_id: int) -> Optional[DailyInsight]:
        return self._insights.get(insight_id)

    async def get_daily_insight_by_date(
        self,
        date: str,
        zodiac_sign: Optional[str] = None,
    ) -> Optional[DailyInsight]:
        candidates = [i for i in list(self._insights.values()) if i.date == date and i.is_active]

        if zodiac_sign is None:
            return candidates[0] if candidates else None

        scoped = next((i for i in candidates if i.zodiac_sign == zodiac_sign), None)
        if scoped:
            return scoped
        return next((i for i in candidates if i.zodiac_sign is None), None)

    async def get_all_daily_insights(
        self,
        skip: int = 0,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> List[DailyInsight]:
        return _page(self._insights.values(), skip, limit)

    async def update_daily_insight(
        self,
        insight_id: int,
        data: DailyInsightUpdate,
    ) -> DailyInsight:
        with self._lock:
            insight = self._insights.get(insight_id)
            if insight is None:
                raise NotFoundError(
                    f"Daily insight {insight_id} not found",
                    operation="update",
                    table="daily_insights",
                )

            updated = insight.model_copy(update=data.model_dump(exclude_unset=True))
            self._insights[insight_id] = updated
            return updated

    # =========================================================================
    # Sessions
    # =========================================================================

    async def create_session(self, user_id: int, expires_at: datetime) -> Session:
        with self._lock:
            if user_id not in self._users:
                raise NotFoundError(
                    f"User {user_id} not found", operation="create", table="sessions"
                )

            session = Session(
                id=secrets.token_urlsafe(32),
                user_id=user_id,
                expires_at=expires_at,
                created_at=_now(),
            )
            self._sessions[session.id] = session
            return session

    async def get_session(self, session_id: str, now: datetime) -> Optional[Session]:
        session = self._sessions.get(session_id)
        if session is None or session.expires_at <= now:
            return None
        return session

    async def delete_session(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    async def delete_expired_sessions(self, now: datetime) -> int:
        with self._lock:
            expired = [sid for sid, s in self._sessions.items() if s.expires_at <= now]
            for sid in expired:
                del self._sessions[sid]
        return len(expired)
