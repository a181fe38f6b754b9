"""
Unit tests for the storage backends.

Every test runs against both MemoryStorage and SQLStorage (SQLite file
in a temporary directory), so the two backends stay interchangeable.
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pydantic
import pytest

from mira_oracle.domain.models import (
    DailyInsightCreate,
    DailyInsightUpdate,
    PaymentCreate,
    PaymentStatus,
    PaymentType,
    QuestionnaireCreate,
    ReadingCreate,
    SubscriptionStatus,
    UserCreate,
)
from mira_oracle.infrastructure.db.database import DatabaseManager, normalize_database_url
from mira_oracle.infrastructure.exceptions import ConflictError, NotFoundError
from mira_oracle.infrastructure.storage import MemoryStorage, SQLStorage


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _user(username="alice", email=None, **extra) -> UserCreate:
    return UserCreate(
        username=username,
        email=email or f"{username}@x.com",
        password_hash="hash",
        **extra,
    )


def _answers(**overrides) -> QuestionnaireCreate:
    return QuestionnaireCreate(**{
        "birth_date": "1990-07-21",
        "birth_time": "14:30",
        "birth_city": "Lisbon",
        "birth_country": "Portugal",
        "zodiac_sign": "Cancer",
        "personality_traits": ["intuitive"],
        **overrides,
    })


def _insight(**overrides) -> DailyInsightCreate:
    return DailyInsightCreate(**{
        "title": "Venus Glows",
        "content": "Open your heart.",
        "date": "2024-05-01",
        **overrides,
    })


@pytest.fixture(params=["memory", "sql"])
async def storage(request, tmp_path):
    if request.param == "memory":
        yield MemoryStorage()
        return

    db = DatabaseManager(f"sqlite+aiosqlite:///{tmp_path / 'mira.db'}")
    await db.create_tables()
    sql_storage = SQLStorage(db)
    yield sql_storage
    await sql_storage.close()


class TestUsers:

    async def test_ids_start_at_one(self, storage):
        first = await storage.create_user(_user("alice"))
        second = await storage.create_user(_user("bob"))

        assert (first.id, second.id) == (1, 2)
        assert first.created_at.tzinfo is not None

    async def test_lookups(self, storage):
        user = await storage.create_user(_user("alice"))

        assert (await storage.get_user(user.id)).username == "alice"
        assert (await storage.get_user_by_username("alice")).id == user.id
        assert (await storage.get_user_by_email("alice@x.com")).id == user.id
        assert await storage.get_user(999) is None
        assert await storage.get_user_by_email("nobody@x.com") is None

    async def test_duplicate_email(self, storage):
        await storage.create_user(_user("alice"))

        with pytest.raises(ConflictError, match="Email already registered"):
            await storage.create_user(_user("alice2", email="alice@x.com"))

    async def test_duplicate_username(self, storage):
        await storage.create_user(_user("alice"))

        with pytest.raises(ConflictError, match="Username already taken"):
            await storage.create_user(_user("alice", email="other@x.com"))

    async def test_stripe_info_and_status(self, storage):
        user = await storage.create_user(_user())

        await storage.update_user_stripe_info(user.id, "cus_1", "sub_1")
        updated = await storage.update_user_subscription_status(user.id, SubscriptionStatus.ACTIVE)

        assert updated.stripe_customer_id == "cus_1"
        assert updated.stripe_subscription_id == "sub_1"
        assert updated.subscription_status == SubscriptionStatus.ACTIVE
        assert (await storage.get_user_by_stripe_customer_id("cus_1")).id == user.id
        assert await storage.count_users_by_subscription_status(SubscriptionStatus.ACTIVE) == 1

    async def test_update_missing_user(self, storage):
        with pytest.raises(NotFoundError):
            await storage.update_user_subscription_status(42, SubscriptionStatus.ACTIVE)

    async def test_entities_are_snapshots(self, storage):
        user = await storage.create_user(_user())
        await storage.update_user_stripe_info(user.id, "cus_1", None)

        assert user.stripe_customer_id is None

    async def test_pagination(self, storage):
        for name in ("a_user", "b_user", "c_user"):
            await storage.create_user(_user(name))

        page = await storage.get_all_users(skip=1, limit=1)

        assert [u.username for u in page] == ["b_user"]
        assert await storage.count_users() == 3


class TestPasswordReset:

    async def test_reset_consumes_token_once(self, storage):
        user = await storage.create_user(_user())
        await storage.update_user_reset_token(user.id, "digest", _now() + timedelta(hours=1))

        updated = await storage.reset_user_password("digest", "new-hash", _now())

        assert updated.password_hash == "new-hash"
        assert updated.reset_token_hash is None
        assert await storage.reset_user_password("digest", "other-hash", _now()) is None
        assert (await storage.get_user(user.id)).password_hash == "new-hash"

    async def test_expired_token(self, storage):
        user = await storage.create_user(_user())
        await storage.update_user_reset_token(user.id, "digest", _now() - timedelta(seconds=1))

        assert await storage.get_user_by_reset_token("digest", _now()) is None
        assert await storage.reset_user_password("digest", "new-hash", _now()) is None
        assert (await storage.get_user(user.id)).password_hash == "hash"

    async def test_clear_token(self, storage):
        user = await storage.create_user(_user())
        await storage.update_user_reset_token(user.id, "digest", _now() + timedelta(hours=1))

        await storage.clear_user_reset_token(user.id)

        assert await storage.get_user_by_reset_token("digest", _now()) is None


class TestQuestionnairesAndReadings:

    async def test_concurrent_creates_get_distinct_ids(self, storage):
        user = await storage.create_user(_user())

        created = await asyncio.gather(
            *(storage.create_questionnaire(user.id, _answers()) for _ in range(10))
        )

        assert sorted(q.id for q in created) == list(range(1, 11))

    async def test_threaded_creates_get_distinct_ids(self, storage):
        user = await storage.create_user(_user())

        def create_in_own_loop(_):
            return asyncio.run(storage.create_questionnaire(user.id, _answers()))

        with ThreadPoolExecutor(max_workers=4) as pool:
            created = await asyncio.to_thread(lambda: list(pool.map(create_in_own_loop, range(12))))

        assert sorted(q.id for q in created) == list(range(1, 13))
        assert len(await storage.get_questionnaires_by_user_id(user.id)) == 12

    async def test_questionnaire_round_trip(self, storage):
        user = await storage.create_user(_user())

        created = await storage.create_questionnaire(user.id, _answers(spiritual_goals="peace"))
        loaded = await storage.get_questionnaire_by_id(created.id)

        assert loaded.personality_traits == ["intuitive"]
        assert loaded.spiritual_goals == "peace"
        assert loaded.relationship_history is None
        assert [q.id for q in await storage.get_questionnaires_by_user_id(user.id)] == [created.id]

    async def test_questionnaire_for_missing_user(self, storage):
        with pytest.raises(NotFoundError):
            await storage.create_questionnaire(99, _answers())

    async def test_reading_requires_questionnaire(self, storage):
        user = await storage.create_user(_user())

        with pytest.raises(NotFoundError):
            await storage.create_reading(
                ReadingCreate(user_id=user.id, questionnaire_id=7, title="t", content="c")
            )

    async def test_readings_by_user_and_questionnaire(self, storage):
        alice = await storage.create_user(_user("alice"))
        bob = await storage.create_user(_user("bob"))
        q = await storage.create_questionnaire(alice.id, _answers())

        reading = await storage.create_reading(
            ReadingCreate(user_id=alice.id, questionnaire_id=q.id, title="t", content="c")
        )

        assert [r.id for r in await storage.get_readings_by_user_id(alice.id)] == [reading.id]
        assert await storage.get_readings_by_user_id(bob.id) == []
        assert [r.id for r in await storage.get_readings_by_questionnaire_id(q.id)] == [reading.id]
        assert (await storage.get_reading_by_id(reading.id)).reading_type == "birth_chart"
        assert await storage.count_readings() == 1


class TestPayments:

    async def test_status_update_and_revenue(self, storage):
        user = await storage.create_user(_user())
        for intent, amount in (("pi_1", "19.99"), ("pi_2", "10.01"), ("pi_3", "50.00")):
            await storage.create_payment(
                PaymentCreate(
                    user_id=user.id,
                    stripe_payment_intent_id=intent,
                    amount=Decimal(amount),
                    payment_type=PaymentType.ONE_TIME,
                )
            )

        await storage.update_payment_status("pi_1", PaymentStatus.COMPLETED)
        await storage.update_payment_status("pi_2", PaymentStatus.COMPLETED)
        await storage.update_payment_status("pi_3", PaymentStatus.FAILED)

        assert await storage.sum_payments(PaymentStatus.COMPLETED) == Decimal("30.00")
        assert await storage.sum_payments(PaymentStatus.PENDING) == Decimal("0")

    async def test_update_unknown_intent(self, storage):
        with pytest.raises(NotFoundError):
            await storage.update_payment_status("pi_missing", PaymentStatus.COMPLETED)

    async def test_duplicate_intent_is_conflict(self, storage):
        user = await storage.create_user(_user())
        payment = PaymentCreate(
            user_id=user.id,
            stripe_payment_intent_id="pi_dup",
            amount=Decimal("29.00"),
            payment_type=PaymentType.SUBSCRIPTION,
            status=PaymentStatus.COMPLETED,
        )
        await storage.create_payment(payment)

        with pytest.raises(ConflictError):
            await storage.create_payment(payment)

        assert await storage.sum_payments(PaymentStatus.COMPLETED) == Decimal("29.00")

    async def test_payments_without_intent_are_not_conflicts(self, storage):
        user = await storage.create_user(_user())
        for _ in range(2):
            await storage.create_payment(
                PaymentCreate(user_id=user.id, amount=Decimal("1.00"), payment_type=PaymentType.ONE_TIME)
            )

        assert len(await storage.get_payments_by_user_id(user.id)) == 2

    async def test_payment_for_missing_user(self, storage):
        with pytest.raises(NotFoundError):
            await storage.create_payment(
                PaymentCreate(user_id=5, amount=Decimal("1.00"), payment_type=PaymentType.ONE_TIME)
            )


class TestDailyInsights:

    async def test_lookup_prefers_sign(self, storage):
        await storage.create_daily_insight(_insight(title="general"))
        await storage.create_daily_insight(_insight(title="for taurus", zodiac_sign="Taurus"))
        await storage.create_daily_insight(_insight(title="other day", date="2024-05-02"))

        assert (await storage.get_daily_insight_by_date("2024-05-01")).title == "general"
        assert (await storage.get_daily_insight_by_date("2024-05-01", "Taurus")).title == "for taurus"
        assert (await storage.get_daily_insight_by_date("2024-05-01", "Aries")).title == "general"
        assert await storage.get_daily_insight_by_date("2024-06-01") is None

    async def test_other_sign_never_matches(self, storage):
        await storage.create_daily_insight(_insight(zodiac_sign="Leo"))

        assert await storage.get_daily_insight_by_date("2024-05-01", "Virgo") is None

    async def test_inactive_is_skipped(self, storage):
        await storage.create_daily_insight(_insight(title="hidden", is_active=False))
        await storage.create_daily_insight(_insight(title="shown"))

        assert (await storage.get_daily_insight_by_date("2024-05-01")).title == "shown"

    async def test_partial_update(self, storage):
        insight = await storage.create_daily_insight(_insight())

        updated = await storage.update_daily_insight(insight.id, DailyInsightUpdate(is_active=False))

        assert updated.is_active is False
        assert updated.title == "Venus Glows"

    async def test_update_missing(self, storage):
        with pytest.raises(NotFoundError):
            await storage.update_daily_insight(3, DailyInsightUpdate(title="x"))

    async def test_null_update_applies_nothing(self, storage):
        insight = await storage.create_daily_insight(_insight())

        with pytest.raises(pydantic.ValidationError):
            DailyInsightUpdate(title=None)
        with pytest.raises(pydantic.ValidationError):
            DailyInsightUpdate.model_validate({"isActive": None})

        stored = await storage.get_daily_insight_by_id(insight.id)
        assert (stored.title, stored.is_active) == ("Venus Glows", True)


class TestSessions:

    async def test_session_lifecycle(self, storage):
        user = await storage.create_user(_user())
        session = await storage.create_session(user.id, _now() + timedelta(hours=1))

        assert (await storage.get_session(session.id, _now())).user_id == user.id
        assert await storage.delete_session(session.id) is True
        assert await storage.get_session(session.id, _now()) is None
        assert await storage.delete_session(session.id) is False

    async def test_session_for_missing_user(self, storage):
        with pytest.raises(NotFoundError):
            await storage.create_session(77, _now() + timedelta(hours=1))

    async def test_session_ids_are_unguessable(self, storage):
        user = await storage.create_user(_user())

        first = await storage.create_session(user.id, _now() + timedelta(hours=1))
        second = await storage.create_session(user.id, _now() + timedelta(hours=1))

        assert first.id != second.id
        assert len(first.id) >= 32

    async def test_expired_sessions(self, storage):
        user = await storage.create_user(_user())
        live = await storage.create_session(user.id, _now() + timedelta(hours=1))
        stale = await storage.create_session(user.id, _now() - timedelta(minutes=5))

        assert await storage.get_session(stale.id, _now()) is None
        assert await storage.delete_expired_sessions(_now()) == 1
        assert await storage.get_session(live.id, _now()) is not None


class TestDatabaseUrl:

    @pytest.mark.parametrize(
        "url, expected",
        [
            ("postgresql://u:p@db/mira", "postgresql+asyncpg://u:p@db/mira"),
            ("postgres://u:p@db/mira", "postgresql+asyncpg://u:p@db/mira"),
            ("sqlite:///./mira.db", "sqlite+aiosqlite:///./mira.db"),
            ("postgresql+asyncpg://u:p@db/mira", "postgresql+asyncpg://u:p@db/mira"),
        ],
    )
    def test_normalize(self, url, expected):
        assert normalize_database_url(url) == expected
