"""
Test configuration and fixtures for Mira Oracle.

Provides shared fixtures for unit and integration tests.
Every test gets a fresh in-memory store; Stripe, Gemini and email are
replaced by mocks through FastAPI dependency overrides.
"""

import asyncio
import os

# Settings are read at import time, so pin the test environment first
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("SEED_SAMPLE_DATA", "false")
os.environ.setdefault("STORAGE_BACKEND", "memory")

import pytest
from unittest.mock import MagicMock, AsyncMock

from fastapi.testclient import TestClient

from mira_oracle.domain.models import UserCreate
from mira_oracle.domain.services import AuthService, BillingService, ReadingService
from mira_oracle.infrastructure.security import hash_password
from mira_oracle.infrastructure.storage import MemoryStorage


# =============================================================================
# Mock Fixtures
# =============================================================================

@pytest.fixture
def storage():
    """Fresh in-memory store."""
    return MemoryStorage()


@pytest.fixture
def mock_email_service():
    """Mock for EmailService."""
    mock = MagicMock()
    mock.send_password_reset_email = AsyncMock()
    return mock


@pytest.fixture
def mock_stripe_service():
    """Mock for StripeService."""
    mock = MagicMock()

    intent = MagicMock()
    intent.id = "pi_test_123"
    intent.client_secret = "pi_test_123_secret_abc"
    mock.create_payment_intent = AsyncMock(return_value=intent)

    customer = MagicMock()
    customer.id = "cus_test_123"
    mock.create_customer = AsyncMock(return_value=customer)

    subscription = MagicMock()
    subscription.id = "sub_test_123"
    subscription.get.return_value = {
        "payment_intent": {"client_secret": "pi_sub_secret_xyz"},
    }
    mock.create_subscription = AsyncMock(return_value=subscription)
    mock.get_subscription_client_secret = AsyncMock(return_value="pi_sub_secret_existing")
    return mock


@pytest.fixture
def mock_gemini_service():
    """Mock for GeminiService."""
    mock = MagicMock()
    mock.generate_reading = AsyncMock(return_value="The stars speak of courage.")
    return mock


# =============================================================================
# App Fixtures
# =============================================================================

@pytest.fixture
def app(storage, mock_email_service, mock_stripe_service):
    """Get the FastAPI application wired to the test store and mocks."""
    from mira_oracle.main import app
    from mira_oracle.api.dependencies import (
        get_auth_service,
        get_billing_service,
        get_reading_service,
    )
    from mira_oracle.infrastructure.storage import get_storage

    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_auth_service] = lambda: AuthService(storage, mock_email_service)
    app.dependency_overrides[get_reading_service] = lambda: ReadingService(storage, None)
    app.dependency_overrides[get_billing_service] = lambda: BillingService(storage, mock_stripe_service)

    yield app

    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    """Get synchronous test client."""
    return TestClient(app)


# =============================================================================
# Sample Data Fixtures
# =============================================================================

ALICE = {"username": "alice", "email": "alice@x.com", "password": "secret1", "fullName": "Alice Star"}


@pytest.fixture
def alice():
    return dict(ALICE)


@pytest.fixture
def logged_in_client(client, alice):
    """Client holding a session for a freshly registered alice."""
    response = client.post("/api/auth/register", json=alice)
    assert response.status_code == 201
    return client


@pytest.fixture
def admin_user(storage):
    """Administrator stored directly, since registration never grants admin."""
    return asyncio.run(storage.create_user(
        UserCreate(
            username="oracle_admin",
            email="admin@mira.com",
            password_hash=hash_password("adminpass"),
            is_admin=True,
        )
    ))


@pytest.fixture
def admin_client(app, admin_user):
    """Separate client logged in as the administrator."""
    admin = TestClient(app)
    response = admin.post(
        "/api/auth/login",
        json={"email": "admin@mira.com", "password": "adminpass"},
    )
    assert response.status_code == 200
    return admin


@pytest.fixture
def sample_questionnaire():
    """Sample questionnaire payload (camelCase, as the client sends it)."""
    return {
        "birthDate": "1990-07-21",
        "birthTime": "14:30",
        "birthCity": "Lisbon",
        "birthCountry": "Portugal",
        "zodiacSign": "Cancer",
        "personalityTraits": ["intuitive", "loyal"],
        "spiritualGoals": "finding inner peace",
        "relationshipHistory": "trust and patience",
        "lifeIntentions": "creative work",
        "specificQuestions": "Should I move abroad?",
    }
