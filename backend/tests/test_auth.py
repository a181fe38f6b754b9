"""
Integration Tests for Authentication

Verifies that the main application correctly integrates:
- Registration and login with the session cookie
- Protected route denial (401) and access (200)
- Identical failures for unknown email and wrong password
- Single-use password reset tokens
"""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from mira_oracle.infrastructure import security
from mira_oracle.infrastructure.security import hash_reset_token


class TestRegistration:

    def test_register_creates_user_and_session(self, client, alice):
        response = client.post("/api/auth/register", json=alice)

        assert response.status_code == 201
        user = response.json()["user"]
        assert user["id"] == 1
        assert user["username"] == "alice"
        assert user["email"] == "alice@x.com"
        assert user["fullName"] == "Alice Star"
        assert user["isAdmin"] is False
        assert "passwordHash" not in user
        assert "password" not in user

        # Session cookie is set and usable right away
        me = client.get("/api/auth/me")
        assert me.status_code == 200
        assert me.json()["user"]["id"] == 1

    def test_register_duplicate_email(self, client, alice):
        client.post("/api/auth/register", json=alice)

        response = client.post(
            "/api/auth/register",
            json={**alice, "username": "alice2"},
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Email already registered"

    def test_register_duplicate_username(self, client, alice):
        client.post("/api/auth/register", json=alice)

        response = client.post(
            "/api/auth/register",
            json={**alice, "email": "other@x.com"},
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Username already taken"

    def test_register_rejects_short_password(self, client, alice):
        response = client.post("/api/auth/register", json={**alice, "password": "abc"})

        assert response.status_code == 400
        body = response.json()
        assert body["message"] == "Invalid input data"
        assert any(e["field"] == "password" for e in body["errors"])

    def test_register_rejects_bad_email(self, client, alice):
        response = client.post("/api/auth/register", json={**alice, "email": "not-an-email"})
        assert response.status_code == 400

    def test_register_never_grants_admin(self, client, alice):
        response = client.post("/api/auth/register", json={**alice, "isAdmin": True})

        assert response.status_code == 201
        assert response.json()["user"]["isAdmin"] is False


class TestLogin:

    def test_login_with_valid_credentials(self, client, alice):
        client.post("/api/auth/register", json=alice)
        client.cookies.clear()

        response = client.post(
            "/api/auth/login",
            json={"email": "alice@x.com", "password": "secret1"},
        )

        assert response.status_code == 200
        assert response.json()["user"]["username"] == "alice"
        assert client.get("/api/auth/me").status_code == 200

    def test_login_email_is_case_insensitive(self, client, alice):
        client.post("/api/auth/register", json=alice)

        response = client.post(
            "/api/auth/login",
            json={"email": "ALICE@x.com", "password": "secret1"},
        )
        assert response.status_code == 200

    def test_wrong_password_and_unknown_email_fail_identically(self, client, alice):
        client.post("/api/auth/register", json=alice)
        client.cookies.clear()

        wrong_password = client.post(
            "/api/auth/login",
            json={"email": "alice@x.com", "password": "wrongpass"},
        )
        unknown_email = client.post(
            "/api/auth/login",
            json={"email": "nobody@x.com", "password": "wrongpass"},
        )

        assert wrong_password.status_code == 401
        assert unknown_email.status_code == 401
        assert wrong_password.json() == unknown_email.json()
        assert wrong_password.json() == {"message": "Invalid credentials"}

    def test_short_wrong_password_is_401(self, client, alice):
        client.post("/api/auth/register", json=alice)
        client.cookies.clear()

        response = client.post(
            "/api/auth/login",
            json={"email": "alice@x.com", "password": "wrong"},
        )

        assert response.status_code == 401
        assert response.json() == {"message": "Invalid credentials"}

    @pytest.mark.parametrize("email", ["alice@x.com", "nobody@x.com"])
    def test_failed_login_always_verifies_a_hash(self, client, alice, email):
        client.post("/api/auth/register", json=alice)
        client.cookies.clear()

        with patch.object(
            security.pwd_context, "verify", wraps=security.pwd_context.verify
        ) as verify:
            response = client.post("/api/auth/login", json={"email": email, "password": "wrong"})

        assert response.status_code == 401
        verify.assert_called_once()

    def test_login_rotates_session(self, app, client, alice):
        from fastapi.testclient import TestClient

        client.post("/api/auth/register", json=alice)
        old_cookie = client.cookies.get("mira_session")

        # Someone replaying the old cookie is logged out once the user logs in again
        replay = TestClient(app)
        replay.cookies.set("mira_session", old_cookie)
        assert replay.get("/api/auth/me").status_code == 200

        client.post("/api/auth/login", json={"email": "alice@x.com", "password": "secret1"})

        assert client.cookies.get("mira_session") != old_cookie
        assert client.get("/api/auth/me").status_code == 200
        assert replay.get("/api/auth/me").status_code == 401


class TestSessionGate:

    def test_me_without_cookie(self, client):
        response = client.get("/api/auth/me")

        assert response.status_code == 401
        assert response.json() == {"message": "Not authenticated"}

    def test_me_with_garbage_cookie(self, client):
        client.cookies.set("mira_session", "not.a.jwt")
        assert client.get("/api/auth/me").status_code == 401

    def test_logout_destroys_session(self, app, logged_in_client):
        from fastapi.testclient import TestClient

        cookie = logged_in_client.cookies.get("mira_session")

        response = logged_in_client.post("/api/auth/logout")
        assert response.status_code == 200
        assert response.json() == {"message": "Logged out successfully"}

        # The signed cookie is still valid, but the session behind it is gone
        replay = TestClient(app)
        replay.cookies.set("mira_session", cookie)
        assert replay.get("/api/auth/me").status_code == 401

    def test_logout_without_session(self, client):
        response = client.post("/api/auth/logout")
        assert response.status_code == 200


class TestPasswordReset:

    FORGOT_MESSAGE = "If an account exists with this email, you will receive a password reset link."

    def _request_token(self, client, mock_email_service, email="alice@x.com"):
        response = client.post("/api/auth/forgot-password", json={"email": email})
        assert response.status_code == 200
        return mock_email_service.send_password_reset_email.call_args.args[1]

    def test_forgot_password_same_answer_for_unknown_email(self, client, alice, mock_email_service):
        client.post("/api/auth/register", json=alice)

        known = client.post("/api/auth/forgot-password", json={"email": "alice@x.com"})
        unknown = client.post("/api/auth/forgot-password", json={"email": "ghost@x.com"})

        assert known.status_code == unknown.status_code == 200
        assert known.json() == unknown.json() == {"message": self.FORGOT_MESSAGE}
        assert mock_email_service.send_password_reset_email.await_count == 1

    def test_reset_token_is_stored_hashed(self, client, alice, storage, mock_email_service):
        client.post("/api/auth/register", json=alice)
        token = self._request_token(client, mock_email_service)

        user = asyncio.run(storage.get_user(1))
        assert user.reset_token_hash == hash_reset_token(token)
        assert user.reset_token_hash != token

    def test_reset_password_works_once(self, client, alice, mock_email_service):
        client.post("/api/auth/register", json=alice)
        token = self._request_token(client, mock_email_service)

        first = client.post(
            "/api/auth/reset-password",
            json={"token": token, "password": "newsecret"},
        )
        assert first.status_code == 200
        assert first.json() == {"message": "Password has been reset successfully"}

        second = client.post(
            "/api/auth/reset-password",
            json={"token": token, "password": "another1"},
        )
        assert second.status_code == 400
        assert second.json()["message"] == "Invalid or expired reset token"

        client.cookies.clear()
        old = client.post("/api/auth/login", json={"email": "alice@x.com", "password": "secret1"})
        new = client.post("/api/auth/login", json={"email": "alice@x.com", "password": "newsecret"})
        assert old.status_code == 401
        assert new.status_code == 200

    def test_expired_reset_token_rejected(self, client, alice, storage, mock_email_service):
        client.post("/api/auth/register", json=alice)
        token = self._request_token(client, mock_email_service)

        past = datetime.now(timezone.utc) - timedelta(minutes=1)
        asyncio.run(storage.update_user_reset_token(1, hash_reset_token(token), past))

        response = client.post(
            "/api/auth/reset-password",
            json={"token": token, "password": "newsecret"},
        )
        assert response.status_code == 400

    def test_unknown_reset_token_rejected(self, client):
        response = client.post(
            "/api/auth/reset-password",
            json={"token": "made-up-token", "password": "newsecret"},
        )
        assert response.status_code == 400
