"""
Security Primitives for Mira Oracle

Password hashing, password reset tokens and the signed session cookie.

Passwords use passlib's pbkdf2_sha256 scheme. Reset tokens are random,
url-safe strings; only their SHA-256 digest is ever stored. The session
cookie carries an HS256 JWT whose ``sid`` claim names a server-side
session record, so revoking the record revokes the cookie.
"""

import hashlib
import logging
import secrets
from datetime import datetime
from typing import Optional

import jwt
from passlib.context import CryptContext

from mira_oracle.config.settings import get_settings


logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

SESSION_ALGORITHM = "HS256"

# Verified against when the email is unknown, so both login failures cost the same
_DUMMY_HASH = pwd_context.hash("mira-oracle-timing-equalizer")


# =============================================================================
# Passwords
# =============================================================================

def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    """
    Check a plaintext password against a stored hash.

    A missing hash still runs a full verification against a dummy hash
    and then reports failure.
    """
    if not password_hash:
        pwd_context.verify(password, _DUMMY_HASH)
        return False
    try:
        return pwd_context.verify(password, password_hash)
    except ValueError:
        logger.warning("Stored password hash is not in a recognized format")
        return False


# =============================================================================
# Reset Tokens
# =============================================================================

def new_reset_token() -> str:
    return secrets.token_urlsafe(32)


def hash_reset_token(token: str) -> str:
    """SHA-256 hex digest of a reset token, the only form that is stored."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


# =============================================================================
# Session Cookie
# =============================================================================

def encode_session_token(session_id: str, expires_at: datetime) -> str:
    """Sign a session identifier into the cookie value."""
    settings = get_settings()
    return jwt.encode(
        {"sid": session_id, "exp": expires_at},
        settings.session_secret,
        algorithm=SESSION_ALGORITHM,
    )


def decode_session_token(token: str) -> Optional[str]:
    """
    Verify a cookie value and return its session identifier.

    Returns None for a bad signature, an expired token, or a token
    without a ``sid`` claim.
    """
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.session_secret,
            algorithms=[SESSION_ALGORITHM],
            options={"require": ["exp", "sid"]},
        )
    except jwt.InvalidTokenError as e:
        logger.debug("Rejected session token: %s", e)
        return None

    session_id = payload.get("sid")
    return session_id if isinstance(session_id, str) and session_id else None
