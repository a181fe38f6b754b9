"""
API Dependencies

FastAPI dependency injection for the session gate and shared services.

Authentication: the session cookie holds an HS256 JWT naming a
server-side session. The cookie is verified cryptographically, then the
session record and its user are looked up; any failure is the same 401.
"""

import logging
from typing import Annotated, Optional

from fastapi import Depends, Request

from mira_oracle.config.settings import get_settings
from mira_oracle.domain.models import User
from mira_oracle.domain.services import AuthService, BillingService, ReadingService
from mira_oracle.infrastructure.ai.gemini_service import get_gemini_service
from mira_oracle.infrastructure.email.email_service import get_email_service
from mira_oracle.infrastructure.exceptions import AuthenticationError, AuthorizationError
from mira_oracle.infrastructure.payments.stripe_service import get_stripe_service
from mira_oracle.infrastructure.security import decode_session_token
from mira_oracle.infrastructure.storage import Storage, get_storage


logger = logging.getLogger(__name__)


# =============================================================================
# Service Providers
# =============================================================================

StorageDep = Annotated[Storage, Depends(get_storage)]


def get_auth_service(storage: StorageDep) -> AuthService:
    return AuthService(storage, get_email_service())


def get_reading_service(storage: StorageDep) -> ReadingService:
    return ReadingService(storage, get_gemini_service())


def get_billing_service(storage: StorageDep) -> BillingService:
    return BillingService(storage, get_stripe_service())


AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]
ReadingServiceDep = Annotated[ReadingService, Depends(get_reading_service)]
BillingServiceDep = Annotated[BillingService, Depends(get_billing_service)]


# =============================================================================
# Session Gate
# =============================================================================

def get_session_id(request: Request) -> Optional[str]:
    """Verified session identifier from the request cookie, or None."""
    token = request.cookies.get(get_settings().session_cookie_name)
    if not token:
        return None
    return decode_session_token(token)


async def get_optional_user(
    request: Request,
    auth: AuthServiceDep,
) -> Optional[User]:
    """
    Resolve the session cookie to a user.

    Returns ``None`` for anonymous requests (for public endpoints).
    """
    session_id = get_session_id(request)
    if session_id is None:
        return None

    user = await auth.resolve_session(session_id)
    request.state.user = user
    return user


async def get_current_user(
    user: Annotated[Optional[User], Depends(get_optional_user)],
) -> User:
    """
    Require an authenticated user.

    Raises:
        AuthenticationError 401: cookie missing or invalid, session gone,
        or user deleted.
    """
    if user is None:
        raise AuthenticationError()
    return user


async def require_admin(
    user: Annotated[User, Depends(get_current_user)],
) -> User:
    """
    Require an authenticated administrator.

    Raises:
        AuthorizationError 403: user is not an admin.
    """
    if not user.is_admin:
        logger.warning(f"User {user.id} denied admin access")
        raise AuthorizationError()
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]
