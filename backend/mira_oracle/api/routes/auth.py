"""
Authentication API Routes

Registration, login/logout, the current-user lookup and password reset.
Sessions travel in an HttpOnly cookie that is rotated on every login.
"""

import logging

from fastapi import APIRouter, Request, Response, status

from mira_oracle.api.dependencies import AuthServiceDep, CurrentUser, get_session_id
from mira_oracle.config.settings import get_settings
from mira_oracle.domain.models import (
    CamelModel,
    ForgotPasswordRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    Session,
    UserPublic,
)
from mira_oracle.domain.services import AuthService
from mira_oracle.infrastructure.security import encode_session_token


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

FORGOT_PASSWORD_MESSAGE = "If an account exists with this email, you will receive a password reset link."


class UserResponse(CamelModel):
    user: UserPublic


class MessageResponse(CamelModel):
    message: str


# =============================================================================
# Cookie Helpers
# =============================================================================

def set_session_cookie(response: Response, session: Session) -> None:
    settings = get_settings()
    response.set_cookie(
        key=settings.session_cookie_name,
        value=encode_session_token(session.id, session.expires_at),
        max_age=settings.session_ttl_hours * 3600,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        domain=settings.cookie_domain,
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    settings = get_settings()
    response.delete_cookie(
        key=settings.session_cookie_name,
        domain=settings.cookie_domain,
        path="/",
    )


async def _start_session(
    request: Request,
    response: Response,
    auth: AuthService,
    user_id: int,
) -> None:
    session = await auth.open_session(user_id, previous_session_id=get_session_id(request))
    set_session_cookie(response, session)


# =============================================================================
# Endpoints
# =============================================================================

@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    data: RegisterRequest,
    request: Request,
    response: Response,
    auth: AuthServiceDep,
):
    """Create an account and log it in."""
    user = await auth.register(data)
    await _start_session(request, response, auth, user.id)

    logger.info(f"Registered user {user.id}")
    return UserResponse(user=UserPublic.model_validate(user))


@router.post("/login", response_model=UserResponse)
async def login(
    data: LoginRequest,
    request: Request,
    response: Response,
    auth: AuthServiceDep,
):
    user = await auth.authenticate(data.email, data.password)
    await _start_session(request, response, auth, user.id)

    logger.info(f"User {user.id} logged in")
    return UserResponse(user=UserPublic.model_validate(user))


@router.post("/logout", response_model=MessageResponse)
async def logout(request: Request, response: Response, auth: AuthServiceDep):
    """Destroy the session. Succeeds for anonymous callers too."""
    await auth.close_session(get_session_id(request))
    clear_session_cookie(response)
    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=UserResponse)
async def me(user: CurrentUser):
    return UserResponse(user=UserPublic.model_validate(user))


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(data: ForgotPasswordRequest, auth: AuthServiceDep):
    """Send a reset link. The answer never reveals whether the email exists."""
    await auth.request_password_reset(data.email)
    return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(data: ResetPasswordRequest, auth: AuthServiceDep):
    await auth.reset_password(data.token, data.password)
    return MessageResponse(message="Password has been reset successfully")
