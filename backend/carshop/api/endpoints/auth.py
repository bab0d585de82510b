"""Authentication endpoints for registration, login and token refresh."""
from typing import Optional

from fastapi import APIRouter, Cookie, Depends, Response, status
import logging

from carshop.core.config import settings
from carshop.schemas.token import MessageResponse, SessionResponse
from carshop.schemas.user import Identity, LoginRequest, UserCreate
from carshop.services.session import SessionManager, SessionResult
from carshop.api import deps

router = APIRouter()
logger = logging.getLogger(__name__)


def _set_refresh_cookie(response: Response, refresh_token: str) -> None:
    response.set_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        value=refresh_token,
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
        path="/",
        httponly=True,
        secure=settings.REFRESH_COOKIE_SECURE,
        samesite="strict",
    )


def _session_response(response: Response, result: SessionResult, message: str) -> SessionResponse:
    _set_refresh_cookie(response, result.refresh_token)
    return SessionResponse(
        message=message,
        access_token=result.access_token,
        user=result.user,
    )


@router.post("/register", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserCreate,
    response: Response,
    sessions: SessionManager = Depends(deps.get_session_manager),
) -> SessionResponse:
    """
    Register a new user and log them in.

    Args:
        user_data: Username, email, password and optional role.
        response: Outgoing response, receives the refresh token cookie.
        sessions: Session manager dependency.

    Returns:
        SessionResponse: Access token and public user fields.

    Raises:
        ConflictError: 409 if username or email already exists.
    """
    result = await sessions.register(
        username=user_data.username,
        email=str(user_data.email),
        password=user_data.password,
        role=user_data.role,
    )
    return _session_response(response, result, "User registered successfully")


@router.post("/login", response_model=SessionResponse)
async def login(
    login_data: LoginRequest,
    response: Response,
    sessions: SessionManager = Depends(deps.get_session_manager),
) -> SessionResponse:
    """
    Authenticate with username (or email) and password.

    Raises:
        UnauthorizedError: 401 with a generic message for any bad credential.
    """
    result = await sessions.login(login_data.username, login_data.password)
    return _session_response(response, result, "Login successful")


@router.post("/refresh", response_model=SessionResponse)
async def refresh_token(
    response: Response,
    refresh_token: Optional[str] = Cookie(None, alias=settings.REFRESH_COOKIE_NAME),
    sessions: SessionManager = Depends(deps.get_session_manager),
) -> SessionResponse:
    """
    Rotate the refresh token cookie and return a new access token.

    Raises:
        UnauthorizedError: 401 if the cookie is missing.
        ForbiddenError: 403 if the token is unknown, rotated, expired or forged.
    """
    result = await sessions.refresh(refresh_token)
    return _session_response(response, result, "Token refreshed")


@router.post("/logout", response_model=MessageResponse)
async def logout(
    response: Response,
    refresh_token: Optional[str] = Cookie(None, alias=settings.REFRESH_COOKIE_NAME),
    sessions: SessionManager = Depends(deps.get_session_manager),
) -> MessageResponse:
    """Revoke the refresh token (if any) and clear the cookie. Always succeeds."""
    await sessions.logout(refresh_token)
    response.delete_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        path="/",
        httponly=True,
        secure=settings.REFRESH_COOKIE_SECURE,
        samesite="strict",
    )
    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=Identity)
async def get_current_user_info(
    identity: Identity = Depends(deps.get_current_identity)
) -> Identity:
    """Identity claims of the caller's access token."""
    return identity
