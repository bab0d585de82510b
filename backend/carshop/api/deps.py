from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import logging

from carshop.core.database import get_db
from carshop.core.errors import (
    AccessTokenExpiredError,
    ForbiddenError,
    TokenExpiredError,
    TokenInvalidError,
    UnauthorizedError,
)
from carshop.core.logging import security_event
from carshop.core.security import TokenCodec, get_token_codec
from carshop.schemas.user import Identity
from carshop.services.registry import RefreshTokenRegistry
from carshop.services.session import SessionManager

logger = logging.getLogger(__name__)

# Yields None for a missing Authorization header or a non-Bearer scheme
oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl="/api/auth/login",
    auto_error=False
)


def get_registry(request: Request) -> RefreshTokenRegistry:
    """Refresh token registry built in the application lifespan."""
    return request.app.state.registry


def get_session_manager(
    db: AsyncSession = Depends(get_db),
    registry: RefreshTokenRegistry = Depends(get_registry),
    codec: TokenCodec = Depends(get_token_codec),
) -> SessionManager:
    return SessionManager(db, registry, codec)


async def get_current_identity(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    codec: TokenCodec = Depends(get_token_codec),
) -> Identity:
    """Identity from a valid access token, or 401/403"""
    if not token:
        raise UnauthorizedError("Access token is required")

    try:
        identity = codec.verify_access(token)
    except TokenExpiredError:
        raise AccessTokenExpiredError()
    except TokenInvalidError as e:
        security_event(logger, "access_token_rejected", reason=str(e))
        raise ForbiddenError("Invalid access token")

    request.state.identity = identity
    return identity


async def require_admin(
    identity: Identity = Depends(get_current_identity)
) -> Identity:
    """Identity of an admin, or 403"""
    if not identity.is_admin:
        raise ForbiddenError("Admin privileges required")
    return identity


async def get_optional_identity(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    codec: TokenCodec = Depends(get_token_codec),
) -> Optional[Identity]:
    """Identity when a valid access token is present, None otherwise"""
    identity = None
    if token:
        try:
            identity = codec.verify_access(token)
        except (TokenExpiredError, TokenInvalidError):
            identity = None

    request.state.identity = identity
    return identity
