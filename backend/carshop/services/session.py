"""Session lifecycle: register, login, refresh and logout."""
from dataclasses import dataclass
from typing import Optional
import logging

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from carshop.core.errors import (
    ConflictError,
    ForbiddenError,
    TokenError,
    TokenRevokedError,
    UnauthorizedError,
)
from carshop.core.logging import security_event
from carshop.core.security import (
    TokenCodec,
    dummy_verify_password,
    get_password_hash,
    verify_password,
)
from carshop.models.user import Role, User
from carshop.schemas.user import Identity
from carshop.services.registry import RefreshTokenRegistry

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid login credentials"


@dataclass(frozen=True)
class SessionResult:
    access_token: str
    refresh_token: str
    user: Identity


class SessionManager:
    """
    Orchestrates the credential verifier, the token codec and the refresh
    token registry for one request.
    """

    def __init__(self, db: AsyncSession, registry: RefreshTokenRegistry, codec: TokenCodec):
        self.db = db
        self.registry = registry
        self.codec = codec

    async def register(
        self,
        username: str,
        email: str,
        password: str,
        role: Role = Role.customer,
    ) -> SessionResult:
        """
        Create a user and open a session for it.

        Args:
            username: Unique login name.
            email: Unique email address.
            password: Plaintext password, only its hash is stored.
            role: Role of the new account.

        Returns:
            SessionResult: Token pair and public user fields.

        Raises:
            ConflictError: Username or email already registered.
        """
        result = await self.db.execute(
            select(User.id).where(or_(User.username == username, User.email == email))
        )
        if result.first() is not None:
            logger.info(f"Registration rejected, username or email taken: {username}")
            raise ConflictError("Username or email already taken")

        password_hash = await run_in_threadpool(get_password_hash, password)

        user = User(
            username=username,
            email=email,
            password_hash=password_hash,
            role=role,
        )
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError:
            # Lost a race against a concurrent registration with the same name
            await self.db.rollback()
            raise ConflictError("Username or email already taken")
        await self.db.refresh(user)

        logger.info(f"New user registered: {user.username}")
        return await self._open_session(Identity.model_validate(user))

    async def login(self, username_or_email: str, password: str) -> SessionResult:
        """
        Authenticate with a username or email and open a session.

        Unknown users and wrong passwords fail with the same message.
        """
        result = await self.db.execute(
            select(User).where(
                or_(User.username == username_or_email, User.email == username_or_email)
            )
        )
        user = result.scalars().first()

        if user is None:
            await run_in_threadpool(dummy_verify_password)
            security_event(logger, "login_unknown_user")
            raise UnauthorizedError(INVALID_CREDENTIALS)

        if not await run_in_threadpool(verify_password, password, user.password_hash):
            security_event(logger, "login_bad_password", user_id=user.id, username=user.username)
            raise UnauthorizedError(INVALID_CREDENTIALS)

        logger.info(f"User logged in successfully: {user.username}")
        return await self._open_session(Identity.model_validate(user))

    async def refresh(self, refresh_token: Optional[str]) -> SessionResult:
        """
        Exchange a registered refresh token for a new token pair.

        The new pair carries the identity from the old token's claims; the
        user row is not re-read, so a role change shows up at next login.

        Raises:
            UnauthorizedError: No refresh token was presented.
            ForbiddenError: Token not registered, already rotated, expired
                or tampered with.
        """
        if not refresh_token:
            raise UnauthorizedError("Refresh token not found")

        if not await self.registry.is_valid(refresh_token):
            security_event(logger, "refresh_unregistered_token")
            raise ForbiddenError("Invalid refresh token")

        try:
            identity = self.codec.verify_refresh(refresh_token)
        except TokenError as e:
            # Expired or forged entries can never be used again
            await self.registry.revoke(refresh_token)
            security_event(logger, "refresh_token_rejected", reason=e.__class__.__name__)
            raise ForbiddenError("Refresh token expired or invalid")

        tokens = self.codec.issue(identity)
        try:
            await self.registry.rotate(refresh_token, tokens.refresh_token)
        except TokenRevokedError:
            # A concurrent refresh (or a replay) rotated this token first
            security_event(logger, "refresh_token_replayed", user_id=identity.id)
            raise ForbiddenError("Invalid refresh token")

        logger.info(f"Token refreshed for user: {identity.username}")
        return SessionResult(
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            user=identity,
        )

    async def logout(self, refresh_token: Optional[str]) -> None:
        """Revoke the refresh token if one was presented. Never fails."""
        if refresh_token:
            await self.registry.revoke(refresh_token)
        logger.info("User logged out")

    async def _open_session(self, identity: Identity) -> SessionResult:
        tokens = self.codec.issue(identity)
        await self.registry.record(tokens.refresh_token)
        return SessionResult(
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            user=identity,
        )
