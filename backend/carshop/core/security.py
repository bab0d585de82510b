from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional, Dict, Any
from uuid import uuid4

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from pydantic import ValidationError as PydanticValidationError

from carshop.core.config import settings
from carshop.core.errors import TokenExpiredError, TokenInvalidError
from carshop.schemas.token import TokenPair
from carshop.schemas.user import Identity

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against a hashed password."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a password."""
    return pwd_context.hash(password)


def dummy_verify_password() -> None:
    """Spend the same time as a real verification when there is no user to check."""
    pwd_context.dummy_verify()


class TokenCodec:
    """
    Signs and verifies the two classes of bearer tokens.

    Access and refresh tokens carry the same identity claims but are signed
    with different secrets and stamped with a ``type`` claim, so a token of
    one class never verifies as the other.
    """

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        algorithm: str = "HS256",
        access_ttl: timedelta = timedelta(minutes=15),
        refresh_ttl: timedelta = timedelta(days=7),
    ):
        if not access_secret or not refresh_secret:
            raise ValueError("Token secrets must not be empty")
        if access_secret == refresh_secret:
            raise ValueError("Access and refresh secrets must differ")
        self._access_secret = access_secret
        self._refresh_secret = refresh_secret
        self.algorithm = algorithm
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl

    def issue(self, identity: Identity) -> TokenPair:
        """
        Create a fresh access/refresh token pair for an identity.

        Args:
            identity: Claims to embed in both tokens.

        Returns:
            TokenPair with independently signed tokens.
        """
        now = datetime.now(timezone.utc)
        return TokenPair(
            access_token=self._encode(
                identity, ACCESS_TOKEN_TYPE, self._access_secret, now, self.access_ttl
            ),
            refresh_token=self._encode(
                identity, REFRESH_TOKEN_TYPE, self._refresh_secret, now, self.refresh_ttl
            ),
        )

    def verify_access(self, token: str) -> Identity:
        return self._decode(token, ACCESS_TOKEN_TYPE, self._access_secret)

    def verify_refresh(self, token: str) -> Identity:
        return self._decode(token, REFRESH_TOKEN_TYPE, self._refresh_secret)

    @staticmethod
    def expires_at(token: str) -> Optional[datetime]:
        """Read the ``exp`` claim without checking the signature."""
        try:
            exp = jwt.get_unverified_claims(token).get("exp")
        except JWTError:
            return None
        if not isinstance(exp, (int, float)):
            return None
        return datetime.fromtimestamp(exp, tz=timezone.utc)

    def _encode(
        self,
        identity: Identity,
        token_type: str,
        secret: str,
        now: datetime,
        ttl: timedelta,
    ) -> str:
        to_encode: Dict[str, Any] = identity.model_dump(mode="json")
        to_encode.update({
            "sub": str(identity.id),
            "type": token_type,
            "iat": now,
            "exp": now + ttl,
            "jti": uuid4().hex,
        })
        return jwt.encode(to_encode, secret, algorithm=self.algorithm)

    def _decode(self, token: str, token_type: str, secret: str) -> Identity:
        try:
            payload = jwt.decode(token, secret, algorithms=[self.algorithm])
        except ExpiredSignatureError as e:
            raise TokenExpiredError("Token has expired") from e
        except JWTError as e:
            raise TokenInvalidError(str(e)) from e

        if payload.get("type") != token_type:
            raise TokenInvalidError(f"Expected a {token_type} token")

        try:
            return Identity.model_validate(payload)
        except PydanticValidationError as e:
            raise TokenInvalidError("Token is missing identity claims") from e


@lru_cache
def get_token_codec() -> TokenCodec:
    return TokenCodec(
        access_secret=settings.JWT_ACCESS_SECRET,
        refresh_secret=settings.JWT_REFRESH_SECRET,
        algorithm=settings.JWT_ALGORITHM,
        access_ttl=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        refresh_ttl=timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
    )
