"""Token schemas for authentication."""
from pydantic import BaseModel, ConfigDict, Field

from carshop.schemas.user import Identity


class TokenPair(BaseModel):
    """Access and refresh token minted together for one identity."""

    access_token: str = Field(..., description="JWT access token (short-lived)")
    refresh_token: str = Field(..., description="JWT refresh token (long-lived)")


class SessionResponse(BaseModel):
    """
    Body returned by register, login and refresh.

    The refresh token never appears here, it travels in an HTTP-only cookie.
    """

    message: str = Field("OK")
    access_token: str = Field(..., alias="accessToken")
    user: Identity

    model_config = ConfigDict(populate_by_name=True)


class MessageResponse(BaseModel):
    message: str
