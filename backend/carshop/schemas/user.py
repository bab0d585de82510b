from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, ConfigDict, Field, field_validator
import re

from carshop.models.user import Role

USERNAME_RE = re.compile(r'^[a-zA-Z0-9_]+$')
PASSWORD_RE = re.compile(r'^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)')


class Identity(BaseModel):
    """Public user fields, embedded as claims in both tokens."""

    id: int
    username: str
    email: str
    role: Role

    model_config = ConfigDict(from_attributes=True, frozen=True)

    @property
    def is_admin(self) -> bool:
        return self.role is Role.admin


class UserCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    email: str = Field(..., max_length=255)
    password: str = Field(..., min_length=6, max_length=72)
    role: Role = Role.customer

    @field_validator('username')
    @classmethod
    def username_alphanumeric(cls, v):
        if not USERNAME_RE.match(v):
            raise ValueError('Username can only contain letters, numbers and underscores')
        return v

    @field_validator('email')
    @classmethod
    def email_format(cls, v):
        # Checked, not normalized: login matches the address exactly as registered
        try:
            validate_email(v, check_deliverability=False)
        except EmailNotValidError as e:
            raise ValueError(str(e))
        return v

    @field_validator('password')
    @classmethod
    def password_strength(cls, v):
        if not PASSWORD_RE.match(v):
            raise ValueError('Password must contain uppercase, lowercase and number')
        return v


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1, description="Username or email")
    password: str = Field(..., min_length=1)

    @field_validator('username', mode='before')
    @classmethod
    def strip_username(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v
