import json
from typing import List, Literal, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # API
    API_STR: str = Field("/api")
    PROJECT_NAME: str = Field("Car Shop API")
    VERSION: str = Field("1.0.0")

    # Security - no defaults for the signing secrets, they must come from the environment
    JWT_ACCESS_SECRET: str = Field(..., min_length=1)
    JWT_REFRESH_SECRET: str = Field(..., min_length=1)
    JWT_ALGORITHM: str = Field("HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(15, ge=1)
    REFRESH_TOKEN_EXPIRE_DAYS: int = Field(7, ge=1)
    BCRYPT_ROUNDS: int = Field(12, ge=4, le=31)

    # Refresh token cookie
    REFRESH_COOKIE_NAME: str = Field("refreshToken")
    REFRESH_COOKIE_SECURE: bool = Field(True)

    # Database
    DATABASE_URL: str = Field(...)
    DB_POOL_SIZE: int = Field(10, ge=1)
    DB_MAX_OVERFLOW: int = Field(0, ge=0)
    DB_POOL_TIMEOUT: int = Field(30, ge=1)
    DB_CREATE_TABLES: bool = Field(False)

    # Redis
    REDIS_URL: Optional[str] = Field(None)
    REFRESH_REGISTRY_BACKEND: Literal["memory", "redis"] = Field("memory")

    # CORS, comma separated or a JSON list
    BACKEND_CORS_ORIGINS: str = Field("https://localhost:3000,https://127.0.0.1:3000")

    # Security headers
    HSTS_MAX_AGE: int = Field(31536000, ge=0)

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = Field(True)
    RATE_LIMIT_DEFAULT: str = Field("100/15minutes")

    # Environment
    LOG_LEVEL: str = Field("info")
    LOG_DIR: str = Field("/tmp/logs")
    ENVIRONMENT: str = Field("production")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @model_validator(mode="after")
    def check_secrets_and_backends(self):
        if self.JWT_ACCESS_SECRET == self.JWT_REFRESH_SECRET:
            raise ValueError("JWT_ACCESS_SECRET and JWT_REFRESH_SECRET must differ")
        if self.REFRESH_REGISTRY_BACKEND == "redis" and not self.REDIS_URL:
            raise ValueError("REDIS_URL is required when REFRESH_REGISTRY_BACKEND=redis")
        return self

    @property
    def cors_origins(self) -> List[str]:
        raw = self.BACKEND_CORS_ORIGINS.strip()
        if raw.startswith("["):
            return [str(origin) for origin in json.loads(raw)]
        return [origin.strip() for origin in raw.split(",") if origin.strip()]

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"


settings = Settings()
