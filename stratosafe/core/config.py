# stratosafe/core/config.py
from functools import lru_cache
from typing import Literal

from limits import parse
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from stratosafe.core.errors import ConfigurationError


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore")

    APP_NAME: str = "StratoSafe"
    ENVIRONMENT: Literal["development", "production", "test"] = "development"
    LOG_LEVEL: str = "INFO"

    JWT_SECRET: str = Field(..., min_length=32)   # openssl rand -base64 32
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(60 * 24, gt=0)

    # cost factor for passwords and backup codes alike
    BCRYPT_ROUNDS: int = Field(12, ge=4, le=31)

    MFA_ISSUER: str = "StratoSafe"
    MFA_VALID_WINDOW: int = Field(1, ge=0, le=2)
    BACKUP_CODE_COUNT: int = Field(10, gt=0)
    BACKUP_CODE_LENGTH: int = Field(8, ge=8)

    DATABASE_URL: str | None = None
    DB_HOST: str = "localhost"
    DB_PORT: int = 3306
    DB_USER: str = "stratosafe"
    DB_PASSWORD: str = ""
    DB_NAME: str = "stratosafe"
    DB_AUTO_CREATE: bool = False

    CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    # per client address, across /verify-mfa and every /mfa/* route
    RATE_LIMIT: str = "100/15minutes"
    RATE_LIMIT_STORAGE_URI: str = "memory://"
    RATE_LIMIT_ENABLED: bool = True

    @field_validator("RATE_LIMIT")
    @classmethod
    def _parseable_rate_limit(cls, value: str) -> str:
        parse(value)  # ValueError on a malformed limit
        return value

    @property
    def async_database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (f"mysql+aiomysql://{self.DB_USER}:{self.DB_PASSWORD}"
                f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}?charset=utf8mb4")


def load_settings(**overrides) -> Settings:
    """
    Build the settings once at startup. Any invalid or missing value
    (JWT_SECRET above all) is fatal.
    """
    try:
        return Settings(**overrides)
    except ValidationError as e:
        problems = ", ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigurationError(f"Invalid configuration: {problems}") from e


@lru_cache
def get_settings() -> Settings:
    return load_settings()
