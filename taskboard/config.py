from __future__ import annotations

from functools import lru_cache

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    database_url: str = "sqlite:///./taskboard.db"
    database_pool_timeout: int = Field(default=30, gt=0)

    # JWT
    jwt_secret: SecretStr
    jwt_algorithm: str = "HS256"
    access_token_expires_in: int = Field(default=3600, gt=0)
    refresh_token_expires_in: int = Field(default=7 * 24 * 3600, gt=0)

    # Password hashing cost, fixed for the lifetime of the process
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    # HTTP
    cors_origins: list[str] = ["*"]
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    return Settings()
