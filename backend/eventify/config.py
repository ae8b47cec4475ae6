from __future__ import annotations

from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    environment: str = "development"
    domain: str = "localhost"
    log_level: str = "INFO"
    jwt_secret: str = ""  # HS256 signing secret for access + refresh tokens
    jwt_issuer: str = "eventify"

    @model_validator(mode="after")
    def _check_jwt_secret(self) -> Settings:
        self.jwt_secret = self.jwt_secret.strip()
        if not self.jwt_secret:
            raise ValueError(
                "JWT_SECRET is not set. Tokens cannot be signed without a "
                "server secret; set JWT_SECRET in .env before starting."
            )
        return self

    jwt_access_token_expire_minutes: int = 15
    jwt_refresh_token_expire_days: int = 7
    nonce_expire_minutes: int = 5
    # SIWE messages must name this domain when set (e.g. "eventify.app")
    siwe_domain: str = ""

    refresh_cookie_name: str = "eventify_refresh"
    refresh_cookie_path: str = "/api/auth"

    cors_origins: list[str] = ["http://localhost:3000"]

    db_url: str = "sqlite:///./eventify.db"
    db_timeout_seconds: float = 5.0
    purge_interval_seconds: int = 3600

    @property
    def cookie_secure(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def refresh_cookie_max_age(self) -> int:
        return self.jwt_refresh_token_expire_days * 24 * 60 * 60


@lru_cache
def get_settings() -> Settings:
    return Settings()
