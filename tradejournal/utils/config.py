from __future__ import annotations

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    host: str = Field(default="0.0.0.0", description="HTTP bind address")
    port: int = Field(default=8080, description="HTTP port")
    request_timeout_seconds: float = Field(default=10.0, description="Deadline applied to every service call")

    database_path: str = Field(
        default="data/tradejournal.db", description="SQLite database file, or :memory: for a private in-process one"
    )

    jwt_secret: str = Field(default="", description="HMAC secret for signing tokens (min 32 chars)")
    jwt_access_token_expiry_minutes: int = Field(default=15, description="Access token lifetime in minutes")
    jwt_refresh_token_expiry_minutes: int = Field(default=10080, description="Refresh token lifetime in minutes")

    redis_url: str = Field(default="", description="Redis URL for the journal cache; empty disables caching")
    cache_ttl_seconds: int = Field(default=900, description="Journal cache entry lifetime in seconds")

    rate_limit_rps: float = Field(default=10.0, description="Sustained requests per second per client IP")
    rate_limit_burst: int = Field(default=20, description="Burst size per client IP")
    rate_limit_idle_seconds: float = Field(default=600.0, description="Evict limiter state idle longer than this")

    cors_allow_origins: list[str] = Field(default=["http://localhost:3000"], description="CORS allowed origins")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "PUT", "DELETE", "OPTIONS"], description="CORS allowed methods"
    )
    cors_allow_headers: list[str] = Field(
        default=["Origin", "Content-Type", "Authorization"], description="CORS allowed headers"
    )
    cors_allow_credentials: bool = Field(default=True, description="CORS allow credentials")
    cors_max_age: int = Field(default=43200, description="CORS preflight cache in seconds")

    log_level: str = Field(default="INFO", description="Logging level")
    log_file: str = Field(default="logs/tradejournal.log", description="Log file path")

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    global _settings
    _settings = Settings()
    return _settings
