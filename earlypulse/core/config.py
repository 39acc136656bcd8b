"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class AuthConfig:
    """Authentication-related configuration."""

    access_token_secret: str
    refresh_token_secret: str
    access_token_ttl_seconds: int
    refresh_token_ttl_seconds: int
    issuer: str
    cookie_secure: bool = True


@dataclass(frozen=True)
class StorageConfig:
    """Document store configuration."""

    mongodb_uri: str
    mongodb_db: str
    runtime_dir: str


@dataclass(frozen=True)
class LoggingConfig:
    """Structured logging configuration."""

    level: str


@dataclass(frozen=True)
class SecurityConfig:
    """API perimeter security settings."""

    cors_allowed_origins: list[str]
    request_max_bytes: int


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration."""

    auth: AuthConfig
    storage: StorageConfig
    logging: LoggingConfig
    security: SecurityConfig

    @staticmethod
    def from_env() -> "AppConfig":
        """Build app config from process environment."""
        access_secret = (
            os.getenv("ACCESS_TOKEN_SECRET", "").strip()
            or "dev-insecure-access-secret-change-me"
        )
        refresh_secret = (
            os.getenv("REFRESH_TOKEN_SECRET", "").strip()
            or "dev-insecure-refresh-secret-change-me"
        )
        if access_secret == refresh_secret:
            raise ValueError(
                "ACCESS_TOKEN_SECRET and REFRESH_TOKEN_SECRET must be different"
            )
        access_ttl = int(os.getenv("ACCESS_TOKEN_TTL_SECONDS", "900"))
        refresh_ttl = int(os.getenv("REFRESH_TOKEN_TTL_SECONDS", str(10 * 86400)))
        issuer = os.getenv("AUTH_ISSUER", "earlypulse").strip() or "earlypulse"
        cookie_secure = _env_flag("AUTH_COOKIE_SECURE", "1")
        mongo_uri = os.getenv("MONGODB_URI", "").strip()
        mongo_db = os.getenv("MONGODB_DB", "earlypulse").strip() or "earlypulse"
        runtime_dir = os.getenv("RUNTIME_DIR", "runtime").strip() or "runtime"
        log_level = os.getenv("LOG_LEVEL", "INFO").strip() or "INFO"
        cors_allowed_origins = [
            origin.strip()
            for origin in os.getenv(
                "CORS_ALLOWED_ORIGINS",
                "http://localhost:3000,http://127.0.0.1:3000",
            ).split(",")
            if origin.strip()
        ]
        request_max_bytes = int(os.getenv("REQUEST_MAX_BYTES", str(16 * 1024)))

        return AppConfig(
            auth=AuthConfig(
                access_token_secret=access_secret,
                refresh_token_secret=refresh_secret,
                access_token_ttl_seconds=access_ttl,
                refresh_token_ttl_seconds=refresh_ttl,
                issuer=issuer,
                cookie_secure=cookie_secure,
            ),
            storage=StorageConfig(
                mongodb_uri=mongo_uri,
                mongodb_db=mongo_db,
                runtime_dir=runtime_dir,
            ),
            logging=LoggingConfig(level=log_level),
            security=SecurityConfig(
                cors_allowed_origins=cors_allowed_origins,
                request_max_bytes=request_max_bytes,
            ),
        )
