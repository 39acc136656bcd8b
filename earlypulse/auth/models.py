"""Pydantic models for authentication domain."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from earlypulse.principals.models import PrincipalType


class LoginRequest(BaseModel):
    """Login request payload."""

    email: str = Field(min_length=3)
    password: str = Field(min_length=1)


class RefreshRequest(BaseModel):
    """Refresh request payload; the cookie takes precedence when present."""

    refresh_token: str | None = None


class TokenPair(BaseModel):
    """Freshly issued access/refresh tokens."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class AuthSession(TokenPair):
    """Login result: token pair plus the redacted principal."""

    principal: dict[str, Any]


class AuthenticatedPrincipal(BaseModel):
    """Principal resolved from a verified access token."""

    principal_id: str
    principal_type: PrincipalType
    role: str
    profile: dict[str, Any]
