"""FastAPI dependencies for reading the authenticated principal and gating roles."""

from __future__ import annotations

from typing import Callable

from fastapi import Request

from earlypulse.api.errors import ApiErrorCode, forbidden, unauthorized
from earlypulse.auth.models import AuthenticatedPrincipal
from earlypulse.principals.models import PrincipalType


def current_principal(request: Request) -> AuthenticatedPrincipal:
    """Return principal attached by the auth middleware."""
    principal = getattr(request.state, "principal", None)
    if not isinstance(principal, AuthenticatedPrincipal):
        raise unauthorized("User not authenticated", ApiErrorCode.AUTH_MISSING_TOKEN)
    return principal


def require_roles(*roles: str) -> Callable[[Request], AuthenticatedPrincipal]:
    """Build a dependency that only admits principals holding one of ``roles``."""

    def dependency(request: Request) -> AuthenticatedPrincipal:
        principal = current_principal(request)
        if principal.role not in roles:
            raise forbidden(f"Access denied. Required roles: {', '.join(roles)}")
        return principal

    return dependency


def require_principal_type(
    principal_type: PrincipalType,
) -> Callable[[Request], AuthenticatedPrincipal]:
    """Build a dependency that only admits principals of one type."""

    def dependency(request: Request) -> AuthenticatedPrincipal:
        principal = current_principal(request)
        if principal.principal_type != principal_type:
            raise forbidden(f"Access denied. Only {principal_type} accounts are allowed")
        return principal

    return dependency
