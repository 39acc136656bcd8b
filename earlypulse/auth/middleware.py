"""HTTP middleware that enforces auth on protected API routes."""

from __future__ import annotations

import re
from typing import Callable

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

from earlypulse.api.errors import to_error_payload
from earlypulse.auth.service import AuthService

ACCESS_TOKEN_COOKIE = "accessToken"
REFRESH_TOKEN_COOKIE = "refreshToken"

_PRINCIPAL_SEGMENT = "(users|doctors|labs)"

PUBLIC_PATH_PATTERNS = [
    re.compile(pattern)
    for pattern in [
        r"^/api/v1/health$",
        rf"^/api/v1/{_PRINCIPAL_SEGMENT}/(register|login|refresh-token)$",
        r"^/api/v1/doctors/all$",
        r"^/api/v1/doctors/specialization/[^/]+$",
        r"^/api/v1/labs/(all|search)$",
        r"^/api/v1/labs/(test|blood-type)/[^/]+$",
        r"^/api/v1/medicines/all$",
    ]
]


def _extract_bearer_token(authorization: str) -> str:
    """Extract bearer token from authorization header value."""
    parts = (authorization or "").strip().split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return ""
    return parts[1].strip()


def extract_access_token(request: Request) -> str:
    """Return access token from the cookie, else from the Authorization header."""
    return (request.cookies.get(ACCESS_TOKEN_COOKIE) or "").strip() or _extract_bearer_token(
        request.headers.get("authorization", "")
    )


def is_public_path(path: str) -> bool:
    if not path.startswith("/api/"):
        return True
    return any(pattern.match(path) for pattern in PUBLIC_PATH_PATTERNS)


def create_auth_middleware(service: AuthService) -> Callable:
    """Create middleware function that validates access tokens."""

    async def auth_middleware(request: Request, call_next: Callable):
        """Validate auth for protected API paths and attach principal to request state."""
        if request.method == "OPTIONS" or is_public_path(request.url.path):
            return await call_next(request)

        try:
            principal = service.authenticate(extract_access_token(request))
        except HTTPException as exc:
            return JSONResponse(
                status_code=exc.status_code,
                content=to_error_payload(exc.detail, exc.status_code),
            )

        request.state.principal = principal
        return await call_next(request)

    return auth_middleware
