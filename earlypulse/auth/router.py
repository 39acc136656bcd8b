"""Authentication API router, mounted once per principal type."""

from __future__ import annotations

from fastapi import APIRouter, Body, Depends, Request, Response

from earlypulse.api.contracts import (
    ApiErrorResponse,
    AuthSessionResponse,
    PrincipalResponse,
    StatusResponse,
    TokenPairResponse,
)
from earlypulse.auth.dependencies import require_principal_type
from earlypulse.auth.middleware import ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE
from earlypulse.auth.models import (
    AuthenticatedPrincipal,
    LoginRequest,
    RefreshRequest,
    TokenPair,
)
from earlypulse.auth.service import AuthService
from earlypulse.principals.models import COLLECTION_NAMES, PrincipalType


def set_session_cookies(response: Response, pair: TokenPair, *, secure: bool) -> None:
    """Store both tokens as HTTP-only cookies."""
    for key, value in (
        (ACCESS_TOKEN_COOKIE, pair.access_token),
        (REFRESH_TOKEN_COOKIE, pair.refresh_token),
    ):
        response.set_cookie(key, value, httponly=True, secure=secure)


def clear_session_cookies(response: Response, *, secure: bool) -> None:
    for key in (ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE):
        response.delete_cookie(key, httponly=True, secure=secure)


def create_auth_router(
    service: AuthService,
    principal_type: PrincipalType,
    *,
    cookie_secure: bool = True,
) -> APIRouter:
    """Build login/logout/refresh/verify router for one principal type."""
    prefix = f"/api/v1/{COLLECTION_NAMES[principal_type]}"
    router = APIRouter(prefix=prefix, tags=[f"auth:{principal_type}"])
    same_type = require_principal_type(principal_type)

    @router.post(
        "/login",
        response_model=AuthSessionResponse,
        responses={401: {"model": ApiErrorResponse}},
    )
    def login(req: LoginRequest, response: Response) -> AuthSessionResponse:
        """Authenticate principal and return token pair (also set as cookies)."""
        session = service.login(req.email, req.password, principal_type)
        set_session_cookies(response, session, secure=cookie_secure)
        return AuthSessionResponse(**session.model_dump())

    @router.post(
        "/logout",
        response_model=StatusResponse,
        responses={401: {"model": ApiErrorResponse}},
    )
    def logout(
        response: Response,
        principal: AuthenticatedPrincipal = Depends(same_type),
    ) -> StatusResponse:
        """Invalidate the stored refresh token and clear session cookies."""
        service.logout(principal.principal_id, principal.principal_type)
        clear_session_cookies(response, secure=cookie_secure)
        return StatusResponse(status="ok", message=f"{principal_type} logged out successfully")

    @router.post(
        "/refresh-token",
        response_model=TokenPairResponse,
        responses={401: {"model": ApiErrorResponse}},
    )
    def refresh_token(
        request: Request,
        response: Response,
        req: RefreshRequest | None = Body(default=None),
    ) -> TokenPairResponse:
        """Rotate refresh token (cookie first, then body) and issue a new pair."""
        presented = request.cookies.get(REFRESH_TOKEN_COOKIE) or (
            req.refresh_token if req is not None else None
        )
        pair = service.refresh(presented, expected_principal_type=principal_type)
        set_session_cookies(response, pair, secure=cookie_secure)
        return TokenPairResponse(**pair.model_dump())

    @router.get(
        "/verify-token",
        response_model=PrincipalResponse,
        responses={401: {"model": ApiErrorResponse}},
    )
    def verify_token(
        principal: AuthenticatedPrincipal = Depends(same_type),
    ) -> PrincipalResponse:
        """Return the redacted principal for a valid access token."""
        return PrincipalResponse(principal=principal.profile)

    return router
