"""Authentication service for login, logout, refresh rotation and token checks."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Mapping

from earlypulse.api.errors import ApiError, ApiErrorCode, unauthorized
from earlypulse.auth.models import AuthenticatedPrincipal, AuthSession, TokenPair
from earlypulse.core.config import AuthConfig
from earlypulse.core.security import (
    TokenInvalid,
    decode_signed_token,
    sign_token,
    verify_password,
)
from earlypulse.principals.models import Principal, PrincipalType
from earlypulse.principals.repository import PrincipalRepository

LOGGER = logging.getLogger(__name__)

INVALID_CREDENTIALS_MESSAGE = "Invalid credentials"


class AuthService:
    """Session manager shared by every principal type.

    Each principal keeps a single refresh token; issuing a new one overwrites
    the previous value, so only the most recent refresh token is accepted.
    """

    def __init__(
        self,
        stores: Mapping[PrincipalType, PrincipalRepository],
        config: AuthConfig,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize service dependencies."""
        self._stores = dict(stores)
        self._config = config
        self._clock = clock

    def _now(self) -> int:
        return int(self._clock())

    def _store(self, principal_type: PrincipalType) -> PrincipalRepository:
        return self._stores[principal_type]

    def login(
        self, email: str, password: str, principal_type: PrincipalType
    ) -> AuthSession:
        """Authenticate credentials and issue access/refresh token pair."""
        store = self._store(principal_type)
        principal = store.find_by_email(email)
        if principal is None or not verify_password(password, principal.password_hash):
            LOGGER.info(
                "login_failed",
                extra={"principal_type": str(principal_type)},
            )
            raise ApiError(
                status_code=401,
                error_code=ApiErrorCode.AUTH_INVALID_CREDENTIALS,
                message=INVALID_CREDENTIALS_MESSAGE,
            )

        pair = self._issue_pair(principal)
        store.update_refresh_token(principal.principal_id, pair.refresh_token)
        LOGGER.info(
            "login_succeeded",
            extra={
                "principal_id": principal.principal_id,
                "principal_type": str(principal_type),
            },
        )
        return AuthSession(**pair.model_dump(), principal=principal.redacted())

    def logout(self, principal_id: str, principal_type: PrincipalType) -> None:
        """Clear the stored refresh token; calling it twice is harmless."""
        self._store(principal_type).update_refresh_token(principal_id, None)
        LOGGER.info(
            "logout",
            extra={"principal_id": principal_id, "principal_type": str(principal_type)},
        )

    def refresh(
        self,
        refresh_token: str | None,
        *,
        expected_principal_type: PrincipalType | None = None,
    ) -> TokenPair:
        """Validate refresh token against the stored one and rotate the pair."""
        if not refresh_token:
            raise unauthorized("Unauthorized request", ApiErrorCode.AUTH_MISSING_TOKEN)

        payload = self._decode_token(
            refresh_token,
            secret=self._config.refresh_token_secret,
            expected_type="refresh",
        )
        principal_type = self._principal_type_from(payload)
        if expected_principal_type is not None and principal_type != expected_principal_type:
            raise unauthorized("Invalid refresh token")
        store = self._store(principal_type)
        principal = store.find_by_id(str(payload.get("sub") or ""))
        if principal is None:
            raise unauthorized("Invalid refresh token")
        if principal.refresh_token != refresh_token:
            raise unauthorized(
                "Refresh token is expired or used",
                ApiErrorCode.AUTH_REFRESH_TOKEN_REUSED,
            )

        pair = self._issue_pair(principal)
        rotated = store.update_refresh_token(
            principal.principal_id,
            pair.refresh_token,
            expected=refresh_token,
        )
        if not rotated:
            # Another request rotated this token between the read and the write.
            raise unauthorized(
                "Refresh token is expired or used",
                ApiErrorCode.AUTH_REFRESH_TOKEN_REUSED,
            )
        LOGGER.info(
            "refresh_token_rotated",
            extra={
                "principal_id": principal.principal_id,
                "principal_type": str(principal_type),
            },
        )
        return pair

    def authenticate(self, access_token: str | None) -> AuthenticatedPrincipal:
        """Resolve access token to a principal from the store its type names."""
        if not access_token:
            raise unauthorized("Unauthorized request", ApiErrorCode.AUTH_MISSING_TOKEN)

        payload = self._decode_token(
            access_token,
            secret=self._config.access_token_secret,
            expected_type="access",
        )
        principal_type = self._principal_type_from(payload)
        principal = self._store(principal_type).find_by_id(str(payload.get("sub") or ""))
        if principal is None:
            raise unauthorized("Invalid Access Token")
        return AuthenticatedPrincipal(
            principal_id=principal.principal_id,
            principal_type=principal_type,
            role=principal.role,
            profile=principal.redacted(),
        )

    def _issue_pair(self, principal: Principal) -> TokenPair:
        now = self._now()
        common = {
            "iss": self._config.issuer,
            "sub": principal.principal_id,
            "entity_type": str(principal.principal_type),
        }
        access_token = sign_token(
            {
                **common,
                "type": "access",
                "email": principal.email,
                "name": principal.name,
                "role": principal.role,
            },
            self._config.access_token_secret,
            self._config.access_token_ttl_seconds,
            now=now,
        )
        refresh_token = sign_token(
            {**common, "type": "refresh"},
            self._config.refresh_token_secret,
            self._config.refresh_token_ttl_seconds,
            now=now,
        )
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=self._config.access_token_ttl_seconds,
        )

    def _decode_token(
        self, token: str, *, secret: str, expected_type: str
    ) -> dict[str, Any]:
        """Decode signed token and validate issuer/type claims."""
        try:
            payload = decode_signed_token(token, secret, now=self._now())
        except TokenInvalid as exc:
            raise unauthorized(str(exc)) from exc

        if str(payload.get("iss") or "") != self._config.issuer:
            raise unauthorized("Invalid token issuer")
        if str(payload.get("type") or "") != expected_type:
            raise unauthorized("Invalid token type")
        return payload

    def _principal_type_from(self, payload: dict[str, Any]) -> PrincipalType:
        try:
            principal_type = PrincipalType(str(payload.get("entity_type") or ""))
        except ValueError as exc:
            raise unauthorized(
                "Invalid entity type in token",
                ApiErrorCode.AUTH_INVALID_ENTITY_TYPE,
            ) from exc
        if principal_type not in self._stores:
            raise unauthorized(
                "Invalid entity type in token",
                ApiErrorCode.AUTH_INVALID_ENTITY_TYPE,
            )
        return principal_type
