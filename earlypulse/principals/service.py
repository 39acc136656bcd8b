"""Registration and profile management shared by all principal types."""

from __future__ import annotations

import logging
from typing import Any

from earlypulse.api.errors import ApiErrorCode, bad_request, not_found
from earlypulse.core.security import hash_password, verify_password
from earlypulse.principals.models import PRINCIPAL_MODELS, Principal
from earlypulse.principals.repository import PrincipalRepository

LOGGER = logging.getLogger(__name__)


class PrincipalService:
    """Profile operations for one principal type."""

    def __init__(self, repo: PrincipalRepository) -> None:
        self._repo = repo
        self.principal_type = repo.principal_type
        self._model: type[Principal] = PRINCIPAL_MODELS[repo.principal_type]

    def _not_found(self) -> Exception:
        return not_found(
            ApiErrorCode.PRINCIPAL_NOT_FOUND, f"{self.principal_type} not found"
        )

    def register(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Create a principal from a registration payload; 409 on duplicate email."""
        fields = dict(payload)
        password = str(fields.pop("password", "") or "")
        try:
            password_hash = hash_password(password)
        except ValueError as exc:
            raise bad_request(ApiErrorCode.VALIDATION_ERROR, str(exc)) from exc
        principal = self._model(**fields, password_hash=password_hash)
        created = self._repo.create(principal)
        LOGGER.info(
            "principal_registered",
            extra={
                "principal_id": created.principal_id,
                "principal_type": str(self.principal_type),
            },
        )
        return created.redacted()

    def get_current(self, principal_id: str) -> dict[str, Any]:
        principal = self._repo.find_by_id(principal_id)
        if principal is None:
            raise self._not_found()
        return principal.redacted()

    def update_profile(self, principal_id: str, updates: dict[str, Any]) -> dict[str, Any]:
        """Apply only the fields this principal type allows to be edited."""
        allowed = {
            key: value
            for key, value in updates.items()
            if key in self._model.profile_fields and value is not None
        }
        if not allowed:
            return self.get_current(principal_id)
        principal = self._repo.update_fields(principal_id, allowed)
        if principal is None:
            raise self._not_found()
        return principal.redacted()

    def change_password(self, principal_id: str, old_password: str, new_password: str) -> None:
        principal = self._repo.find_by_id(principal_id)
        if principal is None:
            raise self._not_found()
        if not verify_password(old_password, principal.password_hash):
            raise bad_request(ApiErrorCode.INVALID_OLD_PASSWORD, "Invalid old password")
        try:
            password_hash = hash_password(new_password)
        except ValueError as exc:
            raise bad_request(ApiErrorCode.VALIDATION_ERROR, str(exc)) from exc
        self._repo.update_password(principal_id, password_hash)
        LOGGER.info(
            "password_changed",
            extra={"principal_id": principal_id, "principal_type": str(self.principal_type)},
        )

    def delete(self, principal_id: str) -> None:
        if not self._repo.delete(principal_id):
            raise self._not_found()
        LOGGER.info(
            "principal_deleted",
            extra={"principal_id": principal_id, "principal_type": str(self.principal_type)},
        )

    def list_all(self) -> list[dict[str, Any]]:
        return [principal.redacted() for principal in self._repo.list_all()]
