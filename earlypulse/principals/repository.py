"""Repository for principals with MongoDB primary and file-store fallback."""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from threading import Lock
from typing import Any

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from earlypulse.api.errors import ApiError, ApiErrorCode
from earlypulse.principals.models import (
    COLLECTION_NAMES,
    PRINCIPAL_MODELS,
    Principal,
    PrincipalType,
    normalize_email,
    now_iso,
)

LOGGER = logging.getLogger(__name__)

_UNSET: Any = object()


class StoreUnreadable(RuntimeError):
    """A fallback JSON store exists but cannot be parsed, so it must not be rewritten."""


def _conflict(principal_type: PrincipalType) -> ApiError:
    return ApiError(
        status_code=409,
        error_code=ApiErrorCode.PRINCIPAL_CONFLICT,
        message=f"{principal_type} with this email already exists",
    )


def _lookup_path(row: dict[str, Any], path: str) -> Any:
    node: Any = row
    for key in path.split("."):
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


class PrincipalRepository:
    """Credential store for one principal type.

    Backed by a MongoDB collection when one is given, otherwise by a JSON file
    under ``fallback_dir``. File-store writes are serialised by a lock so the
    conditional refresh-token update is atomic within the process.
    """

    def __init__(
        self,
        principal_type: PrincipalType,
        *,
        collection: Any | None = None,
        fallback_dir: Path | None = None,
    ) -> None:
        """Initialize repository storage backend."""
        self.principal_type = principal_type
        self._model: type[Principal] = PRINCIPAL_MODELS[principal_type]
        self._collection = collection
        self._lock = Lock()
        self._file: Path | None = None
        if collection is None:
            if fallback_dir is None:
                raise ValueError("fallback_dir is required without a collection")
            fallback_dir.mkdir(parents=True, exist_ok=True)
            self._file = fallback_dir / f"{COLLECTION_NAMES[principal_type]}.json"

    def _read_rows(self, *, for_update: bool = False) -> list[dict[str, Any]]:
        """Read list payload from JSON file.

        Lookups treat an unreadable file as empty. Writers pass ``for_update`` and
        get ``StoreUnreadable`` instead, so a damaged file is never replaced.
        """
        assert self._file is not None
        if not self._file.exists():
            return []
        try:
            payload = json.loads(self._file.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            payload = None
        if isinstance(payload, list):
            return payload
        LOGGER.warning("principal_store_unreadable %s", self._file)
        if for_update:
            raise StoreUnreadable(f"Refusing to overwrite unreadable store {self._file}")
        return []

    def _write_rows(self, rows: list[dict[str, Any]]) -> None:
        """Persist list payload to JSON file."""
        assert self._file is not None
        self._file.write_text(json.dumps(rows, ensure_ascii=False, indent=2), encoding="utf-8")

    def _to_model(self, row: dict[str, Any] | None) -> Principal | None:
        return self._model.model_validate(row) if row else None

    def _update_row(
        self,
        principal_id: str,
        mutate: Any,
        *,
        condition: Any = None,
    ) -> dict[str, Any] | None:
        """Apply ``mutate`` to the stored row in place and persist it."""
        with self._lock:
            rows = self._read_rows(for_update=True)
            for row in rows:
                if str(row.get("principal_id", "")) != principal_id:
                    continue
                if condition is not None and not condition(row):
                    return None
                mutate(row)
                row["updated_at"] = now_iso()
                self._write_rows(rows)
                return row
        return None

    def find_by_email(self, email: str) -> Principal | None:
        key = normalize_email(email)
        if self._collection is not None:
            return self._to_model(self._collection.find_one({"email": key}, {"_id": 0}))
        for row in self._read_rows():
            if normalize_email(str(row.get("email", ""))) == key:
                return self._to_model(row)
        return None

    def find_by_id(self, principal_id: str) -> Principal | None:
        if self._collection is not None:
            return self._to_model(
                self._collection.find_one({"principal_id": principal_id}, {"_id": 0})
            )
        for row in self._read_rows():
            if str(row.get("principal_id", "")) == principal_id:
                return self._to_model(row)
        return None

    def list_all(self) -> list[Principal]:
        if self._collection is not None:
            rows = list(self._collection.find({}, {"_id": 0}).sort("created_at", -1))
        else:
            rows = sorted(
                self._read_rows(),
                key=lambda row: str(row.get("created_at") or ""),
                reverse=True,
            )
        return [self._model.model_validate(row) for row in rows]

    def search(self, field: str, text: str, *, exact: bool = False) -> list[Principal]:
        """Case-insensitive match on a string field or any element of a list field."""
        escaped = re.escape(text.strip())
        pattern = f"^{escaped}$" if exact else escaped
        if self._collection is not None:
            rows = self._collection.find(
                {field: {"$regex": pattern, "$options": "i"}}, {"_id": 0}
            )
            return [self._model.model_validate(row) for row in rows]

        regex = re.compile(pattern, re.IGNORECASE)
        matches = []
        for row in self._read_rows():
            value = row.get(field)
            values = value if isinstance(value, list) else [value]
            if any(isinstance(item, str) and regex.search(item) for item in values):
                matches.append(self._model.model_validate(row))
        return matches

    def find_with_positive(self, path: str) -> list[Principal]:
        """Return principals whose numeric field at dotted ``path`` is above zero."""
        if self._collection is not None:
            rows = self._collection.find({path: {"$gt": 0}}, {"_id": 0})
            return [self._model.model_validate(row) for row in rows]
        return [
            self._model.model_validate(row)
            for row in self._read_rows()
            if isinstance(_lookup_path(row, path), int) and _lookup_path(row, path) > 0
        ]

    def create(self, principal: Principal) -> Principal:
        """Insert a new principal, raising 409 on a duplicate email."""
        doc = principal.model_dump()
        if self._collection is not None:
            try:
                self._collection.insert_one(dict(doc))
            except DuplicateKeyError as exc:
                raise _conflict(self.principal_type) from exc
            return principal

        with self._lock:
            rows = self._read_rows(for_update=True)
            if any(
                normalize_email(str(row.get("email", ""))) == principal.email
                for row in rows
            ):
                raise _conflict(self.principal_type)
            rows.append(doc)
            self._write_rows(rows)
        return principal

    def update_fields(self, principal_id: str, fields: dict[str, Any]) -> Principal | None:
        if self._collection is not None:
            doc = self._collection.find_one_and_update(
                {"principal_id": principal_id},
                {"$set": {**fields, "updated_at": now_iso()}},
                projection={"_id": 0},
                return_document=ReturnDocument.AFTER,
            )
            return self._to_model(doc)
        return self._to_model(self._update_row(principal_id, lambda row: row.update(fields)))

    def update_refresh_token(
        self,
        principal_id: str,
        token: str | None,
        *,
        expected: Any = _UNSET,
    ) -> bool:
        """Store ``token`` (``None`` clears it).

        When ``expected`` is given, the write only happens if the stored value
        still equals it. Returns whether a record was updated.
        """
        if self._collection is not None:
            query: dict[str, Any] = {"principal_id": principal_id}
            if expected is not _UNSET:
                query["refresh_token"] = expected
            if token is None:
                update: dict[str, Any] = {
                    "$unset": {"refresh_token": ""},
                    "$set": {"updated_at": now_iso()},
                }
            else:
                update = {"$set": {"refresh_token": token, "updated_at": now_iso()}}
            result = self._collection.update_one(query, update)
            return result.matched_count > 0

        def still_expected(row: dict[str, Any]) -> bool:
            return row.get("refresh_token") == expected

        updated = self._update_row(
            principal_id,
            lambda row: row.update({"refresh_token": token}),
            condition=None if expected is _UNSET else still_expected,
        )
        return updated is not None

    def update_password(self, principal_id: str, password_hash: str) -> bool:
        return self.update_fields(principal_id, {"password_hash": password_hash}) is not None

    def add_to_set(self, principal_id: str, field: str, value: str) -> Principal | None:
        if self._collection is not None:
            doc = self._collection.find_one_and_update(
                {"principal_id": principal_id},
                {"$addToSet": {field: value}, "$set": {"updated_at": now_iso()}},
                projection={"_id": 0},
                return_document=ReturnDocument.AFTER,
            )
            return self._to_model(doc)

        def mutate(row: dict[str, Any]) -> None:
            items = list(row.get(field) or [])
            if value not in items:
                items.append(value)
            row[field] = items

        return self._to_model(self._update_row(principal_id, mutate))

    def pull(self, principal_id: str, field: str, value: str) -> Principal | None:
        if self._collection is not None:
            doc = self._collection.find_one_and_update(
                {"principal_id": principal_id},
                {"$pull": {field: value}, "$set": {"updated_at": now_iso()}},
                projection={"_id": 0},
                return_document=ReturnDocument.AFTER,
            )
            return self._to_model(doc)

        def mutate(row: dict[str, Any]) -> None:
            row[field] = [item for item in (row.get(field) or []) if item != value]

        return self._to_model(self._update_row(principal_id, mutate))

    def delete(self, principal_id: str) -> bool:
        if self._collection is not None:
            return self._collection.delete_one({"principal_id": principal_id}).deleted_count > 0
        with self._lock:
            rows = self._read_rows(for_update=True)
            remaining = [row for row in rows if str(row.get("principal_id", "")) != principal_id]
            if len(remaining) == len(rows):
                return False
            self._write_rows(remaining)
        return True


def build_principal_repositories(
    db: Any | None, runtime_dir: Path
) -> dict[PrincipalType, PrincipalRepository]:
    """Create one repository per principal type on the configured backend."""
    fallback_dir = runtime_dir / "principal_store"
    return {
        principal_type: (
            PrincipalRepository(principal_type, collection=db[COLLECTION_NAMES[principal_type]])
            if db is not None
            else PrincipalRepository(principal_type, fallback_dir=fallback_dir)
        )
        for principal_type in PrincipalType
    }
