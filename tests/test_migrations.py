from __future__ import annotations

from typing import Any

from earlypulse.core.config import StorageConfig
from earlypulse.core.mongo import MIGRATIONS, apply_mongo_migrations, open_database


class _FakeCollection:
    def __init__(self) -> None:
        self.indexes: list[tuple[Any, dict[str, Any]]] = []
        self.docs: list[dict[str, Any]] = []

    def create_index(self, keys: Any, **kwargs: Any) -> str:
        self.indexes.append((keys, kwargs))
        return str(keys)

    def find_one(self, query: dict[str, Any]) -> dict[str, Any] | None:
        for doc in self.docs:
            if all(doc.get(key) == value for key, value in query.items()):
                return doc
        return None

    def insert_one(self, doc: dict[str, Any]) -> None:
        self.docs.append(doc)


class _FakeDb:
    def __init__(self) -> None:
        self.collections: dict[str, _FakeCollection] = {}

    def __getitem__(self, name: str) -> _FakeCollection:
        return self.collections.setdefault(name, _FakeCollection())


def test_apply_mongo_migrations_creates_indexes_once() -> None:
    db = _FakeDb()

    first = apply_mongo_migrations(db)
    second = apply_mongo_migrations(db)

    assert first == [migration_id for migration_id, _ in MIGRATIONS]
    assert second == []
    assert len(db["schema_migrations"].docs) == len(MIGRATIONS)
    for name in ("users", "doctors", "labs"):
        unique = {keys for keys, kwargs in db[name].indexes if kwargs.get("unique")}
        assert {"email", "principal_id"} <= unique
    assert any(
        kwargs.get("name") == "idx_medicines_text" for _, kwargs in db["medicines"].indexes
    )


def test_open_database_without_uri_uses_file_store() -> None:
    config = StorageConfig(mongodb_uri="", mongodb_db="earlypulse", runtime_dir="runtime")

    assert open_database(config) is None
