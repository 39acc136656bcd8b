from __future__ import annotations

import importlib.util
import json
import sys
from pathlib import Path
from types import ModuleType
from typing import Any

SCRIPT_PATH = Path(__file__).resolve().parents[1] / "scripts" / "migrate_file_store_to_mongo_once.py"


def _load_script() -> ModuleType:
    spec = importlib.util.spec_from_file_location("migrate_file_store_to_mongo_once", SCRIPT_PATH)
    assert spec is not None and spec.loader is not None
    module = importlib.util.module_from_spec(spec)
    sys.modules[spec.name] = module
    spec.loader.exec_module(module)
    return module


class _FakeCollection:
    def __init__(self, docs: list[dict[str, Any]] | None = None) -> None:
        self.docs = list(docs or [])

    def find_one(self, query: dict[str, Any]) -> dict[str, Any] | None:
        for doc in self.docs:
            if all(doc.get(key) == value for key, value in query.items()):
                return doc
        return None

    def update_one(self, query: dict[str, Any], update: dict[str, Any], upsert: bool = False) -> None:
        doc = self.find_one(query)
        if doc is None and upsert:
            doc = dict(query)
            self.docs.append(doc)
        if doc is not None:
            doc.update(update["$set"])


def test_load_rows_keys_by_id_and_counts_invalid(tmp_path: Path) -> None:
    script = _load_script()
    store_dir = tmp_path / "principal_store"
    store_dir.mkdir()
    (store_dir / "users.json").write_text(
        json.dumps(
            [
                {"principal_id": "u1", "email": " Alice@Example.com "},
                {"email": "no-id@example.com"},
                "garbage",
            ]
        ),
        encoding="utf-8",
    )

    rows, invalid = script.load_rows(tmp_path, script.STORES[0])

    assert list(rows) == ["u1"]
    assert rows["u1"]["email"] == "alice@example.com"
    assert invalid == 2


def test_load_rows_missing_file_is_empty(tmp_path: Path) -> None:
    script = _load_script()

    assert script.load_rows(tmp_path, script.STORES[3]) == ({}, 0)


def test_upsert_rows_counts_new_rows_and_respects_dry_run() -> None:
    script = _load_script()
    collection = _FakeCollection([{"medicine_id": "m1", "name": "Old"}])
    rows = {"m1": {"medicine_id": "m1", "name": "New"}, "m2": {"medicine_id": "m2", "name": "Fresh"}}

    dry = script.upsert_rows(collection, "medicine_id", rows, True)
    assert collection.find_one({"medicine_id": "m1"})["name"] == "Old"

    written = script.upsert_rows(collection, "medicine_id", rows, False)

    assert dry == (2, 1)
    assert written == (2, 1)
    assert collection.find_one({"medicine_id": "m1"})["name"] == "New"
    assert collection.find_one({"medicine_id": "m2"}) is not None
