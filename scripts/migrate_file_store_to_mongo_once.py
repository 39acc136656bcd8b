#!/usr/bin/env python3
"""One-shot migration of the JSON fallback stores into MongoDB."""

from __future__ import annotations

import argparse
import json
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pymongo
from pymongo.errors import PyMongoError

DEFAULT_RUNTIME_DIR = Path("runtime")
DEFAULT_DB_NAME = "earlypulse"
MAX_PREVIEW_ITEMS = 10


@dataclass(frozen=True)
class FallbackStore:
    """Source file and target collection of one fallback store."""

    collection: str
    relative_path: str
    key: str


STORES = [
    FallbackStore("users", "principal_store/users.json", "principal_id"),
    FallbackStore("doctors", "principal_store/doctors.json", "principal_id"),
    FallbackStore("labs", "principal_store/labs.json", "principal_id"),
    FallbackStore("medicines", "pharmacy_store/medicines.json", "medicine_id"),
    FallbackStore("medicine_orders", "pharmacy_store/medicine_orders.json", "order_id"),
]


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Check and migrate runtime fallback JSON storage to MongoDB.",
    )
    parser.add_argument(
        "--runtime-dir",
        type=Path,
        default=DEFAULT_RUNTIME_DIR,
        help="Path to runtime directory with fallback JSON storage.",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Only print source/target report and do not write into MongoDB.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate data and print migration plan without writing.",
    )
    return parser.parse_args()


def load_rows(runtime_dir: Path, store: FallbackStore) -> tuple[dict[str, dict[str, Any]], int]:
    """Load rows of one store keyed by id, counting rows that cannot be migrated."""
    path = runtime_dir / store.relative_path
    if not path.exists():
        return {}, 0
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return {}, 1
    if not isinstance(payload, list):
        return {}, 1

    keyed: dict[str, dict[str, Any]] = {}
    invalid_count = 0
    for item in payload:
        if not isinstance(item, dict):
            invalid_count += 1
            continue
        key = str(item.get(store.key) or "").strip()
        if not key:
            invalid_count += 1
            continue
        row = dict(item)
        if "email" in row:
            row["email"] = str(row.get("email") or "").strip().lower()
        keyed[key] = row
    return keyed, invalid_count


def _preview(values: list[str]) -> str:
    return ", ".join(values[:MAX_PREVIEW_ITEMS])


def _report_diff(title: str, source_keys: set[str], target_keys: set[str]) -> None:
    """Print diff between source and target key sets."""
    missing = sorted(source_keys - target_keys)
    extra = sorted(target_keys - source_keys)
    print(f"{title}:")
    print(f"  source: {len(source_keys)}")
    print(f"  target: {len(target_keys)}")
    print(f"  missing_in_target: {len(missing)}")
    if missing:
        print(f"  missing_preview: {_preview(missing)}")
    print(f"  extra_in_target: {len(extra)}")
    if extra:
        print(f"  extra_preview: {_preview(extra)}")


def upsert_rows(
    collection: Any, key: str, rows: dict[str, dict[str, Any]], dry_run: bool
) -> tuple[int, int]:
    """Upsert rows by id and return processed/insert-candidate counters."""
    if not rows:
        return 0, 0
    existing = {row_key for row_key in rows if collection.find_one({key: row_key})}
    inserted_candidates = len(rows) - len(existing)
    if dry_run:
        return len(rows), inserted_candidates
    for row_key, row in rows.items():
        collection.update_one({key: row_key}, {"$set": row}, upsert=True)
    return len(rows), inserted_candidates


def main() -> int:
    """Run check or migration workflow."""
    args = _parse_args()
    runtime_dir = args.runtime_dir
    if not runtime_dir.exists():
        print(f"ERROR: runtime dir not found: {runtime_dir}", file=sys.stderr)
        return 1

    mongo_uri = os.getenv("MONGODB_URI", "").strip()
    mongo_db = os.getenv("MONGODB_DB", DEFAULT_DB_NAME).strip() or DEFAULT_DB_NAME
    if not mongo_uri:
        print("ERROR: MONGODB_URI is empty. Set env var before running script.", file=sys.stderr)
        return 1

    sources = {store.collection: load_rows(runtime_dir, store) for store in STORES}

    mongo_client = None
    try:
        mongo_client = pymongo.MongoClient(mongo_uri, serverSelectionTimeoutMS=5000)
        mongo_client.admin.command("ping")
        db = mongo_client[mongo_db]

        print(f"Runtime dir: {runtime_dir}")
        print("Invalid rows skipped:")
        for store in STORES:
            print(f"  {store.collection}: {sources[store.collection][1]}")

        if args.check:
            for store in STORES:
                target_keys = {
                    str(row.get(store.key) or "").strip()
                    for row in db[store.collection].find({}, {store.key: 1, "_id": 0})
                }
                _report_diff(store.collection, set(sources[store.collection][0]), target_keys)
            return 0

        print(f"Mode: {'dry-run' if args.dry_run else 'write'}")
        print("Processed:")
        for store in STORES:
            processed, inserted = upsert_rows(
                db[store.collection], store.key, sources[store.collection][0], args.dry_run
            )
            print(f"  {store.collection}: {processed} (new: {inserted})")
        return 0
    except PyMongoError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    finally:
        if mongo_client is not None:
            mongo_client.close()


if __name__ == "__main__":
    raise SystemExit(main())
