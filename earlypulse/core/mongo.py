"""MongoDB connection bootstrap and versioned index migrations."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable

import pymongo
from pymongo.database import Database
from pymongo.errors import PyMongoError

from earlypulse.core.config import StorageConfig
from earlypulse.core.logging import CORRELATION_ID_CTX

LOGGER = logging.getLogger(__name__)

MigrationFn = Callable[[Any], None]

PRINCIPAL_COLLECTIONS = ("users", "doctors", "labs")


def open_database(config: StorageConfig) -> Database | None:
    """Return configured MongoDB database, or ``None`` to use file stores."""
    if not config.mongodb_uri:
        return None
    client: Any = pymongo.MongoClient(config.mongodb_uri, serverSelectionTimeoutMS=3000)
    try:
        client.admin.command("ping")
    except PyMongoError:
        LOGGER.warning("mongodb_unreachable_using_file_store")
        client.close()
        return None
    return client[config.mongodb_db]


def _migration_20261001_01_principal_indexes(db: Any) -> None:
    for name in PRINCIPAL_COLLECTIONS:
        db[name].create_index("email", unique=True)
        db[name].create_index("principal_id", unique=True)
        db[name].create_index("name")
    db["doctors"].create_index("specialization")


def _migration_20261001_02_pharmacy_indexes(db: Any) -> None:
    db["medicines"].create_index("medicine_id", unique=True)
    db["medicines"].create_index(
        [
            ("name", pymongo.TEXT),
            ("description", pymongo.TEXT),
            ("category", pymongo.TEXT),
        ],
        name="idx_medicines_text",
    )
    db["medicine_orders"].create_index("order_id", unique=True)
    db["medicine_orders"].create_index("user_id")
    db["medicine_orders"].create_index("status")


MIGRATIONS: list[tuple[str, MigrationFn]] = [
    ("20261001_01_principal_indexes", _migration_20261001_01_principal_indexes),
    ("20261001_02_pharmacy_indexes", _migration_20261001_02_pharmacy_indexes),
]


def apply_mongo_migrations(db: Any) -> list[str]:
    """Apply pending migrations and return the ids applied in this run."""
    migration_collection = db["schema_migrations"]
    migration_collection.create_index("migration_id", unique=True)

    applied: list[str] = []
    for migration_id, migration_fn in MIGRATIONS:
        if migration_collection.find_one({"migration_id": migration_id}):
            continue
        migration_fn(db)
        migration_collection.insert_one(
            {
                "migration_id": migration_id,
                "applied_at": datetime.now(timezone.utc),
                "correlation_id": CORRELATION_ID_CTX.get(),
            }
        )
        LOGGER.info("mongo_migration_applied %s", migration_id)
        applied.append(migration_id)
    return applied
