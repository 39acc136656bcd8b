"""Repository for medicines and orders with MongoDB primary and file-store fallback."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from threading import Lock
from typing import Any

from pymongo import DESCENDING, ReturnDocument

from earlypulse.pharmacy.models import LOW_STOCK_THRESHOLD, Medicine, MedicineOrder
from earlypulse.principals.models import now_iso
from earlypulse.principals.repository import StoreUnreadable

LOGGER = logging.getLogger(__name__)


class _FileTable:
    """List-of-documents JSON file guarded by a lock."""

    def __init__(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        self.path = path
        self.lock = Lock()

    def read(self, *, for_update: bool = False) -> list[dict[str, Any]]:
        if not self.path.exists():
            return []
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            payload = None
        if isinstance(payload, list):
            return payload
        LOGGER.warning("pharmacy_store_unreadable %s", self.path)
        if for_update:
            raise StoreUnreadable(f"Refusing to overwrite unreadable store {self.path}")
        return []

    def write(self, rows: list[dict[str, Any]]) -> None:
        self.path.write_text(json.dumps(rows, ensure_ascii=False, indent=2), encoding="utf-8")


def _newest_first(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return sorted(rows, key=lambda row: str(row.get("created_at") or ""), reverse=True)


def _matches_text(row: dict[str, Any], search: str) -> bool:
    needle = search.strip().lower()
    return any(
        needle in str(row.get(field) or "").lower()
        for field in ("name", "description", "category")
    )


class PharmacyRepository:
    def __init__(
        self,
        *,
        db: Any | None = None,
        fallback_dir: Path | None = None,
    ) -> None:
        """Initialize repository storage backends."""
        self._medicines: Any | None = None
        self._orders: Any | None = None
        self._medicines_file: _FileTable | None = None
        self._orders_file: _FileTable | None = None
        if db is not None:
            self._medicines = db["medicines"]
            self._orders = db["medicine_orders"]
        else:
            if fallback_dir is None:
                raise ValueError("fallback_dir is required without a database")
            self._medicines_file = _FileTable(fallback_dir / "medicines.json")
            self._orders_file = _FileTable(fallback_dir / "medicine_orders.json")

    # Medicines

    def insert_medicine(self, medicine: Medicine) -> Medicine:
        doc = medicine.model_dump()
        if self._medicines is not None:
            self._medicines.insert_one(dict(doc))
            return medicine
        table = self._medicines_file
        assert table is not None
        with table.lock:
            rows = table.read(for_update=True)
            rows.append(doc)
            table.write(rows)
        return medicine

    def get_medicine(self, medicine_id: str) -> Medicine | None:
        if self._medicines is not None:
            doc = self._medicines.find_one({"medicine_id": medicine_id}, {"_id": 0})
            return Medicine.model_validate(doc) if doc else None
        assert self._medicines_file is not None
        for row in self._medicines_file.read():
            if row.get("medicine_id") == medicine_id:
                return Medicine.model_validate(row)
        return None

    def list_medicines(
        self,
        *,
        category: str | None = None,
        search: str | None = None,
        min_price: float | None = None,
        max_price: float | None = None,
    ) -> list[Medicine]:
        """List active medicines matching optional filters, newest first."""
        if self._medicines is not None:
            query: dict[str, Any] = {"is_active": True}
            if category:
                query["category"] = category
            if search:
                query["$text"] = {"$search": search}
            price: dict[str, float] = {}
            if min_price is not None:
                price["$gte"] = min_price
            if max_price is not None:
                price["$lte"] = max_price
            if price:
                query["price"] = price
            rows = list(self._medicines.find(query, {"_id": 0}).sort("created_at", DESCENDING))
            return [Medicine.model_validate(row) for row in rows]

        assert self._medicines_file is not None
        result = []
        for row in _newest_first(self._medicines_file.read()):
            if not row.get("is_active", True):
                continue
            if category and row.get("category") != category:
                continue
            if search and not _matches_text(row, search):
                continue
            row_price = float(row.get("price") or 0)
            if min_price is not None and row_price < min_price:
                continue
            if max_price is not None and row_price > max_price:
                continue
            result.append(Medicine.model_validate(row))
        return result

    def update_medicine(self, medicine_id: str, fields: dict[str, Any]) -> Medicine | None:
        if self._medicines is not None:
            doc = self._medicines.find_one_and_update(
                {"medicine_id": medicine_id},
                {"$set": {**fields, "updated_at": now_iso()}},
                projection={"_id": 0},
                return_document=ReturnDocument.AFTER,
            )
            return Medicine.model_validate(doc) if doc else None

        table = self._medicines_file
        assert table is not None
        with table.lock:
            rows = table.read(for_update=True)
            for row in rows:
                if row.get("medicine_id") == medicine_id:
                    row.update(fields)
                    row["updated_at"] = now_iso()
                    table.write(rows)
                    return Medicine.model_validate(row)
        return None

    def delete_medicine(self, medicine_id: str) -> bool:
        if self._medicines is not None:
            return self._medicines.delete_one({"medicine_id": medicine_id}).deleted_count > 0
        table = self._medicines_file
        assert table is not None
        with table.lock:
            rows = table.read(for_update=True)
            remaining = [row for row in rows if row.get("medicine_id") != medicine_id]
            if len(remaining) == len(rows):
                return False
            table.write(remaining)
        return True

    def decrement_stock(self, medicine_id: str, quantity: int) -> bool:
        """Subtract ``quantity`` only while enough stock remains."""
        if self._medicines is not None:
            result = self._medicines.update_one(
                {"medicine_id": medicine_id, "stock_quantity": {"$gte": quantity}},
                {"$inc": {"stock_quantity": -quantity}, "$set": {"updated_at": now_iso()}},
            )
            return result.modified_count > 0

        table = self._medicines_file
        assert table is not None
        with table.lock:
            rows = table.read(for_update=True)
            for row in rows:
                if row.get("medicine_id") != medicine_id:
                    continue
                stock = int(row.get("stock_quantity") or 0)
                if stock < quantity:
                    return False
                row["stock_quantity"] = stock - quantity
                row["updated_at"] = now_iso()
                table.write(rows)
                return True
        return False

    def medicine_counts(self) -> tuple[int, int]:
        """Return (active medicines, active medicines below the low-stock threshold)."""
        if self._medicines is not None:
            total = self._medicines.count_documents({"is_active": True})
            low = self._medicines.count_documents(
                {"is_active": True, "stock_quantity": {"$lt": LOW_STOCK_THRESHOLD}}
            )
            return total, low
        assert self._medicines_file is not None
        active = [row for row in self._medicines_file.read() if row.get("is_active", True)]
        low = [
            row for row in active if int(row.get("stock_quantity") or 0) < LOW_STOCK_THRESHOLD
        ]
        return len(active), len(low)

    # Orders

    def insert_order(self, order: MedicineOrder) -> MedicineOrder:
        doc = order.model_dump()
        if self._orders is not None:
            self._orders.insert_one(dict(doc))
            return order
        table = self._orders_file
        assert table is not None
        with table.lock:
            rows = table.read(for_update=True)
            rows.append(doc)
            table.write(rows)
        return order

    def get_order(self, order_id: str) -> MedicineOrder | None:
        if self._orders is not None:
            doc = self._orders.find_one({"order_id": order_id}, {"_id": 0})
            return MedicineOrder.model_validate(doc) if doc else None
        assert self._orders_file is not None
        for row in self._orders_file.read():
            if row.get("order_id") == order_id:
                return MedicineOrder.model_validate(row)
        return None

    def list_orders(
        self,
        *,
        user_id: str | None = None,
        status: str | None = None,
        payment_status: str | None = None,
    ) -> list[MedicineOrder]:
        query: dict[str, Any] = {}
        if user_id:
            query["user_id"] = user_id
        if status:
            query["status"] = status
        if payment_status:
            query["payment_status"] = payment_status

        if self._orders is not None:
            rows = list(self._orders.find(query, {"_id": 0}).sort("created_at", DESCENDING))
        else:
            assert self._orders_file is not None
            rows = [
                row
                for row in _newest_first(self._orders_file.read())
                if all(row.get(key) == value for key, value in query.items())
            ]
        return [MedicineOrder.model_validate(row) for row in rows]

    def update_order_status(self, order_id: str, status: str) -> MedicineOrder | None:
        if self._orders is not None:
            doc = self._orders.find_one_and_update(
                {"order_id": order_id},
                {"$set": {"status": status, "updated_at": now_iso()}},
                projection={"_id": 0},
                return_document=ReturnDocument.AFTER,
            )
            return MedicineOrder.model_validate(doc) if doc else None

        table = self._orders_file
        assert table is not None
        with table.lock:
            rows = table.read(for_update=True)
            for row in rows:
                if row.get("order_id") == order_id:
                    row["status"] = status
                    row["updated_at"] = now_iso()
                    table.write(rows)
                    return MedicineOrder.model_validate(row)
        return None

    def order_counts(self) -> tuple[int, int]:
        """Return (all orders, pending orders)."""
        if self._orders is not None:
            return (
                self._orders.count_documents({}),
                self._orders.count_documents({"status": "pending"}),
            )
        assert self._orders_file is not None
        rows = self._orders_file.read()
        return len(rows), len([row for row in rows if row.get("status") == "pending"])
