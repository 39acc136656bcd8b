"""Medicine catalogue and ordering workflow."""

from __future__ import annotations

import logging
from typing import Any

from earlypulse.api.errors import ApiErrorCode, bad_request, forbidden, not_found
from earlypulse.pharmacy.models import (
    Medicine,
    MedicineOrder,
    OrderItem,
    PharmacyStats,
    ShippingAddress,
)
from earlypulse.pharmacy.repository import PharmacyRepository

LOGGER = logging.getLogger(__name__)


def _medicine_not_found(medicine_id: str) -> Exception:
    return not_found(ApiErrorCode.MEDICINE_NOT_FOUND, f"Medicine with ID {medicine_id} not found")


def _order_not_found() -> Exception:
    return not_found(ApiErrorCode.ORDER_NOT_FOUND, "Order not found")


class PharmacyService:
    def __init__(self, repo: PharmacyRepository) -> None:
        self._repo = repo

    def create_medicine(self, payload: dict[str, Any], created_by: str) -> Medicine:
        medicine = self._repo.insert_medicine(Medicine(**payload, created_by=created_by))
        LOGGER.info(
            "medicine_created",
            extra={"medicine_id": medicine.medicine_id, "principal_id": created_by},
        )
        return medicine

    def list_medicines(
        self,
        *,
        category: str | None = None,
        search: str | None = None,
        min_price: float | None = None,
        max_price: float | None = None,
    ) -> list[Medicine]:
        return self._repo.list_medicines(
            category=category, search=search, min_price=min_price, max_price=max_price
        )

    def get_medicine(self, medicine_id: str) -> Medicine:
        medicine = self._repo.get_medicine(medicine_id)
        if medicine is None:
            raise _medicine_not_found(medicine_id)
        return medicine

    def update_medicine(
        self, medicine_id: str, updates: dict[str, Any], principal_id: str
    ) -> Medicine:
        """Update a medicine; only its creator may change it."""
        medicine = self.get_medicine(medicine_id)
        if medicine.created_by != principal_id:
            raise forbidden("You can only update medicines you created")
        fields = {key: value for key, value in updates.items() if value is not None}
        updated = self._repo.update_medicine(medicine_id, fields) if fields else medicine
        if updated is None:
            raise _medicine_not_found(medicine_id)
        LOGGER.info(
            "medicine_updated",
            extra={"medicine_id": medicine_id, "principal_id": principal_id},
        )
        return updated

    def delete_medicine(self, medicine_id: str, principal_id: str) -> None:
        medicine = self.get_medicine(medicine_id)
        if medicine.created_by != principal_id:
            raise forbidden("You can only delete medicines you created")
        self._repo.delete_medicine(medicine_id)
        LOGGER.info(
            "medicine_deleted",
            extra={"medicine_id": medicine_id, "principal_id": principal_id},
        )

    def create_order(self, payload: dict[str, Any], user_id: str) -> MedicineOrder:
        """Validate stock for every line, persist the order, then decrement stock.

        The three steps are independent writes: a failed decrement after the
        order was stored is logged, not rolled back.
        """
        # Repeated lines for one medicine are merged so stock is checked once.
        quantities: dict[str, int] = {}
        for line in payload.get("items") or []:
            medicine_id = str(line["medicine_id"])
            quantities[medicine_id] = quantities.get(medicine_id, 0) + int(line["quantity"])

        items: list[OrderItem] = []
        for medicine_id, quantity in quantities.items():
            medicine = self._repo.get_medicine(medicine_id)
            if medicine is None:
                raise _medicine_not_found(medicine_id)
            if not medicine.is_active:
                raise bad_request(
                    ApiErrorCode.MEDICINE_UNAVAILABLE,
                    f"Medicine {medicine.name} is not available",
                )
            if medicine.stock_quantity < quantity:
                raise bad_request(
                    ApiErrorCode.INSUFFICIENT_STOCK,
                    f"Insufficient stock for {medicine.name}",
                )
            items.append(
                OrderItem(medicine_id=medicine_id, quantity=quantity, price=medicine.price)
            )
        if not items:
            raise bad_request(ApiErrorCode.VALIDATION_ERROR, "Order must contain medicines")

        order = MedicineOrder(
            user_id=user_id,
            items=items,
            total_amount=round(sum(item.price * item.quantity for item in items), 2),
            shipping_address=ShippingAddress.model_validate(payload["shipping_address"]),
            payment_method=payload.get("payment_method") or "cod",
            notes=str(payload.get("notes") or ""),
        )
        self._repo.insert_order(order)

        for item in items:
            if not self._repo.decrement_stock(item.medicine_id, item.quantity):
                LOGGER.warning(
                    "stock_decrement_failed",
                    extra={"order_id": order.order_id, "medicine_id": item.medicine_id},
                )

        LOGGER.info(
            "order_created",
            extra={"order_id": order.order_id, "principal_id": user_id},
        )
        return order

    def list_user_orders(self, user_id: str) -> list[MedicineOrder]:
        return self._repo.list_orders(user_id=user_id)

    def get_order(self, order_id: str, user_id: str) -> MedicineOrder:
        order = self._repo.get_order(order_id)
        if order is None:
            raise _order_not_found()
        if order.user_id != user_id:
            raise forbidden("You can only view your own orders")
        return order

    def list_orders(
        self, *, status: str | None = None, payment_status: str | None = None
    ) -> list[MedicineOrder]:
        return self._repo.list_orders(status=status, payment_status=payment_status)

    def update_order_status(self, order_id: str, status: str, updated_by: str) -> MedicineOrder:
        order = self._repo.update_order_status(order_id, status)
        if order is None:
            raise _order_not_found()
        LOGGER.info(
            "order_status_updated %s",
            status,
            extra={"order_id": order_id, "principal_id": updated_by},
        )
        return order

    def stats(self) -> PharmacyStats:
        total_medicines, low_stock = self._repo.medicine_counts()
        total_orders, pending_orders = self._repo.order_counts()
        return PharmacyStats(
            total_medicines=total_medicines,
            low_stock_medicines=low_stock,
            total_orders=total_orders,
            pending_orders=pending_orders,
        )
