from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from earlypulse.api.errors import ApiError, ApiErrorCode
from earlypulse.pharmacy.repository import PharmacyRepository
from earlypulse.pharmacy.service import PharmacyService
from earlypulse.principals.repository import StoreUnreadable

SHIPPING = {
    "street": "12 Park Street",
    "city": "Kolkata",
    "state": "West Bengal",
    "zip_code": "700016",
}


def _medicine(name: str, **overrides: Any) -> dict[str, Any]:
    payload = {
        "name": name,
        "description": f"{name} tablets",
        "category": "painkiller",
        "manufacturer": "Acme Pharma",
        "price": 2.5,
        "stock_quantity": 20,
        "dosage_form": "tablet",
        "strength": "500mg",
        "expiry_date": "2027-12-31",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def service(tmp_path: Path) -> PharmacyService:
    return PharmacyService(PharmacyRepository(fallback_dir=tmp_path))


def test_order_copies_prices_and_decrements_stock(service: PharmacyService) -> None:
    paracetamol = service.create_medicine(_medicine("Paracetamol", price=1.15), "owner-1")
    vitamin = service.create_medicine(
        _medicine("Vitamin C", category="vitamin", price=3.3, stock_quantity=5), "owner-1"
    )

    order = service.create_order(
        {
            "items": [
                {"medicine_id": paracetamol.medicine_id, "quantity": 3},
                {"medicine_id": vitamin.medicine_id, "quantity": 5},
            ],
            "shipping_address": SHIPPING,
        },
        "user-1",
    )

    assert order.user_id == "user-1"
    assert order.status == "pending"
    assert order.payment_method == "cod"
    assert order.shipping_address.country == "India"
    assert [item.price for item in order.items] == [1.15, 3.3]
    assert order.total_amount == 19.95
    assert service.get_medicine(paracetamol.medicine_id).stock_quantity == 17
    assert service.get_medicine(vitamin.medicine_id).stock_quantity == 0


def test_order_rejects_insufficient_stock_without_side_effects(service: PharmacyService) -> None:
    medicine = service.create_medicine(_medicine("Ibuprofen", stock_quantity=2), "owner-1")

    with pytest.raises(ApiError) as exc:
        service.create_order(
            {
                "items": [{"medicine_id": medicine.medicine_id, "quantity": 3}],
                "shipping_address": SHIPPING,
            },
            "user-1",
        )

    assert exc.value.status_code == 400
    assert exc.value.error_code == ApiErrorCode.INSUFFICIENT_STOCK
    assert service.list_user_orders("user-1") == []
    assert service.get_medicine(medicine.medicine_id).stock_quantity == 2


def test_order_rejects_inactive_and_unknown_medicines(service: PharmacyService) -> None:
    inactive = service.create_medicine(_medicine("Old Syrup", is_active=False), "owner-1")

    with pytest.raises(ApiError) as unavailable:
        service.create_order(
            {
                "items": [{"medicine_id": inactive.medicine_id, "quantity": 1}],
                "shipping_address": SHIPPING,
            },
            "user-1",
        )
    with pytest.raises(ApiError) as missing:
        service.create_order(
            {"items": [{"medicine_id": "nope", "quantity": 1}], "shipping_address": SHIPPING},
            "user-1",
        )

    assert unavailable.value.error_code == ApiErrorCode.MEDICINE_UNAVAILABLE
    assert missing.value.status_code == 404
    assert missing.value.error_code == ApiErrorCode.MEDICINE_NOT_FOUND


def test_orders_are_private_to_their_owner(service: PharmacyService) -> None:
    medicine = service.create_medicine(_medicine("Cetirizine"), "owner-1")
    order = service.create_order(
        {"items": [{"medicine_id": medicine.medicine_id, "quantity": 1}], "shipping_address": SHIPPING},
        "user-1",
    )

    assert service.get_order(order.order_id, "user-1").order_id == order.order_id
    with pytest.raises(ApiError) as exc:
        service.get_order(order.order_id, "user-2")
    assert exc.value.status_code == 403
    with pytest.raises(ApiError) as missing:
        service.get_order("missing", "user-1")
    assert missing.value.status_code == 404
    assert service.list_user_orders("user-2") == []


def test_only_creator_may_change_medicine(service: PharmacyService) -> None:
    medicine = service.create_medicine(_medicine("Amoxicillin", category="antibiotic"), "owner-1")

    with pytest.raises(ApiError) as update_exc:
        service.update_medicine(medicine.medicine_id, {"price": 9.0}, "owner-2")
    with pytest.raises(ApiError) as delete_exc:
        service.delete_medicine(medicine.medicine_id, "owner-2")
    updated = service.update_medicine(medicine.medicine_id, {"price": 9.0, "name": None}, "owner-1")
    service.delete_medicine(medicine.medicine_id, "owner-1")

    assert update_exc.value.status_code == 403
    assert delete_exc.value.status_code == 403
    assert updated.price == 9.0
    assert updated.name == "Amoxicillin"
    with pytest.raises(ApiError):
        service.get_medicine(medicine.medicine_id)


def test_list_medicines_filters(service: PharmacyService) -> None:
    service.create_medicine(_medicine("Paracetamol", price=1.0), "owner-1")
    service.create_medicine(_medicine("Vitamin D3", category="vitamin", price=8.0), "owner-1")
    service.create_medicine(_medicine("Hidden", is_active=False), "owner-1")

    def names(**filters: Any) -> list[str]:
        return sorted(medicine.name for medicine in service.list_medicines(**filters))

    assert names() == ["Paracetamol", "Vitamin D3"]
    assert names(category="vitamin") == ["Vitamin D3"]
    assert names(search="paracet") == ["Paracetamol"]
    assert names(min_price=5) == ["Vitamin D3"]
    assert names(max_price=5) == ["Paracetamol"]


def test_order_status_updates_and_stats(service: PharmacyService) -> None:
    plenty = service.create_medicine(_medicine("Aspirin", stock_quantity=50), "owner-1")
    service.create_medicine(_medicine("Rare Drug", stock_quantity=3), "owner-1")
    first = service.create_order(
        {"items": [{"medicine_id": plenty.medicine_id, "quantity": 1}], "shipping_address": SHIPPING},
        "user-1",
    )
    service.create_order(
        {"items": [{"medicine_id": plenty.medicine_id, "quantity": 1}], "shipping_address": SHIPPING},
        "user-2",
    )

    shipped = service.update_order_status(first.order_id, "shipped", "owner-1")
    stats = service.stats()

    assert shipped.status == "shipped"
    assert [order.order_id for order in service.list_orders(status="shipped")] == [first.order_id]
    assert len(service.list_orders()) == 2
    assert stats.total_medicines == 2
    assert stats.low_stock_medicines == 1
    assert stats.total_orders == 2
    assert stats.pending_orders == 1
    with pytest.raises(ApiError) as exc:
        service.update_order_status("missing", "shipped", "owner-1")
    assert exc.value.status_code == 404


def test_repeated_lines_are_checked_against_stock_together(service: PharmacyService) -> None:
    medicine = service.create_medicine(_medicine("Azithromycin", stock_quantity=5), "owner-1")
    line = {"medicine_id": medicine.medicine_id, "quantity": 3}

    with pytest.raises(ApiError) as exc:
        service.create_order({"items": [line, line], "shipping_address": SHIPPING}, "user-1")

    assert exc.value.error_code == ApiErrorCode.INSUFFICIENT_STOCK
    assert service.list_user_orders("user-1") == []
    assert service.get_medicine(medicine.medicine_id).stock_quantity == 5


def test_repeated_lines_are_merged_into_one_item(service: PharmacyService) -> None:
    medicine = service.create_medicine(_medicine("Azithromycin", price=4.0, stock_quantity=5), "owner-1")
    line = {"medicine_id": medicine.medicine_id, "quantity": 2}

    order = service.create_order({"items": [line, line], "shipping_address": SHIPPING}, "user-1")

    assert [(item.medicine_id, item.quantity) for item in order.items] == [(medicine.medicine_id, 4)]
    assert order.total_amount == 16.0
    assert service.get_medicine(medicine.medicine_id).stock_quantity == 1


def test_unreadable_order_store_is_left_untouched(tmp_path: Path) -> None:
    service = PharmacyService(PharmacyRepository(fallback_dir=tmp_path))
    medicine = service.create_medicine(_medicine("Cetirizine", stock_quantity=5), "owner-1")
    orders_file = tmp_path / "medicine_orders.json"
    orders_file.write_text("[{ truncated", encoding="utf-8")

    with pytest.raises(StoreUnreadable):
        service.create_order(
            {"items": [{"medicine_id": medicine.medicine_id, "quantity": 1}], "shipping_address": SHIPPING},
            "user-1",
        )

    assert orders_file.read_text(encoding="utf-8") == "[{ truncated"
    assert service.list_user_orders("user-1") == []
    assert service.get_medicine(medicine.medicine_id).stock_quantity == 5


def test_unreadable_medicine_store_rejects_writes(tmp_path: Path) -> None:
    service = PharmacyService(PharmacyRepository(fallback_dir=tmp_path))
    medicines_file = tmp_path / "medicines.json"
    medicines_file.write_text("{ invalid", encoding="utf-8")

    assert service.list_medicines() == []
    with pytest.raises(StoreUnreadable):
        service.create_medicine(_medicine("Paracetamol"), "owner-1")

    assert medicines_file.read_text(encoding="utf-8") == "{ invalid"
