"""Pydantic models for the medicine catalogue and orders."""

from __future__ import annotations

import uuid
from typing import Literal

from pydantic import BaseModel, Field

from earlypulse.principals.models import now_iso

MedicineCategory = Literal[
    "painkiller", "antibiotic", "vitamin", "supplement", "otc", "other"
]
DosageForm = Literal[
    "tablet", "capsule", "liquid", "injection", "cream", "ointment", "drops", "other"
]
OrderStatus = Literal[
    "pending", "confirmed", "processing", "shipped", "delivered", "cancelled"
]
PaymentStatus = Literal["pending", "completed", "failed", "refunded"]

LOW_STOCK_THRESHOLD = 10


class Medicine(BaseModel):
    """Persisted catalogue entry."""

    medicine_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    name: str
    description: str
    category: MedicineCategory
    manufacturer: str
    price: float = Field(ge=0)
    stock_quantity: int = Field(default=0, ge=0)
    dosage_form: DosageForm
    strength: str = ""
    expiry_date: str
    image_url: str = ""
    is_active: bool = True
    created_by: str
    created_at: str = Field(default_factory=now_iso)
    updated_at: str = Field(default_factory=now_iso)


class MedicineCreateRequest(BaseModel):
    name: str = Field(min_length=1)
    description: str = Field(min_length=1)
    category: MedicineCategory
    manufacturer: str = Field(min_length=1)
    price: float = Field(ge=0)
    stock_quantity: int = Field(default=0, ge=0)
    dosage_form: DosageForm
    strength: str = ""
    expiry_date: str = Field(min_length=1)
    image_url: str = ""
    is_active: bool = True


class MedicineUpdateRequest(BaseModel):
    name: str | None = None
    description: str | None = None
    category: MedicineCategory | None = None
    manufacturer: str | None = None
    price: float | None = Field(default=None, ge=0)
    stock_quantity: int | None = Field(default=None, ge=0)
    dosage_form: DosageForm | None = None
    strength: str | None = None
    expiry_date: str | None = None
    image_url: str | None = None
    is_active: bool | None = None


class ShippingAddress(BaseModel):
    street: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str = Field(min_length=1)
    zip_code: str = Field(min_length=1)
    country: str = "India"


class OrderItem(BaseModel):
    medicine_id: str
    quantity: int = Field(ge=1)
    price: float = Field(default=0, ge=0)


class MedicineOrder(BaseModel):
    """Persisted order; prices are copied from the catalogue at order time."""

    order_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    user_id: str
    items: list[OrderItem]
    total_amount: float = Field(ge=0)
    status: OrderStatus = "pending"
    shipping_address: ShippingAddress
    payment_method: Literal["cod"] = "cod"
    payment_status: PaymentStatus = "pending"
    notes: str = ""
    created_at: str = Field(default_factory=now_iso)
    updated_at: str = Field(default_factory=now_iso)


class OrderItemRequest(BaseModel):
    medicine_id: str = Field(min_length=1)
    quantity: int = Field(ge=1)


class OrderCreateRequest(BaseModel):
    items: list[OrderItemRequest] = Field(min_length=1)
    shipping_address: ShippingAddress
    payment_method: Literal["cod"] = "cod"
    notes: str = ""


class OrderStatusRequest(BaseModel):
    status: OrderStatus


class PharmacyStats(BaseModel):
    total_medicines: int
    low_stock_medicines: int
    total_orders: int
    pending_orders: int
