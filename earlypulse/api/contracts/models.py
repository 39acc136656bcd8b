"""Pydantic API response models used in OpenAPI contracts."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from earlypulse.pharmacy.models import Medicine, MedicineOrder


class ApiErrorResponse(BaseModel):
    """Stable error envelope for API responses."""

    error_code: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error message")


class HealthResponse(BaseModel):
    """Health check response payload."""

    status: Literal["ok"]


class TokenPairResponse(BaseModel):
    """Rotated token pair response payload."""

    access_token: str
    refresh_token: str
    token_type: str
    expires_in: int


class AuthSessionResponse(TokenPairResponse):
    """Login response payload with tokens and the redacted principal."""

    principal: dict[str, Any]


class PrincipalResponse(BaseModel):
    """Single redacted principal payload."""

    principal: dict[str, Any]


class PrincipalListResponse(BaseModel):
    """Redacted principal listing payload."""

    items: list[dict[str, Any]]


class StatusResponse(BaseModel):
    """Acknowledgement payload for state-changing endpoints."""

    status: Literal["ok"]
    message: str = ""


class MedicineResponse(BaseModel):
    medicine: Medicine


class MedicineListResponse(BaseModel):
    items: list[Medicine]


class OrderResponse(BaseModel):
    order: MedicineOrder


class OrderListResponse(BaseModel):
    items: list[MedicineOrder]


class PharmacyStatsResponse(BaseModel):
    total_medicines: int
    low_stock_medicines: int
    total_orders: int
    pending_orders: int
