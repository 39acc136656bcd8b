"""Public API response contracts."""

from earlypulse.api.contracts.models import (
    ApiErrorResponse,
    AuthSessionResponse,
    HealthResponse,
    MedicineListResponse,
    MedicineResponse,
    OrderListResponse,
    OrderResponse,
    PharmacyStatsResponse,
    PrincipalListResponse,
    PrincipalResponse,
    StatusResponse,
    TokenPairResponse,
)

__all__ = [
    "ApiErrorResponse",
    "AuthSessionResponse",
    "HealthResponse",
    "MedicineListResponse",
    "MedicineResponse",
    "OrderListResponse",
    "OrderResponse",
    "PharmacyStatsResponse",
    "PrincipalListResponse",
    "PrincipalResponse",
    "StatusResponse",
    "TokenPairResponse",
]
