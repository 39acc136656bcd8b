"""FastAPI router for the medicine catalogue and orders."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from earlypulse.api.contracts import (
    ApiErrorResponse,
    MedicineListResponse,
    MedicineResponse,
    OrderListResponse,
    OrderResponse,
    PharmacyStatsResponse,
    StatusResponse,
)
from earlypulse.auth.dependencies import current_principal, require_roles
from earlypulse.auth.models import AuthenticatedPrincipal
from earlypulse.pharmacy.models import (
    MedicineCategory,
    MedicineCreateRequest,
    MedicineUpdateRequest,
    OrderCreateRequest,
    OrderStatus,
    OrderStatusRequest,
    PaymentStatus,
)
from earlypulse.pharmacy.service import PharmacyService

MEDICAL_OWNER_ROLE = "medicalOwner"


def create_pharmacy_router(service: PharmacyService) -> APIRouter:
    """Build medicine and order routes; catalogue listing is public."""
    router = APIRouter(prefix="/api/v1/medicines", tags=["pharmacy"])
    medical_owner = require_roles(MEDICAL_OWNER_ROLE)

    @router.get("/all", response_model=MedicineListResponse)
    def list_medicines(
        category: MedicineCategory | None = Query(default=None),
        search: str | None = Query(default=None),
        min_price: float | None = Query(default=None, ge=0),
        max_price: float | None = Query(default=None, ge=0),
    ) -> MedicineListResponse:
        items = service.list_medicines(
            category=category, search=search, min_price=min_price, max_price=max_price
        )
        return MedicineListResponse(items=items)

    @router.post(
        "/order",
        status_code=201,
        response_model=OrderResponse,
        responses={400: {"model": ApiErrorResponse}, 404: {"model": ApiErrorResponse}},
    )
    def create_order(
        req: OrderCreateRequest,
        principal: AuthenticatedPrincipal = Depends(current_principal),
    ) -> OrderResponse:
        order = service.create_order(req.model_dump(), principal.principal_id)
        return OrderResponse(order=order)

    @router.get("/orders", response_model=OrderListResponse)
    def my_orders(
        principal: AuthenticatedPrincipal = Depends(current_principal),
    ) -> OrderListResponse:
        return OrderListResponse(items=service.list_user_orders(principal.principal_id))

    @router.get("/orders/all", response_model=OrderListResponse)
    def all_orders(
        status: OrderStatus | None = Query(default=None),
        payment_status: PaymentStatus | None = Query(default=None),
        _: AuthenticatedPrincipal = Depends(medical_owner),
    ) -> OrderListResponse:
        return OrderListResponse(
            items=service.list_orders(status=status, payment_status=payment_status)
        )

    @router.get(
        "/order/{order_id}",
        response_model=OrderResponse,
        responses={403: {"model": ApiErrorResponse}, 404: {"model": ApiErrorResponse}},
    )
    def get_order(
        order_id: str,
        principal: AuthenticatedPrincipal = Depends(current_principal),
    ) -> OrderResponse:
        return OrderResponse(order=service.get_order(order_id, principal.principal_id))

    @router.patch(
        "/order/{order_id}/status",
        response_model=OrderResponse,
        responses={403: {"model": ApiErrorResponse}, 404: {"model": ApiErrorResponse}},
    )
    def update_order_status(
        order_id: str,
        req: OrderStatusRequest,
        principal: AuthenticatedPrincipal = Depends(medical_owner),
    ) -> OrderResponse:
        order = service.update_order_status(order_id, req.status, principal.principal_id)
        return OrderResponse(order=order)

    @router.post(
        "/create",
        status_code=201,
        response_model=MedicineResponse,
        responses={403: {"model": ApiErrorResponse}},
    )
    def create_medicine(
        req: MedicineCreateRequest,
        principal: AuthenticatedPrincipal = Depends(medical_owner),
    ) -> MedicineResponse:
        medicine = service.create_medicine(req.model_dump(), principal.principal_id)
        return MedicineResponse(medicine=medicine)

    @router.get("/stats", response_model=PharmacyStatsResponse)
    def stats(
        _: AuthenticatedPrincipal = Depends(medical_owner),
    ) -> PharmacyStatsResponse:
        return PharmacyStatsResponse(**service.stats().model_dump())

    @router.get(
        "/{medicine_id}",
        response_model=MedicineResponse,
        responses={404: {"model": ApiErrorResponse}},
    )
    def get_medicine(medicine_id: str) -> MedicineResponse:
        return MedicineResponse(medicine=service.get_medicine(medicine_id))

    @router.patch(
        "/{medicine_id}",
        response_model=MedicineResponse,
        responses={403: {"model": ApiErrorResponse}, 404: {"model": ApiErrorResponse}},
    )
    def update_medicine(
        medicine_id: str,
        req: MedicineUpdateRequest,
        principal: AuthenticatedPrincipal = Depends(medical_owner),
    ) -> MedicineResponse:
        medicine = service.update_medicine(
            medicine_id, req.model_dump(exclude_none=True), principal.principal_id
        )
        return MedicineResponse(medicine=medicine)

    @router.delete(
        "/{medicine_id}",
        response_model=StatusResponse,
        responses={403: {"model": ApiErrorResponse}, 404: {"model": ApiErrorResponse}},
    )
    def delete_medicine(
        medicine_id: str,
        principal: AuthenticatedPrincipal = Depends(medical_owner),
    ) -> StatusResponse:
        service.delete_medicine(medicine_id, principal.principal_id)
        return StatusResponse(status="ok", message="Medicine deleted successfully")

    return router
