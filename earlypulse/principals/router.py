"""FastAPI routers for registration, profiles and the doctor/lab directory.

Annotations are evaluated eagerly here: the registration body model is chosen
per principal type at router build time.
"""

from typing import Any

from fastapi import APIRouter, Depends, Query, Response

from earlypulse.api.contracts import (
    ApiErrorResponse,
    PrincipalListResponse,
    PrincipalResponse,
    StatusResponse,
)
from earlypulse.auth.dependencies import require_principal_type
from earlypulse.auth.models import AuthenticatedPrincipal
from earlypulse.auth.router import clear_session_cookies
from earlypulse.principals.directory import DoctorDirectory, LabDirectory
from earlypulse.principals.models import (
    COLLECTION_NAMES,
    BloodInventoryRequest,
    ChangePasswordRequest,
    LabTestRequest,
    PrincipalType,
    ProfileUpdateRequest,
    RegisterDoctorRequest,
    RegisterLabRequest,
    RegisterUserRequest,
)
from earlypulse.principals.service import PrincipalService

_REGISTER_REQUESTS: dict[PrincipalType, Any] = {
    PrincipalType.USER: RegisterUserRequest,
    PrincipalType.DOCTOR: RegisterDoctorRequest,
    PrincipalType.LAB: RegisterLabRequest,
}


def _prefix(principal_type: PrincipalType) -> str:
    return f"/api/v1/{COLLECTION_NAMES[principal_type]}"


def create_principal_router(
    service: PrincipalService, *, cookie_secure: bool = True
) -> APIRouter:
    """Build register/profile router for the service's principal type."""
    principal_type = service.principal_type
    router = APIRouter(prefix=_prefix(principal_type), tags=[str(principal_type).lower()])
    same_type = require_principal_type(principal_type)
    register_model = _REGISTER_REQUESTS[principal_type]

    @router.post(
        "/register",
        status_code=201,
        response_model=PrincipalResponse,
        responses={409: {"model": ApiErrorResponse}},
    )
    def register(req: register_model) -> PrincipalResponse:  # type: ignore[valid-type]
        """Create a principal; 409 when the email is already registered."""
        return PrincipalResponse(principal=service.register(req.model_dump()))

    @router.get(
        f"/current-{str(principal_type).lower()}",
        response_model=PrincipalResponse,
        responses={404: {"model": ApiErrorResponse}},
    )
    def current(principal: AuthenticatedPrincipal = Depends(same_type)) -> PrincipalResponse:
        return PrincipalResponse(principal=service.get_current(principal.principal_id))

    @router.patch("/update", response_model=PrincipalResponse)
    def update(
        req: ProfileUpdateRequest,
        principal: AuthenticatedPrincipal = Depends(same_type),
    ) -> PrincipalResponse:
        updated = service.update_profile(principal.principal_id, req.model_dump(exclude_none=True))
        return PrincipalResponse(principal=updated)

    @router.post(
        "/change-password",
        response_model=StatusResponse,
        responses={400: {"model": ApiErrorResponse}},
    )
    def change_password(
        req: ChangePasswordRequest,
        principal: AuthenticatedPrincipal = Depends(same_type),
    ) -> StatusResponse:
        service.change_password(principal.principal_id, req.old_password, req.new_password)
        return StatusResponse(status="ok", message="Password changed successfully")

    @router.delete("/delete", response_model=StatusResponse)
    def delete(
        response: Response,
        principal: AuthenticatedPrincipal = Depends(same_type),
    ) -> StatusResponse:
        service.delete(principal.principal_id)
        clear_session_cookies(response, secure=cookie_secure)
        return StatusResponse(status="ok", message=f"{principal_type} deleted successfully")

    return router


def create_doctor_directory_router(directory: DoctorDirectory) -> APIRouter:
    router = APIRouter(prefix=_prefix(PrincipalType.DOCTOR), tags=["doctor"])

    @router.get("/all", response_model=PrincipalListResponse)
    def all_doctors() -> PrincipalListResponse:
        return PrincipalListResponse(items=directory.list_doctors())

    @router.get("/specialization/{specialization}", response_model=PrincipalListResponse)
    def doctors_by_specialization(specialization: str) -> PrincipalListResponse:
        return PrincipalListResponse(items=directory.doctors_by_specialization(specialization))

    return router


def create_lab_router(directory: LabDirectory) -> APIRouter:
    """Build lab directory, test catalogue and blood inventory routes."""
    router = APIRouter(prefix=_prefix(PrincipalType.LAB), tags=["lab"])
    lab_only = require_principal_type(PrincipalType.LAB)

    @router.get("/all", response_model=PrincipalListResponse)
    def all_labs() -> PrincipalListResponse:
        return PrincipalListResponse(items=directory.list_labs())

    @router.get("/test/{test_name}", response_model=PrincipalListResponse)
    def labs_by_test(test_name: str) -> PrincipalListResponse:
        return PrincipalListResponse(items=directory.labs_by_test(test_name))

    @router.get(
        "/blood-type/{blood_type}",
        response_model=PrincipalListResponse,
        responses={400: {"model": ApiErrorResponse}},
    )
    def labs_by_blood_type(blood_type: str) -> PrincipalListResponse:
        return PrincipalListResponse(items=directory.labs_by_blood_type(blood_type))

    @router.get("/search", response_model=PrincipalListResponse)
    def search_labs(location: str = Query(min_length=1)) -> PrincipalListResponse:
        return PrincipalListResponse(items=directory.search_labs(location))

    @router.post("/add-test", response_model=PrincipalResponse)
    def add_test(
        req: LabTestRequest,
        principal: AuthenticatedPrincipal = Depends(lab_only),
    ) -> PrincipalResponse:
        return PrincipalResponse(principal=directory.add_test(principal.principal_id, req.test_name))

    @router.delete("/remove-test", response_model=PrincipalResponse)
    def remove_test(
        req: LabTestRequest,
        principal: AuthenticatedPrincipal = Depends(lab_only),
    ) -> PrincipalResponse:
        return PrincipalResponse(
            principal=directory.remove_test(principal.principal_id, req.test_name)
        )

    @router.patch(
        "/update-inventory",
        response_model=PrincipalResponse,
        responses={400: {"model": ApiErrorResponse}},
    )
    def update_inventory(
        req: BloodInventoryRequest,
        principal: AuthenticatedPrincipal = Depends(lab_only),
    ) -> PrincipalResponse:
        updated = directory.update_blood_inventory(
            principal.principal_id, req.blood_type, req.quantity
        )
        return PrincipalResponse(principal=updated)

    return router
