"""Shared API error types and helpers."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from fastapi import HTTPException


class ApiErrorCode(StrEnum):
    """Machine-readable API error codes."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    AUTH_MISSING_TOKEN = "AUTH_MISSING_TOKEN"
    AUTH_INVALID_CREDENTIALS = "AUTH_INVALID_CREDENTIALS"
    AUTH_TOKEN_INVALID = "AUTH_TOKEN_INVALID"
    AUTH_REFRESH_TOKEN_REUSED = "AUTH_REFRESH_TOKEN_REUSED"
    AUTH_INVALID_ENTITY_TYPE = "AUTH_INVALID_ENTITY_TYPE"
    AUTH_FORBIDDEN = "AUTH_FORBIDDEN"
    INVALID_OLD_PASSWORD = "INVALID_OLD_PASSWORD"
    PRINCIPAL_NOT_FOUND = "PRINCIPAL_NOT_FOUND"
    PRINCIPAL_CONFLICT = "PRINCIPAL_CONFLICT"
    INVALID_BLOOD_TYPE = "INVALID_BLOOD_TYPE"
    MEDICINE_NOT_FOUND = "MEDICINE_NOT_FOUND"
    MEDICINE_UNAVAILABLE = "MEDICINE_UNAVAILABLE"
    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"
    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
    REQUEST_TOO_LARGE = "REQUEST_TOO_LARGE"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"


class ApiError(HTTPException):
    """HTTP exception carrying stable API error envelope."""

    def __init__(
        self, *, status_code: int, error_code: ApiErrorCode, message: str
    ) -> None:
        """Build an HTTP exception with standard detail structure."""
        super().__init__(
            status_code=status_code,
            detail={"error_code": str(error_code), "message": message},
        )
        self.error_code = error_code
        self.message = message


def unauthorized(message: str, error_code: ApiErrorCode = ApiErrorCode.AUTH_TOKEN_INVALID) -> ApiError:
    return ApiError(status_code=401, error_code=error_code, message=message)


def forbidden(message: str) -> ApiError:
    return ApiError(status_code=403, error_code=ApiErrorCode.AUTH_FORBIDDEN, message=message)


def not_found(error_code: ApiErrorCode, message: str) -> ApiError:
    return ApiError(status_code=404, error_code=error_code, message=message)


def bad_request(error_code: ApiErrorCode, message: str) -> ApiError:
    return ApiError(status_code=400, error_code=error_code, message=message)


def to_error_payload(detail: Any, status_code: int) -> dict[str, str]:
    """Normalize HTTP exception detail into stable error payload."""
    if isinstance(detail, dict):
        error_code = str(detail.get("error_code") or f"HTTP_{status_code}")
        message = str(detail.get("message") or detail.get("detail") or "HTTP error")
        return {"error_code": error_code, "message": message}
    return {
        "error_code": f"HTTP_{status_code}",
        "message": str(detail or "HTTP error"),
    }
