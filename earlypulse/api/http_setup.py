"""HTTP middleware and exception handler wiring for the EarlyPulse API."""

from __future__ import annotations

import uuid
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from earlypulse.api.contracts import ApiErrorResponse
from earlypulse.api.errors import ApiErrorCode, to_error_payload
from earlypulse.core.config import AppConfig
from earlypulse.core.logging import set_correlation_id

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
}


def _request_extra(request: Request, status_code: int) -> dict[str, Any]:
    """Log fields for a request, including the caller once auth has resolved one."""
    extra: dict[str, Any] = {
        "path": request.url.path,
        "method": request.method,
        "status_code": status_code,
    }
    principal = getattr(request.state, "principal", None)
    if principal is not None:
        extra["principal_id"] = principal.principal_id
        extra["principal_type"] = str(principal.principal_type)
    return extra


def validation_message(exc: RequestValidationError) -> str:
    """Summarise validation errors by field location and reason only.

    Submitted values are left out so passwords and tokens never reach the body.
    """
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()))
        reason = error.get("msg", "Invalid value")
        parts.append(f"{location}: {reason}" if location else str(reason))
    return "; ".join(parts) or "Request validation failed"


def register_http_middleware(app: FastAPI, *, config: AppConfig, logger: Any) -> None:
    """Attach the body size limit, security headers and request logging."""
    max_bytes = config.security.request_max_bytes

    @app.middleware("http")
    async def request_size_limit_middleware(request: Request, call_next):
        try:
            declared = int(request.headers.get("content-length") or 0)
        except ValueError:
            declared = 0
        if declared > max_bytes:
            logger.warning("request_rejected_too_large", extra=_request_extra(request, 413))
            return JSONResponse(
                status_code=413,
                content=ApiErrorResponse(
                    error_code=ApiErrorCode.REQUEST_TOO_LARGE,
                    message=f"Request body exceeds {max_bytes} bytes",
                ).model_dump(),
            )
        return await call_next(request)

    @app.middleware("http")
    async def request_logging_middleware(request: Request, call_next):
        correlation_id = (
            request.headers.get("x-request-id")
            or request.headers.get("x-correlation-id")
            or uuid.uuid4().hex
        )
        set_correlation_id(correlation_id)
        response = await call_next(request)
        response.headers["X-Request-ID"] = correlation_id
        response.headers.update(SECURITY_HEADERS)
        logger.info("request_completed", extra=_request_extra(request, response.status_code))
        return response


def register_exception_handlers(app: FastAPI, *, logger: Any) -> None:
    """Map every failure onto the ``{error_code, message}`` envelope."""

    @app.exception_handler(HTTPException)
    async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
        payload = to_error_payload(exc.detail, exc.status_code)
        extra = _request_extra(request, exc.status_code)
        extra["error_code"] = payload["error_code"]
        logger.warning("http_exception", extra=extra)
        return JSONResponse(
            status_code=exc.status_code,
            content=ApiErrorResponse(**payload).model_dump(),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_exception(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        logger.warning("validation_exception", extra=_request_extra(request, 422))
        return JSONResponse(
            status_code=422,
            content=ApiErrorResponse(
                error_code=ApiErrorCode.VALIDATION_ERROR,
                message=validation_message(exc),
            ).model_dump(),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_exception(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("unexpected_exception", extra=_request_extra(request, 500))
        return JSONResponse(
            status_code=500,
            content=ApiErrorResponse(
                error_code=ApiErrorCode.INTERNAL_SERVER_ERROR,
                message="Internal server error",
            ).model_dump(),
        )
