"""Gestion standardisée des erreurs API avec enveloppes d'erreur.

Ce module fournit une gestion centralisée des erreurs avec des enveloppes standardisées
(`{code, message, trace_id, details}`), la correspondance des erreurs du cycle de vie vers les
statuts HTTP et l'enregistrement des handlers sur l'application FastAPI.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from portal.core.http_constants import (
    HTTP_BAD_REQUEST,
    HTTP_CONFLICT,
    HTTP_FORBIDDEN,
    HTTP_INTERNAL_SERVER_ERROR,
    HTTP_NOT_FOUND,
    HTTP_UNPROCESSABLE_ENTITY,
)
from portal.domain.access import ForbiddenReason
from portal.domain.errors import (
    ConflictError,
    IllegalTransitionError,
    InvalidStateError,
    LifecycleError,
    NotFoundError,
    PermissionDeniedError,
    ScheduleConflictError,
    ValidationError,
)

log = logging.getLogger(__name__)


@dataclass
class ErrorEnvelope:
    """Standard error envelope for API responses."""

    code: str
    message: str
    trace_id: str | None = None
    details: dict[str, Any] | None = None


class APIError(HTTPException):
    """Custom API error with standard envelope."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        trace_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize an API error with standardized envelope."""
        super().__init__(status_code=status_code, detail=message)
        self.code = code
        self.message = message
        self.trace_id = trace_id
        self.details = details


class ErrorCodes:
    """Standard error codes for the API."""

    BAD_REQUEST = "BAD_REQUEST"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"

    # Cycle de vie
    ILLEGAL_TRANSITION = "ILLEGAL_TRANSITION"
    INVALID_STATE = "INVALID_STATE"
    SCHEDULE_CONFLICT = "SCHEDULE_CONFLICT"


_LIFECYCLE_STATUS: dict[type[LifecycleError], int] = {
    ValidationError: HTTP_BAD_REQUEST,
    IllegalTransitionError: HTTP_CONFLICT,
    InvalidStateError: HTTP_CONFLICT,
    NotFoundError: HTTP_NOT_FOUND,
    ScheduleConflictError: HTTP_CONFLICT,
    ConflictError: HTTP_CONFLICT,
    PermissionDeniedError: HTTP_FORBIDDEN,
}


def create_error_response(
    status_code: int,
    code: str,
    message: str,
    trace_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    """Create a standardized error response."""
    envelope = ErrorEnvelope(code=code, message=message, trace_id=trace_id, details=details)
    return JSONResponse(
        status_code=status_code,
        content={
            "code": envelope.code,
            "message": envelope.message,
            "trace_id": envelope.trace_id,
            **({"details": envelope.details} if envelope.details else {}),
        },
    )


def extract_trace_id(request: Request) -> str | None:
    """Extract trace ID from request headers or request state."""
    trace_id = request.headers.get("X-Trace-ID")
    if trace_id:
        return trace_id
    if hasattr(request.state, "trace_id"):
        return request.state.trace_id
    return None


def handle_api_error(request: Request, exc: APIError) -> JSONResponse:
    """Handle APIError exceptions with standard envelope."""
    trace_id = extract_trace_id(request) or exc.trace_id
    log.warning(
        "API error occurred",
        extra={
            "code": exc.code,
            "error_message": exc.message,
            "status_code": exc.status_code,
            "trace_id": trace_id,
        },
    )
    return create_error_response(exc.status_code, exc.code, exc.message, trace_id, exc.details)


def handle_lifecycle_error(request: Request, exc: LifecycleError) -> JSONResponse:
    """Traduit une erreur du domaine en enveloppe HTTP (400/403/404/409)."""
    status_code = HTTP_BAD_REQUEST
    for cls in type(exc).__mro__:
        if cls in _LIFECYCLE_STATUS:
            status_code = _LIFECYCLE_STATUS[cls]
            break
    trace_id = extract_trace_id(request)
    log.info(
        "Lifecycle error",
        extra={"code": exc.code, "status_code": status_code, "trace_id": trace_id},
    )
    return create_error_response(status_code, exc.code, exc.message, trace_id, exc.details)


def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle body/query validation failures with the standard envelope."""
    return create_error_response(
        HTTP_UNPROCESSABLE_ENTITY,
        ErrorCodes.VALIDATION_ERROR,
        "Request validation failed",
        extract_trace_id(request),
        {"errors": [{"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in exc.errors()]},
    )


def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle FastAPI HTTPException with standard envelope."""
    error_codes = {
        400: ErrorCodes.BAD_REQUEST,
        403: ErrorCodes.FORBIDDEN,
        404: ErrorCodes.NOT_FOUND,
        409: ErrorCodes.CONFLICT,
        422: ErrorCodes.VALIDATION_ERROR,
        500: ErrorCodes.INTERNAL_ERROR,
    }
    code = error_codes.get(exc.status_code, "HTTP_ERROR")
    return create_error_response(
        exc.status_code, code, str(exc.detail), extract_trace_id(request)
    )


def handle_generic_exception(request: Request, exc: Exception) -> JSONResponse:
    """Handle generic exceptions with standard envelope."""
    trace_id = extract_trace_id(request)
    log.error(
        "Unexpected error occurred",
        extra={
            "code": ErrorCodes.INTERNAL_ERROR,
            "trace_id": trace_id,
            "exception_type": type(exc).__name__,
        },
        exc_info=True,
    )
    return create_error_response(
        HTTP_INTERNAL_SERVER_ERROR,
        ErrorCodes.INTERNAL_ERROR,
        "An unexpected error occurred",
        trace_id,
    )


def register_error_handlers(app: FastAPI) -> None:
    """Branche les handlers d'erreurs standard sur l'application."""
    app.add_exception_handler(APIError, handle_api_error)
    app.add_exception_handler(LifecycleError, handle_lifecycle_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(HTTPException, handle_http_exception)
    app.add_exception_handler(Exception, handle_generic_exception)


def download_forbidden(reason: ForbiddenReason, trace_id: str | None = None) -> APIError:
    """403 de refus de téléchargement, motif exposé dans `details.reason`."""
    return APIError(
        HTTP_FORBIDDEN, ErrorCodes.FORBIDDEN, reason.message, trace_id, {"reason": reason.value}
    )
