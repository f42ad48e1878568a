"""Gestion standardisée des erreurs API avec enveloppes d'erreur.

Ce module fournit une gestion centralisée des erreurs avec des enveloppes standardisées
(`{code, message, trace_id, details}`), et traduit les erreurs du domaine de contenu en réponses
HTTP.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from backend.core.http_constants import (
    HTTP_BAD_REQUEST,
    HTTP_CONFLICT,
    HTTP_FORBIDDEN,
    HTTP_INTERNAL_SERVER_ERROR,
    HTTP_METHOD_NOT_ALLOWED,
    HTTP_NOT_FOUND,
    HTTP_UNAUTHORIZED,
    HTTP_UNPROCESSABLE_ENTITY,
)
from backend.domain.errors import (
    InvalidTransition,
    NotAuthorized,
    NotFoundError,
    ValidationFailed,
)

log = structlog.get_logger(__name__)


class ErrorCodes:
    """Standard error codes for the API."""

    BAD_REQUEST = "BAD_REQUEST"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
    CONFLICT = "CONFLICT"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


_STATUS_CODES = {
    HTTP_BAD_REQUEST: ErrorCodes.BAD_REQUEST,
    HTTP_UNAUTHORIZED: ErrorCodes.UNAUTHORIZED,
    HTTP_FORBIDDEN: ErrorCodes.FORBIDDEN,
    HTTP_NOT_FOUND: ErrorCodes.NOT_FOUND,
    HTTP_METHOD_NOT_ALLOWED: ErrorCodes.METHOD_NOT_ALLOWED,
    HTTP_CONFLICT: ErrorCodes.CONFLICT,
    HTTP_UNPROCESSABLE_ENTITY: ErrorCodes.VALIDATION_ERROR,
    HTTP_INTERNAL_SERVER_ERROR: ErrorCodes.INTERNAL_ERROR,
}


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
    """Trace ID: en-tête `X-Request-ID`, sinon l'identifiant posé par le middleware."""
    trace_id = request.headers.get("X-Request-ID")
    if trace_id:
        return trace_id
    return getattr(request.state, "request_id", None)


def unauthorized(message: str) -> APIError:
    """Create a 401 Unauthorized error."""
    return APIError(HTTP_UNAUTHORIZED, ErrorCodes.UNAUTHORIZED, message)


def handle_api_error(request: Request, exc: APIError) -> JSONResponse:
    """Handle APIError exceptions with standard envelope."""
    trace_id = extract_trace_id(request) or exc.trace_id
    log.warning("api_error", code=exc.code, status_code=exc.status_code)
    return create_error_response(exc.status_code, exc.code, exc.message, trace_id, exc.details)


def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTPException with standard envelope."""
    code = _STATUS_CODES.get(exc.status_code, "HTTP_ERROR")
    log.warning("http_exception", code=code, status_code=exc.status_code)
    return create_error_response(
        exc.status_code, code, str(exc.detail), extract_trace_id(request)
    )


def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Erreurs de schéma des requêtes, regroupées par champ comme les erreurs métier."""
    errors: dict[str, list[str]] = {}
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        errors.setdefault(".".join(loc) or "request", []).append(err.get("msg", "invalid"))
    return create_error_response(
        HTTP_UNPROCESSABLE_ENTITY,
        ErrorCodes.VALIDATION_ERROR,
        "Invalid request",
        extract_trace_id(request),
        {"errors": errors},
    )


def handle_validation_failed(request: Request, exc: ValidationFailed) -> JSONResponse:
    log.info("validation_failed", fields=sorted(exc.errors))
    return create_error_response(
        HTTP_UNPROCESSABLE_ENTITY,
        ErrorCodes.VALIDATION_ERROR,
        "Validation failed",
        extract_trace_id(request),
        {"errors": exc.errors},
    )


def handle_not_found(request: Request, exc: NotFoundError) -> JSONResponse:
    return create_error_response(
        HTTP_NOT_FOUND,
        ErrorCodes.NOT_FOUND,
        str(exc),
        extract_trace_id(request),
        {"resource": exc.resource},
    )


def handle_not_authorized(request: Request, exc: NotAuthorized) -> JSONResponse:
    log.info("not_authorized", action=exc.action)
    return create_error_response(
        HTTP_FORBIDDEN, ErrorCodes.FORBIDDEN, str(exc), extract_trace_id(request)
    )


def handle_invalid_transition(request: Request, exc: InvalidTransition) -> JSONResponse:
    log.error("invalid_transition", state=exc.state, publish_event=exc.event)
    return create_error_response(
        HTTP_CONFLICT, ErrorCodes.CONFLICT, str(exc), extract_trace_id(request)
    )


def handle_generic_exception(request: Request, exc: Exception) -> JSONResponse:
    """Handle generic exceptions with standard envelope."""
    log.error("unexpected_error", exception_type=type(exc).__name__, exc_info=exc)
    return create_error_response(
        HTTP_INTERNAL_SERVER_ERROR,
        ErrorCodes.INTERNAL_ERROR,
        "An unexpected error occurred",
        extract_trace_id(request),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Branche les handlers d'erreurs sur l'application."""
    app.add_exception_handler(APIError, handle_api_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(ValidationFailed, handle_validation_failed)
    app.add_exception_handler(NotFoundError, handle_not_found)
    app.add_exception_handler(NotAuthorized, handle_not_authorized)
    app.add_exception_handler(InvalidTransition, handle_invalid_transition)
    app.add_exception_handler(Exception, handle_generic_exception)
