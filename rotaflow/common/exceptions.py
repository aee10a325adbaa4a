"""Custom exceptions and the ``{success, error, details}`` error envelope."""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

logger = logging.getLogger(__name__)


# ── Exception hierarchy ─────────────────────────────────────────────

class AppException(Exception):
    """Base for all application exceptions → error envelope JSON."""

    def __init__(
        self,
        status_code: int,
        error_type: str,
        detail: str,
        errors: Optional[list[dict[str, Any]]] = None,
    ) -> None:
        self.status_code = status_code
        self.error_type = error_type
        self.detail = detail
        self.errors = errors
        super().__init__(detail)


class UnauthorizedException(AppException):
    """401 — missing or invalid caller identity."""

    def __init__(self, detail: str = "Unauthorized") -> None:
        super().__init__(status_code=401, error_type="unauthorized", detail=detail)


class ForbiddenException(AppException):
    """403 — role or location scope denies the action."""

    def __init__(
        self,
        detail: str = "You do not have permission to perform this action.",
    ) -> None:
        super().__init__(status_code=403, error_type="forbidden", detail=detail)


class NotFoundException(AppException):
    """404 — entity absent or outside the caller's tenant."""

    def __init__(self, entity_type: str, entity_id: Any = None, detail: Optional[str] = None) -> None:
        if detail is None:
            if entity_id is None:
                detail = f"{entity_type} not found."
            else:
                detail = f"{entity_type} with id '{entity_id}' does not exist."
        super().__init__(status_code=404, error_type="not-found", detail=detail)


class ConflictError(AppException):
    """409 — duplicate assignment, overlapping leave, already-open break."""

    def __init__(self, field: str, value: Any, detail: Optional[str] = None) -> None:
        super().__init__(
            status_code=409,
            error_type="conflict",
            detail=detail or f"An entry with {field}='{value}' already exists.",
            errors=[{"field": field, "message": f"'{value}' is already in use."}],
        )


class InvalidStateException(AppException):
    """400 — the entity is in the wrong lifecycle state for the request."""

    def __init__(self, detail: str) -> None:
        super().__init__(status_code=400, error_type="invalid-state", detail=detail)


class ValidationException(AppException):
    """400 — business-logic validation failures, keyed by field path."""

    def __init__(self, errors: dict[str, list[str]]) -> None:
        super().__init__(
            status_code=400,
            error_type="validation-error",
            detail="One or more fields failed validation.",
            errors=[
                {"field": field, "message": message}
                for field, messages in errors.items()
                for message in messages
            ],
        )


# ── Envelope builder ────────────────────────────────────────────────

def _error_body(error: str, details: Optional[list[dict[str, Any]]] = None) -> dict[str, Any]:
    body: dict[str, Any] = {"success": False, "error": error}
    if details:
        body["details"] = details
    return body


# ── FastAPI handlers ────────────────────────────────────────────────

async def _handle_app_exception(
    request: Request,
    exc: AppException,
) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.detail, exc.errors),
    )


async def _handle_http_exception(
    request: Request,
    exc: HTTPException,
) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def _handle_validation_error(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    details: list[dict[str, Any]] = []
    for err in exc.errors():
        loc = err.get("loc", ())
        name = (
            ".".join(str(p) for p in loc[1:])
            if len(loc) > 1
            else str(loc[0]) if loc else "unknown"
        )
        details.append({"field": name, "message": err.get("msg", "Invalid value")})

    return JSONResponse(
        status_code=400,
        content=_error_body("Request validation failed.", details),
    )


async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=_error_body("Internal server error"),
    )


# ── Registration helper (called from main.py) ──────────────────────

def register_exception_handlers(app: FastAPI) -> None:
    """Attach all custom exception handlers to the FastAPI app."""
    app.add_exception_handler(AppException, _handle_app_exception)              # type: ignore[arg-type]
    app.add_exception_handler(HTTPException, _handle_http_exception)            # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _handle_validation_error)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _handle_unexpected)
