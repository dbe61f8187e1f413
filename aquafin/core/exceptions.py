"""
Global exception handlers for the FastAPI application.

Centralises error formatting so every error response follows a consistent
JSON structure::

    {
        "error": true,
        "message": "<human-readable description>"
    }

This module also defines the payout domain's exception taxonomy, raised by
the service layer without importing FastAPI's HTTPException so that the
lifecycle manager and analytics engine stay framework-agnostic.
"""

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from aquafin.core.resilience import CircuitBreakerError

logger = logging.getLogger(__name__)


# ────────────────────────────────────────────────────────────────────────────
# Domain exceptions  (raised by service layer, caught by handlers below)
# ────────────────────────────────────────────────────────────────────────────


class AppException(Exception):
    """Base exception for all application-level errors."""

    def __init__(self, status_code: int, message: str, details: Any = None):
        self.status_code = status_code
        self.message = message
        self.details = details
        super().__init__(message)


class NotFoundException(AppException):
    """Referenced cycle, cage, investor or payout does not exist (404)."""

    def __init__(self, resource: str, identifier: Any):
        self.resource = resource
        super().__init__(
            status_code=404,
            message=f"{resource} with id '{identifier}' not found",
        )


class DuplicateOperationException(AppException):
    """Distribution has already been run for this cycle (409)."""

    def __init__(self, message: str):
        super().__init__(status_code=409, message=message)


class InvalidTransitionException(AppException):
    """Payout lifecycle violation, e.g. processing a pending payout (409)."""

    def __init__(self, current: Any, action: str, details: Any = None):
        self.current = current
        self.action = action
        current_value = getattr(current, "value", current)
        super().__init__(
            status_code=409,
            message=f"Cannot {action} a payout in status '{current_value}'",
            details=details,
        )


class NotEligibleException(AppException):
    """Nothing to distribute: the cycle has no eligible investments (422)."""

    def __init__(self, message: str):
        super().__init__(status_code=422, message=message)


class ValidationException(AppException):
    """Missing or non-positive required numeric input (422)."""

    def __init__(self, message: str, details: Any = None):
        super().__init__(status_code=422, message=message, details=details)


class PaymentGatewayException(AppException):
    """Payment rail timed out, kept failing, or its circuit is open (503)."""

    def __init__(self, message: str):
        super().__init__(status_code=503, message=message)


# ────────────────────────────────────────────────────────────────────────────
# FastAPI exception handler registration
# ────────────────────────────────────────────────────────────────────────────


def add_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI application instance."""

    @app.exception_handler(AppException)
    async def app_exception_handler(
        request: Request, exc: AppException
    ) -> JSONResponse:
        """Handle domain-specific exceptions raised by the service layer."""
        content: dict[str, Any] = {"error": True, "message": exc.message}
        if exc.details is not None:
            content["details"] = exc.details
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(CircuitBreakerError)
    async def circuit_breaker_handler(
        request: Request, exc: CircuitBreakerError
    ) -> JSONResponse:
        """An open circuit (database or payment rail) is a temporary outage: 503."""
        logger.warning("Rejected %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=503,
            content={
                "error": True,
                "message": f"Service temporarily unavailable: the {exc.name} circuit is open",
            },
            headers={"Retry-After": str(max(1, int(exc.retry_after)))},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        """Handle standard HTTP exceptions (e.g. 404 from path-not-found)."""
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": True, "message": exc.detail},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """
        Handle Pydantic / FastAPI request-validation errors.

        Returns a 422 with a concise list of validation issues so the caller
        knows exactly which fields failed and why.
        """
        errors = []
        for err in exc.errors():
            loc = " -> ".join(str(part) for part in err["loc"])
            errors.append({"field": loc, "message": err["msg"]})
        return JSONResponse(
            status_code=422,
            content={"error": True, "message": "Validation failed", "details": errors},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Catch-all for unexpected exceptions: log with traceback, return 500."""
        logger.exception(
            "Unhandled exception on %s %s", request.method, request.url.path
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": True,
                "message": "Internal Server Error. Please contact support.",
            },
        )
