"""
Unit tests for domain exceptions and exception handler registration.

Tests cover:
- AppException and the payout domain exceptions
- Default attributes (status_code, message)
- add_exception_handlers registration and response bodies
"""

import pytest

from aquafin.core.exceptions import (
    AppException,
    DuplicateOperationException,
    InvalidTransitionException,
    NotEligibleException,
    NotFoundException,
    PaymentGatewayException,
    ValidationException,
)
from aquafin.models.payout import PayoutStatus


class TestAppException:
    """Tests for the base AppException."""

    def test_attributes(self):
        exc = AppException(status_code=400, message="bad request", details={"key": "v"})
        assert exc.status_code == 400
        assert exc.message == "bad request"
        assert exc.details == {"key": "v"}

    def test_str_representation(self):
        exc = AppException(status_code=418, message="I'm a teapot")
        assert str(exc) == "I'm a teapot"


class TestNotFoundException:
    def test_status_and_message(self):
        exc = NotFoundException("Cycle", "abc-123")
        assert exc.status_code == 404
        assert exc.message == "Cycle with id 'abc-123' not found"
        assert exc.resource == "Cycle"
        assert isinstance(exc, AppException)


class TestPayoutDomainExceptions:
    """Status codes of the distribution and lifecycle errors."""

    def test_duplicate_is_409(self):
        assert DuplicateOperationException("already distributed").status_code == 409

    def test_invalid_transition_message_uses_enum_value(self):
        exc = InvalidTransitionException(PayoutStatus.PAID, "approve")
        assert exc.status_code == 409
        assert exc.message == "Cannot approve a payout in status 'paid'"
        assert exc.current is PayoutStatus.PAID
        assert exc.action == "approve"

    def test_invalid_transition_accepts_plain_string(self):
        exc = InvalidTransitionException("rejected", "process")
        assert "'rejected'" in exc.message

    def test_not_eligible_is_422(self):
        assert NotEligibleException("no stakes").status_code == 422

    def test_validation_carries_details(self):
        exc = ValidationException("revenue must be positive", details={"revenue": "-1"})
        assert exc.status_code == 422
        assert exc.details == {"revenue": "-1"}

    def test_payment_gateway_is_503(self):
        assert PaymentGatewayException("rail down").status_code == 503


class TestAddExceptionHandlers:
    """Tests that add_exception_handlers registers handlers on the FastAPI app."""

    def test_handlers_registered(self):
        from unittest.mock import MagicMock

        from aquafin.core.exceptions import add_exception_handlers

        mock_app = MagicMock()
        # exception_handler is used as a decorator, so we need it to return
        # a callable that accepts the handler function
        mock_app.exception_handler = MagicMock(return_value=lambda fn: fn)
        add_exception_handlers(mock_app)
        # AppException, CircuitBreakerError, StarletteHTTPException,
        # RequestValidationError, Exception
        assert mock_app.exception_handler.call_count == 5


class TestExceptionHandlersIntegration:
    """Invoke the actual exception handlers to cover their response logic."""

    @pytest.mark.asyncio
    async def test_app_exception_includes_details(self):
        from fastapi import FastAPI
        from httpx import ASGITransport, AsyncClient

        from aquafin.core.exceptions import add_exception_handlers

        app = FastAPI()
        add_exception_handlers(app)

        @app.get("/bad")
        async def bad():
            raise ValidationException("tax_rate_pct out of range", details={"max": 100})

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            resp = await client.get("/bad")
        assert resp.status_code == 422
        assert resp.json() == {
            "error": True,
            "message": "tax_rate_pct out of range",
            "details": {"max": 100},
        }

    @pytest.mark.asyncio
    async def test_circuit_breaker_handler_returns_503(self):
        """CircuitBreakerError → 503 with Retry-After header."""
        from fastapi import FastAPI
        from httpx import ASGITransport, AsyncClient

        from aquafin.core.exceptions import add_exception_handlers
        from aquafin.core.resilience import CircuitBreakerError

        app = FastAPI()
        add_exception_handlers(app)

        @app.get("/boom")
        async def boom():
            raise CircuitBreakerError(name="payments", retry_after=10.0)

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            resp = await client.get("/boom")
        assert resp.status_code == 503
        assert resp.headers["Retry-After"] == "10"
        body = resp.json()
        assert body["error"] is True
        assert "payments circuit is open" in body["message"]

    @pytest.mark.asyncio
    async def test_retry_after_is_at_least_one_second(self):
        from fastapi import FastAPI
        from httpx import ASGITransport, AsyncClient

        from aquafin.core.exceptions import add_exception_handlers
        from aquafin.core.resilience import CircuitBreakerError

        app = FastAPI()
        add_exception_handlers(app)

        @app.get("/boom")
        async def boom():
            raise CircuitBreakerError(name="database", retry_after=0.2)

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            resp = await client.get("/boom")
        assert resp.headers["Retry-After"] == "1"

    @pytest.mark.asyncio
    async def test_global_500_handler(self):
        """Unhandled exception → 500 with generic message."""
        from fastapi import FastAPI
        from httpx import ASGITransport, AsyncClient

        from aquafin.core.exceptions import add_exception_handlers

        # debug=False prevents Starlette's ServerErrorMiddleware from
        # re-raising the exception before our catch-all handler runs.
        app = FastAPI(debug=False)
        add_exception_handlers(app)

        @app.get("/crash")
        async def crash():
            raise RuntimeError("unexpected")

        async with AsyncClient(
            transport=ASGITransport(app=app, raise_app_exceptions=False),
            base_url="http://test",
        ) as client:
            resp = await client.get("/crash")
        assert resp.status_code == 500
        body = resp.json()
        assert body["error"] is True
        assert "Internal Server Error" in body["message"]

    @pytest.mark.asyncio
    async def test_validation_handler_returns_422(self):
        """Pydantic validation error → 422 with field details."""
        from fastapi import FastAPI
        from httpx import ASGITransport, AsyncClient
        from pydantic import BaseModel

        from aquafin.core.exceptions import add_exception_handlers

        app = FastAPI()
        add_exception_handlers(app)

        class Body(BaseModel):
            revenue: float

        @app.post("/validate")
        async def validate(body: Body):
            return {"ok": True}

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            resp = await client.post("/validate", json={})
        assert resp.status_code == 422
        body = resp.json()
        assert body["message"] == "Validation failed"
        assert body["details"][0]["field"] == "body -> revenue"

    @pytest.mark.asyncio
    async def test_http_exception_handler(self):
        """StarletteHTTPException (e.g. 404 from unknown route) → proper JSON."""
        from fastapi import FastAPI
        from httpx import ASGITransport, AsyncClient

        from aquafin.core.exceptions import add_exception_handlers

        app = FastAPI()
        add_exception_handlers(app)

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            resp = await client.get("/nonexistent")
        assert resp.status_code == 404
        assert resp.json()["error"] is True
