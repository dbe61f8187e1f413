"""
Unit tests for the payment-rail boundary.

Tests cover:
- StubPaymentGateway receipt format and idempotent replay
- send_with_safeguards: retry on transient errors, timeout, open circuit
"""

import asyncio
import time
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest

from aquafin.core.config import settings
from aquafin.core.resilience import CircuitBreakerError, CircuitState, payment_circuit_breaker
from aquafin.models.payout import PayoutStatus
from aquafin.services.payment_gateway import (
    PaymentGateway,
    StubPaymentGateway,
    TransferReceipt,
    send_with_safeguards,
)

from .conftest import PAYOUT_ID, make_payout


class _FlakyGateway(PaymentGateway):
    """Fails with a connection reset ``failures`` times, then settles."""

    def __init__(self, failures: int):
        self.failures = failures
        self.calls = 0
        self.keys = []

    async def transfer(self, payout, idempotency_key):
        self.calls += 1
        self.keys.append(idempotency_key)
        if self.calls <= self.failures:
            raise ConnectionError("connection reset by provider")
        return TransferReceipt("tfr_1", "MPESA-OK", payout.amount)


class _HangingGateway(PaymentGateway):
    async def transfer(self, payout, idempotency_key):
        await asyncio.sleep(60)


# ────────────────────────────────────────────────────────────────────────────
# StubPaymentGateway
# ────────────────────────────────────────────────────────────────────────────


class TestStubPaymentGateway:
    @pytest.mark.asyncio
    async def test_receipt_reference_embeds_payout_id(self):
        payout = make_payout(amount=Decimal("1900.00"), status=PayoutStatus.PROCESSING)

        receipt = await StubPaymentGateway().transfer(payout, str(payout.id))

        assert receipt.amount == Decimal("1900.00")
        assert receipt.transfer_id.startswith("tfr_")
        assert receipt.payment_reference.startswith(f"PAY-{str(PAYOUT_ID)[:8].upper()}-")

    @pytest.mark.asyncio
    async def test_repeated_key_replays_the_first_transfer(self):
        gateway = StubPaymentGateway()
        payout = make_payout(status=PayoutStatus.PROCESSING)

        first = await gateway.transfer(payout, str(payout.id))
        second = await gateway.transfer(payout, str(payout.id))

        assert second == first

    @pytest.mark.asyncio
    async def test_base_gateway_is_abstract(self):
        with pytest.raises(NotImplementedError):
            await PaymentGateway().transfer(make_payout(), "key")


# ────────────────────────────────────────────────────────────────────────────
# send_with_safeguards
# ────────────────────────────────────────────────────────────────────────────


class TestSendWithSafeguards:
    @pytest.mark.asyncio
    async def test_retries_until_provider_settles(self):
        gateway = _FlakyGateway(failures=2)

        with patch("aquafin.core.resilience.asyncio.sleep", new_callable=AsyncMock):
            receipt = await send_with_safeguards(gateway, make_payout())

        assert receipt.payment_reference == "MPESA-OK"
        assert gateway.calls == 3
        assert gateway.keys == [str(PAYOUT_ID)] * 3
        assert payment_circuit_breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_slow_provider_times_out(self):
        with patch.object(settings, "PAYMENT_TIMEOUT_SECONDS", 0.01), patch.object(
            settings, "PAYMENT_MAX_RETRIES", 0
        ):
            with pytest.raises(TimeoutError):
                await send_with_safeguards(_HangingGateway(), make_payout())

    @pytest.mark.asyncio
    async def test_open_circuit_rejects_without_calling_provider(self):
        payment_circuit_breaker._state = CircuitState.OPEN
        payment_circuit_breaker._last_failure_time = time.monotonic()
        gateway = _FlakyGateway(failures=0)

        with pytest.raises(CircuitBreakerError):
            await send_with_safeguards(gateway, make_payout())

        assert gateway.calls == 0
