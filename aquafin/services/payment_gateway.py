"""
Payment-rail boundary.

Bank and mobile-money transfers are executed by an external provider. This
module defines the interface the payout service talks to and a stub
implementation that "settles" instantly; a real integration subclasses
``PaymentGateway`` and is injected in its place.

``send_with_safeguards`` wraps any gateway call in the service's
resilience stack: a per-attempt timeout, retries with exponential backoff on
transient errors, and the ``payments`` circuit breaker, so a slow or dead
provider can never stall a request indefinitely.
"""

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict

from aquafin.core.config import settings
from aquafin.core.resilience import (
    call_with_timeout,
    payment_circuit_breaker,
    retry_with_backoff,
)
from aquafin.models.payout import Payout

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransferReceipt:
    """Provider acknowledgement of a completed transfer."""

    transfer_id: str
    payment_reference: str
    amount: Decimal


class PaymentGateway:
    """
    Interface for moving a payout's money to the investor.

    ``idempotency_key`` is stable for a payout; a provider that sees the same
    key twice must return the original transfer instead of sending again.
    """

    async def transfer(self, payout: Payout, idempotency_key: str) -> TransferReceipt:
        raise NotImplementedError


class StubPaymentGateway(PaymentGateway):
    """Settles immediately with a generated reference; no money moves."""

    def __init__(self) -> None:
        self._settled: Dict[str, TransferReceipt] = {}

    async def transfer(self, payout: Payout, idempotency_key: str) -> TransferReceipt:
        if idempotency_key in self._settled:
            logger.info(
                "Replaying settled transfer for key %s",
                idempotency_key,
                extra={"payout_id": str(payout.id)},
            )
            return self._settled[idempotency_key]
        transfer_id = f"tfr_{uuid.uuid4().hex[:12]}"
        reference = f"PAY-{str(payout.id)[:8].upper()}-{transfer_id[-6:].upper()}"
        logger.info(
            "Stub transfer %s for payout %s (%s)",
            transfer_id,
            payout.id,
            payout.amount,
            extra={"payout_id": str(payout.id)},
        )
        receipt = TransferReceipt(
            transfer_id=transfer_id, payment_reference=reference, amount=payout.amount
        )
        self._settled[idempotency_key] = receipt
        return receipt


async def send_with_safeguards(gateway: PaymentGateway, payout: Payout) -> TransferReceipt:
    """
    Run ``gateway.transfer`` behind timeout, retry and circuit breaker.

    Every attempt carries the payout id as its idempotency key, so a retry
    after a timeout that did settle cannot pay twice.
    """
    idempotency_key = str(payout.id)

    @retry_with_backoff(
        max_retries=settings.PAYMENT_MAX_RETRIES,
        base_delay=settings.PAYMENT_RETRY_BASE_DELAY,
    )
    async def _attempt() -> TransferReceipt:
        return await payment_circuit_breaker.call(
            call_with_timeout,
            gateway.transfer,
            settings.PAYMENT_TIMEOUT_SECONDS,
            payout,
            idempotency_key,
        )

    return await _attempt()
