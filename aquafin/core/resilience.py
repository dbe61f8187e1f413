"""
Fault-tolerance primitives for calls that leave the process.

1. **Circuit Breaker**: after ``failure_threshold`` consecutive failures the
   circuit opens and calls fail fast until ``recovery_timeout`` has elapsed;
   then one probe is let through (HALF_OPEN) and its outcome closes or
   re-opens the circuit. Two instances exist: ``db_circuit_breaker`` for the
   repositories and ``payment_circuit_breaker`` for the payment rail.

2. **Retry with exponential backoff**: ``retry_with_backoff`` re-invokes an
   async callable on transient errors with doubling, jittered delays.

3. **Timeout**: ``call_with_timeout`` bounds a single awaitable so a slow
   external call cannot hold a caller (or a lock it owns) indefinitely.
"""

import asyncio
import functools
import logging
import random
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Tuple, Type

from aquafin.core.config import settings

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS: Tuple[Type[Exception], ...] = (
    ConnectionError,
    OSError,
    TimeoutError,
    asyncio.TimeoutError,
)


# ────────────────────────────────────────────────────────────────────────────
# Circuit Breaker
# ────────────────────────────────────────────────────────────────────────────


class CircuitState(str, Enum):
    """Possible states of a circuit breaker."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerError(Exception):
    """Raised when a call is rejected because the circuit is open."""

    def __init__(self, name: str, retry_after: float):
        self.name = name
        self.retry_after = retry_after
        super().__init__(
            f"Circuit breaker '{name}' is OPEN; failing fast. "
            f"Retry after {retry_after:.1f}s."
        )


class CircuitBreaker:
    """
    Async circuit breaker.

    Parameters
    ----------
    name : str
        Identifier used in logs and health output (``"database"``, ``"payments"``).
    failure_threshold : int
        Consecutive failures before the circuit opens.
    recovery_timeout : float
        Seconds spent OPEN before a probe is allowed.
    expected_exceptions : tuple
        Exception types counted as failures; anything else passes through
        untouched (a domain error is not an outage).
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        expected_exceptions: Tuple[Type[Exception], ...] = (Exception,),
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.expected_exceptions = expected_exceptions

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: float = 0.0
        self._success_count = 0

    @property
    def state(self) -> CircuitState:
        """Current circuit state, with automatic OPEN → HALF_OPEN transition."""
        if self._state == CircuitState.OPEN:
            elapsed = time.monotonic() - self._last_failure_time
            if elapsed >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
                logger.info(
                    "Circuit '%s' → HALF_OPEN after %.1fs", self.name, elapsed
                )
        return self._state

    def _record_success(self) -> None:
        if self._state != CircuitState.CLOSED:
            logger.info(
                "Circuit '%s' → CLOSED (probe succeeded after %d failures)",
                self.name,
                self._failure_count,
            )
        self._failure_count = 0
        self._success_count += 1
        self._state = CircuitState.CLOSED

    def _record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = time.monotonic()

        if self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            logger.error(
                "Circuit '%s' → OPEN (failure #%d reached threshold %d); "
                "fast-failing for %.1fs",
                self.name,
                self._failure_count,
                self.failure_threshold,
                self.recovery_timeout,
            )
        else:
            logger.warning(
                "Circuit '%s' failure #%d/%d",
                self.name,
                self._failure_count,
                self.failure_threshold,
            )

    async def call(self, func: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> Any:
        """
        Execute ``func`` through the circuit breaker.

        Raises :class:`CircuitBreakerError` if the circuit is OPEN.
        """
        if self.state == CircuitState.OPEN:
            retry_after = self.recovery_timeout - (
                time.monotonic() - self._last_failure_time
            )
            raise CircuitBreakerError(self.name, max(retry_after, 0))

        try:
            result = await func(*args, **kwargs)
        except self.expected_exceptions:
            self._record_failure()
            raise
        self._record_success()
        return result

    def get_status(self) -> dict:
        """Return a dict suitable for the health-check endpoint."""
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self._failure_count,
            "failure_threshold": self.failure_threshold,
            "success_count": self._success_count,
            "recovery_timeout_s": self.recovery_timeout,
        }


db_circuit_breaker = CircuitBreaker(
    name="database",
    failure_threshold=settings.CB_FAILURE_THRESHOLD,
    recovery_timeout=settings.CB_RECOVERY_TIMEOUT,
    expected_exceptions=(ConnectionError, OSError, TimeoutError),
)

payment_circuit_breaker = CircuitBreaker(
    name="payments",
    failure_threshold=settings.CB_FAILURE_THRESHOLD,
    recovery_timeout=settings.CB_RECOVERY_TIMEOUT,
    expected_exceptions=TRANSIENT_ERRORS,
)


# ────────────────────────────────────────────────────────────────────────────
# Timeout + retry
# ────────────────────────────────────────────────────────────────────────────


async def call_with_timeout(
    func: Callable[..., Awaitable[Any]], timeout: float, *args: Any, **kwargs: Any
) -> Any:
    """Await ``func(*args, **kwargs)``, raising ``TimeoutError`` after ``timeout`` seconds."""
    try:
        return await asyncio.wait_for(func(*args, **kwargs), timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise TimeoutError(
            f"{getattr(func, '__qualname__', func)} timed out after {timeout:.1f}s"
        ) from exc


def retry_with_backoff(
    max_retries: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 10.0,
    jitter: bool = True,
    retryable_exceptions: Tuple[Type[Exception], ...] = TRANSIENT_ERRORS,
) -> Callable:
    """
    Decorator: retry an async function with exponential backoff.

    Parameters
    ----------
    max_retries : int
        Retry attempts after the initial call (0 = call once).
    base_delay : float
        Delay before the first retry; doubles each attempt.
    max_delay : float
        Cap on the delay between retries.
    jitter : bool
        Add 0–50% random jitter to each delay.
    retryable_exceptions : tuple
        Only these exception types trigger a retry.
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            last_exception: Optional[Exception] = None
            delay = base_delay

            for attempt in range(max_retries + 1):
                try:
                    return await func(*args, **kwargs)
                except retryable_exceptions as exc:
                    last_exception = exc
                    if attempt >= max_retries:
                        logger.error(
                            "All %d retries exhausted for %s: %s: %s",
                            max_retries,
                            func.__qualname__,
                            type(exc).__name__,
                            exc,
                        )
                        break
                    actual_delay = min(delay, max_delay)
                    if jitter:
                        actual_delay += random.uniform(0, actual_delay * 0.5)
                    logger.warning(
                        "Retry %d/%d for %s after %.2fs: %s: %s",
                        attempt + 1,
                        max_retries,
                        func.__qualname__,
                        actual_delay,
                        type(exc).__name__,
                        exc,
                    )
                    await asyncio.sleep(actual_delay)
                    delay *= 2

            raise last_exception  # type: ignore[misc]

        return wrapper

    return decorator
