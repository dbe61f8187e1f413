"""
Shared pytest fixtures for unit tests.

All tests run with ``USE_SQLITE=true`` and mocked repositories so that no
real database, payment rail or network I/O is needed.
"""

import os

os.environ.setdefault("USE_SQLITE", "true")

import uuid  # noqa: E402
from datetime import date, datetime, timezone  # noqa: E402
from decimal import Decimal  # noqa: E402
from typing import Any, List, Optional  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy.exc import IntegrityError  # noqa: E402

from aquafin.core.cache import TTLCache  # noqa: E402
from aquafin.core.resilience import CircuitState, payment_circuit_breaker  # noqa: E402
from aquafin.models.cage import Cage  # noqa: E402
from aquafin.models.cycle import Cycle, CycleStatus  # noqa: E402
from aquafin.models.investment import Investment  # noqa: E402
from aquafin.models.investor import Investor  # noqa: E402
from aquafin.models.payout import DistributionRun, Payout, PayoutStatus  # noqa: E402

# ────────────────────────────────────────────────────────────────────────────
# Factory helpers: domain objects with sensible defaults
# ────────────────────────────────────────────────────────────────────────────

CAGE_ID = uuid.UUID("11111111-1111-1111-1111-111111111111")
CYCLE_ID = uuid.UUID("22222222-2222-2222-2222-222222222222")
INVESTOR_ID = uuid.UUID("33333333-3333-3333-3333-333333333333")
INVESTOR_ID_2 = uuid.UUID("44444444-4444-4444-4444-444444444444")
PAYOUT_ID = uuid.UUID("55555555-5555-5555-5555-555555555555")
RUN_ID = uuid.UUID("66666666-6666-6666-6666-666666666666")
CYCLE_ID_2 = uuid.UUID("77777777-7777-7777-7777-777777777777")


def make_cage(*, id: uuid.UUID = CAGE_ID, name: str = "Lake Cage 1", code: str = "LC-01") -> Cage:
    return Cage(id=id, name=name, code=code)


def make_cycle(
    *,
    id: uuid.UUID = CYCLE_ID,
    cage_id: uuid.UUID = CAGE_ID,
    status: CycleStatus = CycleStatus.ACTIVE,
    start_date: date = date(2025, 1, 1),
    end_date: Optional[date] = None,
    initial_stock: int = 10_000,
    harvested_stock: Optional[int] = None,
    revenue: Optional[Decimal] = None,
    profit: Optional[Decimal] = None,
    biomass_end: Optional[Decimal] = None,
    fcr: Optional[Decimal] = None,
) -> Cycle:
    """Create a Cycle domain object with sensible test defaults."""
    return Cycle(
        id=id,
        cage_id=cage_id,
        species="tilapia",
        status=status,
        start_date=start_date,
        end_date=end_date,
        initial_stock=initial_stock,
        harvested_stock=harvested_stock,
        revenue=revenue,
        profit=profit,
        biomass_end=biomass_end,
        fcr=fcr,
    )


def make_investor(
    *,
    id: uuid.UUID = INVESTOR_ID,
    name: str = "Grace Nakato",
    email: str = "grace@example.com",
    total_investment: Decimal = Decimal("0"),
    total_returns: Decimal = Decimal("0"),
    roi: Decimal = Decimal("0"),
) -> Investor:
    """Create an Investor domain object with sensible test defaults."""
    return Investor(
        id=id,
        name=name,
        email=email,
        total_investment=total_investment,
        total_returns=total_returns,
        roi=roi,
        created_at=datetime.now(timezone.utc),
    )


def make_investment(
    *,
    investor_id: uuid.UUID = INVESTOR_ID,
    cage_id: uuid.UUID = CAGE_ID,
    cycle_id: Optional[uuid.UUID] = CYCLE_ID,
    amount: Optional[Decimal] = Decimal("1000"),
    share_units: Decimal = Decimal("10"),
    unit_price: Optional[Decimal] = None,
    start_date: date = date(2025, 1, 1),
) -> Investment:
    """Create an Investment (stake) with sensible test defaults."""
    return Investment(
        id=uuid.uuid4(),
        investor_id=investor_id,
        cage_id=cage_id,
        cycle_id=cycle_id,
        amount=amount,
        share_units=share_units,
        unit_price=unit_price,
        start_date=start_date,
    )


def make_payout(
    *,
    id: uuid.UUID = PAYOUT_ID,
    investor_id: uuid.UUID = INVESTOR_ID,
    cycle_id: uuid.UUID = CYCLE_ID,
    amount: Decimal = Decimal("720.00"),
    status: PayoutStatus = PayoutStatus.PENDING,
    created_at: Optional[datetime] = None,
    paid_at: Optional[datetime] = None,
    reference: Optional[str] = None,
) -> Payout:
    """Create a Payout domain object with sensible test defaults."""
    now = created_at or datetime.now(timezone.utc)
    return Payout(
        id=id,
        investor_id=investor_id,
        cycle_id=cycle_id,
        distribution_id=RUN_ID,
        distribution_reference=f"HARVEST-ABCD1234-{str(investor_id)[:8]}",
        amount=amount,
        status=status,
        reference=reference,
        created_at=now,
        updated_at=now,
        paid_at=paid_at,
    )


class RecordingUnitOfWork:
    """
    Stand-in for ``UnitOfWork`` that keeps what was committed in ``store``.

    A second run for a cycle already in ``store.runs`` fails the commit with
    ``IntegrityError``, like the UNIQUE ``distribution_runs.cycle_id`` does.
    """

    def __init__(self, store: "CommitStore"):
        self._store = store
        self._staged: List[Any] = []

    def add(self, entity: Any) -> None:
        self._staged.append(entity)

    async def __aenter__(self) -> "RecordingUnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None:
            self._staged.clear()
            return False
        runs = [e for e in self._staged if isinstance(e, DistributionRun)]
        if any(run.cycle_id in self._store.runs for run in runs):
            self._staged.clear()
            raise IntegrityError("INSERT INTO distribution_runs", {}, Exception("UNIQUE"))
        for run in runs:
            self._store.runs[run.cycle_id] = run
        self._store.payouts.extend(e for e in self._staged if isinstance(e, Payout))
        self._store.other.extend(
            e for e in self._staged if not isinstance(e, (DistributionRun, Payout))
        )
        self._store.commits += 1
        self._staged.clear()
        return False


class CommitStore:
    """What ``RecordingUnitOfWork`` instances have committed so far."""

    def __init__(self):
        self.runs: dict = {}
        self.payouts: List[Payout] = []
        self.other: List[Any] = []
        self.commits = 0

    def uow(self) -> RecordingUnitOfWork:
        return RecordingUnitOfWork(self)


# ────────────────────────────────────────────────────────────────────────────
# Pytest fixtures
# ────────────────────────────────────────────────────────────────────────────


@pytest.fixture()
def mock_db():
    """A mocked AsyncSession that tracks add/commit/refresh/rollback calls."""
    session = AsyncMock()
    session.add = MagicMock()
    session.add_all = MagicMock()
    session.commit = AsyncMock()
    session.refresh = AsyncMock()
    session.rollback = AsyncMock()
    session.execute = AsyncMock()
    session.get = AsyncMock()
    session.merge = AsyncMock()
    return session


@pytest.fixture()
def commit_store():
    return CommitStore()


@pytest.fixture()
def test_cache():
    """A fresh TTL cache instance for test isolation."""
    return TTLCache(ttl=30.0, max_size=100, enabled=True)


@pytest.fixture()
def disabled_cache():
    """A disabled TTL cache: all operations are no-ops."""
    return TTLCache(ttl=30.0, max_size=100, enabled=False)


@pytest.fixture(autouse=True)
def _clear_global_cache():
    """Clear the global cache before and after each test."""
    from aquafin.core.cache import cache

    cache.clear()
    yield
    cache.clear()


@pytest.fixture(autouse=True)
def _reset_payment_breaker():
    """Close the shared payments circuit so failures don't leak between tests."""
    yield
    payment_circuit_breaker._state = CircuitState.CLOSED
    payment_circuit_breaker._failure_count = 0
    payment_circuit_breaker._last_failure_time = 0.0


@pytest.fixture(autouse=True)
def _clear_service_locks():
    """Cycle and payout locks are bound to the event loop of the test that made them."""
    from aquafin.services import payout_service

    payout_service._cycle_locks.clear()
    payout_service._payout_locks.clear()
    yield
    payout_service._cycle_locks.clear()
    payout_service._payout_locks.clear()
