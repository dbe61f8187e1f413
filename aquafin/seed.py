"""
Seed script: demo farm data for local runs.

    python -m aquafin.seed

Creates two cages with completed and active cycles, three investors with
stakes, the cycles' revenue / expense / budget rows and some feed records,
enough to exercise every distribution and analytics endpoint. Idempotent:
does nothing if a cage already exists.
"""

import asyncio
import logging
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlmodel import SQLModel

import aquafin.db.base  # noqa: F401
from aquafin.core.logging import setup_logging
from aquafin.db.session import AsyncSessionLocal, engine
from aquafin.models.cage import Cage
from aquafin.models.cycle import Cycle, CycleStatus
from aquafin.models.feed import FeedStock, FeedUsage
from aquafin.models.investment import Investment
from aquafin.models.investor import Investor
from aquafin.models.ledger import BudgetAllocation, Expense, ExpenseCategory, Revenue

logger = logging.getLogger(__name__)

LAKE_CAGE = uuid.UUID("5a1e0000-0000-4000-8000-000000000001")
BAY_CAGE = uuid.UUID("5a1e0000-0000-4000-8000-000000000002")

CYCLE_2025_A = uuid.UUID("c7c1e000-0000-4000-8000-000000000001")
CYCLE_2025_B = uuid.UUID("c7c1e000-0000-4000-8000-000000000002")
CYCLE_ACTIVE = uuid.UUID("c7c1e000-0000-4000-8000-000000000003")

NAKATO = uuid.UUID("1a7e5000-0000-4000-8000-000000000001")
OKELLO = uuid.UUID("1a7e5000-0000-4000-8000-000000000002")
MUKASA = uuid.UUID("1a7e5000-0000-4000-8000-000000000003")


def _at(year: int, month: int, day: int) -> datetime:
    return datetime(year, month, day, 9, 0, tzinfo=timezone.utc)


CAGES = [
    Cage(id=LAKE_CAGE, name="Lake Victoria Cage 1", code="LV-01"),
    Cage(id=BAY_CAGE, name="Napoleon Gulf Cage 2", code="NG-02"),
]

CYCLES = [
    Cycle(
        id=CYCLE_2025_A,
        cage_id=LAKE_CAGE,
        species="tilapia",
        start_date=date(2025, 1, 10),
        end_date=date(2025, 6, 20),
        initial_stock=10_000,
        harvested_stock=9_200,
        biomass_end=Decimal("4140.000"),
        status=CycleStatus.COMPLETED,
        revenue=Decimal("41400000.00"),
        profit=Decimal("14900000.00"),
        fcr=Decimal("1.4500"),
    ),
    Cycle(
        id=CYCLE_2025_B,
        cage_id=LAKE_CAGE,
        species="tilapia",
        start_date=date(2025, 7, 1),
        end_date=date(2025, 12, 5),
        initial_stock=12_000,
        harvested_stock=11_100,
        biomass_end=Decimal("5050.500"),
        status=CycleStatus.COMPLETED,
        revenue=Decimal("50505000.00"),
        profit=Decimal("18200000.00"),
        fcr=Decimal("1.3800"),
    ),
    Cycle(
        id=CYCLE_ACTIVE,
        cage_id=BAY_CAGE,
        species="tilapia",
        start_date=date(2026, 2, 1),
        initial_stock=15_000,
        status=CycleStatus.ACTIVE,
    ),
]

INVESTORS = [
    Investor(id=NAKATO, name="Grace Nakato", email="grace.nakato@example.com"),
    Investor(id=OKELLO, name="Peter Okello", email="peter.okello@example.com"),
    Investor(id=MUKASA, name="Mukasa Family Trust", email="trust@mukasa.example.com"),
]

INVESTMENTS = [
    # Cage-level stake: takes part in every cycle of the lake cage.
    Investment(
        investor_id=NAKATO,
        cage_id=LAKE_CAGE,
        amount=Decimal("6000000.00"),
        share_units=Decimal("60"),
        unit_price=Decimal("100000"),
        start_date=date(2025, 1, 5),
    ),
    Investment(
        investor_id=OKELLO,
        cage_id=BAY_CAGE,
        cycle_id=CYCLE_ACTIVE,
        amount=Decimal("4000000.00"),
        share_units=Decimal("40"),
        unit_price=Decimal("100000"),
        start_date=date(2026, 1, 20),
    ),
    Investment(
        investor_id=MUKASA,
        cage_id=BAY_CAGE,
        cycle_id=CYCLE_ACTIVE,
        share_units=Decimal("100"),
        unit_price=Decimal("100000"),
        start_date=date(2026, 1, 25),
    ),
]

REVENUES = [
    Revenue(
        cycle_id=CYCLE_ACTIVE,
        cage_id=BAY_CAGE,
        type="fingerling_resale",
        amount=Decimal("350000.00"),
        occurred_at=_at(2026, 3, 14),
    ),
]

EXPENSES = [
    Expense(
        cycle_id=CYCLE_ACTIVE,
        cage_id=BAY_CAGE,
        category=ExpenseCategory.FINGERLINGS,
        amount=Decimal("3000000.00"),
        incurred_at=_at(2026, 2, 1),
    ),
    Expense(
        cycle_id=CYCLE_ACTIVE,
        cage_id=BAY_CAGE,
        category=ExpenseCategory.FEED,
        amount=Decimal("5200000.00"),
        incurred_at=_at(2026, 4, 30),
    ),
    Expense(
        cycle_id=CYCLE_ACTIVE,
        cage_id=BAY_CAGE,
        category=ExpenseCategory.LABOR,
        amount=Decimal("1500000.00"),
        incurred_at=_at(2026, 4, 30),
    ),
    Expense(
        cycle_id=CYCLE_ACTIVE,
        cage_id=BAY_CAGE,
        category=ExpenseCategory.OTHER,
        amount=Decimal("400000.00"),
        description="Boat fuel",
        incurred_at=_at(2026, 5, 2),
    ),
]

BUDGETS = [
    BudgetAllocation(
        cycle_id=CYCLE_ACTIVE,
        category=ExpenseCategory.FEED,
        allocated=Decimal("5000000.00"),
        spent=Decimal("5200000.00"),
    ),
    BudgetAllocation(
        cycle_id=CYCLE_ACTIVE,
        category=ExpenseCategory.LABOR,
        allocated=Decimal("2000000.00"),
        spent=Decimal("1500000.00"),
    ),
]

FEED_STOCK = [
    FeedStock(feed_type="grower_4mm", quantity_kg=Decimal("2500"), cost_per_kg=Decimal("3400")),
    FeedStock(feed_type="grower_4mm", quantity_kg=Decimal("1000"), cost_per_kg=Decimal("3600")),
    FeedStock(feed_type="starter_2mm", quantity_kg=Decimal("800"), cost_per_kg=Decimal("4200")),
]

FEED_USAGE = [
    FeedUsage(
        cage_id=BAY_CAGE, feed_type="starter_2mm", quantity_kg=Decimal("120"), used_on=date(2026, 2, 15)
    ),
    FeedUsage(
        cage_id=BAY_CAGE, feed_type="grower_4mm", quantity_kg=Decimal("640"), used_on=date(2026, 4, 1)
    ),
]


async def seed() -> None:
    """Create tables and insert the demo farm if the database is empty."""
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    async with AsyncSessionLocal() as session:
        result = await session.execute(select(Cage).limit(1))
        if result.scalars().first() is not None:
            logger.info("Database already contains data; skipping seed.")
            return

        # Parents first so foreign keys resolve.
        session.add_all(CAGES + INVESTORS)
        await session.commit()
        session.add_all(CYCLES)
        await session.commit()
        session.add_all(INVESTMENTS + REVENUES + EXPENSES + BUDGETS + FEED_STOCK + FEED_USAGE)
        await session.commit()

        logger.info(
            "Seeded %d cages, %d cycles, %d investors, %d investments",
            len(CAGES),
            len(CYCLES),
            len(INVESTORS),
            len(INVESTMENTS),
        )


if __name__ == "__main__":
    setup_logging()
    asyncio.run(seed())
