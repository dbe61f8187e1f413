"""
Ledger repositories: revenues, expenses, budgets, feed records and the
audit ledger.

Revenue, expense, budget and feed rows belong to farm-operations
collaborators and are only read here; ``LedgerEntryRepository`` is the one
writer, used for the best-effort audit trail after a distribution.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from sqlalchemy.future import select

from aquafin.models.feed import FeedStock, FeedUsage
from aquafin.models.ledger import BudgetAllocation, Expense, LedgerEntry, Revenue
from aquafin.repositories.base import BaseRepository


def _scope(model, cage_id, cycle_id, date_column, start, end) -> list:
    criteria = []
    if cage_id is not None:
        criteria.append(model.cage_id == cage_id)
    if cycle_id is not None:
        criteria.append(model.cycle_id == cycle_id)
    if start is not None:
        criteria.append(date_column >= start)
    if end is not None:
        criteria.append(date_column <= end)
    return criteria


class RevenueRepository(BaseRepository[Revenue]):
    """Concrete repository for :class:`Revenue` entities."""

    async def list_filtered(
        self,
        cage_id: Optional[UUID] = None,
        cycle_id: Optional[UUID] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[Revenue]:
        criteria = _scope(self.model, cage_id, cycle_id, self.model.occurred_at, start, end)
        stmt = select(self.model).where(*criteria).order_by(self.model.occurred_at)
        return await self._scalars(stmt)

    async def total_for_cycle(self, cycle_id: UUID) -> Decimal:
        return await self._sum(self.model.amount, self.model.cycle_id == cycle_id)


class ExpenseRepository(BaseRepository[Expense]):
    """Concrete repository for :class:`Expense` entities."""

    async def list_filtered(
        self,
        cage_id: Optional[UUID] = None,
        cycle_id: Optional[UUID] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[Expense]:
        criteria = _scope(self.model, cage_id, cycle_id, self.model.incurred_at, start, end)
        stmt = select(self.model).where(*criteria).order_by(self.model.incurred_at)
        return await self._scalars(stmt)

    async def total_for_cycle(self, cycle_id: UUID) -> Decimal:
        return await self._sum(self.model.amount, self.model.cycle_id == cycle_id)


class BudgetRepository(BaseRepository[BudgetAllocation]):
    """Concrete repository for :class:`BudgetAllocation` entities."""

    async def get_by_cycle(self, cycle_id: UUID) -> List[BudgetAllocation]:
        stmt = (
            select(self.model)
            .where(self.model.cycle_id == cycle_id)
            .order_by(self.model.category)
        )
        return await self._scalars(stmt)


class FeedUsageRepository(BaseRepository[FeedUsage]):
    """Concrete repository for :class:`FeedUsage` entities."""

    async def recent(self, cage_id: Optional[UUID] = None, limit: int = 500) -> List[FeedUsage]:
        stmt = select(self.model)
        if cage_id is not None:
            stmt = stmt.where(self.model.cage_id == cage_id)
        stmt = stmt.order_by(self.model.used_on.desc()).limit(limit)
        return await self._scalars(stmt)


class FeedStockRepository(BaseRepository[FeedStock]):
    """Concrete repository for :class:`FeedStock` entities."""

    async def list_all(self) -> List[FeedStock]:
        return await self._scalars(select(self.model).order_by(self.model.feed_type))


class LedgerEntryRepository(BaseRepository[LedgerEntry]):
    """Concrete repository for :class:`LedgerEntry` audit rows."""
