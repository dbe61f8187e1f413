"""
Investment repository: data-access layer for the ``investments`` table.

``get_for_cycle`` defines which stakes take part in a cycle's distribution:
stakes pinned to the cycle, plus cage-level stakes (``cycle_id IS NULL``)
on the cycle's cage.
"""

from collections import Counter
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import and_, or_
from sqlalchemy.future import select

from aquafin.core.money import sum_decimals
from aquafin.models.cycle import Cycle
from aquafin.models.investment import Investment
from aquafin.repositories.base import BaseRepository


class InvestmentRepository(BaseRepository[Investment]):
    """Concrete repository for :class:`Investment` entities."""

    async def get_for_cycle(self, cycle: Cycle) -> List[Investment]:
        """
        Stakes participating in ``cycle``, in a stable order.

        Ordered by ``start_date`` then id so allocation output (which keeps
        input order) is deterministic across runs.
        """
        stmt = (
            select(self.model)
            .where(
                or_(
                    self.model.cycle_id == cycle.id,
                    and_(
                        self.model.cycle_id.is_(None),
                        self.model.cage_id == cycle.cage_id,
                    ),
                )
            )
            .order_by(self.model.start_date, self.model.id)
        )
        return await self._scalars(stmt)

    async def get_by_investor(
        self,
        investor_id: UUID,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[Investment]:
        """An investor's stakes whose ``start_date`` falls inside ``[start, end]``."""
        criteria = [self.model.investor_id == investor_id]
        if start is not None:
            criteria.append(self.model.start_date >= start)
        if end is not None:
            criteria.append(self.model.start_date <= end)
        stmt = select(self.model).where(*criteria).order_by(self.model.start_date)
        return await self._scalars(stmt)

    async def total_invested_by_investor(self, investor_id: UUID) -> Decimal:
        """Exact ``sum(effective_amount)`` over all of an investor's stakes."""
        investments = await self.get_by_investor(investor_id)
        return sum_decimals(inv.effective_amount for inv in investments)

    async def count_by_investor(self) -> Dict[UUID, int]:
        """Number of stakes per investor."""
        rows = await self._scalars(select(self.model.investor_id))
        return dict(Counter(rows))
