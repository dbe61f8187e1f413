"""
Payout and distribution-run repositories.

All payout writes happen through ``UnitOfWork`` (batch creation) or
``update`` (single lifecycle transition); these classes add the read side.
"""

from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.future import select

from aquafin.core.money import ZERO, sum_decimals, to_decimal
from aquafin.models.payout import DistributionRun, Payout, PayoutStatus
from aquafin.repositories.base import BaseRepository


class DistributionRunRepository(BaseRepository[DistributionRun]):
    """Concrete repository for :class:`DistributionRun` entities."""

    async def get_by_cycle(self, cycle_id: UUID) -> Optional[DistributionRun]:
        stmt = select(self.model).where(self.model.cycle_id == cycle_id)
        rows = await self._scalars(stmt)
        return rows[0] if rows else None


class PayoutRepository(BaseRepository[Payout]):
    """Concrete repository for :class:`Payout` entities."""

    async def exists_for_cycle(self, cycle_id: UUID) -> bool:
        """True when any payout, in any status, exists for ``cycle_id``."""
        stmt = select(self.model.id).where(self.model.cycle_id == cycle_id).limit(1)
        return bool(await self._scalars(stmt))

    async def get_by_cycle(self, cycle_id: UUID) -> List[Payout]:
        stmt = (
            select(self.model)
            .where(self.model.cycle_id == cycle_id)
            .order_by(self.model.created_at.desc(), self.model.id)
        )
        return await self._scalars(stmt)

    async def get_by_investor(
        self,
        investor_id: UUID,
        statuses: Optional[Iterable[PayoutStatus]] = None,
    ) -> List[Payout]:
        """An investor's payouts, newest first, optionally restricted to ``statuses``."""
        criteria = [self.model.investor_id == investor_id]
        if statuses is not None:
            criteria.append(self.model.status.in_(list(statuses)))
        stmt = (
            select(self.model)
            .where(*criteria)
            .order_by(self.model.created_at.desc(), self.model.id)
        )
        return await self._scalars(stmt)

    async def list_filtered(
        self,
        investor_id: Optional[UUID] = None,
        cycle_id: Optional[UUID] = None,
        status: Optional[PayoutStatus] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Payout]:
        criteria = []
        if investor_id is not None:
            criteria.append(self.model.investor_id == investor_id)
        if cycle_id is not None:
            criteria.append(self.model.cycle_id == cycle_id)
        if status is not None:
            criteria.append(self.model.status == status)
        stmt = select(self.model)
        if criteria:
            stmt = stmt.where(*criteria)
        stmt = (
            stmt.order_by(self.model.created_at.desc(), self.model.id)
            .offset(skip)
            .limit(limit)
        )
        return await self._scalars(stmt)

    async def total_for_investor(
        self, investor_id: UUID, statuses: Iterable[PayoutStatus]
    ) -> Decimal:
        """Exact sum of an investor's payout amounts in the given statuses."""
        return await self._sum(
            self.model.amount,
            self.model.investor_id == investor_id,
            self.model.status.in_(list(statuses)),
        )

    async def summary_by_status(self) -> Dict[PayoutStatus, Tuple[int, Decimal]]:
        """``{status: (count, amount)}`` for every status, zero-filled."""
        summary: Dict[PayoutStatus, Tuple[int, Decimal]] = {
            status: (0, ZERO) for status in PayoutStatus
        }
        for status in PayoutStatus:
            amounts = await self._scalars(
                select(self.model.amount).where(self.model.status == status)
            )
            summary[status] = (len(amounts), sum_decimals(amounts))
        return summary

    async def stats_by_investor(self) -> Dict[UUID, Tuple[int, Decimal]]:
        """``{investor_id: (payout count, exact amount sum)}`` across all payouts."""

        async def _run() -> List[Tuple[UUID, Decimal]]:
            result = await self.db.execute(
                select(self.model.investor_id, self.model.amount)
            )
            return list(result.all())

        stats: Dict[UUID, Tuple[int, Decimal]] = {}
        for investor_id, amount in await self._execute_with_circuit_breaker(_run):
            count, total = stats.get(investor_id, (0, ZERO))
            stats[investor_id] = (count + 1, total + to_decimal(amount))
        return stats
