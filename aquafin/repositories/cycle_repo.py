"""
Cycle and cage repositories.

Cycles are read by id for distribution and by cage for forecasting; cages
only by id (report labels, per-cage grouping).
"""

from typing import List
from uuid import UUID

from sqlalchemy.future import select

from aquafin.models.cage import Cage
from aquafin.models.cycle import Cycle, CycleStatus
from aquafin.repositories.base import BaseRepository


class CageRepository(BaseRepository[Cage]):
    """Concrete repository for :class:`Cage` entities."""

    pass


class CycleRepository(BaseRepository[Cycle]):
    """Concrete repository for :class:`Cycle` entities."""

    async def get_completed_by_cage(self, cage_id: UUID, limit: int = 6) -> List[Cycle]:
        """
        Return the ``limit`` most recent completed cycles of a cage.

        Ordered by ``end_date`` descending (NULLs last) so the forecast is
        built from the latest harvests; served by ``ix_cycles_cage_status_end``.
        """
        stmt = (
            select(self.model)
            .where(
                self.model.cage_id == cage_id,
                self.model.status == CycleStatus.COMPLETED,
            )
            .order_by(self.model.end_date.desc().nulls_last())
            .limit(limit)
        )
        return await self._scalars(stmt)
