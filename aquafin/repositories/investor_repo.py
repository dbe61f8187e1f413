"""
Investor repository: data-access layer for the ``investors`` table.

Besides id look-ups, the analytics reports rank every investor by the
cached aggregate columns.
"""

from typing import List

from sqlalchemy.future import select

from aquafin.models.investor import Investor
from aquafin.repositories.base import BaseRepository


class InvestorRepository(BaseRepository[Investor]):
    """Concrete repository for :class:`Investor` entities."""

    async def list_by_total_returns(self) -> List[Investor]:
        """All investors, highest cached ``total_returns`` first."""
        stmt = select(self.model).order_by(
            self.model.total_returns.desc(), self.model.id
        )
        return await self._scalars(stmt)
