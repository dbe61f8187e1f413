"""
Unit of work: stage several writes, commit them atomically.

The distribution path creates a ``DistributionRun``, one ``Payout`` per
investor and the ``Cycle`` update; either all of them commit or none do::

    async with UnitOfWork(db) as uow:
        uow.add(run)
        for payout in payouts:
            uow.add(payout)
        uow.add(cycle)
    # committed here; rolled back if the block or the commit raised

Constraint violations at commit time (``IntegrityError``) propagate to the
caller after the rollback, so the service can map them to domain errors.
"""

import logging
from types import TracebackType
from typing import Any, List, Optional, Type

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from aquafin.core.resilience import db_circuit_breaker

logger = logging.getLogger(__name__)


class UnitOfWork:
    """Atomic batch writer over one ``AsyncSession``."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self._staged: List[Any] = []

    def add(self, entity: Any) -> None:
        """Stage ``entity`` (new or already tracked) for the next commit."""
        self._staged.append(entity)

    @property
    def staged(self) -> List[Any]:
        return list(self._staged)

    async def commit(self) -> None:
        async def _commit() -> None:
            self.db.add_all(self._staged)
            await self.db.commit()

        try:
            await db_circuit_breaker.call(_commit)
        except SQLAlchemyError:
            await self.db.rollback()
            logger.warning("Unit of work rolled back (%d staged rows)", len(self._staged))
            raise
        finally:
            self._staged.clear()

    async def rollback(self) -> None:
        self._staged.clear()
        await self.db.rollback()

    async def __aenter__(self) -> "UnitOfWork":
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> bool:
        if exc_type is not None:
            await self.rollback()
            return False
        await self.commit()
        return False
