"""
Generic async repository (Data Access Layer).

Implements the Repository pattern on top of SQLAlchemy's ``AsyncSession``.
Concrete repositories inherit from ``BaseRepository[T]`` and add the typed,
entity-specific queries the payout and analytics services need; services
never build SQL themselves.

- Reads go through ``db_circuit_breaker`` so a database outage fails fast.
- Money sums are computed in Python with the decimal kernel over the
  ``Numeric`` column values rather than with SQL ``SUM``: SQLite returns
  floats for aggregates, and both numeric paths must agree to the cent.
- **IntegrityError** is not caught here. Services translate it (e.g. a
  second distribution of the same cycle → ``DuplicateOperationException``).
- **OperationalError** rolls the session back and is re-raised.
"""

import logging
from decimal import Decimal
from typing import Any, Generic, Iterable, List, Optional, Sequence, Type, TypeVar

from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlmodel import SQLModel

from aquafin.core.money import sum_decimals
from aquafin.core.resilience import db_circuit_breaker

logger = logging.getLogger(__name__)

ModelType = TypeVar("ModelType", bound=SQLModel)


class BaseRepository(Generic[ModelType]):
    """
    Generic CRUD repository for SQLModel entities.

    Parameters
    ----------
    model : Type[ModelType]
        The SQLModel class this repository manages.
    db : AsyncSession
        An active async database session (injected per-request).
    """

    def __init__(self, model: Type[ModelType], db: AsyncSession):
        self.model = model
        self.db = db

    async def _execute_with_circuit_breaker(
        self, func: Any, *args: Any, **kwargs: Any
    ) -> Any:
        return await db_circuit_breaker.call(func, *args, **kwargs)

    async def _scalars(self, stmt: Any) -> List[Any]:
        """Execute ``stmt`` through the breaker and return its scalar rows."""

        async def _run() -> List[Any]:
            result = await self.db.execute(stmt)
            return list(result.scalars().all())

        return await self._execute_with_circuit_breaker(_run)

    async def _sum(self, column: Any, *criteria: Any) -> Decimal:
        """Exact decimal sum of ``column`` over rows matching ``criteria``."""
        stmt = select(column)
        if criteria:
            stmt = stmt.where(*criteria)
        return sum_decimals(await self._scalars(stmt))

    # ── Reads ──

    async def get(self, id: Any) -> Optional[ModelType]:
        """Fetch a single entity by primary key.  Returns ``None`` if not found."""

        async def _get() -> Optional[ModelType]:
            return await self.db.get(self.model, id)

        return await self._execute_with_circuit_breaker(_get)

    async def get_many(self, ids: Iterable[Any]) -> List[ModelType]:
        """Fetch every entity whose primary key is in ``ids`` (missing ids are skipped)."""
        id_list = list(dict.fromkeys(ids))
        if not id_list:
            return []
        stmt = select(self.model).where(self.model.id.in_(id_list))
        return await self._scalars(stmt)

    # ── Writes ──

    async def add_all(self, objs: Sequence[ModelType]) -> None:
        """Insert several entities in one commit."""

        async def _add_all() -> None:
            self.db.add_all(list(objs))
            await self._commit("add_all")

        await self._execute_with_circuit_breaker(_add_all)

    async def update(self, entity: ModelType) -> ModelType:
        """
        Persist changes to an already-tracked entity.

        The caller mutates attributes first; we merge, commit and refresh so
        the returned object reflects DB-side defaults.
        """

        async def _update() -> ModelType:
            merged = await self.db.merge(entity)
            await self._commit("update")
            await self.db.refresh(merged)
            return merged

        return await self._execute_with_circuit_breaker(_update)

    async def _commit(self, operation: str) -> None:
        try:
            await self.db.commit()
        except OperationalError:
            await self.db.rollback()
            logger.error(
                "OperationalError during %s for %s", operation, self.model.__name__
            )
            raise
