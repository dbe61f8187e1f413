"""
Cycle domain model.

One stocking-to-harvest production run on a cage. Harvest figures and the
cached ``revenue`` / ``profit`` are written by the distribution that closes
the cycle; after that the row is treated as immutable.
"""

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Index
from sqlmodel import Field, SQLModel


class CycleStatus(str, Enum):
    """Lifecycle of a production cycle."""

    PLANNED = "planned"
    ACTIVE = "active"
    COMPLETED = "completed"


class Cycle(SQLModel, table=True):
    """
    SQLModel table definition for production cycles.

    - ``ix_cycles_cage_status_end`` covers the forecast query (most recent
      completed cycles of a cage, newest ``end_date`` first).
    - ``biomass_end`` is the harvested weight in kg; ``fcr`` is kg of feed
      per kg of harvested biomass.
    """

    __tablename__ = "cycles"  # type: ignore[assignment]

    __table_args__ = (
        Index("ix_cycles_cage_status_end", "cage_id", "status", "end_date"),
        CheckConstraint("initial_stock >= 0", name="ck_cycles_initial_stock_non_negative"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    cage_id: uuid.UUID = Field(foreign_key="cages.id", index=True, ondelete="RESTRICT")
    species: str = Field(default="tilapia", max_length=120)
    start_date: date
    end_date: Optional[date] = Field(default=None)
    initial_stock: int = Field(default=0)
    harvested_stock: Optional[int] = Field(default=None)
    biomass_end: Optional[Decimal] = Field(default=None, max_digits=14, decimal_places=3)
    status: CycleStatus = Field(default=CycleStatus.PLANNED)

    # Cached financials, written when the cycle is distributed.
    revenue: Optional[Decimal] = Field(default=None, max_digits=20, decimal_places=2)
    profit: Optional[Decimal] = Field(default=None, max_digits=20, decimal_places=2)
    fcr: Optional[Decimal] = Field(default=None, max_digits=12, decimal_places=4)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )

    def __repr__(self) -> str:
        return f"<Cycle id={self.id} cage={self.cage_id} status={self.status.value}>"
