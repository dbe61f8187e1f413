"""
Investment domain model.

An investor's stake in a cage, optionally pinned to one cycle. A stake
without ``cycle_id`` participates in every cycle run on its cage.
"""

import uuid
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import CheckConstraint, Index
from sqlmodel import Field, SQLModel

from aquafin.core.money import ZERO


class Investment(SQLModel, table=True):
    """
    SQLModel table definition for investments.

    ``amount`` and ``share_units * unit_price`` describe the same stake; when
    ``amount`` is missing it is derived from the units (see
    :attr:`effective_amount`). Only stakes with ``share_units > 0`` are
    eligible for allocation.
    """

    __tablename__ = "investments"  # type: ignore[assignment]

    __table_args__ = (
        Index("ix_investments_cage_cycle", "cage_id", "cycle_id"),
        CheckConstraint("share_units >= 0", name="ck_investments_share_units_non_negative"),
        CheckConstraint(
            "amount IS NULL OR amount >= 0", name="ck_investments_amount_non_negative"
        ),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    investor_id: uuid.UUID = Field(foreign_key="investors.id", index=True, ondelete="RESTRICT")
    cage_id: uuid.UUID = Field(foreign_key="cages.id", index=True, ondelete="RESTRICT")
    cycle_id: Optional[uuid.UUID] = Field(
        default=None, foreign_key="cycles.id", index=True, ondelete="RESTRICT"
    )
    amount: Optional[Decimal] = Field(default=None, max_digits=20, decimal_places=2)
    share_units: Decimal = Field(default=Decimal("1"), max_digits=20, decimal_places=4)
    unit_price: Optional[Decimal] = Field(default=None, max_digits=20, decimal_places=4)
    start_date: date
    end_date: Optional[date] = Field(default=None)

    @property
    def effective_amount(self) -> Decimal:
        """Capital committed: ``amount``, else ``share_units * unit_price``."""
        if self.amount is not None:
            return self.amount
        if self.unit_price is not None:
            return self.share_units * self.unit_price
        return ZERO

    @property
    def is_eligible(self) -> bool:
        return self.share_units is not None and self.share_units > 0

    def __repr__(self) -> str:
        return (
            f"<Investment id={self.id} investor={self.investor_id} "
            f"cage={self.cage_id} units={self.share_units}>"
        )
