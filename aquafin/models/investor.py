"""
Investor domain model.

Besides identity fields the row carries a cached aggregate
(``total_investment``, ``total_returns``, ``roi``). The aggregate is derived
data: ``PayoutService`` recomputes it from investments and payouts after
every payout-affecting event and nothing else writes it.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

from sqlalchemy import CheckConstraint, DateTime
from sqlmodel import Field, SQLModel


class InvestorStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Investor(SQLModel, table=True):
    """
    SQLModel table definition for investors.

    Invariants (eventually consistent, re-established after each mutation):
    - ``total_investment == sum(Investment.amount)``
    - ``total_returns == sum(Payout.amount)`` over payouts in ``paid`` or
      ``processing`` status
    - ``roi == (total_returns - total_investment) / total_investment * 100``
    """

    __tablename__ = "investors"  # type: ignore[assignment]

    __table_args__ = (
        CheckConstraint("length(name) > 0", name="ck_investors_name_not_empty"),
        CheckConstraint("total_investment >= 0", name="ck_investors_total_investment_non_negative"),
        CheckConstraint("total_returns >= 0", name="ck_investors_total_returns_non_negative"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str = Field(index=True, max_length=255)
    email: str = Field(unique=True, index=True, max_length=320)
    status: InvestorStatus = Field(default=InvestorStatus.ACTIVE)

    total_investment: Decimal = Field(default=Decimal("0"), max_digits=20, decimal_places=2)
    total_returns: Decimal = Field(default=Decimal("0"), max_digits=20, decimal_places=2)
    roi: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )

    def __repr__(self) -> str:
        return f"<Investor id={self.id} name='{self.name}' roi={self.roi}>"
