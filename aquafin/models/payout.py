"""
Payout and distribution-run models.

A ``DistributionRun`` is written once per distributed cycle; its UNIQUE
``cycle_id`` is the cross-process serialisation point that makes a second
distribution of the same cycle fail at commit time. Each ``Payout`` points
back at its run (``distribution_id``) and carries the run reference as the
prefix of ``distribution_reference``.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Index, UniqueConstraint
from sqlmodel import Field, SQLModel


class PayoutStatus(str, Enum):
    """
    Payout lifecycle::

        pending ──approve──▶ processing ──process──▶ paid
           │                     │
           └───────reject────────┴──────▶ rejected

    ``paid`` and ``rejected`` are terminal.
    """

    PENDING = "pending"
    PROCESSING = "processing"
    PAID = "paid"
    REJECTED = "rejected"


# Statuses whose amounts count towards an investor's ``total_returns``.
RETURNED_STATUSES = (PayoutStatus.PAID, PayoutStatus.PROCESSING)


class AllocationPolicy(str, Enum):
    """Named allocation strategies a distribution can run under."""

    REVENUE_PROFIT_SPLIT = "revenue_profit_split"
    TAX_ADJUSTED_UNITS = "tax_adjusted_units"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DistributionRun(SQLModel, table=True):
    __tablename__ = "distribution_runs"  # type: ignore[assignment]

    __table_args__ = (
        UniqueConstraint("cycle_id", name="uq_distribution_runs_cycle"),
        CheckConstraint("total_amount >= 0", name="ck_distribution_runs_total_non_negative"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    cycle_id: uuid.UUID = Field(foreign_key="cycles.id", ondelete="RESTRICT")
    policy: AllocationPolicy
    reference: str = Field(max_length=64)
    total_amount: Decimal = Field(max_digits=20, decimal_places=2)
    tax_rate_pct: Optional[Decimal] = Field(default=None, max_digits=6, decimal_places=2)
    payout_count: int = Field(default=0)
    created_at: datetime = Field(
        default_factory=_utcnow,
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )


class Payout(SQLModel, table=True):
    """
    SQLModel table definition for payouts.

    - ``uq_payouts_cycle_investor``: one payout per investor per cycle.
    - ``reference`` is the payment-rail reference, set only on ``paid``.
    """

    __tablename__ = "payouts"  # type: ignore[assignment]

    __table_args__ = (
        UniqueConstraint("cycle_id", "investor_id", name="uq_payouts_cycle_investor"),
        Index("ix_payouts_investor_status", "investor_id", "status"),
        CheckConstraint("amount >= 0", name="ck_payouts_amount_non_negative"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    investor_id: uuid.UUID = Field(foreign_key="investors.id", index=True, ondelete="RESTRICT")
    cycle_id: uuid.UUID = Field(foreign_key="cycles.id", index=True, ondelete="RESTRICT")
    distribution_id: uuid.UUID = Field(
        foreign_key="distribution_runs.id", index=True, ondelete="RESTRICT"
    )
    distribution_reference: str = Field(max_length=80)
    amount: Decimal = Field(max_digits=20, decimal_places=2)
    status: PayoutStatus = Field(default=PayoutStatus.PENDING, index=True)
    reference: Optional[str] = Field(default=None, max_length=120)
    created_at: datetime = Field(
        default_factory=_utcnow,
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
        index=True,
    )
    updated_at: datetime = Field(
        default_factory=_utcnow,
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )
    paid_at: Optional[datetime] = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )

    @property
    def effective_date(self) -> datetime:
        """When the money moved: ``paid_at``, else ``created_at``."""
        return self.paid_at or self.created_at

    def __repr__(self) -> str:
        return (
            f"<Payout id={self.id} investor={self.investor_id} cycle={self.cycle_id} "
            f"amount={self.amount} status={self.status.value}>"
        )
