"""
Financial ledger models: revenues, expenses, budgets and audit entries.

Revenues and expenses are recorded by the farm-operations collaborators and
read here for P&L and legacy profit calculation. ``LedgerEntry`` rows are
the audit trail this service writes, best-effort, after each distribution.
"""

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime
from sqlmodel import Field, SQLModel


class ExpenseCategory(str, Enum):
    """Fixed expense taxonomy. See :data:`DIRECT_EXPENSE_CATEGORIES`."""

    FINGERLINGS = "fingerlings"
    FEED = "feed"
    LABOR = "labor"
    MAINTENANCE = "maintenance"
    UTILITIES = "utilities"
    OTHER = "other"


# Direct costs feed gross profit; every other category is indirect.
DIRECT_EXPENSE_CATEGORIES = frozenset(
    {
        ExpenseCategory.FINGERLINGS,
        ExpenseCategory.FEED,
        ExpenseCategory.LABOR,
        ExpenseCategory.MAINTENANCE,
        ExpenseCategory.UTILITIES,
    }
)


def is_direct_cost(category: ExpenseCategory) -> bool:
    return ExpenseCategory(category) in DIRECT_EXPENSE_CATEGORIES


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Revenue(SQLModel, table=True):
    __tablename__ = "revenues"  # type: ignore[assignment]

    __table_args__ = (CheckConstraint("amount >= 0", name="ck_revenues_amount_non_negative"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    cycle_id: Optional[uuid.UUID] = Field(default=None, foreign_key="cycles.id", index=True)
    cage_id: Optional[uuid.UUID] = Field(default=None, foreign_key="cages.id", index=True)
    type: str = Field(default="harvest_sale", max_length=64)
    amount: Decimal = Field(max_digits=20, decimal_places=2)
    occurred_at: datetime = Field(
        default_factory=_utcnow,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
        index=True,
    )


class Expense(SQLModel, table=True):
    __tablename__ = "expenses"  # type: ignore[assignment]

    __table_args__ = (CheckConstraint("amount >= 0", name="ck_expenses_amount_non_negative"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    cycle_id: Optional[uuid.UUID] = Field(default=None, foreign_key="cycles.id", index=True)
    cage_id: Optional[uuid.UUID] = Field(default=None, foreign_key="cages.id", index=True)
    category: ExpenseCategory
    amount: Decimal = Field(max_digits=20, decimal_places=2)
    description: Optional[str] = Field(default=None, max_length=500)
    incurred_at: datetime = Field(
        default_factory=_utcnow,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
        index=True,
    )


class BudgetAllocation(SQLModel, table=True):
    """Planned vs. actual spend for one expense category of a cycle."""

    __tablename__ = "budget_allocations"  # type: ignore[assignment]

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    cycle_id: uuid.UUID = Field(foreign_key="cycles.id", index=True)
    category: ExpenseCategory
    allocated: Decimal = Field(default=Decimal("0"), max_digits=20, decimal_places=2)
    spent: Decimal = Field(default=Decimal("0"), max_digits=20, decimal_places=2)


class LedgerEntryType(str, Enum):
    REVENUE = "revenue"
    EXPENSE = "expense"
    INCOME = "income"
    LOSS = "loss"
    PAYOUT = "payout"


class LedgerEntry(SQLModel, table=True):
    """Audit transaction recorded alongside a distribution."""

    __tablename__ = "ledger_entries"  # type: ignore[assignment]

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    type: LedgerEntryType = Field(index=True)
    amount: Decimal = Field(max_digits=20, decimal_places=2)
    description: str = Field(max_length=255)
    reference: str = Field(index=True, max_length=120)
    cycle_id: Optional[uuid.UUID] = Field(default=None, foreign_key="cycles.id", index=True)
    investor_id: Optional[uuid.UUID] = Field(default=None, foreign_key="investors.id")
    payout_id: Optional[uuid.UUID] = Field(default=None, foreign_key="payouts.id")
    transaction_date: date
    notes: Optional[str] = Field(default=None, max_length=500)
    created_at: datetime = Field(
        default_factory=_utcnow,
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )
