"""
Feed usage and feed stock models, read by the feed-cost analysis.
"""

import uuid
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlmodel import Field, SQLModel


class FeedUsage(SQLModel, table=True):
    __tablename__ = "feed_usage"  # type: ignore[assignment]

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    cage_id: Optional[uuid.UUID] = Field(default=None, foreign_key="cages.id", index=True)
    feed_type: str = Field(index=True, max_length=120)
    quantity_kg: Decimal = Field(max_digits=14, decimal_places=3)
    used_on: date = Field(index=True)


class FeedStock(SQLModel, table=True):
    __tablename__ = "feed_stock"  # type: ignore[assignment]

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    feed_type: str = Field(index=True, max_length=120)
    quantity_kg: Decimal = Field(default=Decimal("0"), max_digits=14, decimal_places=3)
    cost_per_kg: Decimal = Field(max_digits=12, decimal_places=4)
