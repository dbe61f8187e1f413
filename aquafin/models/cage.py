"""
Cage domain model.

A cage is a physical enclosure on a farm that hosts successive production
cycles. Cages are managed by the farm-operations service; this service only
reads them (cage names on reports, grouping for per-cage ROI).
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class Cage(SQLModel, table=True):
    """SQLModel table definition for cages."""

    __tablename__ = "cages"  # type: ignore[assignment]

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str = Field(index=True, max_length=255)
    code: str = Field(unique=True, index=True, max_length=64)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )

    def __repr__(self) -> str:
        return f"<Cage id={self.id} code='{self.code}'>"
