"""
Pydantic schemas for distribution and payout request / response bodies.

Response models read straight off ORM rows and the service's result
dataclasses (``from_attributes``). Money fields are ``Decimal`` and
serialise as strings, so no cent is lost to a JSON float.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from aquafin.models.payout import AllocationPolicy, PayoutStatus

# ── Requests ──


class HarvestDistributionRequest(BaseModel):
    """Body of ``POST /cycles/{cycle_id}/distribution``."""

    harvested_stock: int = Field(
        ..., gt=0, description="Number of fish harvested", examples=[9500]
    )
    harvest_weight: Decimal = Field(
        ..., gt=0, description="Total harvested biomass in kg", examples=[4275.5]
    )
    revenue: Decimal = Field(
        ..., gt=0, description="Total revenue from the harvest sale", examples=[12_500_000]
    )
    farm_expenses: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Operating costs incurred during the cycle",
        examples=[7_800_000],
    )
    harvest_date: date = Field(
        default_factory=date.today,
        description="Date of harvest (ISO-8601); defaults to today",
    )


class TaxAdjustedDistributionRequest(BaseModel):
    """Body of ``POST /cycles/{cycle_id}/distribution/tax-adjusted``."""

    tax_rate_pct: Optional[Decimal] = Field(
        default=None,
        ge=0,
        le=100,
        description="Withholding tax percentage; defaults to the configured rate",
        examples=[15],
    )


class PayoutEstimateRequest(BaseModel):
    """Body of ``POST /cycles/{cycle_id}/payout-estimate``."""

    projected_revenue: Decimal = Field(..., ge=0, examples=[10_000_000])
    projected_expenses: Decimal = Field(default=Decimal("0"), ge=0, examples=[6_000_000])
    tax_rate_pct: Optional[Decimal] = Field(
        default=None,
        ge=0,
        le=100,
        description="Only used by the tax_adjusted_units policy",
    )


class ProcessPayoutRequest(BaseModel):
    """Body of ``POST /payouts/{payout_id}/process``."""

    payment_reference: str = Field(
        ...,
        min_length=1,
        max_length=120,
        description="Reference returned by the bank or mobile-money rail",
        examples=["MPESA-QK7H2LX9"],
    )

    @field_validator("payment_reference")
    @classmethod
    def validate_reference_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("payment_reference must not be blank")
        return v.strip()


# ── Responses ──


class PayoutResponse(BaseModel):
    id: UUID
    investor_id: UUID
    cycle_id: UUID
    distribution_id: UUID
    distribution_reference: str
    amount: Decimal
    status: PayoutStatus
    reference: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    paid_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class TaxBreakdownResponse(BaseModel):
    """Per-investor line of the ``tax_adjusted_units`` policy."""

    investor_id: UUID
    investor_name: Optional[str] = None
    gross: Decimal
    tax: Decimal
    net: Decimal

    model_config = ConfigDict(from_attributes=True)


class SplitBreakdownResponse(BaseModel):
    """Per-investor line of the ``revenue_profit_split`` policy."""

    investor_id: UUID
    investor_name: Optional[str] = None
    share_percentage: Decimal
    investment_amount: Decimal
    revenue_share: Decimal
    profit_share: Decimal
    total_payout: Decimal
    revenue_percentage: Decimal
    profit_percentage: Decimal

    model_config = ConfigDict(from_attributes=True)


BreakdownResponse = Union[SplitBreakdownResponse, TaxBreakdownResponse]


class DistributionResponse(BaseModel):
    cycle_id: UUID
    distribution_id: UUID
    reference: str
    policy: AllocationPolicy
    payouts: List[PayoutResponse]
    breakdown: List[BreakdownResponse]
    total_payout_amount: Decimal

    model_config = ConfigDict(from_attributes=True)


class PayoutEstimateResponse(BaseModel):
    cycle_id: UUID
    policy: AllocationPolicy
    projected_revenue: Decimal
    projected_expenses: Decimal
    projected_profit: Decimal
    breakdown: List[BreakdownResponse]
    total_payout_amount: Decimal

    model_config = ConfigDict(from_attributes=True)


class PayoutHistoryResponse(BaseModel):
    investor_id: UUID
    payouts: List[PayoutResponse]
    total_amount: Decimal
    average_amount: Decimal
    count: int

    model_config = ConfigDict(from_attributes=True)


class StatusBucketResponse(BaseModel):
    count: int
    amount: Decimal

    model_config = ConfigDict(from_attributes=True)


class PayoutSummaryResponse(BaseModel):
    """Counts and amounts per payout status, plus the overall total."""

    all: StatusBucketResponse
    pending: StatusBucketResponse
    processing: StatusBucketResponse
    paid: StatusBucketResponse
    rejected: StatusBucketResponse

    model_config = ConfigDict(from_attributes=True)
