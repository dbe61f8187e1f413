"""
Unit tests for Pydantic schemas: request validation and response mapping.

Tests cover:
- HarvestDistributionRequest bounds and defaults
- TaxAdjustedDistributionRequest / PayoutEstimateRequest tax range
- ProcessPayoutRequest blank-reference rejection
- Response models read from ORM rows and service dataclasses
"""

from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError

from aquafin.models.payout import PayoutStatus
from aquafin.schemas.payout import (
    DistributionResponse,
    HarvestDistributionRequest,
    PayoutEstimateRequest,
    PayoutResponse,
    ProcessPayoutRequest,
    SplitBreakdownResponse,
    TaxAdjustedDistributionRequest,
    TaxBreakdownResponse,
)
from aquafin.services.allocation import PayoutBreakdown

from .conftest import INVESTOR_ID, PAYOUT_ID, RUN_ID, make_payout

# ────────────────────────────────────────────────────────────────────────────
# Requests
# ────────────────────────────────────────────────────────────────────────────


class TestHarvestDistributionRequest:
    def test_valid(self):
        body = HarvestDistributionRequest(
            harvested_stock=9500,
            harvest_weight=Decimal("4275.5"),
            revenue=Decimal("10000"),
            farm_expenses=Decimal("6000"),
            harvest_date=date(2025, 6, 30),
        )
        assert body.revenue == Decimal("10000")

    def test_defaults(self):
        body = HarvestDistributionRequest(harvested_stock=1, harvest_weight=1, revenue=1)
        assert body.farm_expenses == Decimal("0")
        assert body.harvest_date == date.today()

    @pytest.mark.parametrize(
        "field, value",
        [("harvested_stock", 0), ("harvest_weight", 0), ("revenue", -5), ("farm_expenses", -1)],
    )
    def test_rejects_non_positive_figures(self, field, value):
        data = {"harvested_stock": 10, "harvest_weight": 5, "revenue": 100, field: value}
        with pytest.raises(ValidationError):
            HarvestDistributionRequest(**data)


class TestTaxRates:
    def test_tax_adjusted_rate_optional(self):
        assert TaxAdjustedDistributionRequest().tax_rate_pct is None

    @pytest.mark.parametrize("rate", [-1, 100.01])
    def test_tax_rate_out_of_range(self, rate):
        with pytest.raises(ValidationError):
            TaxAdjustedDistributionRequest(tax_rate_pct=rate)
        with pytest.raises(ValidationError):
            PayoutEstimateRequest(projected_revenue=100, tax_rate_pct=rate)

    def test_estimate_defaults(self):
        body = PayoutEstimateRequest(projected_revenue=100)
        assert body.projected_expenses == Decimal("0")


class TestProcessPayoutRequest:
    def test_reference_is_stripped(self):
        assert ProcessPayoutRequest(payment_reference="  EFT-9 ").payment_reference == "EFT-9"

    @pytest.mark.parametrize("reference", ["", "   "])
    def test_blank_reference_rejected(self, reference):
        with pytest.raises(ValidationError):
            ProcessPayoutRequest(payment_reference=reference)


# ────────────────────────────────────────────────────────────────────────────
# Responses
# ────────────────────────────────────────────────────────────────────────────


class TestResponses:
    def test_payout_response_from_orm(self):
        resp = PayoutResponse.model_validate(make_payout(status=PayoutStatus.PAID, reference="X"))

        assert resp.id == PAYOUT_ID
        assert resp.status == PayoutStatus.PAID
        assert resp.model_dump(mode="json")["amount"] == "720.00"

    def test_tax_breakdown_is_not_mistaken_for_split(self):
        line = PayoutBreakdown(
            investor_id=INVESTOR_ID,
            gross=Decimal("200.00"),
            tax=Decimal("20.00"),
            net=Decimal("180.00"),
        )
        resp = DistributionResponse.model_validate(
            {
                "cycle_id": PAYOUT_ID,
                "distribution_id": RUN_ID,
                "reference": "AUTO-ABCD1234",
                "policy": "tax_adjusted_units",
                "payouts": [],
                "breakdown": [line],
                "total_payout_amount": Decimal("180.00"),
            }
        )

        assert isinstance(resp.breakdown[0], TaxBreakdownResponse)
        assert not isinstance(resp.breakdown[0], SplitBreakdownResponse)
        assert resp.breakdown[0].net == Decimal("180.00")
