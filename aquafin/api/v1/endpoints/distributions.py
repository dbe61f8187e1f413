"""
Cycle-scoped distribution endpoints.

- POST  /cycles/{cycle_id}/distribution                 Harvest distribution
- POST  /cycles/{cycle_id}/distribution/tax-adjusted    Legacy unit-based run
- POST  /cycles/{cycle_id}/payout-estimate              What-if, nothing saved
- GET   /cycles/{cycle_id}/payouts                      Payouts of one cycle
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from aquafin.api.v1.endpoints.payouts import get_payout_service
from aquafin.models.payout import AllocationPolicy
from aquafin.schemas.common import ErrorResponse, ValidationErrorResponse
from aquafin.schemas.payout import (
    DistributionResponse,
    HarvestDistributionRequest,
    PayoutEstimateRequest,
    PayoutEstimateResponse,
    PayoutResponse,
    TaxAdjustedDistributionRequest,
)
from aquafin.services.payout_service import PayoutService

router = APIRouter()

_DISTRIBUTION_ERRORS = {
    404: {"model": ErrorResponse, "description": "Cycle not found"},
    409: {"model": ErrorResponse, "description": "Cycle has already been distributed"},
    422: {
        "model": ValidationErrorResponse,
        "description": "Invalid figures or no eligible investments",
    },
}


@router.post(
    "/{cycle_id}/distribution",
    response_model=DistributionResponse,
    status_code=201,
    summary="Distribute a harvested cycle",
    description=(
        "Closes the cycle with its harvest figures and creates one pending "
        "payout per investor under the revenue/profit split. A cycle can "
        "be distributed only once."
    ),
    responses=_DISTRIBUTION_ERRORS,
)
async def initiate_distribution(
    cycle_id: UUID,
    body: HarvestDistributionRequest,
    service: PayoutService = Depends(get_payout_service),
) -> DistributionResponse:
    result = await service.initiate_payouts_for_harvested_cycle(
        cycle_id,
        harvested_stock=body.harvested_stock,
        harvest_weight=body.harvest_weight,
        revenue=body.revenue,
        farm_expenses=body.farm_expenses,
        harvest_date=body.harvest_date,
    )
    return DistributionResponse.model_validate(result)


@router.post(
    "/{cycle_id}/distribution/tax-adjusted",
    response_model=DistributionResponse,
    status_code=201,
    summary="Distribute a cycle's profit by share units, net of tax",
    description="Payouts are created already approved (``processing``).",
    responses=_DISTRIBUTION_ERRORS,
)
async def initiate_tax_adjusted_distribution(
    cycle_id: UUID,
    body: Optional[TaxAdjustedDistributionRequest] = None,
    service: PayoutService = Depends(get_payout_service),
) -> DistributionResponse:
    tax_rate_pct = body.tax_rate_pct if body is not None else None
    result = await service.calculate_payouts_for_cycle(cycle_id, tax_rate_pct=tax_rate_pct)
    return DistributionResponse.model_validate(result)


@router.post(
    "/{cycle_id}/payout-estimate",
    response_model=PayoutEstimateResponse,
    summary="Estimate payouts from projected figures",
    responses={
        404: {"model": ErrorResponse, "description": "Cycle not found"},
        422: {"model": ValidationErrorResponse, "description": "No eligible investments"},
    },
)
async def estimate_payouts(
    cycle_id: UUID,
    body: PayoutEstimateRequest,
    policy: AllocationPolicy = Query(
        AllocationPolicy.REVENUE_PROFIT_SPLIT, description="Allocation policy to apply"
    ),
    service: PayoutService = Depends(get_payout_service),
) -> PayoutEstimateResponse:
    estimate = await service.estimate_payouts_for_active_cycle(
        cycle_id,
        projected_revenue=body.projected_revenue,
        projected_expenses=body.projected_expenses,
        policy=policy,
        tax_rate_pct=body.tax_rate_pct,
    )
    return PayoutEstimateResponse.model_validate(estimate)


@router.get(
    "/{cycle_id}/payouts",
    response_model=List[PayoutResponse],
    summary="List the payouts of a cycle",
    responses={404: {"model": ErrorResponse, "description": "Cycle not found"}},
)
async def list_cycle_payouts(
    cycle_id: UUID,
    service: PayoutService = Depends(get_payout_service),
) -> List[PayoutResponse]:
    return await service.get_cycle_payouts(cycle_id)
