"""
Analytics API endpoints (read-only).

- GET  /analytics/investors/{investor_id}/roi         ROI over an optional window
- GET  /analytics/investors/{investor_id}/returns     Returns by cycle and year
- GET  /analytics/profit-loss                         P&L (cage / cycle / dates)
- GET  /analytics/cycles/{cycle_id}/budget-variance   Budget vs. actual spend
- GET  /analytics/cycles/{cycle_id}/report            Cycle financial report
- GET  /analytics/cost-analysis                       Feed-cost analysis
- GET  /analytics/cages/{cage_id}/forecast            Next-cycle forecast
- GET  /analytics/comparative                         Investors ranked by returns
- GET  /analytics/portfolio                           Portfolio performance
"""

from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from aquafin.db.session import get_db
from aquafin.models.cage import Cage
from aquafin.models.cycle import Cycle
from aquafin.models.feed import FeedStock, FeedUsage
from aquafin.models.investment import Investment
from aquafin.models.investor import Investor
from aquafin.models.ledger import BudgetAllocation, Expense, Revenue
from aquafin.models.payout import DistributionRun, Payout
from aquafin.repositories.cycle_repo import CageRepository, CycleRepository
from aquafin.repositories.investment_repo import InvestmentRepository
from aquafin.repositories.investor_repo import InvestorRepository
from aquafin.repositories.ledger_repo import (
    BudgetRepository,
    ExpenseRepository,
    FeedStockRepository,
    FeedUsageRepository,
    RevenueRepository,
)
from aquafin.repositories.payout_repo import DistributionRunRepository, PayoutRepository
from aquafin.schemas.analytics import (
    BudgetVarianceResponse,
    CycleFinancialReportResponse,
    FeedCostAnalysisResponse,
    ForecastResponse,
    InvestorComparisonResponse,
    InvestorReturnsResponse,
    PortfolioPerformanceResponse,
    ProfitLossResponse,
    RoiReportResponse,
)
from aquafin.schemas.common import ErrorResponse
from aquafin.services.analytics_service import AnalyticsService

router = APIRouter()


def _get_analytics_service(db: AsyncSession = Depends(get_db)) -> AnalyticsService:
    """Build an AnalyticsService wired to the current request's DB session."""
    return AnalyticsService(
        investor_repo=InvestorRepository(Investor, db),
        investment_repo=InvestmentRepository(Investment, db),
        payout_repo=PayoutRepository(Payout, db),
        run_repo=DistributionRunRepository(DistributionRun, db),
        cycle_repo=CycleRepository(Cycle, db),
        cage_repo=CageRepository(Cage, db),
        revenue_repo=RevenueRepository(Revenue, db),
        expense_repo=ExpenseRepository(Expense, db),
        budget_repo=BudgetRepository(BudgetAllocation, db),
        feed_usage_repo=FeedUsageRepository(FeedUsage, db),
        feed_stock_repo=FeedStockRepository(FeedStock, db),
    )


def _not_found(resource: str) -> dict:
    return {404: {"model": ErrorResponse, "description": f"{resource} not found"}}


@router.get(
    "/investors/{investor_id}/roi",
    response_model=RoiReportResponse,
    summary="Investor ROI",
    description=(
        "Invested capital, paid and approved returns, ROI and annualised ROI, "
        "with a per-cage breakdown. ``start``/``end`` bound both stakes and payouts."
    ),
    responses=_not_found("Investor"),
)
async def investor_roi(
    investor_id: UUID,
    start: Optional[date] = Query(None, description="Window start (inclusive)"),
    end: Optional[date] = Query(None, description="Window end (inclusive)"),
    service: AnalyticsService = Depends(_get_analytics_service),
) -> RoiReportResponse:
    return await service.calculate_roi(investor_id, start=start, end=end)


@router.get(
    "/investors/{investor_id}/returns",
    response_model=InvestorReturnsResponse,
    summary="Investor returns by cycle and year",
    responses=_not_found("Investor"),
)
async def investor_returns(
    investor_id: UUID,
    service: AnalyticsService = Depends(_get_analytics_service),
) -> InvestorReturnsResponse:
    return await service.investor_returns_by_cycle(investor_id)


@router.get(
    "/profit-loss",
    response_model=ProfitLossResponse,
    summary="Profit and loss",
    description="Direct costs drive gross profit; indirect costs are deducted for net profit.",
)
async def profit_and_loss(
    cage_id: Optional[UUID] = Query(None),
    cycle_id: Optional[UUID] = Query(None),
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    service: AnalyticsService = Depends(_get_analytics_service),
) -> ProfitLossResponse:
    return await service.profit_and_loss(
        cage_id=cage_id, cycle_id=cycle_id, start=start, end=end
    )


@router.get(
    "/cycles/{cycle_id}/budget-variance",
    response_model=BudgetVarianceResponse,
    summary="Budget variance of a cycle",
    responses=_not_found("Cycle"),
)
async def budget_variance(
    cycle_id: UUID,
    service: AnalyticsService = Depends(_get_analytics_service),
) -> BudgetVarianceResponse:
    return await service.budget_variance(cycle_id)


@router.get(
    "/cycles/{cycle_id}/report",
    response_model=CycleFinancialReportResponse,
    summary="Cycle financial report",
    responses=_not_found("Cycle"),
)
async def cycle_report(
    cycle_id: UUID,
    service: AnalyticsService = Depends(_get_analytics_service),
) -> CycleFinancialReportResponse:
    return await service.cycle_financial_report(cycle_id)


@router.get(
    "/cost-analysis",
    response_model=FeedCostAnalysisResponse,
    summary="Feed-cost analysis",
    responses=_not_found("Cage"),
)
async def cost_analysis(
    cage_id: Optional[UUID] = Query(None),
    service: AnalyticsService = Depends(_get_analytics_service),
) -> FeedCostAnalysisResponse:
    return await service.cost_analysis(cage_id)


@router.get(
    "/cages/{cage_id}/forecast",
    response_model=Optional[ForecastResponse],
    summary="Forecast the next cycle of a cage",
    description="Returns ``null`` when the cage has no completed cycles yet.",
    responses=_not_found("Cage"),
)
async def forecast(
    cage_id: UUID,
    service: AnalyticsService = Depends(_get_analytics_service),
) -> Optional[ForecastResponse]:
    return await service.forecast_cycle(cage_id)


@router.get(
    "/comparative",
    response_model=List[InvestorComparisonResponse],
    summary="Investors ranked by total returns",
)
async def comparative(
    service: AnalyticsService = Depends(_get_analytics_service),
) -> List[InvestorComparisonResponse]:
    return await service.comparative_analysis()


@router.get(
    "/portfolio",
    response_model=PortfolioPerformanceResponse,
    summary="Portfolio performance",
)
async def portfolio(
    service: AnalyticsService = Depends(_get_analytics_service),
) -> PortfolioPerformanceResponse:
    return await service.portfolio_performance()
