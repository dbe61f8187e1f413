"""
Pydantic response schemas for the analytics endpoints.

Each model mirrors a report object returned by ``AnalyticsService`` or a
result of the pure calculators, and is populated with ``from_attributes``.
"""

from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from aquafin.models.ledger import ExpenseCategory


class _Report(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# ── ROI ──


class CageRoiResponse(_Report):
    cage_id: UUID
    cage_name: Optional[str] = None
    invested: Decimal
    returns: Decimal
    roi_pct: Decimal


class RoiReportResponse(_Report):
    investor_id: UUID
    investor_name: str
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    total_invested: Decimal
    total_returns: Decimal
    roi_pct: Decimal
    annualized_roi_pct: Decimal
    days_held: int
    investment_count: int
    payout_count: int
    by_cage: List[CageRoiResponse]


# ── P&L, budget, feed, forecast ──


class RevenueStreamResponse(_Report):
    type: str
    amount: Decimal


class ExpenseLineResponse(_Report):
    category: ExpenseCategory
    amount: Decimal
    direct: bool


class ProfitLossResponse(_Report):
    revenue: Decimal
    direct_costs: Decimal
    indirect_costs: Decimal
    gross_profit: Decimal
    net_profit: Decimal
    profit_margin: Decimal
    revenue_streams: List[RevenueStreamResponse]
    expense_breakdown: List[ExpenseLineResponse]


class BudgetVarianceLineResponse(_Report):
    category: str
    allocated: Decimal
    spent: Decimal
    variance: Decimal


class BudgetVarianceResponse(_Report):
    variance: List[BudgetVarianceLineResponse]
    overspent: List[BudgetVarianceLineResponse]


class FeedTypeCostResponse(_Report):
    feed_type: str
    quantity_kg: Decimal
    avg_cost_per_kg: Decimal
    estimated_cost: Decimal


class FeedCostAnalysisResponse(_Report):
    total_feed_used_kg: Decimal
    estimated_feed_cost: Decimal
    feed_cost_per_type: List[FeedTypeCostResponse]


class ForecastResponse(_Report):
    """Projection for the next cycle; ``avg_*`` fields are the assumptions used."""

    forecast_revenue: Decimal
    forecast_expense: Decimal
    forecast_profit: Decimal
    confidence_lower: Decimal
    confidence_upper: Decimal
    avg_biomass_end: Decimal
    avg_fcr: Decimal
    avg_profit: Decimal
    cycles_used: int


# ── Rankings ──


class InvestorComparisonResponse(_Report):
    rank: int
    investor_id: UUID
    investor_name: str
    total_investment: Decimal
    total_returns: Decimal
    roi: Decimal
    investment_count: int
    payout_count: int
    average_payout: Decimal


class InvestorSnapshotResponse(_Report):
    investor_id: UUID
    investor_name: str
    total_investment: Decimal
    total_returns: Decimal
    roi: Decimal


class PortfolioPerformanceResponse(_Report):
    total_investors: int
    active_investors: int
    total_invested: Decimal
    total_returns: Decimal
    overall_roi: Decimal
    top_by_roi: List[InvestorSnapshotResponse]
    top_by_investment: List[InvestorSnapshotResponse]


# ── Cycle and investor reports ──


class CycleFinancialReportResponse(_Report):
    cycle_id: UUID
    cage_id: UUID
    cage_name: Optional[str] = None
    species: str
    status: str
    start_date: date
    end_date: Optional[date] = None
    revenue: Decimal
    expenses: Decimal
    profit: Decimal
    profit_margin: Decimal
    fcr: Optional[Decimal] = None
    biomass_end: Optional[Decimal] = None
    initial_stock: int
    harvested_stock: Optional[int] = None
    survival_rate: Optional[Decimal] = None
    distribution_reference: Optional[str] = None
    payout_count: int
    payouts_total: Decimal
    payouts_by_status: Dict[str, Decimal]


class CycleReturnResponse(_Report):
    cycle_id: UUID
    cage_id: UUID
    cage_code: Optional[str] = None
    species: str
    status: str
    start_date: date
    end_date: Optional[date] = None
    investment_amount: Decimal
    payout_amount: Decimal
    profit: Decimal
    roi: Decimal


class YearlyReturnResponse(_Report):
    year: int
    investment: Decimal
    returns: Decimal
    roi: Decimal


class PayoutStatsResponse(_Report):
    pending_count: int
    paid_count: int
    total_pending: Decimal
    total_paid: Decimal


class InvestorReturnsResponse(_Report):
    investor_id: UUID
    investor_name: str
    total_investment: Decimal
    total_returns: Decimal
    overall_roi: Decimal
    by_cycle: List[CycleReturnResponse]
    yearly_breakdown: List[YearlyReturnResponse]
    payout_stats: PayoutStatsResponse
