"""
Analytics service: read-only financial reports.

Every report is assembled from repository reads and the pure formulas in
``financial_metrics``; nothing here writes. Money totals go through the
decimal kernel and are rounded to cents only in the returned objects.

Caching:
    Reports are memoised in the TTL cache under ``analytics:``.
    ``PayoutService`` invalidates the whole prefix after each distribution
    or payout transition; other changes show up once the TTL expires.
"""

import logging
import math
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple
from uuid import UUID

from aquafin.core.cache import cache
from aquafin.core.config import settings
from aquafin.core.exceptions import NotFoundException
from aquafin.core.money import HUNDRED, ZERO, round2, sum_attr, sum_decimals, to_decimal
from aquafin.models.ledger import ExpenseCategory, is_direct_cost
from aquafin.models.payout import RETURNED_STATUSES, Payout, PayoutStatus
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
from aquafin.services.financial_metrics import (
    BudgetVarianceResult,
    FeedCostAnalysis,
    ForecastResult,
    annualize_return,
    compute_budget_variance,
    compute_feed_cost_analysis,
    compute_forecast_from_cycles,
    compute_profit_loss,
    compute_roi,
    roi_pct,
)

logger = logging.getLogger(__name__)

CACHE_PREFIX = "analytics:"
TOP_N = 5
DEFAULT_HOLDING_DAYS = 365
SECONDS_PER_DAY = 86400


# ────────────────────────────────────────────────────────────────────────────
# Report shapes
# ────────────────────────────────────────────────────────────────────────────


@dataclass
class CageRoi:
    cage_id: UUID
    cage_name: Optional[str]
    invested: Decimal
    returns: Decimal
    roi_pct: Decimal


@dataclass
class RoiReport:
    investor_id: UUID
    investor_name: str
    period_start: Optional[date]
    period_end: Optional[date]
    total_invested: Decimal
    total_returns: Decimal
    roi_pct: Decimal
    annualized_roi_pct: Decimal
    days_held: int
    investment_count: int
    payout_count: int
    by_cage: List[CageRoi] = field(default_factory=list)


@dataclass
class RevenueStream:
    type: str
    amount: Decimal


@dataclass
class ExpenseLine:
    category: ExpenseCategory
    amount: Decimal
    direct: bool


@dataclass
class ProfitLossReport:
    revenue: Decimal
    direct_costs: Decimal
    indirect_costs: Decimal
    gross_profit: Decimal
    net_profit: Decimal
    profit_margin: Decimal
    revenue_streams: List[RevenueStream] = field(default_factory=list)
    expense_breakdown: List[ExpenseLine] = field(default_factory=list)


@dataclass
class InvestorComparison:
    rank: int
    investor_id: UUID
    investor_name: str
    total_investment: Decimal
    total_returns: Decimal
    roi: Decimal
    investment_count: int
    payout_count: int
    average_payout: Decimal


@dataclass
class InvestorSnapshot:
    investor_id: UUID
    investor_name: str
    total_investment: Decimal
    total_returns: Decimal
    roi: Decimal


@dataclass
class PortfolioPerformance:
    total_investors: int
    active_investors: int
    total_invested: Decimal
    total_returns: Decimal
    overall_roi: Decimal
    top_by_roi: List[InvestorSnapshot] = field(default_factory=list)
    top_by_investment: List[InvestorSnapshot] = field(default_factory=list)


@dataclass
class CycleFinancialReport:
    cycle_id: UUID
    cage_id: UUID
    cage_name: Optional[str]
    species: str
    status: str
    start_date: date
    end_date: Optional[date]
    revenue: Decimal
    expenses: Decimal
    profit: Decimal
    profit_margin: Decimal
    fcr: Optional[Decimal]
    biomass_end: Optional[Decimal]
    initial_stock: int
    harvested_stock: Optional[int]
    survival_rate: Optional[Decimal]
    distribution_reference: Optional[str]
    payout_count: int
    payouts_total: Decimal
    payouts_by_status: Dict[str, Decimal] = field(default_factory=dict)


@dataclass
class CycleReturn:
    cycle_id: UUID
    cage_id: UUID
    cage_code: Optional[str]
    species: str
    status: str
    start_date: date
    end_date: Optional[date]
    investment_amount: Decimal
    payout_amount: Decimal
    profit: Decimal
    roi: Decimal


@dataclass
class YearlyReturn:
    year: int
    investment: Decimal
    returns: Decimal
    roi: Decimal


@dataclass
class PayoutStats:
    pending_count: int
    paid_count: int
    total_pending: Decimal
    total_paid: Decimal


@dataclass
class InvestorReturns:
    investor_id: UUID
    investor_name: str
    total_investment: Decimal
    total_returns: Decimal
    overall_roi: Decimal
    by_cycle: List[CycleReturn]
    yearly_breakdown: List[YearlyReturn]
    payout_stats: PayoutStats


def _day_start(day: Optional[date]) -> Optional[datetime]:
    if day is None:
        return None
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def _day_end(day: Optional[date]) -> Optional[datetime]:
    if day is None:
        return None
    return datetime.combine(day, time.max, tzinfo=timezone.utc)


def _aware(moment: datetime) -> datetime:
    # SQLite hands back naive datetimes for timezone-aware columns.
    return moment if moment.tzinfo is not None else moment.replace(tzinfo=timezone.utc)


def _in_window(moment: datetime, start: Optional[date], end: Optional[date]) -> bool:
    day = moment.date()
    if start is not None and day < start:
        return False
    if end is not None and day > end:
        return False
    return True


def _snapshot(investor: Any) -> InvestorSnapshot:
    return InvestorSnapshot(
        investor_id=investor.id,
        investor_name=investor.name,
        total_investment=round2(investor.total_investment),
        total_returns=round2(investor.total_returns),
        roi=round2(investor.roi),
    )


class AnalyticsService:
    """Read-only reporting over payouts, investments and cycle financials."""

    def __init__(
        self,
        investor_repo: InvestorRepository,
        investment_repo: InvestmentRepository,
        payout_repo: PayoutRepository,
        run_repo: DistributionRunRepository,
        cycle_repo: CycleRepository,
        cage_repo: CageRepository,
        revenue_repo: RevenueRepository,
        expense_repo: ExpenseRepository,
        budget_repo: BudgetRepository,
        feed_usage_repo: FeedUsageRepository,
        feed_stock_repo: FeedStockRepository,
    ):
        self._investor_repo = investor_repo
        self._investment_repo = investment_repo
        self._payout_repo = payout_repo
        self._run_repo = run_repo
        self._cycle_repo = cycle_repo
        self._cage_repo = cage_repo
        self._revenue_repo = revenue_repo
        self._expense_repo = expense_repo
        self._budget_repo = budget_repo
        self._feed_usage_repo = feed_usage_repo
        self._feed_stock_repo = feed_stock_repo

    async def _cached(self, key: str, loader: Callable[[], Awaitable[Any]]) -> Any:
        cache_key = f"{CACHE_PREFIX}{key}"
        cached = cache.get(cache_key)
        if cached is not None:
            logger.debug("Cache hit for %s", cache_key)
            return cached
        value = await loader()
        cache.set(cache_key, value)
        return value

    # ── ROI ──

    async def calculate_roi(
        self,
        investor_id: UUID,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> RoiReport:
        """
        ROI of one investor over an optional window.

        Counts stakes whose ``start_date`` falls in the window and payouts in
        ``paid``/``processing`` whose effective date (``paid_at``, else
        ``created_at``) does. ``days_held`` runs from the earliest stake to
        the latest payout, at least one day; 365 when either side is empty.
        """
        investor = await self._investor_repo.get(investor_id)
        if not investor:
            raise NotFoundException("Investor", investor_id)

        async def _load() -> RoiReport:
            investments = await self._investment_repo.get_by_investor(investor_id, start, end)
            payouts = [
                p
                for p in await self._payout_repo.get_by_investor(investor_id, RETURNED_STATUSES)
                if _in_window(p.effective_date, start, end)
            ]
            invested = sum_decimals(inv.effective_amount for inv in investments)
            returned = sum_attr(payouts, "amount")

            if investments and payouts:
                first = _day_start(min(inv.start_date for inv in investments))
                last = _aware(max(p.effective_date for p in payouts))
                days_held = max(1, math.ceil((last - first).total_seconds() / SECONDS_PER_DAY))
            else:
                days_held = DEFAULT_HOLDING_DAYS

            return RoiReport(
                investor_id=investor_id,
                investor_name=investor.name,
                period_start=start,
                period_end=end,
                total_invested=round2(invested),
                total_returns=round2(returned),
                roi_pct=compute_roi(invested, returned),
                annualized_roi_pct=annualize_return(roi_pct(invested, returned), days_held),
                days_held=days_held,
                investment_count=len(investments),
                payout_count=len(payouts),
                by_cage=await self._roi_by_cage(investments, payouts),
            )

        return await self._cached(f"roi:{investor_id}:{start}:{end}", _load)

    async def _roi_by_cage(self, investments: List[Any], payouts: List[Payout]) -> List[CageRoi]:
        """Group stakes by their cage and payouts by their cycle's cage."""
        invested: Dict[UUID, Decimal] = defaultdict(lambda: ZERO)
        for inv in investments:
            invested[inv.cage_id] += to_decimal(inv.effective_amount)

        cycles = await self._cycle_repo.get_many(p.cycle_id for p in payouts)
        cage_of_cycle = {c.id: c.cage_id for c in cycles}
        returns: Dict[UUID, Decimal] = defaultdict(lambda: ZERO)
        for payout in payouts:
            cage_id = cage_of_cycle.get(payout.cycle_id)
            if cage_id is not None:
                returns[cage_id] += to_decimal(payout.amount)

        cage_ids = list(dict.fromkeys([*invested.keys(), *returns.keys()]))
        names = {c.id: c.name for c in await self._cage_repo.get_many(cage_ids)}
        return [
            CageRoi(
                cage_id=cage_id,
                cage_name=names.get(cage_id),
                invested=round2(invested[cage_id]),
                returns=round2(returns[cage_id]),
                roi_pct=compute_roi(invested[cage_id], returns[cage_id]),
            )
            for cage_id in cage_ids
        ]

    # ── Profit & loss, budget, feed ──

    async def profit_and_loss(
        self,
        cage_id: Optional[UUID] = None,
        cycle_id: Optional[UUID] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> ProfitLossReport:
        """P&L over the filtered revenues and expenses, split direct / indirect."""

        async def _load() -> ProfitLossReport:
            window = dict(
                cage_id=cage_id, cycle_id=cycle_id, start=_day_start(start), end=_day_end(end)
            )
            revenues = await self._revenue_repo.list_filtered(**window)
            expenses = await self._expense_repo.list_filtered(**window)

            streams: Dict[str, Decimal] = defaultdict(lambda: ZERO)
            for revenue in revenues:
                streams[revenue.type] += to_decimal(revenue.amount)
            by_category: Dict[ExpenseCategory, Decimal] = defaultdict(lambda: ZERO)
            for expense in expenses:
                by_category[ExpenseCategory(expense.category)] += to_decimal(expense.amount)

            result = compute_profit_loss(
                (r.amount for r in revenues),
                (e.amount for e in expenses if is_direct_cost(e.category)),
                (e.amount for e in expenses if not is_direct_cost(e.category)),
            )
            return ProfitLossReport(
                revenue=result.revenue,
                direct_costs=result.direct_costs,
                indirect_costs=result.indirect_costs,
                gross_profit=result.gross_profit,
                net_profit=result.net_profit,
                profit_margin=result.profit_margin,
                revenue_streams=[
                    RevenueStream(type=kind, amount=round2(amount))
                    for kind, amount in streams.items()
                ],
                expense_breakdown=[
                    ExpenseLine(
                        category=category,
                        amount=round2(amount),
                        direct=is_direct_cost(category),
                    )
                    for category, amount in by_category.items()
                ],
            )

        return await self._cached(f"pnl:{cage_id}:{cycle_id}:{start}:{end}", _load)

    async def budget_variance(self, cycle_id: UUID) -> BudgetVarianceResult:
        if not await self._cycle_repo.get(cycle_id):
            raise NotFoundException("Cycle", cycle_id)

        async def _load() -> BudgetVarianceResult:
            return compute_budget_variance(await self._budget_repo.get_by_cycle(cycle_id))

        return await self._cached(f"budget:{cycle_id}", _load)

    async def cost_analysis(self, cage_id: Optional[UUID] = None) -> FeedCostAnalysis:
        """Feed cost over the most recent usage rows, optionally for one cage."""
        if cage_id is not None and not await self._cage_repo.get(cage_id):
            raise NotFoundException("Cage", cage_id)

        async def _load() -> FeedCostAnalysis:
            usage = await self._feed_usage_repo.recent(
                cage_id, limit=settings.FEED_USAGE_LOOKBACK_ROWS
            )
            stock = await self._feed_stock_repo.list_all()
            return compute_feed_cost_analysis(usage, stock)

        return await self._cached(f"feed:{cage_id}", _load)

    async def forecast_cycle(self, cage_id: UUID) -> Optional[ForecastResult]:
        """Next-cycle projection from the cage's latest completed cycles, or ``None``."""
        if not await self._cage_repo.get(cage_id):
            raise NotFoundException("Cage", cage_id)

        async def _load() -> Optional[ForecastResult]:
            history = await self._cycle_repo.get_completed_by_cage(
                cage_id, limit=settings.FORECAST_HISTORY_CYCLES
            )
            return compute_forecast_from_cycles(history)

        return await self._cached(f"forecast:{cage_id}", _load)

    # ── Investor rankings ──

    async def comparative_analysis(self) -> List[InvestorComparison]:
        """Investors ranked by cached ``total_returns``, with activity counts."""

        async def _load() -> List[InvestorComparison]:
            investors = await self._investor_repo.list_by_total_returns()
            investment_counts = await self._investment_repo.count_by_investor()
            payout_stats = await self._payout_repo.stats_by_investor()
            rows = []
            for rank, investor in enumerate(investors, start=1):
                payout_count, payout_total = payout_stats.get(investor.id, (0, ZERO))
                average = payout_total / payout_count if payout_count else ZERO
                rows.append(
                    InvestorComparison(
                        rank=rank,
                        investor_id=investor.id,
                        investor_name=investor.name,
                        total_investment=round2(investor.total_investment),
                        total_returns=round2(investor.total_returns),
                        roi=round2(investor.roi),
                        investment_count=investment_counts.get(investor.id, 0),
                        payout_count=payout_count,
                        average_payout=round2(average),
                    )
                )
            return rows

        return await self._cached("comparative", _load)

    async def portfolio_performance(self) -> PortfolioPerformance:
        """Portfolio totals and leaders, from the cached investor aggregates only."""

        async def _load() -> PortfolioPerformance:
            investors = await self._investor_repo.list_by_total_returns()
            invested = sum_attr(investors, "total_investment")
            returned = sum_attr(investors, "total_returns")
            by_roi = sorted(investors, key=lambda i: to_decimal(i.roi), reverse=True)
            by_capital = sorted(
                investors, key=lambda i: to_decimal(i.total_investment), reverse=True
            )
            return PortfolioPerformance(
                total_investors=len(investors),
                active_investors=sum(
                    1 for i in investors if getattr(i.status, "value", i.status) == "active"
                ),
                total_invested=round2(invested),
                total_returns=round2(returned),
                overall_roi=compute_roi(invested, returned),
                top_by_roi=[_snapshot(i) for i in by_roi[:TOP_N]],
                top_by_investment=[_snapshot(i) for i in by_capital[:TOP_N]],
            )

        return await self._cached("portfolio", _load)

    # ── Cycle and investor reports ──

    async def cycle_financial_report(self, cycle_id: UUID) -> CycleFinancialReport:
        """
        Financial summary of one cycle.

        Uses the cycle's cached revenue / profit when the cycle has been
        distributed, otherwise the recorded revenue and expense rows.
        """
        cycle = await self._cycle_repo.get(cycle_id)
        if not cycle:
            raise NotFoundException("Cycle", cycle_id)

        async def _load() -> CycleFinancialReport:
            recorded_revenue = await self._revenue_repo.total_for_cycle(cycle_id)
            recorded_expenses = await self._expense_repo.total_for_cycle(cycle_id)
            revenue = to_decimal(cycle.revenue) if cycle.revenue is not None else recorded_revenue
            if cycle.profit is not None:
                profit = to_decimal(cycle.profit)
                expenses = revenue - profit
            else:
                expenses = recorded_expenses
                profit = revenue - expenses

            payouts = await self._payout_repo.get_by_cycle(cycle_id)
            by_status = {
                status.value: round2(
                    sum_decimals(p.amount for p in payouts if p.status == status)
                )
                for status in PayoutStatus
            }
            run = await self._run_repo.get_by_cycle(cycle_id)
            cage = await self._cage_repo.get(cycle.cage_id)
            survival = None
            if cycle.harvested_stock is not None and cycle.initial_stock:
                survival = round2(
                    Decimal(cycle.harvested_stock) / Decimal(cycle.initial_stock) * HUNDRED
                )

            return CycleFinancialReport(
                cycle_id=cycle.id,
                cage_id=cycle.cage_id,
                cage_name=cage.name if cage else None,
                species=cycle.species,
                status=cycle.status.value,
                start_date=cycle.start_date,
                end_date=cycle.end_date,
                revenue=round2(revenue),
                expenses=round2(expenses),
                profit=round2(profit),
                profit_margin=round2(profit / revenue * HUNDRED) if revenue else ZERO,
                fcr=cycle.fcr,
                biomass_end=cycle.biomass_end,
                initial_stock=cycle.initial_stock,
                harvested_stock=cycle.harvested_stock,
                survival_rate=survival,
                distribution_reference=run.reference if run else None,
                payout_count=len(payouts),
                payouts_total=round2(sum_attr(payouts, "amount")),
                payouts_by_status=by_status,
            )

        return await self._cached(f"cycle-report:{cycle_id}", _load)

    async def investor_returns_by_cycle(self, investor_id: UUID) -> InvestorReturns:
        """
        An investor's capital and returns per cycle, per year, and by status.

        A cycle's capital is the stakes pinned to it plus the investor's
        cage-level stakes on its cage. Returns count ``paid`` and
        ``processing`` payouts; the payout stats cover every status.
        """
        investor = await self._investor_repo.get(investor_id)
        if not investor:
            raise NotFoundException("Investor", investor_id)

        async def _load() -> InvestorReturns:
            investments = await self._investment_repo.get_by_investor(investor_id)
            payouts = await self._payout_repo.get_by_investor(investor_id)
            returned = [p for p in payouts if p.status in RETURNED_STATUSES]

            cycle_ids = [inv.cycle_id for inv in investments if inv.cycle_id is not None]
            cycle_ids += [p.cycle_id for p in payouts]
            cycles = await self._cycle_repo.get_many(cycle_ids)
            cages = {c.id: c for c in await self._cage_repo.get_many(c.cage_id for c in cycles)}

            by_cycle = []
            for cycle in cycles:
                capital = sum_decimals(
                    inv.effective_amount
                    for inv in investments
                    if inv.cycle_id == cycle.id
                    or (inv.cycle_id is None and inv.cage_id == cycle.cage_id)
                )
                paid_out = sum_attr((p for p in returned if p.cycle_id == cycle.id), "amount")
                cage = cages.get(cycle.cage_id)
                by_cycle.append(
                    CycleReturn(
                        cycle_id=cycle.id,
                        cage_id=cycle.cage_id,
                        cage_code=cage.code if cage else None,
                        species=cycle.species,
                        status=cycle.status.value,
                        start_date=cycle.start_date,
                        end_date=cycle.end_date,
                        investment_amount=round2(capital),
                        payout_amount=round2(paid_out),
                        profit=round2(paid_out - capital),
                        roi=compute_roi(capital, paid_out),
                    )
                )
            by_cycle.sort(key=lambda row: (row.start_date, str(row.cycle_id)))

            invested = sum_decimals(inv.effective_amount for inv in investments)
            total_returns = sum_attr(returned, "amount")
            return InvestorReturns(
                investor_id=investor_id,
                investor_name=investor.name,
                total_investment=round2(invested),
                total_returns=round2(total_returns),
                overall_roi=compute_roi(invested, total_returns),
                by_cycle=by_cycle,
                yearly_breakdown=self._yearly_breakdown(investments, returned),
                payout_stats=self._payout_stats(payouts),
            )

        return await self._cached(f"returns:{investor_id}", _load)

    @staticmethod
    def _yearly_breakdown(investments: List[Any], payouts: List[Payout]) -> List[YearlyReturn]:
        years: Dict[int, Tuple[Decimal, Decimal]] = {}
        for inv in investments:
            capital, returns = years.get(inv.start_date.year, (ZERO, ZERO))
            years[inv.start_date.year] = (capital + to_decimal(inv.effective_amount), returns)
        for payout in payouts:
            year = payout.effective_date.year
            capital, returns = years.get(year, (ZERO, ZERO))
            years[year] = (capital, returns + to_decimal(payout.amount))
        return [
            YearlyReturn(
                year=year,
                investment=round2(capital),
                returns=round2(returns),
                roi=compute_roi(capital, returns),
            )
            for year, (capital, returns) in sorted(years.items())
        ]

    @staticmethod
    def _payout_stats(payouts: List[Payout]) -> PayoutStats:
        pending = [p.amount for p in payouts if p.status == PayoutStatus.PENDING]
        paid = [p.amount for p in payouts if p.status == PayoutStatus.PAID]
        return PayoutStats(
            pending_count=len(pending),
            paid_count=len(paid),
            total_pending=round2(sum_decimals(pending)),
            total_paid=round2(sum_decimals(paid)),
        )
