"""
Pure financial formulas: profit & loss, ROI, annualisation, budget variance,
feed-cost analysis and next-cycle forecasting.

Inputs are duck-typed: anything exposing the named attributes works, so the
analytics service passes ORM rows straight through and tests pass the small
dataclasses defined here. Results are rounded to cents on the way out; no
function raises on an empty input or a zero denominator.
"""

from dataclasses import dataclass, field
from decimal import MAX_EMAX, Decimal, localcontext
from typing import Any, Dict, Iterable, List, Optional, Sequence

from aquafin.core.money import (
    HUNDRED,
    ONE,
    ZERO,
    MoneyLike,
    mean,
    round2,
    sum_decimals,
    to_decimal,
)

DAYS_PER_YEAR = Decimal("365")
FORECAST_REVENUE_UPLIFT = Decimal("1.15")
FORECAST_EXPENSE_FACTOR = Decimal("0.6")
CONFIDENCE_LOWER = Decimal("0.85")
CONFIDENCE_UPPER = Decimal("1.15")


# ────────────────────────────────────────────────────────────────────────────
# Profit & loss, ROI
# ────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ProfitLossResult:
    revenue: Decimal
    direct_costs: Decimal
    indirect_costs: Decimal
    gross_profit: Decimal
    net_profit: Decimal
    profit_margin: Decimal


def compute_profit_loss(
    revenues: Iterable[MoneyLike],
    direct_costs: Iterable[MoneyLike],
    indirect_costs: Iterable[MoneyLike],
) -> ProfitLossResult:
    """Gross profit is revenue less direct costs; net also deducts indirect costs."""
    revenue = sum_decimals(revenues)
    direct = sum_decimals(direct_costs)
    indirect = sum_decimals(indirect_costs)
    gross_profit = revenue - direct
    net_profit = gross_profit - indirect
    margin = ZERO if revenue == ZERO else net_profit / revenue * HUNDRED
    return ProfitLossResult(
        revenue=round2(revenue),
        direct_costs=round2(direct),
        indirect_costs=round2(indirect),
        gross_profit=round2(gross_profit),
        net_profit=round2(net_profit),
        profit_margin=round2(margin),
    )


def roi_pct(invested: MoneyLike, returned: MoneyLike) -> Decimal:
    """Unrounded ROI percentage; ``0`` when nothing was invested."""
    invest = to_decimal(invested)
    if invest == ZERO:
        return ZERO
    return (to_decimal(returned) - invest) / invest * HUNDRED


def compute_roi(invested: MoneyLike, returned: MoneyLike) -> Decimal:
    """``(returned - invested) / invested * 100`` rounded to cents."""
    return round2(roi_pct(invested, returned))


def annualize_return(roi: MoneyLike, days_held: int) -> Decimal:
    """
    Compound-annualise a holding-period ROI.

    ``((1 + roi/100) ** (365/days) - 1) * 100``. A non-positive holding
    period cannot be annualised and returns ``roi`` unchanged; a growth
    base of zero or less (losing everything or more) annualises to -100.
    Very short holdings can compound into huge figures; those are still
    returned in full, to the cent.
    """
    roi_dec = to_decimal(roi)
    if days_held <= 0:
        return round2(roi_dec)
    base = ONE + roi_dec / HUNDRED
    if base <= ZERO:
        return round2(-HUNDRED)
    with localcontext() as ctx:
        ctx.Emax = MAX_EMAX
        annualized = (base ** (DAYS_PER_YEAR / Decimal(days_held)) - ONE) * HUNDRED
        # Quantizing to cents needs a digit for every integer place.
        ctx.prec = max(ctx.prec, annualized.adjusted() + 3)
        return round2(annualized)


# ────────────────────────────────────────────────────────────────────────────
# Budget variance
# ────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class BudgetLine:
    category: str
    allocated: Decimal
    spent: Decimal


@dataclass(frozen=True)
class BudgetVarianceLine:
    category: str
    allocated: Decimal
    spent: Decimal
    variance: Decimal


@dataclass(frozen=True)
class BudgetVarianceResult:
    variance: List[BudgetVarianceLine] = field(default_factory=list)
    overspent: List[BudgetVarianceLine] = field(default_factory=list)


def _category(value: Any) -> str:
    return getattr(value, "value", value)


def compute_budget_variance(budgets: Iterable[Any]) -> BudgetVarianceResult:
    """``variance = spent - allocated`` per line; overspent lines have variance > 0."""
    lines = []
    for budget in budgets:
        allocated = to_decimal(budget.allocated)
        spent = to_decimal(budget.spent)
        lines.append(
            BudgetVarianceLine(
                category=_category(budget.category),
                allocated=round2(allocated),
                spent=round2(spent),
                variance=round2(spent - allocated),
            )
        )
    return BudgetVarianceResult(
        variance=lines, overspent=[line for line in lines if line.variance > ZERO]
    )


# ────────────────────────────────────────────────────────────────────────────
# Feed cost
# ────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class FeedUsageLine:
    feed_type: str
    quantity_kg: Decimal


@dataclass(frozen=True)
class FeedStockLine:
    feed_type: str
    cost_per_kg: Decimal


@dataclass(frozen=True)
class FeedTypeCost:
    feed_type: str
    quantity_kg: Decimal
    avg_cost_per_kg: Decimal
    estimated_cost: Decimal


@dataclass(frozen=True)
class FeedCostAnalysis:
    total_feed_used_kg: Decimal
    estimated_feed_cost: Decimal
    feed_cost_per_type: List[FeedTypeCost]


def compute_feed_cost_analysis(
    usage_records: Iterable[Any], stock_records: Iterable[Any]
) -> FeedCostAnalysis:
    """
    Cost feed consumption at the mean stock price of each feed type.

    One entry per feed type that was used, in order of first use. A type
    with no stock record is costed at zero.
    """
    costs_by_type: Dict[str, List[Decimal]] = {}
    for stock in stock_records:
        costs_by_type.setdefault(stock.feed_type, []).append(to_decimal(stock.cost_per_kg))

    qty_by_type: Dict[str, Decimal] = {}
    for usage in usage_records:
        qty_by_type[usage.feed_type] = qty_by_type.get(usage.feed_type, ZERO) + to_decimal(
            usage.quantity_kg
        )

    per_type = []
    total_cost = ZERO
    for feed_type, quantity in qty_by_type.items():
        avg_cost = mean(costs_by_type.get(feed_type, []))
        cost = quantity * avg_cost
        total_cost += cost
        per_type.append(
            FeedTypeCost(
                feed_type=feed_type,
                quantity_kg=round2(quantity),
                avg_cost_per_kg=round2(avg_cost),
                estimated_cost=round2(cost),
            )
        )

    return FeedCostAnalysis(
        total_feed_used_kg=round2(sum_decimals(qty_by_type.values())),
        estimated_feed_cost=round2(total_cost),
        feed_cost_per_type=per_type,
    )


# ────────────────────────────────────────────────────────────────────────────
# Forecast
# ────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class CycleHistory:
    biomass_end: Optional[Decimal] = None
    fcr: Optional[Decimal] = None
    profit: Optional[Decimal] = None


@dataclass(frozen=True)
class ForecastResult:
    forecast_revenue: Decimal
    forecast_expense: Decimal
    forecast_profit: Decimal
    confidence_lower: Decimal
    confidence_upper: Decimal
    avg_biomass_end: Decimal
    avg_fcr: Decimal
    avg_profit: Decimal
    cycles_used: int


def compute_forecast_from_cycles(past_cycles: Sequence[Any]) -> Optional[ForecastResult]:
    """
    Project the next cycle from historical averages.

    Revenue is the absolute average profit uplifted by 15%; expense is that
    revenue divided by the average FCR (1 when the average is 0) times 0.6.
    The confidence band is ±15% around the projected profit. Returns
    ``None`` when there is no history.
    """
    if not past_cycles:
        return None

    avg_biomass = mean(c.biomass_end for c in past_cycles)
    avg_fcr = mean(c.fcr for c in past_cycles)
    avg_profit = mean(c.profit for c in past_cycles)

    revenue = abs(avg_profit) * FORECAST_REVENUE_UPLIFT
    divisor = ONE if avg_fcr == ZERO else avg_fcr
    expense = revenue / divisor * FORECAST_EXPENSE_FACTOR
    profit = revenue - expense
    low, high = profit * CONFIDENCE_LOWER, profit * CONFIDENCE_UPPER

    return ForecastResult(
        forecast_revenue=round2(revenue),
        forecast_expense=round2(expense),
        forecast_profit=round2(profit),
        confidence_lower=round2(min(low, high)),
        confidence_upper=round2(max(low, high)),
        avg_biomass_end=round2(avg_biomass),
        avg_fcr=round2(avg_fcr),
        avg_profit=round2(avg_profit),
        cycles_used=len(past_cycles),
    )
