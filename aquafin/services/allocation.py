"""
Allocation calculator: pure payout formulas and the named allocation policies.

Nothing here touches the database, the clock or the network; every function
maps decimal inputs to decimal outputs, so the lifecycle manager, the
estimate endpoint and the tests all run the exact same arithmetic.

Two policies exist and are selected explicitly by the caller:

``TAX_ADJUSTED_UNITS``
    ``gross = profit * units / total_units``, ``tax = gross * rate / 100``,
    ``net = gross - tax``. Used by the legacy per-cycle calculation.

``REVENUE_PROFIT_SPLIT``
    Weighted by invested capital ``w = amount / total_amount``:
    ``revenue_share = revenue * w * 0.6`` plus
    ``profit_share = max(0, (revenue - expenses) * w * 0.4)``. No tax. Used by
    harvest-triggered distribution.

Edge cases are data, not exceptions: zero total units (or an empty share
list) yields ``[]``. Output order always equals input order, and each
investor is rounded independently at the end.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Union
from uuid import UUID

from aquafin.core.config import settings
from aquafin.core.money import HUNDRED, ZERO, MoneyLike, round2, sum_decimals, to_decimal
from aquafin.models.payout import AllocationPolicy

InvestorKey = Union[UUID, str]


@dataclass(frozen=True)
class InvestorShare:
    """One investor's weight in a distribution: share units and capital."""

    investor_id: InvestorKey
    units: Decimal
    amount: Decimal = ZERO
    investor_name: Optional[str] = None


@dataclass(frozen=True)
class PayoutBreakdown:
    """Tax-adjusted result for one investor."""

    investor_id: InvestorKey
    gross: Decimal
    tax: Decimal
    net: Decimal
    investor_name: Optional[str] = None

    @property
    def payable(self) -> Decimal:
        return self.net


@dataclass(frozen=True)
class SplitPayoutBreakdown:
    """Revenue/profit split result for one investor."""

    investor_id: InvestorKey
    share_percentage: Decimal
    investment_amount: Decimal
    revenue_share: Decimal
    profit_share: Decimal
    total_payout: Decimal
    revenue_percentage: Decimal
    profit_percentage: Decimal
    investor_name: Optional[str] = None

    @property
    def payable(self) -> Decimal:
        return self.total_payout


Breakdown = Union[PayoutBreakdown, SplitPayoutBreakdown]


def merge_shares_by_investor(shares: Iterable[InvestorShare]) -> List[InvestorShare]:
    """
    Collapse several stakes of the same investor into one share.

    Units and amounts are summed; the investor keeps the position of their
    first stake, so the result is still in input order.
    """
    merged: Dict[InvestorKey, InvestorShare] = {}
    for share in shares:
        current = merged.get(share.investor_id)
        if current is None:
            merged[share.investor_id] = share
            continue
        merged[share.investor_id] = InvestorShare(
            investor_id=share.investor_id,
            units=current.units + share.units,
            amount=current.amount + share.amount,
            investor_name=current.investor_name or share.investor_name,
        )
    return list(merged.values())


def compute_proportional_payouts(
    profit: MoneyLike,
    shares: Sequence[InvestorShare],
    tax_rate_pct: MoneyLike = 0,
) -> List[PayoutBreakdown]:
    """Split ``profit`` by share units and withhold ``tax_rate_pct`` percent."""
    profit_dec = to_decimal(profit)
    rate = to_decimal(tax_rate_pct)
    total_units = sum_decimals(s.units for s in shares)
    if total_units == ZERO:
        return []

    result = []
    for share in shares:
        gross = profit_dec * to_decimal(share.units) / total_units
        tax = gross * rate / HUNDRED
        net = gross - tax
        result.append(
            PayoutBreakdown(
                investor_id=share.investor_id,
                investor_name=share.investor_name,
                gross=round2(gross),
                tax=round2(tax),
                net=round2(net),
            )
        )
    return result


def compute_revenue_profit_split(
    revenue: MoneyLike,
    farm_expenses: MoneyLike,
    shares: Sequence[InvestorShare],
    revenue_ratio: MoneyLike = None,
    profit_ratio: MoneyLike = None,
) -> List[SplitPayoutBreakdown]:
    """
    Harvest split: a revenue-proportional share plus a non-negative
    profit-proportional share, both weighted by invested capital.
    """
    revenue_dec = to_decimal(revenue)
    gross_profit = revenue_dec - to_decimal(farm_expenses)
    rev_ratio = to_decimal(revenue_ratio, settings.REVENUE_ALLOCATION_RATIO)
    prof_ratio = to_decimal(profit_ratio, settings.PROFIT_ALLOCATION_RATIO)

    total_amount = sum_decimals(s.amount for s in shares)
    if total_amount == ZERO:
        return []

    result = []
    for share in shares:
        weight = to_decimal(share.amount) / total_amount
        revenue_share = revenue_dec * weight * rev_ratio
        profit_share = max(ZERO, gross_profit * weight * prof_ratio)
        result.append(
            SplitPayoutBreakdown(
                investor_id=share.investor_id,
                investor_name=share.investor_name,
                share_percentage=round2(weight * HUNDRED),
                investment_amount=round2(share.amount),
                revenue_share=round2(revenue_share),
                profit_share=round2(profit_share),
                total_payout=round2(revenue_share + profit_share),
                revenue_percentage=round2(rev_ratio * HUNDRED),
                profit_percentage=round2(prof_ratio * HUNDRED),
            )
        )
    return result


# ────────────────────────────────────────────────────────────────────────────
# Named strategies
# ────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class DistributionFigures:
    """
    Money figures a policy allocates from.

    ``profit`` defaults to ``revenue - expenses`` when not given explicitly
    (the legacy path passes the cycle's cached profit).
    """

    revenue: Decimal = ZERO
    expenses: Decimal = ZERO
    profit: Optional[Decimal] = None
    tax_rate_pct: Decimal = ZERO

    @property
    def net_profit(self) -> Decimal:
        if self.profit is not None:
            return self.profit
        return self.revenue - self.expenses


@dataclass(frozen=True)
class Allocation:
    """Policy-neutral outcome for one investor: who, how much, and why."""

    investor_id: InvestorKey
    amount: Decimal
    breakdown: Breakdown


class AllocationStrategy:
    """Base class for allocation policies."""

    policy: AllocationPolicy

    def breakdowns(
        self, shares: Sequence[InvestorShare], figures: DistributionFigures
    ) -> List[Breakdown]:
        raise NotImplementedError

    def allocate(
        self, shares: Sequence[InvestorShare], figures: DistributionFigures
    ) -> List[Allocation]:
        return [
            Allocation(investor_id=b.investor_id, amount=b.payable, breakdown=b)
            for b in self.breakdowns(shares, figures)
        ]

    @staticmethod
    def total(allocations: Iterable[Allocation]) -> Decimal:
        return round2(sum_decimals(a.amount for a in allocations))


class TaxAdjustedUnitsStrategy(AllocationStrategy):
    policy = AllocationPolicy.TAX_ADJUSTED_UNITS

    def breakdowns(
        self, shares: Sequence[InvestorShare], figures: DistributionFigures
    ) -> List[Breakdown]:
        return list(
            compute_proportional_payouts(figures.net_profit, shares, figures.tax_rate_pct)
        )


class RevenueProfitSplitStrategy(AllocationStrategy):
    policy = AllocationPolicy.REVENUE_PROFIT_SPLIT

    def __init__(self, revenue_ratio: MoneyLike = None, profit_ratio: MoneyLike = None):
        self.revenue_ratio = to_decimal(revenue_ratio, settings.REVENUE_ALLOCATION_RATIO)
        self.profit_ratio = to_decimal(profit_ratio, settings.PROFIT_ALLOCATION_RATIO)

    def breakdowns(
        self, shares: Sequence[InvestorShare], figures: DistributionFigures
    ) -> List[Breakdown]:
        return list(
            compute_revenue_profit_split(
                figures.revenue,
                figures.expenses,
                shares,
                revenue_ratio=self.revenue_ratio,
                profit_ratio=self.profit_ratio,
            )
        )


def get_policy(policy: Union[AllocationPolicy, str]) -> AllocationStrategy:
    """Return the strategy implementing ``policy`` (raises ``ValueError`` if unknown)."""
    policy = AllocationPolicy(policy)
    if policy is AllocationPolicy.TAX_ADJUSTED_UNITS:
        return TaxAdjustedUnitsStrategy()
    return RevenueProfitSplitStrategy()
