"""
Unit tests for the allocation calculator.

Tests cover:
- Proportional (tax-adjusted) split: shares, tax withholding, rounding
- Revenue/profit split: weighting by capital, loss floor at zero
- Degenerate inputs: zero units, zero capital, empty share list
- Share merging and policy lookup
"""

from decimal import Decimal

import pytest

from aquafin.core.money import round2, sum_decimals
from aquafin.models.payout import AllocationPolicy
from aquafin.services.allocation import (
    DistributionFigures,
    InvestorShare,
    RevenueProfitSplitStrategy,
    TaxAdjustedUnitsStrategy,
    compute_proportional_payouts,
    compute_revenue_profit_split,
    get_policy,
    merge_shares_by_investor,
)


def _share(investor: str, units="0", amount="0") -> InvestorShare:
    return InvestorShare(investor_id=investor, units=Decimal(units), amount=Decimal(amount))


# ────────────────────────────────────────────────────────────────────────────
# compute_proportional_payouts
# ────────────────────────────────────────────────────────────────────────────


class TestProportionalPayouts:
    def test_split_by_units_with_tax(self):
        shares = [_share("A", units="60"), _share("B", units="40")]

        result = compute_proportional_payouts(Decimal("10000"), shares, Decimal("15"))

        assert [r.investor_id for r in result] == ["A", "B"]
        assert result[0].gross == Decimal("6000.00")
        assert result[0].tax == Decimal("900.00")
        assert result[0].net == Decimal("5100.00")
        assert result[1].gross == Decimal("4000.00")
        assert result[1].net == Decimal("3400.00")

    def test_zero_total_units_yields_empty(self):
        shares = [_share("A", units="0"), _share("B", units="0")]
        assert compute_proportional_payouts(Decimal("1000"), shares, 10) == []

    def test_empty_share_list_yields_empty(self):
        assert compute_proportional_payouts(Decimal("1000"), [], 0) == []

    def test_each_investor_rounded_independently(self):
        shares = [_share("A", units="1"), _share("B", units="1"), _share("C", units="1")]

        result = compute_proportional_payouts(Decimal("100"), shares)

        assert all(r.net == Decimal("33.33") for r in result)
        # Independent rounding may leave a cent unallocated.
        assert sum_decimals(r.net for r in result) == Decimal("99.99")

    @pytest.mark.parametrize(
        "profit, units, tax",
        [
            ("1000", ["1", "2", "4"], "17.5"),
            ("8765.43", ["3", "11", "0.5", "29"], "12.25"),
        ],
    )
    def test_net_total_matches_taxed_profit(self, profit, units, tax):
        shares = [_share(chr(ord("A") + i), units=u) for i, u in enumerate(units)]

        result = compute_proportional_payouts(Decimal(profit), shares, Decimal(tax))

        expected = round2(Decimal(profit) * (1 - Decimal(tax) / 100))
        total = sum_decimals(r.net for r in result)
        assert abs(total - expected) <= Decimal("0.01") * len(shares)

    def test_gross_equals_net_plus_tax_per_line(self):
        shares = [_share("A", units="3"), _share("B", units="7")]

        for line in compute_proportional_payouts(Decimal("1234.56"), shares, Decimal("12.5")):
            assert abs(line.gross - (line.net + line.tax)) <= Decimal("0.01")


# ────────────────────────────────────────────────────────────────────────────
# compute_revenue_profit_split
# ────────────────────────────────────────────────────────────────────────────


class TestRevenueProfitSplit:
    def test_two_investors_weighted_by_capital(self):
        shares = [_share("A", amount="1000"), _share("B", amount="3000")]

        result = compute_revenue_profit_split(Decimal("10000"), Decimal("6000"), shares)

        a, b = result
        assert a.share_percentage == Decimal("25.00")
        assert a.revenue_share == Decimal("1500.00")
        assert a.profit_share == Decimal("400.00")
        assert a.total_payout == Decimal("1900.00")
        assert b.share_percentage == Decimal("75.00")
        assert b.total_payout == Decimal("5700.00")
        assert a.revenue_percentage == Decimal("60.00")
        assert a.profit_percentage == Decimal("40.00")

    def test_loss_floors_profit_share_at_zero(self):
        shares = [_share("A", amount="500")]

        (line,) = compute_revenue_profit_split(Decimal("1000"), Decimal("1500"), shares)

        assert line.profit_share == Decimal("0.00")
        assert line.revenue_share == Decimal("600.00")
        assert line.total_payout == Decimal("600.00")

    def test_zero_capital_yields_empty(self):
        shares = [_share("A", units="5", amount="0")]
        assert compute_revenue_profit_split(Decimal("1000"), Decimal("0"), shares) == []

    def test_custom_ratios(self):
        shares = [_share("A", amount="100")]

        (line,) = compute_revenue_profit_split(
            Decimal("1000"), Decimal("400"), shares, revenue_ratio="0.5", profit_ratio="0.5"
        )

        assert line.revenue_share == Decimal("500.00")
        assert line.profit_share == Decimal("300.00")

    def test_total_within_rounding_of_formula(self):
        shares = [_share("A", amount="1"), _share("B", amount="1"), _share("C", amount="1")]
        revenue, expenses = Decimal("1000"), Decimal("200")

        result = compute_revenue_profit_split(revenue, expenses, shares)

        expected = round2(revenue * Decimal("0.6") + (revenue - expenses) * Decimal("0.4"))
        total = sum_decimals(r.total_payout for r in result)
        assert abs(total - expected) <= Decimal("0.01") * len(shares)


# ────────────────────────────────────────────────────────────────────────────
# Strategies & helpers
# ────────────────────────────────────────────────────────────────────────────


class TestStrategies:
    def test_get_policy_by_enum_and_string(self):
        assert isinstance(get_policy(AllocationPolicy.TAX_ADJUSTED_UNITS), TaxAdjustedUnitsStrategy)
        assert isinstance(get_policy("revenue_profit_split"), RevenueProfitSplitStrategy)

    def test_unknown_policy_raises(self):
        with pytest.raises(ValueError):
            get_policy("winner_takes_all")

    def test_tax_adjusted_uses_explicit_profit(self):
        strategy = TaxAdjustedUnitsStrategy()
        figures = DistributionFigures(profit=Decimal("800"), tax_rate_pct=Decimal("10"))

        allocations = strategy.allocate([_share("A", units="1"), _share("B", units="3")], figures)

        assert [a.amount for a in allocations] == [Decimal("180.00"), Decimal("540.00")]
        assert strategy.total(allocations) == Decimal("720.00")

    def test_split_allocation_amount_is_total_payout(self):
        strategy = RevenueProfitSplitStrategy()
        figures = DistributionFigures(revenue=Decimal("1000"), expenses=Decimal("400"))

        (allocation,) = strategy.allocate([_share("A", amount="10")], figures)

        assert allocation.amount == allocation.breakdown.total_payout == Decimal("840.00")

    def test_net_profit_defaults_to_revenue_minus_expenses(self):
        assert DistributionFigures(revenue=Decimal("10"), expenses=Decimal("4")).net_profit == 6
        assert DistributionFigures(revenue=Decimal("10"), profit=Decimal("1")).net_profit == 1


class TestMergeShares:
    def test_merges_same_investor_keeping_first_position(self):
        shares = [
            _share("A", units="1", amount="100"),
            _share("B", units="2", amount="200"),
            _share("A", units="3", amount="300"),
        ]

        merged = merge_shares_by_investor(shares)

        assert [s.investor_id for s in merged] == ["A", "B"]
        assert merged[0].units == Decimal("4")
        assert merged[0].amount == Decimal("400")
