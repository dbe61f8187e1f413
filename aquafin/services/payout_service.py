"""
Payout service: harvest → distribute → approve → pay.

Owns every write to ``payouts`` and ``distribution_runs`` and the investor
aggregate columns. Two entry points create payouts:

``initiate_payouts_for_harvested_cycle``
    Harvest-triggered, ``REVENUE_PROFIT_SPLIT`` policy, payouts start
    ``pending`` and need approval.

``calculate_payouts_for_cycle``
    Legacy, ``TAX_ADJUSTED_UNITS`` policy on the cycle's profit, payouts are
    created ``processing`` (already approved).

Both run the same guard: a process-local ``asyncio.Lock`` per cycle around
check-and-insert, and the UNIQUE ``distribution_runs.cycle_id`` across
processes. The run row, its payouts and the cycle update commit together
through a ``UnitOfWork``; the audit ledger is written afterwards and may
fail without failing the distribution.

Disbursement holds a per-payout lock from the status check until the payout
is marked ``paid``, and hands the gateway the payout id as idempotency key.

Caching:
    The service reads nothing from the cache but invalidates every
    ``analytics:`` key after each distribution or payout transition.
"""

import asyncio
import logging
import uuid
import weakref
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable, Iterable, List, Optional, Sequence
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from aquafin.core.cache import cache
from aquafin.core.config import settings
from aquafin.core.exceptions import (
    DuplicateOperationException,
    InvalidTransitionException,
    NotEligibleException,
    NotFoundException,
    PaymentGatewayException,
    ValidationException,
)
from aquafin.core.money import (
    HUNDRED,
    ZERO,
    MoneyLike,
    mean,
    round2,
    sum_decimals,
    to_decimal,
)
from aquafin.core.resilience import TRANSIENT_ERRORS, CircuitBreakerError
from aquafin.models.cycle import Cycle, CycleStatus
from aquafin.models.investment import Investment
from aquafin.models.ledger import LedgerEntry, LedgerEntryType
from aquafin.models.payout import (
    RETURNED_STATUSES,
    AllocationPolicy,
    DistributionRun,
    Payout,
    PayoutStatus,
)
from aquafin.repositories.cycle_repo import CycleRepository
from aquafin.repositories.investment_repo import InvestmentRepository
from aquafin.repositories.investor_repo import InvestorRepository
from aquafin.repositories.ledger_repo import (
    ExpenseRepository,
    LedgerEntryRepository,
    RevenueRepository,
)
from aquafin.repositories.payout_repo import DistributionRunRepository, PayoutRepository
from aquafin.repositories.unit_of_work import UnitOfWork
from aquafin.services.allocation import (
    Allocation,
    Breakdown,
    DistributionFigures,
    InvestorShare,
    get_policy,
    merge_shares_by_investor,
)
from aquafin.services.financial_metrics import compute_roi
from aquafin.services.payment_gateway import (
    PaymentGateway,
    StubPaymentGateway,
    send_with_safeguards,
)

logger = logging.getLogger(__name__)

ANALYTICS_CACHE_PREFIX = "analytics:"

HARVEST_REFERENCE_PREFIX = "HARVEST"
LEGACY_REFERENCE_PREFIX = "AUTO"

# Failures of writes that run after the distribution has committed; these are
# logged, never raised.
BEST_EFFORT_ERRORS = (SQLAlchemyError, CircuitBreakerError, *TRANSIENT_ERRORS)

# Per-cycle and per-payout locks, shared by every service instance in this
# process. An entry lives only while some coroutine holds or awaits it.
_cycle_locks: "weakref.WeakValueDictionary[UUID, asyncio.Lock]" = weakref.WeakValueDictionary()
_payout_locks: "weakref.WeakValueDictionary[UUID, asyncio.Lock]" = weakref.WeakValueDictionary()


def _lock_for(
    registry: "weakref.WeakValueDictionary[UUID, asyncio.Lock]", key: UUID
) -> asyncio.Lock:
    lock = registry.get(key)
    if lock is None:
        lock = asyncio.Lock()
        registry[key] = lock
    return lock


def _cycle_lock(cycle_id: UUID) -> asyncio.Lock:
    return _lock_for(_cycle_locks, cycle_id)


def _payout_lock(payout_id: UUID) -> asyncio.Lock:
    return _lock_for(_payout_locks, payout_id)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _short(identifier: UUID) -> str:
    return str(identifier)[:8]


def _new_run_reference(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8].upper()}"


# ────────────────────────────────────────────────────────────────────────────
# Results
# ────────────────────────────────────────────────────────────────────────────


@dataclass
class DistributionResult:
    """Outcome of a persisted distribution."""

    cycle_id: UUID
    distribution_id: UUID
    reference: str
    policy: AllocationPolicy
    payouts: List[Payout]
    breakdown: List[Breakdown]
    total_payout_amount: Decimal


@dataclass
class PayoutEstimate:
    """Hypothetical distribution; nothing is persisted."""

    cycle_id: UUID
    policy: AllocationPolicy
    projected_revenue: Decimal
    projected_expenses: Decimal
    projected_profit: Decimal
    breakdown: List[Breakdown]
    total_payout_amount: Decimal


@dataclass
class PayoutHistory:
    investor_id: UUID
    payouts: List[Payout]
    total_amount: Decimal
    average_amount: Decimal
    count: int


@dataclass
class StatusBucket:
    count: int = 0
    amount: Decimal = ZERO


@dataclass
class PayoutSummary:
    all: StatusBucket = field(default_factory=StatusBucket)
    pending: StatusBucket = field(default_factory=StatusBucket)
    processing: StatusBucket = field(default_factory=StatusBucket)
    paid: StatusBucket = field(default_factory=StatusBucket)
    rejected: StatusBucket = field(default_factory=StatusBucket)


# ────────────────────────────────────────────────────────────────────────────
# Service
# ────────────────────────────────────────────────────────────────────────────


class PayoutService:
    """
    Distribution and payout lifecycle manager.

    Constructed per request with the request's repositories and a factory
    returning a fresh :class:`UnitOfWork` over the same session.
    """

    def __init__(
        self,
        cycle_repo: CycleRepository,
        investment_repo: InvestmentRepository,
        investor_repo: InvestorRepository,
        payout_repo: PayoutRepository,
        run_repo: DistributionRunRepository,
        revenue_repo: RevenueRepository,
        expense_repo: ExpenseRepository,
        ledger_repo: LedgerEntryRepository,
        uow_factory: Callable[[], UnitOfWork],
        gateway: Optional[PaymentGateway] = None,
    ):
        self._cycle_repo = cycle_repo
        self._investment_repo = investment_repo
        self._investor_repo = investor_repo
        self._payout_repo = payout_repo
        self._run_repo = run_repo
        self._revenue_repo = revenue_repo
        self._expense_repo = expense_repo
        self._ledger_repo = ledger_repo
        self._uow_factory = uow_factory
        self._gateway = gateway or StubPaymentGateway()

    # ── Distribution ──

    async def initiate_payouts_for_harvested_cycle(
        self,
        cycle_id: UUID,
        harvested_stock: int,
        harvest_weight: MoneyLike,
        revenue: MoneyLike,
        farm_expenses: MoneyLike,
        harvest_date: date,
    ) -> DistributionResult:
        """
        Close a harvested cycle and create one ``pending`` payout per investor.

        Sequence:
        1. Validate the harvest figures (422).
        2. Load the cycle (404).
        3. Under the cycle lock, refuse a second distribution (409).
        4. Load eligible stakes (422 if none) and split revenue/profit.
        5. Commit the run, payouts and cycle update atomically.
        6. Write the audit ledger, best-effort.
        7. Always recompute the affected investors' aggregates.
        """
        revenue_dec = to_decimal(revenue)
        expenses_dec = to_decimal(farm_expenses)
        weight_dec = to_decimal(harvest_weight)
        self._validate_harvest(harvested_stock, weight_dec, revenue_dec, expenses_dec)

        cycle = await self._get_cycle(cycle_id)
        figures = DistributionFigures(revenue=revenue_dec, expenses=expenses_dec)
        strategy = get_policy(AllocationPolicy.REVENUE_PROFIT_SPLIT)

        async with _cycle_lock(cycle_id):
            await self._ensure_not_distributed(cycle_id)
            shares = await self._eligible_shares(cycle)
            allocations = strategy.allocate(shares, figures)
            if not allocations:
                raise NotEligibleException(
                    f"Cycle '{cycle_id}' has no invested capital to distribute"
                )

            run, payouts = self._build_distribution(
                cycle_id,
                allocations,
                strategy.policy,
                HARVEST_REFERENCE_PREFIX,
                PayoutStatus.PENDING,
            )
            cycle.status = CycleStatus.COMPLETED
            cycle.revenue = round2(revenue_dec)
            cycle.profit = round2(figures.net_profit)
            cycle.harvested_stock = harvested_stock
            cycle.biomass_end = weight_dec
            cycle.end_date = harvest_date

            investor_ids = [a.investor_id for a in allocations]
            try:
                await self._commit_distribution(cycle_id, run, payouts, cycle)
                await self._record_harvest_audit(
                    cycle_id, revenue_dec, expenses_dec, harvest_date, payouts
                )
            finally:
                await self._refresh_investor_aggregates(investor_ids)

        cache.invalidate(ANALYTICS_CACHE_PREFIX)
        logger.info(
            "Distributed cycle %s: %d payouts totalling %s (%s)",
            cycle_id,
            len(payouts),
            run.total_amount,
            run.reference,
            extra={"cycle_id": str(cycle_id), "distribution_id": str(run.id)},
        )
        return DistributionResult(
            cycle_id=cycle_id,
            distribution_id=run.id,
            reference=run.reference,
            policy=strategy.policy,
            payouts=payouts,
            breakdown=[a.breakdown for a in allocations],
            total_payout_amount=run.total_amount,
        )

    async def calculate_payouts_for_cycle(
        self, cycle_id: UUID, tax_rate_pct: MoneyLike = None
    ) -> DistributionResult:
        """
        Legacy distribution: split the cycle's profit by share units, net of tax.

        Profit is the cycle's cached ``profit`` or, when it has not been
        recorded, its revenues less its expenses. Payouts are created already
        approved (``processing``) under an ``AUTO-`` run reference.
        """
        rate = to_decimal(tax_rate_pct, settings.DEFAULT_TAX_RATE_PCT)
        if rate < ZERO or rate > HUNDRED:
            raise ValidationException(
                "tax_rate_pct must be between 0 and 100",
                details=[{"field": "tax_rate_pct", "message": str(rate)}],
            )

        cycle = await self._get_cycle(cycle_id)
        strategy = get_policy(AllocationPolicy.TAX_ADJUSTED_UNITS)

        async with _cycle_lock(cycle_id):
            await self._ensure_not_distributed(cycle_id)
            profit = await self._cycle_profit(cycle)
            if profit <= ZERO:
                raise NotEligibleException(
                    f"Cycle '{cycle_id}' has no profit to distribute ({round2(profit)})"
                )
            shares = await self._eligible_shares(cycle)
            figures = DistributionFigures(profit=profit, tax_rate_pct=rate)
            allocations = strategy.allocate(shares, figures)
            if not allocations:
                raise NotEligibleException(f"Cycle '{cycle_id}' has no share units")

            run, payouts = self._build_distribution(
                cycle_id,
                allocations,
                strategy.policy,
                LEGACY_REFERENCE_PREFIX,
                PayoutStatus.PROCESSING,
                tax_rate_pct=rate,
            )
            investor_ids = [a.investor_id for a in allocations]
            try:
                await self._commit_distribution(cycle_id, run, payouts)
                await self._record_ledger(
                    [self._payout_entry(p, date.today()) for p in payouts], cycle_id
                )
            finally:
                await self._refresh_investor_aggregates(investor_ids)

        cache.invalidate(ANALYTICS_CACHE_PREFIX)
        logger.info(
            "Legacy distribution of cycle %s: %d payouts totalling %s at %s%% tax",
            cycle_id,
            len(payouts),
            run.total_amount,
            rate,
            extra={"cycle_id": str(cycle_id), "distribution_id": str(run.id)},
        )
        return DistributionResult(
            cycle_id=cycle_id,
            distribution_id=run.id,
            reference=run.reference,
            policy=strategy.policy,
            payouts=payouts,
            breakdown=[a.breakdown for a in allocations],
            total_payout_amount=run.total_amount,
        )

    async def estimate_payouts_for_active_cycle(
        self,
        cycle_id: UUID,
        projected_revenue: MoneyLike,
        projected_expenses: MoneyLike,
        policy: AllocationPolicy = AllocationPolicy.REVENUE_PROFIT_SPLIT,
        tax_rate_pct: MoneyLike = None,
    ) -> PayoutEstimate:
        """Run ``policy`` on projected figures without persisting anything."""
        revenue_dec = to_decimal(projected_revenue)
        expenses_dec = to_decimal(projected_expenses)
        if revenue_dec < ZERO or expenses_dec < ZERO:
            raise ValidationException(
                "Projected revenue and expenses must not be negative",
                details=[
                    {"field": "projected_revenue", "message": str(revenue_dec)},
                    {"field": "projected_expenses", "message": str(expenses_dec)},
                ],
            )

        cycle = await self._get_cycle(cycle_id)
        strategy = get_policy(policy)
        figures = DistributionFigures(
            revenue=revenue_dec,
            expenses=expenses_dec,
            tax_rate_pct=to_decimal(tax_rate_pct, settings.DEFAULT_TAX_RATE_PCT),
        )
        allocations = strategy.allocate(await self._eligible_shares(cycle), figures)
        return PayoutEstimate(
            cycle_id=cycle_id,
            policy=strategy.policy,
            projected_revenue=round2(revenue_dec),
            projected_expenses=round2(expenses_dec),
            projected_profit=round2(figures.net_profit),
            breakdown=[a.breakdown for a in allocations],
            total_payout_amount=strategy.total(allocations),
        )

    # ── Lifecycle transitions ──

    async def approve_payout(self, payout_id: UUID) -> Payout:
        """``pending → processing``."""
        payout = await self._get_payout(payout_id)
        if payout.status != PayoutStatus.PENDING:
            raise InvalidTransitionException(payout.status, "approve")
        payout.status = PayoutStatus.PROCESSING
        return await self._save_transition(payout, "approved")

    async def process_payout(self, payout_id: UUID, payment_reference: str) -> Payout:
        """``processing → paid``; records the payment-rail reference."""
        reference = (payment_reference or "").strip()
        if not reference:
            raise ValidationException(
                "A payment reference is required to mark a payout as paid",
                details=[{"field": "payment_reference", "message": "must not be empty"}],
            )
        payout = await self._get_payout(payout_id)
        if payout.status != PayoutStatus.PROCESSING:
            raise InvalidTransitionException(payout.status, "process")
        payout.status = PayoutStatus.PAID
        payout.reference = reference
        payout.paid_at = _utcnow()
        return await self._save_transition(payout, "paid")

    async def reject_payout(self, payout_id: UUID) -> Payout:
        """``pending | processing → rejected``."""
        payout = await self._get_payout(payout_id)
        if payout.status not in (PayoutStatus.PENDING, PayoutStatus.PROCESSING):
            raise InvalidTransitionException(payout.status, "reject")
        payout.status = PayoutStatus.REJECTED
        return await self._save_transition(payout, "rejected")

    async def disburse_payout(self, payout_id: UUID) -> Payout:
        """
        Send an approved payout through the payment gateway, then mark it paid.

        The gateway call is bounded by timeout, retry and circuit breaker;
        if it still fails the payout stays ``processing`` and a 503 is raised.

        The status check, the transfer and the ``paid`` write run under one
        per-payout lock, so a concurrent disburse of the same payout waits
        and then sees it ``paid``. Across processes the gateway's
        idempotency key (the payout id) keeps a second transfer from moving
        money again.
        """
        async with _payout_lock(payout_id):
            payout = await self._get_payout(payout_id)
            if payout.status != PayoutStatus.PROCESSING:
                raise InvalidTransitionException(payout.status, "disburse")

            try:
                receipt = await send_with_safeguards(self._gateway, payout)
            except CircuitBreakerError as exc:
                raise PaymentGatewayException(str(exc)) from exc
            except TRANSIENT_ERRORS as exc:
                logger.error(
                    "Payment gateway failed for payout %s: %s",
                    payout_id,
                    exc,
                    extra={"payout_id": str(payout_id)},
                )
                raise PaymentGatewayException(
                    "Payment gateway unavailable; the payout remains approved"
                ) from exc

            return await self.process_payout(payout_id, receipt.payment_reference)

    # ── Queries ──

    async def get_payout(self, payout_id: UUID) -> Payout:
        return await self._get_payout(payout_id)

    async def list_payouts(
        self,
        investor_id: Optional[UUID] = None,
        cycle_id: Optional[UUID] = None,
        status: Optional[PayoutStatus] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Payout]:
        return await self._payout_repo.list_filtered(
            investor_id=investor_id,
            cycle_id=cycle_id,
            status=status,
            skip=skip,
            limit=limit,
        )

    async def get_pending_payouts(self) -> List[Payout]:
        return await self._payout_repo.list_filtered(status=PayoutStatus.PENDING, limit=1000)

    async def get_cycle_payouts(self, cycle_id: UUID) -> List[Payout]:
        await self._get_cycle(cycle_id)
        return await self._payout_repo.get_by_cycle(cycle_id)

    async def get_investor_payout_history(self, investor_id: UUID) -> PayoutHistory:
        """Every payout of an investor, with total and average amount."""
        investor = await self._investor_repo.get(investor_id)
        if not investor:
            raise NotFoundException("Investor", investor_id)
        payouts = await self._payout_repo.get_by_investor(investor_id)
        amounts = [p.amount for p in payouts]
        return PayoutHistory(
            investor_id=investor_id,
            payouts=payouts,
            total_amount=round2(sum_decimals(amounts)),
            average_amount=round2(mean(amounts)),
            count=len(payouts),
        )

    async def get_payout_summary(self) -> PayoutSummary:
        by_status = await self._payout_repo.summary_by_status()
        summary = PayoutSummary()
        total_count, total_amount = 0, ZERO
        for status, (count, amount) in by_status.items():
            setattr(summary, status.value, StatusBucket(count=count, amount=round2(amount)))
            total_count += count
            total_amount += amount
        summary.all = StatusBucket(count=total_count, amount=round2(total_amount))
        return summary

    # ── Internals ──

    @staticmethod
    def _validate_harvest(
        harvested_stock: int, weight: Decimal, revenue: Decimal, expenses: Decimal
    ) -> None:
        problems = []
        if harvested_stock is None or harvested_stock <= 0:
            problems.append({"field": "harvested_stock", "message": "must be greater than 0"})
        if weight <= ZERO:
            problems.append({"field": "harvest_weight", "message": "must be greater than 0"})
        if revenue <= ZERO:
            problems.append({"field": "revenue", "message": "must be greater than 0"})
        if expenses < ZERO:
            problems.append({"field": "farm_expenses", "message": "must not be negative"})
        if problems:
            raise ValidationException("Invalid harvest figures", details=problems)

    async def _get_cycle(self, cycle_id: UUID) -> Cycle:
        cycle = await self._cycle_repo.get(cycle_id)
        if not cycle:
            raise NotFoundException("Cycle", cycle_id)
        return cycle

    async def _get_payout(self, payout_id: UUID) -> Payout:
        payout = await self._payout_repo.get(payout_id)
        if not payout:
            raise NotFoundException("Payout", payout_id)
        return payout

    async def _ensure_not_distributed(self, cycle_id: UUID) -> None:
        already_paid = await self._payout_repo.exists_for_cycle(cycle_id)
        if already_paid or await self._run_repo.get_by_cycle(cycle_id) is not None:
            raise DuplicateOperationException(
                f"Payouts have already been distributed for cycle '{cycle_id}'"
            )

    async def _eligible_shares(self, cycle: Cycle) -> List[InvestorShare]:
        """Stakes with ``share_units > 0`` merged into one share per investor."""
        investments: Sequence[Investment] = [
            inv for inv in await self._investment_repo.get_for_cycle(cycle) if inv.is_eligible
        ]
        if not investments:
            raise NotEligibleException(f"Cycle '{cycle.id}' has no eligible investments")

        investors = await self._investor_repo.get_many(inv.investor_id for inv in investments)
        names = {inv.id: inv.name for inv in investors}
        return merge_shares_by_investor(
            InvestorShare(
                investor_id=inv.investor_id,
                units=to_decimal(inv.share_units),
                amount=to_decimal(inv.effective_amount),
                investor_name=names.get(inv.investor_id),
            )
            for inv in investments
        )

    async def _cycle_profit(self, cycle: Cycle) -> Decimal:
        if cycle.profit is not None:
            return to_decimal(cycle.profit)
        revenue = await self._revenue_repo.total_for_cycle(cycle.id)
        expenses = await self._expense_repo.total_for_cycle(cycle.id)
        return revenue - expenses

    @staticmethod
    def _build_distribution(
        cycle_id: UUID,
        allocations: Sequence[Allocation],
        policy: AllocationPolicy,
        reference_prefix: str,
        status: PayoutStatus,
        tax_rate_pct: Optional[Decimal] = None,
    ) -> tuple[DistributionRun, List[Payout]]:
        run = DistributionRun(
            cycle_id=cycle_id,
            policy=policy,
            reference=_new_run_reference(reference_prefix),
            total_amount=get_policy(policy).total(allocations),
            tax_rate_pct=tax_rate_pct,
            payout_count=len(allocations),
        )
        payouts = [
            Payout(
                investor_id=allocation.investor_id,
                cycle_id=cycle_id,
                distribution_id=run.id,
                distribution_reference=f"{run.reference}-{_short(allocation.investor_id)}",
                amount=allocation.amount,
                status=status,
            )
            for allocation in allocations
        ]
        return run, payouts

    async def _commit_distribution(
        self,
        cycle_id: UUID,
        run: DistributionRun,
        payouts: Sequence[Payout],
        cycle: Optional[Cycle] = None,
    ) -> None:
        try:
            async with self._uow_factory() as uow:
                uow.add(run)
                for payout in payouts:
                    uow.add(payout)
                if cycle is not None:
                    uow.add(cycle)
        except IntegrityError as exc:
            logger.warning(
                "Concurrent distribution of cycle %s rejected by the database: %s",
                cycle_id,
                exc.orig,
                extra={"cycle_id": str(cycle_id)},
            )
            raise DuplicateOperationException(
                f"Payouts have already been distributed for cycle '{cycle_id}'"
            ) from exc

    # ── Audit ledger (best-effort) ──

    async def _record_harvest_audit(
        self,
        cycle_id: UUID,
        revenue: Decimal,
        expenses: Decimal,
        harvest_date: date,
        payouts: Sequence[Payout],
    ) -> None:
        tag = _short(cycle_id)
        entries = [
            LedgerEntry(
                type=LedgerEntryType.REVENUE,
                amount=round2(revenue),
                description="Harvest revenue for cycle",
                reference=f"{HARVEST_REFERENCE_PREFIX}-REVENUE-{tag}",
                cycle_id=cycle_id,
                transaction_date=harvest_date,
                notes="Recorded from cycle harvest",
            )
        ]
        if expenses > ZERO:
            entries.append(
                LedgerEntry(
                    type=LedgerEntryType.EXPENSE,
                    amount=round2(expenses),
                    description="Farm operating expenses for cycle",
                    reference=f"{HARVEST_REFERENCE_PREFIX}-EXPENSE-{tag}",
                    cycle_id=cycle_id,
                    transaction_date=harvest_date,
                    notes="Operating costs during cycle",
                )
            )
        profit = revenue - expenses
        if profit != ZERO:
            label = "profit" if profit > ZERO else "loss"
            entries.append(
                LedgerEntry(
                    type=LedgerEntryType.INCOME if profit > ZERO else LedgerEntryType.LOSS,
                    amount=round2(abs(profit)),
                    description=f"Net {label} from cycle",
                    reference=f"{HARVEST_REFERENCE_PREFIX}-PROFIT-{tag}",
                    cycle_id=cycle_id,
                    transaction_date=harvest_date,
                    notes=f"Revenue - Expenses = {round2(profit)}",
                )
            )
        entries.extend(self._payout_entry(p, harvest_date) for p in payouts)
        await self._record_ledger(entries, cycle_id)

    @staticmethod
    def _payout_entry(payout: Payout, on: date) -> LedgerEntry:
        return LedgerEntry(
            type=LedgerEntryType.PAYOUT,
            amount=payout.amount,
            description="Payout to investor for cycle",
            reference=payout.distribution_reference,
            cycle_id=payout.cycle_id,
            investor_id=payout.investor_id,
            payout_id=payout.id,
            transaction_date=on,
            notes=f"Investor payout ({payout.status.value})",
        )

    async def _record_ledger(self, entries: List[LedgerEntry], cycle_id: UUID) -> None:
        try:
            await self._ledger_repo.add_all(entries)
        except BEST_EFFORT_ERRORS:
            await self._ledger_repo.db.rollback()
            logger.warning(
                "Failed to record %d ledger entries for cycle %s",
                len(entries),
                cycle_id,
                exc_info=True,
                extra={"cycle_id": str(cycle_id)},
            )

    # ── Investor aggregates ──

    async def _refresh_investor_aggregates(self, investor_ids: Iterable[UUID]) -> None:
        """
        Recompute ``total_investment``, ``total_returns`` and ``roi`` from the
        store for each investor. A failure is logged per investor and does not
        stop the others; the next payout event recomputes again.
        """
        for investor_id in dict.fromkeys(investor_ids):
            try:
                investor = await self._investor_repo.get(investor_id)
                if investor is None:
                    continue
                invested = await self._investment_repo.total_invested_by_investor(investor_id)
                returned = await self._payout_repo.total_for_investor(
                    investor_id, RETURNED_STATUSES
                )
                investor.total_investment = round2(invested)
                investor.total_returns = round2(returned)
                investor.roi = compute_roi(invested, returned)
                await self._investor_repo.update(investor)
            except BEST_EFFORT_ERRORS:
                await self._investor_repo.db.rollback()
                logger.error(
                    "Failed to refresh aggregates for investor %s",
                    investor_id,
                    exc_info=True,
                    extra={"investor_id": str(investor_id)},
                )

    async def _save_transition(self, payout: Payout, verb: str) -> Payout:
        payout.updated_at = _utcnow()
        saved = await self._payout_repo.update(payout)
        await self._refresh_investor_aggregates([saved.investor_id])
        cache.invalidate(ANALYTICS_CACHE_PREFIX)
        logger.info(
            "Payout %s %s (%s)",
            saved.id,
            verb,
            saved.amount,
            extra={"payout_id": str(saved.id), "investor_id": str(saved.investor_id)},
        )
        return saved
