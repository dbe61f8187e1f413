"""
Payout API endpoints.

Reads and lifecycle transitions of individual payouts:
- GET   /payouts                       List payouts (filterable, paginated)
- GET   /payouts/pending               Payouts awaiting approval
- GET   /payouts/summary               Count and amount per status
- GET   /payouts/{payout_id}           Retrieve one payout
- POST  /payouts/{payout_id}/approve     pending → processing
- POST  /payouts/{payout_id}/process     processing → paid (with reference)
- POST  /payouts/{payout_id}/reject      pending | processing → rejected
- POST  /payouts/{payout_id}/disburse    send through the gateway, then paid
- GET   /investors/{investor_id}/payouts   An investor's payout history
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from aquafin.db.session import get_db
from aquafin.models.cycle import Cycle
from aquafin.models.investment import Investment
from aquafin.models.investor import Investor
from aquafin.models.ledger import Expense, LedgerEntry, Revenue
from aquafin.models.payout import DistributionRun, Payout, PayoutStatus
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
from aquafin.schemas.common import ErrorResponse, ValidationErrorResponse
from aquafin.schemas.payout import (
    PayoutHistoryResponse,
    PayoutResponse,
    PayoutSummaryResponse,
    ProcessPayoutRequest,
)
from aquafin.services.payout_service import PayoutService

router = APIRouter()


# ── Dependency injection ──


def get_payout_service(db: AsyncSession = Depends(get_db)) -> PayoutService:
    """
    Build a PayoutService wired to the current request's DB session.

    Every repository and the unit of work share that one session, so a
    distribution commits as a single transaction.
    """
    return PayoutService(
        cycle_repo=CycleRepository(Cycle, db),
        investment_repo=InvestmentRepository(Investment, db),
        investor_repo=InvestorRepository(Investor, db),
        payout_repo=PayoutRepository(Payout, db),
        run_repo=DistributionRunRepository(DistributionRun, db),
        revenue_repo=RevenueRepository(Revenue, db),
        expense_repo=ExpenseRepository(Expense, db),
        ledger_repo=LedgerEntryRepository(LedgerEntry, db),
        uow_factory=lambda: UnitOfWork(db),
    )


_NOT_FOUND = {404: {"model": ErrorResponse, "description": "Payout not found"}}
_TRANSITION_ERRORS = {
    **_NOT_FOUND,
    409: {"model": ErrorResponse, "description": "Transition not allowed from current status"},
}


# ── Queries ──


@router.get(
    "/payouts",
    response_model=List[PayoutResponse],
    summary="List payouts",
    description="Newest first. Filter by investor, cycle or status; page with ``skip``/``limit``.",
)
async def list_payouts(
    investor_id: Optional[UUID] = Query(None),
    cycle_id: Optional[UUID] = Query(None),
    status: Optional[PayoutStatus] = Query(None),
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(100, ge=1, le=1000, description="Max records to return"),
    service: PayoutService = Depends(get_payout_service),
) -> List[PayoutResponse]:
    return await service.list_payouts(
        investor_id=investor_id, cycle_id=cycle_id, status=status, skip=skip, limit=limit
    )


@router.get(
    "/payouts/pending",
    response_model=List[PayoutResponse],
    summary="List payouts awaiting approval",
)
async def list_pending_payouts(
    service: PayoutService = Depends(get_payout_service),
) -> List[PayoutResponse]:
    return await service.get_pending_payouts()


@router.get(
    "/payouts/summary",
    response_model=PayoutSummaryResponse,
    summary="Payout totals per status",
)
async def payout_summary(
    service: PayoutService = Depends(get_payout_service),
) -> PayoutSummaryResponse:
    return PayoutSummaryResponse.model_validate(await service.get_payout_summary())


@router.get(
    "/payouts/{payout_id}",
    response_model=PayoutResponse,
    summary="Get a payout by ID",
    responses=_NOT_FOUND,
)
async def get_payout(
    payout_id: UUID,
    service: PayoutService = Depends(get_payout_service),
) -> PayoutResponse:
    return await service.get_payout(payout_id)


@router.get(
    "/investors/{investor_id}/payouts",
    response_model=PayoutHistoryResponse,
    summary="An investor's payout history",
    responses={404: {"model": ErrorResponse, "description": "Investor not found"}},
)
async def investor_payout_history(
    investor_id: UUID,
    service: PayoutService = Depends(get_payout_service),
) -> PayoutHistoryResponse:
    history = await service.get_investor_payout_history(investor_id)
    return PayoutHistoryResponse.model_validate(history)


# ── Transitions ──


@router.post(
    "/payouts/{payout_id}/approve",
    response_model=PayoutResponse,
    summary="Approve a pending payout",
    responses=_TRANSITION_ERRORS,
)
async def approve_payout(
    payout_id: UUID,
    service: PayoutService = Depends(get_payout_service),
) -> PayoutResponse:
    return await service.approve_payout(payout_id)


@router.post(
    "/payouts/{payout_id}/process",
    response_model=PayoutResponse,
    summary="Mark an approved payout as paid",
    description="Records the payment-rail reference and the payment time.",
    responses={
        **_TRANSITION_ERRORS,
        422: {"model": ValidationErrorResponse, "description": "Missing payment reference"},
    },
)
async def process_payout(
    payout_id: UUID,
    body: ProcessPayoutRequest,
    service: PayoutService = Depends(get_payout_service),
) -> PayoutResponse:
    return await service.process_payout(payout_id, body.payment_reference)


@router.post(
    "/payouts/{payout_id}/reject",
    response_model=PayoutResponse,
    summary="Reject a pending or approved payout",
    responses=_TRANSITION_ERRORS,
)
async def reject_payout(
    payout_id: UUID,
    service: PayoutService = Depends(get_payout_service),
) -> PayoutResponse:
    return await service.reject_payout(payout_id)


@router.post(
    "/payouts/{payout_id}/disburse",
    response_model=PayoutResponse,
    summary="Send an approved payout through the payment gateway",
    responses={
        **_TRANSITION_ERRORS,
        503: {"model": ErrorResponse, "description": "Payment gateway unavailable"},
    },
)
async def disburse_payout(
    payout_id: UUID,
    service: PayoutService = Depends(get_payout_service),
) -> PayoutResponse:
    return await service.disburse_payout(payout_id)
