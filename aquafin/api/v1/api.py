"""
V1 API router aggregation.

``main.py`` mounts this router at ``/api/v1``.
"""

from fastapi import APIRouter

from aquafin.api.v1.endpoints import analytics, distributions, payouts

api_router = APIRouter()

api_router.include_router(distributions.router, prefix="/cycles", tags=["Distributions"])

# Payout routes span /payouts and /investors/{id}/payouts, so they carry full paths.
api_router.include_router(payouts.router, tags=["Payouts"])

api_router.include_router(analytics.router, prefix="/analytics", tags=["Analytics"])
