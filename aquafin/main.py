"""
Aquafin Harvest Payouts API: application entry-point.

Wires logging, middleware, exception handlers and the v1 routers, and
creates the tables on startup (with retry, degrading rather than crashing
when the database is not reachable yet).
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import SQLModel

from aquafin.api.v1.api import api_router
from aquafin.core.cache import cache
from aquafin.core.config import settings
from aquafin.core.exceptions import add_exception_handlers
from aquafin.core.logging import setup_logging
from aquafin.core.resilience import db_circuit_breaker, payment_circuit_breaker
from aquafin.db.session import AsyncSessionLocal, engine
from aquafin.middleware import RequestIDMiddleware, RequestTimingMiddleware

setup_logging()
logger = logging.getLogger(__name__)

VERSION = "1.0.0"
STARTUP_DB_ATTEMPTS = 5
STARTUP_DB_RETRY_DELAY = 2


async def _create_tables() -> None:
    # Registers every table model on SQLModel.metadata.
    import aquafin.db.base  # noqa: F401

    delay = STARTUP_DB_RETRY_DELAY
    for attempt in range(1, STARTUP_DB_ATTEMPTS + 1):
        try:
            logger.info("Connecting to database (attempt %d/%d)…", attempt, STARTUP_DB_ATTEMPTS)
            async with engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all)
            logger.info("Database tables ready")
            return
        except (SQLAlchemyError, OSError) as exc:
            if attempt == STARTUP_DB_ATTEMPTS:
                logger.error(
                    "Database unreachable after %d attempts; starting in DEGRADED mode. "
                    "Last error: %s",
                    STARTUP_DB_ATTEMPTS,
                    exc,
                )
                return
            logger.warning(
                "Database connection failed (attempt %d/%d): %s; retrying in %ds",
                attempt,
                STARTUP_DB_ATTEMPTS,
                exc,
                delay,
            )
            await asyncio.sleep(delay)
            delay *= 2


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Create tables on startup; dispose of the connection pool on shutdown."""
    await _create_tables()
    yield
    logger.info("Shutting down; disposing connection pool")
    await engine.dispose()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=VERSION,
    description=(
        "Harvest profit distribution for aquaculture investors: per-cycle "
        "payouts, the approval and payment lifecycle, and financial analytics."
    ),
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
)

# Last added runs first: CORS → timing → request id → gzip → routes.
app.add_middleware(GZipMiddleware, minimum_size=500)
app.add_middleware(RequestIDMiddleware)
app.add_middleware(RequestTimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

add_exception_handlers(app)

app.include_router(api_router, prefix=settings.API_V1_STR)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Readiness probe.

    Runs ``SELECT 1`` against the database and reports both circuit
    breakers and the analytics cache. ``status`` is ``degraded`` when the
    database cannot be reached.
    """
    db_healthy = True
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError):
        logger.warning("Health check: database unreachable", exc_info=True)
        db_healthy = False

    return {
        "status": "ok" if db_healthy else "degraded",
        "version": VERSION,
        "database": db_healthy,
        "circuit_breakers": {
            "database": db_circuit_breaker.get_status(),
            "payments": payment_circuit_breaker.get_status(),
        },
        "cache": cache.get_stats(),
    }
