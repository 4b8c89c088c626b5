"""FrontDesk API: FastAPI application entry point."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from frontdesk.api.v1.analytics import router as analytics_router
from frontdesk.api.v1.archive import router as archive_router
from frontdesk.api.v1.auth import router as auth_router
from frontdesk.api.v1.bookings import router as bookings_router
from frontdesk.api.v1.guests import router as guests_router
from frontdesk.config import settings
from frontdesk.database import engine, get_db
from frontdesk.errors import FrontDeskError

# frontdesk.* loggers propagate here; uvicorn keeps its own handlers
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Log the effective setup on startup and release pooled connections on shutdown."""
    logger.info(
        "%s %s starting (environment=%s, asset store %s, retention %d years)",
        settings.app_name,
        settings.app_version,
        settings.environment,
        "enabled" if settings.asset_store_enabled else "disabled",
        settings.archive_retention_years,
    )
    yield
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Front-desk booking lifecycle and guest ledger for a hotel.",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(FrontDeskError)
async def frontdesk_error_handler(request: Request, exc: FrontDeskError) -> JSONResponse:
    """Render domain errors in the same ``{"detail": ...}`` shape as HTTPException."""
    logger.info("%s %s -> %d: %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})


# Routers
app.include_router(auth_router)
app.include_router(bookings_router)
app.include_router(guests_router)
app.include_router(analytics_router)
app.include_router(archive_router)


@app.get("/health", tags=["health"])
async def health_check(db: AsyncSession = Depends(get_db)) -> JSONResponse:
    """Liveness plus a round trip to the database. Answers 503 when the database is unreachable."""
    database = "ok"
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("Health check could not reach the database")
        database = "unavailable"

    healthy = database == "ok"
    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "healthy" if healthy else "degraded",
            "service": settings.app_name,
            "database": database,
            "asset_store": "enabled" if settings.asset_store_enabled else "disabled",
        },
    )


@app.get("/", tags=["root"])
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
    }
