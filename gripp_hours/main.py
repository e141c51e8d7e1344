"""
Gripp Hours Service - Main Application Entry Point.

This service mirrors Gripp data into a local store and reports, per employee
and per week or month:
- Contract hours according to even/odd week schedules
- Public holidays and approved leave
- Expected hours versus hours actually written
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from gripp_hours.api.routes.employee_stats import router as employee_stats_router
from gripp_hours.core.config import settings
from gripp_hours.core.database import create_db_and_tables
from gripp_hours.core.engine import HourEngine
from gripp_hours.core.logging import get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    # Startup
    logger.info("Starting Gripp Hours Service...")

    logger.info("Creating database and tables...")
    create_db_and_tables()
    logger.info("Database and tables created successfully")

    logger.info("Initializing hour engine...")
    app.state.hour_engine = HourEngine.build()

    logger.info("Gripp Hours Service startup complete")

    yield

    # Shutdown
    logger.info("Gripp Hours Service shutting down...")

    logger.info("Closing Gripp client...")
    await app.state.hour_engine.aclose()

    logger.info("Gripp Hours Service shutdown complete")


# Initialize FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Reconciles Gripp contracts, holidays, absences and hours into expected vs. actual hours",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)


# Configure CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS,
)


# Include routers
app.include_router(employee_stats_router, prefix="/api/v1")


# Health check endpoint
@app.get("/health", tags=["health"])
async def health_check():
    """
    Health check endpoint for container orchestration and monitoring.
    """
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
    }


@app.get("/ready", tags=["health"])
async def readiness_check():
    """
    Readiness check endpoint.
    Verifies that the store is reachable and the request queue is not backed up.
    """
    hour_engine = getattr(app.state, "hour_engine", None)
    store_ready = hour_engine is not None and hour_engine.store.ping()
    queue = hour_engine.client.queue.stats() if hour_engine is not None else {}

    return {
        "status": "ready" if store_ready else "not_ready",
        "checks": {
            "store": "ok" if store_ready else "error",
        },
        "queue": queue,
    }


@app.get("/", tags=["root"])
async def root():
    """
    Root endpoint with service information.
    """
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "docs": "/docs",
    }
