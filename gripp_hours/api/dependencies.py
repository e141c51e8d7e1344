"""
Shared API dependencies.
Contains reusable dependency functions for FastAPI endpoints.
Service objects are built in the application lifespan and read from app.state.
"""

from typing import Annotated

from fastapi import Depends, Request
from sqlmodel import Session

from gripp_hours.core.database import get_session
from gripp_hours.core.engine import HourEngine
from gripp_hours.core.stats_service import EmployeeStatsService
from gripp_hours.core.sync import SyncOrchestrator


def get_engine(request: Request) -> HourEngine:
    return request.app.state.hour_engine


def get_stats_service(engine: Annotated[HourEngine, Depends(get_engine)]) -> EmployeeStatsService:
    return engine.stats


def get_sync_orchestrator(engine: Annotated[HourEngine, Depends(get_engine)]) -> SyncOrchestrator:
    return engine.sync


# Database session dependency
SessionDep = Annotated[Session, Depends(get_session)]

StatsServiceDep = Annotated[EmployeeStatsService, Depends(get_stats_service)]
SyncDep = Annotated[SyncOrchestrator, Depends(get_sync_orchestrator)]
