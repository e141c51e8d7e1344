from typing import Annotated

from fastapi import APIRouter, HTTPException, Query
from sqlmodel import select

from gripp_hours.api.dependencies import SessionDep, StatsServiceDep, SyncDep
from gripp_hours.core.exceptions import (
    RequestCancelledError,
    StoreUnavailableError,
    UpstreamError,
    ValidationError,
)
from gripp_hours.core.logging import get_logger
from gripp_hours.models.stats import CacheStats, EmployeeStatsResponse
from gripp_hours.models.sync_status import (
    SyncReport,
    SyncRequest,
    SyncStatus,
    SyncStatusPublic,
)

logger = get_logger(__name__)

router = APIRouter(tags=["employee-stats"])


def _query_stats(stats: StatsServiceDep, **kwargs) -> EmployeeStatsResponse:
    try:
        return stats.get_employee_stats(**kwargs)
    except ValidationError as e:
        logger.warning(f"Rejected stats query {kwargs}: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except StoreUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.get(
    "/employees/week",
    response_model=EmployeeStatsResponse,
    response_model_by_alias=True,
)
async def get_week_stats(
    stats: StatsServiceDep,
    year: int,
    week: int,
    force_refresh: Annotated[bool, Query(alias="forceRefresh")] = False,
) -> EmployeeStatsResponse:
    """
    Expected vs. actual hours of every active employee for an ISO week.

    Args:
        year: ISO year
        week: ISO week number (1-52 or 1-53)
        force_refresh: Bypass the server cache and recompute

    Raises:
        HTTPException: 400 for an invalid week, 503 if the store is unavailable
    """
    return _query_stats(stats, year=year, week=week, force_refresh=force_refresh)


@router.get(
    "/employees/month",
    response_model=EmployeeStatsResponse,
    response_model_by_alias=True,
)
async def get_month_stats(
    stats: StatsServiceDep,
    year: int,
    month: int,
    force_refresh: Annotated[bool, Query(alias="forceRefresh")] = False,
) -> EmployeeStatsResponse:
    """
    Expected vs. actual hours of every active employee for a month.

    Months are one-indexed: 1 is January.
    """
    return _query_stats(stats, year=year, month=month, force_refresh=force_refresh)


@router.delete("/cache")
async def clear_cache(stats: StatsServiceDep) -> dict:
    cleared = stats.clear_cache()
    logger.info(f"Server cache cleared on request ({cleared} entries)")
    return {"cleared": cleared}


@router.get("/cache/stats", response_model=CacheStats, response_model_by_alias=True)
async def cache_stats(stats: StatsServiceDep) -> CacheStats:
    return stats.get_cache_stats()


@router.post("/sync", response_model=SyncReport, response_model_by_alias=True)
async def run_sync(request: SyncRequest, sync: SyncDep) -> SyncReport:
    """
    Sync employees, contracts, holidays, absences and hours for a date range.

    Failures of individual entity types are reported in the result and do
    not fail the request.

    Raises:
        HTTPException: 400 for an invalid range, 409 if a sync is running,
            503 if the store is unavailable, 502 if the upstream call was aborted
    """
    if sync.is_running:
        raise HTTPException(status_code=409, detail="A sync is already running")

    try:
        return await sync.sync_all(request.start_date, request.end_date)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StoreUnavailableError as e:
        logger.error(f"Sync aborted: {e}")
        raise HTTPException(status_code=503, detail=str(e))
    except (UpstreamError, RequestCancelledError) as e:
        logger.error(f"Sync aborted: {e}")
        raise HTTPException(status_code=502, detail=str(e))


@router.get("/sync/status", response_model=list[SyncStatusPublic])
async def sync_status(session: SessionDep) -> list[SyncStatus]:
    return list(session.exec(select(SyncStatus).order_by(SyncStatus.endpoint)).all())
