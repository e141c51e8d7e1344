"""
Long-lived service objects, built once per application.

The request queue lives inside the Gripp client; the server-side cache lives
inside the stats service. The sync orchestrator clears that cache after
every run that stored data.
"""

from dataclasses import dataclass
from typing import Optional

from gripp_hours.api.clients.gripp_client import GrippClient, build_gripp_client
from gripp_hours.core.cache import TTLCache
from gripp_hours.core.config import settings
from gripp_hours.core.database import engine as default_engine
from gripp_hours.core.logging import get_logger
from gripp_hours.core.stats_service import EmployeeStatsService
from gripp_hours.core.store import HourStore
from gripp_hours.core.sync import SyncOrchestrator

logger = get_logger(__name__)


@dataclass
class HourEngine:
    client: GrippClient
    store: HourStore
    stats: EmployeeStatsService
    sync: SyncOrchestrator

    @classmethod
    def build(
        cls,
        db_engine=None,
        client: Optional[GrippClient] = None,
        cache: Optional[TTLCache] = None,
    ) -> "HourEngine":
        store = HourStore(
            db_engine if db_engine is not None else default_engine,
            holiday_absence_type=settings.HOLIDAY_ABSENCE_TYPE,
        )
        client = client if client is not None else build_gripp_client()
        stats = EmployeeStatsService(
            store,
            cache
            if cache is not None
            else TTLCache(
                ttl=settings.CACHE_TTL_SECONDS,
                max_size=settings.CACHE_MAX_SIZE,
                name="server",
            ),
        )
        sync = SyncOrchestrator(
            client,
            store,
            on_complete=stats.clear_cache,
            holiday_absence_type=settings.HOLIDAY_ABSENCE_TYPE,
        )
        logger.info("Hour engine initialized")
        return cls(client=client, store=store, stats=stats, sync=sync)

    async def aclose(self) -> None:
        await self.client.aclose()
        logger.info("Hour engine closed")
