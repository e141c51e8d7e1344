"""
Outline
EmployeeStatsClient.get_week_stats()
EmployeeStatsClient.get_month_stats()
EmployeeStatsClient.clear_server_cache()
EmployeeStatsClient.wait_for_preloads()
EmployeeStatsClient.aclose()
"""

import asyncio
from typing import Any, Callable, Optional

import httpx

from gripp_hours.core.cache import TTLCache, employee_month_key, employee_week_key
from gripp_hours.core.config import settings
from gripp_hours.core.exceptions import UpstreamHTTPError
from gripp_hours.core.logging import get_logger
from gripp_hours.core.periods import shift_month, shift_week
from gripp_hours.models.stats import EmployeeStatsResponse

logger = get_logger(__name__)


class EmployeeStatsClient:
    """
    Caller-side client for the employee stats endpoints.

    Keeps its own TTL cache in front of the HTTP call. After a cache-miss
    fetch for a period it preloads the previous and next period in the
    background so navigating between adjacent periods is served locally.
    """

    def __init__(
        self,
        base_url: str = settings.STATS_API_URL,
        cache: Optional[TTLCache] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the stats client.

        Args:
            base_url: Base URL of the service API, e.g. http://host/api/v1
            cache: Client-side cache (a fresh one is created if omitted)
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.cache = cache if cache is not None else TTLCache(name="client")
        self._http = httpx.AsyncClient(timeout=timeout, transport=transport)
        self._preloads: set[asyncio.Task] = set()

    async def get_week_stats(
        self,
        year: int,
        week: int,
        force_refresh: bool = False,
        is_preloading: bool = False,
    ) -> EmployeeStatsResponse:
        return await self._get_stats(
            key=employee_week_key(year, week),
            path="/employees/week",
            params={"year": year, "week": week},
            neighbours=[shift_week(year, week, -1), shift_week(year, week, 1)],
            fetch_neighbour=lambda y, w: self.get_week_stats(y, w, is_preloading=True),
            key_for=employee_week_key,
            force_refresh=force_refresh,
            is_preloading=is_preloading,
        )

    async def get_month_stats(
        self,
        year: int,
        month: int,
        force_refresh: bool = False,
        is_preloading: bool = False,
    ) -> EmployeeStatsResponse:
        return await self._get_stats(
            key=employee_month_key(year, month),
            path="/employees/month",
            params={"year": year, "month": month},
            neighbours=[shift_month(year, month, -1), shift_month(year, month, 1)],
            fetch_neighbour=lambda y, m: self.get_month_stats(y, m, is_preloading=True),
            key_for=employee_month_key,
            force_refresh=force_refresh,
            is_preloading=is_preloading,
        )

    async def clear_server_cache(self) -> None:
        response = await self._http.delete(f"{self.base_url}/cache")
        self._raise_for_status(response, "DELETE /cache")
        logger.info("Server cache cleared")

    async def wait_for_preloads(self) -> None:
        """Wait until every scheduled preload has finished."""
        while self._preloads:
            await asyncio.gather(*list(self._preloads), return_exceptions=True)

    async def aclose(self) -> None:
        for task in list(self._preloads):
            task.cancel()
        await asyncio.gather(*list(self._preloads), return_exceptions=True)
        await self._http.aclose()

    async def _get_stats(
        self,
        key: str,
        path: str,
        params: dict[str, Any],
        neighbours: list[tuple[int, int]],
        fetch_neighbour: Callable,
        key_for: Callable[[int, int], str],
        force_refresh: bool,
        is_preloading: bool,
    ) -> EmployeeStatsResponse:
        if force_refresh:
            self.cache.clear()
            await self.clear_server_cache()
        else:
            cached = self.cache.get(key)
            if cached is not None:
                return cached.model_copy(update={"from_cache": True})

        response = await self._http.get(
            f"{self.base_url}{path}",
            params={**params, "forceRefresh": str(force_refresh).lower()},
        )
        self._raise_for_status(response, f"GET {path}")
        result = EmployeeStatsResponse.model_validate(response.json())
        self.cache.set(key, result)

        if not is_preloading:
            for year, number in neighbours:
                if not self.cache.has(key_for(year, number)):
                    self._schedule_preload(key_for(year, number), fetch_neighbour(year, number))

        return result

    def _schedule_preload(self, key: str, coro) -> None:
        task = asyncio.get_running_loop().create_task(self._preload(key, coro))
        self._preloads.add(task)
        task.add_done_callback(self._preloads.discard)

    async def _preload(self, key: str, coro) -> None:
        try:
            await coro
            logger.debug(f"Preloaded {key}")
        except Exception as e:
            logger.warning(f"Preload of {key} failed: {e}")

    @staticmethod
    def _raise_for_status(response: httpx.Response, label: str) -> None:
        if not response.is_success:
            raise UpstreamHTTPError(
                f"{label} returned {response.status_code}",
                status_code=response.status_code,
            )
