"""
Tests for the caller-side stats client: caching, preloading and refresh.
"""

import httpx
import pytest

from gripp_hours.api.clients.stats_client import EmployeeStatsClient
from gripp_hours.core.cache import TTLCache


class FakeStatsApi:
    def __init__(self, fail_keys=(), crash_keys=()):
        self.requests: list[httpx.Request] = []
        self.fail_keys = set(fail_keys)
        self.crash_keys = set(crash_keys)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "DELETE":
            return httpx.Response(200, json={"cleared": 3})

        params = request.url.params
        year = int(params["year"])
        if request.url.path.endswith("/week"):
            week = int(params["week"])
            key, period = f"{year}-W{week:02d}", {"kind": "week", "year": year, "week": week}
        else:
            month = int(params["month"])
            key, period = f"{year}-{month:02d}", {"kind": "month", "year": year, "month": month}

        if key in self.crash_keys:
            raise RuntimeError(f"handler crashed on {key}")
        if key in self.fail_keys:
            return httpx.Response(503, json={"detail": "Store unavailable"})

        return httpx.Response(
            200,
            json={
                "data": [{"id": 1, "name": "Anna de Vries", "contractHours": 40, "actualHours": 32}],
                "fromCache": False,
                "warnings": [],
                "period": {**period, "startDate": "2025-04-21", "endDate": "2025-04-27", "key": key},
            },
        )

    def gets(self) -> list[str]:
        return [
            f"{r.url.path}?{r.url.params.get('week') or r.url.params.get('month')}"
            for r in self.requests
            if r.method == "GET"
        ]


@pytest.fixture
def api():
    return FakeStatsApi()


@pytest.fixture
def client(api):
    return EmployeeStatsClient(
        "http://stats.test/api/v1",
        cache=TTLCache(ttl=1800, max_size=100, name="client"),
        transport=httpx.MockTransport(api.handler),
    )


@pytest.mark.asyncio
async def test_miss_fetches_and_preloads_adjacent_weeks(client, api):
    # Act
    response = await client.get_week_stats(2025, 17)
    await client.wait_for_preloads()

    # Assert
    assert response.data[0].contract_hours == 40
    assert sorted(api.gets()) == [
        "/api/v1/employees/week?16",
        "/api/v1/employees/week?17",
        "/api/v1/employees/week?18",
    ]
    assert client.cache.has("employeeWeek:2025-W16")
    assert client.cache.has("employeeWeek:2025-W18")
    await client.aclose()


@pytest.mark.asyncio
async def test_preloads_do_not_cascade(client, api):
    await client.get_week_stats(2025, 17)
    await client.wait_for_preloads()

    # Navigating to a preloaded week is a local hit and schedules nothing
    await client.get_week_stats(2025, 18)
    await client.wait_for_preloads()

    assert len(api.gets()) == 3
    await client.aclose()


@pytest.mark.asyncio
async def test_adjacent_weeks_cross_year_boundary(client, api):
    await client.get_week_stats(2025, 1)
    await client.wait_for_preloads()

    years_and_weeks = sorted(
        (r.url.params["year"], r.url.params["week"]) for r in api.requests
    )
    assert years_and_weeks == [("2024", "52"), ("2025", "1"), ("2025", "2")]
    await client.aclose()


@pytest.mark.asyncio
async def test_month_preloads_previous_and_next_month(client, api):
    await client.get_month_stats(2025, 1)
    await client.wait_for_preloads()

    assert client.cache.has("employeeMonth:2024-12")
    assert client.cache.has("employeeMonth:2025-02")
    await client.aclose()


@pytest.mark.asyncio
async def test_preload_errors_are_swallowed():
    # Arrange
    api = FakeStatsApi(fail_keys={"2025-W18"})
    client = EmployeeStatsClient(
        "http://stats.test/api/v1", transport=httpx.MockTransport(api.handler)
    )

    # Act
    response = await client.get_week_stats(2025, 17)
    await client.wait_for_preloads()

    # Assert
    assert response.period.key == "2025-W17"
    assert client.cache.has("employeeWeek:2025-W16")
    assert not client.cache.has("employeeWeek:2025-W18")
    await client.aclose()


@pytest.mark.asyncio
async def test_unexpected_preload_errors_are_swallowed():
    api = FakeStatsApi(crash_keys={"2025-W16"})
    client = EmployeeStatsClient(
        "http://stats.test/api/v1", transport=httpx.MockTransport(api.handler)
    )

    await client.get_week_stats(2025, 17)
    await client.wait_for_preloads()

    assert not client.cache.has("employeeWeek:2025-W16")
    assert client.cache.has("employeeWeek:2025-W18")
    await client.aclose()


@pytest.mark.asyncio
async def test_force_refresh_clears_both_caches_and_refetches(client, api):
    # Arrange
    await client.get_week_stats(2025, 17)
    await client.wait_for_preloads()
    api.requests.clear()

    # Act
    await client.get_week_stats(2025, 17, force_refresh=True)
    await client.wait_for_preloads()

    # Assert
    methods = [r.method for r in api.requests]
    assert methods[0] == "DELETE"
    assert api.requests[0].url.path == "/api/v1/cache"
    assert api.requests[1].url.params["forceRefresh"] == "true"
    assert len(api.gets()) == 3
    await client.aclose()


@pytest.mark.asyncio
async def test_cache_hit_makes_no_request(client, api):
    first = await client.get_week_stats(2025, 17)
    await client.wait_for_preloads()
    api.requests.clear()

    response = await client.get_week_stats(2025, 17)

    assert first.from_cache is False
    assert response.from_cache is True
    assert response.period.key == "2025-W17"
    assert api.requests == []
    await client.aclose()
