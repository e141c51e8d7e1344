"""
Shared fixtures: an in-memory store, row factories and a fake Gripp API.
"""

import json
from datetime import date

import httpx
import pytest
from sqlmodel import Session

from gripp_hours.core.database import build_engine, create_db_and_tables
from gripp_hours.core.request_queue import RetryPolicy
from gripp_hours.core.store import HourStore
from gripp_hours.models.contract import Contract
from gripp_hours.models.employee import Employee


@pytest.fixture
def db_engine():
    """Create a fresh in-memory database for each test."""
    engine = build_engine("sqlite://")
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    with Session(db_engine) as session:
        yield session


@pytest.fixture
def store(db_engine):
    return HourStore(db_engine, holiday_absence_type="Feestdag")


@pytest.fixture
def fast_retry_policy():
    """Retry rules with no real waiting."""
    return RetryPolicy(
        max_attempts=5, retry_delay=0.0, rate_limit_base_delay=0.0, rate_limit_jitter=0.0
    )


def make_employee(id=1, firstname="Anna", lastname="de Vries", **kwargs) -> Employee:
    return Employee(id=id, firstname=firstname, lastname=lastname, **kwargs)


def make_contract(
    id=1,
    employee_id=1,
    even=(8, 8, 8, 8, 8),
    odd=None,
    startdate=date(2024, 1, 1),
    enddate=None,
) -> Contract:
    odd = even if odd is None else odd
    days = ("monday", "tuesday", "wednesday", "thursday", "friday")
    hours = {f"hours_{day}_even": float(h) for day, h in zip(days, even)}
    hours.update({f"hours_{day}_odd": float(h) for day, h in zip(days, odd)})
    return Contract(
        id=id, employee_id=employee_id, startdate=startdate, enddate=enddate, **hours
    )


class FakeGripp:
    """
    In-process stand-in for the Gripp JSON-RPC endpoint.

    Rows are served per method with firstresult/maxresults paging. Methods
    listed in `failures` answer with the given HTTP status instead.
    """

    def __init__(self, rows=None, failures=None):
        self.rows = rows or {}
        self.failures = failures or {}
        self.calls: list[dict] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)[0]
        self.calls.append(body)
        method = body["method"]

        if method in self.failures:
            return httpx.Response(self.failures[method])

        options = body["params"][1]
        paging = options.get("paging", {})
        first = paging.get("firstresult", 0)
        size = paging.get("maxresults", 250)
        rows = self.rows.get(method, [])
        page = rows[first : first + size]

        return httpx.Response(
            200,
            json=[
                {
                    "id": body["id"],
                    "result": {
                        "rows": page,
                        "count": len(rows),
                        "start": first,
                        "limit": size,
                        "next_start": first + size,
                        "more_items_in_collection": first + size < len(rows),
                    },
                    "error": None,
                }
            ],
        )

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def methods(self) -> list[str]:
        return [call["method"] for call in self.calls]
