"""
Tests for the cached employee stats query service.
"""

from datetime import date

import pytest
from conftest import make_contract, make_employee

from gripp_hours.core.cache import TTLCache
from gripp_hours.core.exceptions import StoreUnavailableError, ValidationError
from gripp_hours.core.stats_service import EmployeeStatsService
from gripp_hours.models.holiday import Holiday
from gripp_hours.models.hour import HourEntry


@pytest.fixture
def seeded_store(store, db_session):
    db_session.add(make_employee(id=1, function="Developer"))
    db_session.add(make_employee(id=2, firstname="Bram", lastname="Jansen"))
    db_session.add(make_employee(id=3, firstname="Cor", active=False))
    db_session.add(make_contract(id=1, employee_id=1))
    db_session.add(Holiday(date=date(2025, 4, 21), name="Tweede Paasdag"))
    db_session.add(HourEntry(id=1, employee_id=1, date=date(2025, 4, 22), amount=8))
    db_session.commit()
    return store


@pytest.fixture
def service(seeded_store):
    return EmployeeStatsService(seeded_store, TTLCache(ttl=60, max_size=10))


def test_week_stats_for_active_employees(service):
    # Act
    response = service.get_employee_stats(2025, week=17)

    # Assert
    by_id = {s.id: s for s in response.data}
    assert set(by_id) == {1, 2}
    assert by_id[1].contract_hours == 40
    assert by_id[1].holiday_hours == 8
    assert by_id[1].expected_hours == 32
    assert by_id[1].actual_hours == 8
    assert by_id[2].contract_period == "No contract"
    assert response.from_cache is False
    assert response.warnings == []
    assert response.period.key == "2025-W17"
    assert response.period.start_date == date(2025, 4, 21)


def test_second_query_is_served_from_cache(service, seeded_store, monkeypatch):
    service.get_employee_stats(2025, week=17)

    def unexpected(*args, **kwargs):
        raise AssertionError("store must not be read on a cache hit")

    monkeypatch.setattr(seeded_store, "get_employees", unexpected)
    response = service.get_employee_stats(2025, week=17)

    assert response.from_cache is True
    assert service.get_cache_stats().keys == ["employeeWeek:2025-W17"]


def test_force_refresh_bypasses_cache(service, db_session):
    service.get_employee_stats(2025, week=17)
    db_session.add(HourEntry(id=2, employee_id=1, date=date(2025, 4, 23), amount=4))
    db_session.commit()

    cached = service.get_employee_stats(2025, week=17)
    refreshed = service.get_employee_stats(2025, week=17, force_refresh=True)

    assert cached.data[0].actual_hours == 8
    assert refreshed.from_cache is False
    assert {s.id: s for s in refreshed.data}[1].actual_hours == 12


def test_month_stats_use_month_key(service):
    response = service.get_employee_stats(2025, month=4)

    assert response.period.key == "2025-04"
    assert response.period.month == 4
    assert service.get_cache_stats().by_kind == {"employeeMonth": 1}


@pytest.mark.parametrize(
    "kwargs",
    [
        {"week": 0},
        {"week": 53},
        {"month": 13},
        {"month": 0},
        {},
        {"week": 17, "month": 4},
    ],
)
def test_invalid_periods_are_rejected_before_any_io(service, seeded_store, monkeypatch, kwargs):
    def unexpected(*args, **kwargs):
        raise AssertionError("store must not be read for invalid input")

    monkeypatch.setattr(seeded_store, "get_employees", unexpected)

    with pytest.raises(ValidationError):
        service.get_employee_stats(2025, **kwargs)


def test_store_failure_propagates(service, seeded_store, monkeypatch):
    def unavailable(*args, **kwargs):
        raise StoreUnavailableError("database is down")

    monkeypatch.setattr(seeded_store, "get_employees", unavailable)

    with pytest.raises(StoreUnavailableError):
        service.get_employee_stats(2025, week=17)


def test_clear_cache(service):
    service.get_employee_stats(2025, week=17)
    service.get_employee_stats(2025, week=18)

    assert service.clear_cache() == 2
    assert service.get_cache_stats().total == 0
