"""
Response schemas for reconciled hour statistics and cache inspection.

Fields are serialized in camelCase for the dashboard frontend.
"""

import datetime as dt
from typing import Optional

from pydantic import BaseModel, ConfigDict, computed_field
from pydantic.alias_generators import to_camel

NO_CONTRACT = "No contract"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EmployeeStats(CamelModel):
    """Expected vs. actual hours for one employee in one period."""

    id: int
    name: str
    function: Optional[str] = None
    active: bool = True
    contract_period: str = NO_CONTRACT
    contract_hours: float = 0.0
    holiday_hours: float = 0.0
    expected_hours: float = 0.0
    leave_hours: float = 0.0
    actual_hours: float = 0.0

    @computed_field(alias="writtenHours")
    @property
    def written_hours(self) -> float:
        return self.actual_hours


class PeriodInfo(CamelModel):
    kind: str  # week, month
    year: int
    week: Optional[int] = None
    month: Optional[int] = None
    start_date: dt.date
    end_date: dt.date
    key: str


class EmployeeStatsResponse(CamelModel):
    """Result of a stats query, with partial-failure warnings attached."""

    data: list[EmployeeStats]
    from_cache: bool = False
    warnings: list[str] = []
    period: PeriodInfo


class CacheStats(CamelModel):
    total: int
    by_kind: dict[str, int]
    keys: list[str]
