"""
Database models and schemas module.
Contains all SQLModel table definitions and Pydantic schemas.
"""

from gripp_hours.models.absence import (
    AbsenceLineRecord,
    AbsenceRequest,
    AbsenceRequestLine,
)
from gripp_hours.models.contract import Contract
from gripp_hours.models.employee import Employee
from gripp_hours.models.holiday import Holiday
from gripp_hours.models.hour import HourEntry
from gripp_hours.models.stats import (
    CacheStats,
    EmployeeStats,
    EmployeeStatsResponse,
    PeriodInfo,
)
from gripp_hours.models.sync_status import (
    EntitySyncResult,
    SyncReport,
    SyncRequest,
    SyncStatus,
    SyncStatusPublic,
)

__all__ = [
    "Employee",
    "Contract",
    "Holiday",
    "AbsenceRequest",
    "AbsenceRequestLine",
    "AbsenceLineRecord",
    "HourEntry",
    "SyncStatus",
    "SyncRequest",
    "SyncReport",
    "SyncStatusPublic",
    "EntitySyncResult",
    "EmployeeStats",
    "EmployeeStatsResponse",
    "PeriodInfo",
    "CacheStats",
]
