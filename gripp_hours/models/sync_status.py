"""
Sync bookkeeping: the last outcome per upstream entity, plus the request and
report schemas of a sync run.
"""

import datetime as dt
from typing import Optional

from pydantic import BaseModel, model_validator
from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from gripp_hours.models.stats import CamelModel


class SyncStatus(SQLModel, table=True):
    __tablename__ = "sync_status"

    endpoint: str = Field(primary_key=True, max_length=100)
    last_sync: dt.datetime = Field(
        default_factory=lambda: dt.datetime.now(dt.timezone.utc),
        sa_type=DateTime(timezone=True),
    )
    status: str = Field(max_length=20)
    error: Optional[str] = Field(default=None, max_length=1000)


class SyncRequest(CamelModel):
    start_date: dt.date
    end_date: dt.date

    @model_validator(mode="after")
    def check_range(self):
        if self.end_date < self.start_date:
            raise ValueError("endDate must not be before startDate")
        return self


class EntitySyncResult(CamelModel):
    entity: str
    endpoint: str
    status: str = "success"  # success, error
    fetched: int = 0
    stored: int = 0
    skipped: int = 0
    error: Optional[str] = None


class SyncReport(CamelModel):
    start_date: dt.date
    end_date: dt.date
    results: list[EntitySyncResult] = []
    cache_cleared: bool = False

    @property
    def succeeded(self) -> bool:
        return all(r.status == "success" for r in self.results)


class SyncStatusPublic(BaseModel):
    endpoint: str
    last_sync: dt.datetime
    status: str
    error: Optional[str] = None
