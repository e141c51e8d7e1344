"""
Absence request models.

An absence request groups one or more lines. Each line covers a single date
with an hours amount and an approval status. The employee is attached to the
request, not the line.
"""

import datetime as dt
from typing import Optional

from pydantic import BaseModel
from sqlmodel import Field, SQLModel

# Gripp absence line statuses
STATUS_PENDING = 1
STATUS_APPROVED = 2
STATUS_REJECTED = 3

COUNTED_STATUSES = (STATUS_PENDING, STATUS_APPROVED)


class AbsenceRequest(SQLModel, table=True):
    """
    Absence request table, populated from `absencerequest.get`.
    """

    __tablename__ = "absence_requests"

    id: int = Field(primary_key=True, description="Absence request ID from Gripp")
    employee_id: int = Field(index=True, nullable=False)
    description: Optional[str] = Field(default=None, max_length=500)
    absencetype_id: Optional[int] = Field(default=None)
    absencetype_searchname: str = Field(default="", max_length=255)


class AbsenceRequestLine(SQLModel, table=True):
    """
    Absence request line table. One row per absent day.
    """

    __tablename__ = "absence_request_lines"

    id: int = Field(primary_key=True, description="Absence line ID from Gripp")
    absencerequest_id: int = Field(
        index=True, nullable=False, foreign_key="absence_requests.id"
    )
    date: dt.date = Field(index=True, nullable=False)
    amount: float = Field(default=0.0, description="Hours absent on this date")
    description: Optional[str] = Field(default=None, max_length=500)
    status_id: int = Field(default=STATUS_PENDING)
    status_name: str = Field(default="", max_length=100)


class AbsenceLineRecord(BaseModel):
    """
    An absence line joined with its request, as consumed by reconciliation.
    """

    id: int
    employee_id: int
    date: dt.date
    hours_per_day: float
    status_id: int
    type_name: str = ""

    @property
    def is_counted(self) -> bool:
        return self.status_id in COUNTED_STATUSES
