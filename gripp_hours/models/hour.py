"""
Raw time bookings. Only used to compute written hours.
"""

import datetime as dt
from typing import Optional

from sqlmodel import Field, SQLModel


class HourEntry(SQLModel, table=True):
    __tablename__ = "hours"

    id: int = Field(primary_key=True, description="Hour ID from Gripp")
    employee_id: int = Field(index=True, nullable=False)
    date: dt.date = Field(index=True, nullable=False)
    amount: float = Field(default=0.0)
    description: Optional[str] = Field(default=None, max_length=1000)
    status_id: Optional[int] = Field(default=None)
    project_id: Optional[int] = Field(default=None, index=True)
    project_line_id: Optional[int] = Field(default=None)
