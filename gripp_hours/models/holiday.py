"""
Public holiday model. Holidays are global, not employee-specific.
"""

import datetime as dt
from typing import Optional

from sqlmodel import Field, SQLModel


class Holiday(SQLModel, table=True):
    __tablename__ = "holidays"

    id: Optional[int] = Field(default=None, primary_key=True)
    date: dt.date = Field(unique=True, index=True, nullable=False)
    name: str = Field(default="", max_length=255)
