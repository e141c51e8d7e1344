"""
Employment contract model.

A contract carries two five-day hour schedules: one for even ISO weeks and
one for odd ISO weeks. An employee may hold several overlapping contracts;
all of them contribute to a period.
"""

from datetime import date
from typing import Optional

from sqlmodel import Field, SQLModel

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday")


class Contract(SQLModel, table=True):
    """
    Contract table, populated from `employmentcontract.get`.
    """

    __tablename__ = "contracts"

    id: int = Field(primary_key=True, description="Contract ID from Gripp")
    employee_id: int = Field(index=True, nullable=False)

    hours_monday_even: float = Field(default=0.0)
    hours_tuesday_even: float = Field(default=0.0)
    hours_wednesday_even: float = Field(default=0.0)
    hours_thursday_even: float = Field(default=0.0)
    hours_friday_even: float = Field(default=0.0)

    hours_monday_odd: float = Field(default=0.0)
    hours_tuesday_odd: float = Field(default=0.0)
    hours_wednesday_odd: float = Field(default=0.0)
    hours_thursday_odd: float = Field(default=0.0)
    hours_friday_odd: float = Field(default=0.0)

    startdate: date = Field(nullable=False, index=True)
    enddate: Optional[date] = Field(default=None, description="Open-ended if null")
    internal_price_per_hour: Optional[float] = Field(default=None)

    def hours_vector(self, even: bool) -> tuple[float, ...]:
        """Monday..Friday hours for an even or odd ISO week."""
        suffix = "even" if even else "odd"
        return tuple(
            float(getattr(self, f"hours_{day}_{suffix}") or 0.0) for day in WEEKDAYS
        )

    def covers(self, day: date) -> bool:
        """True when `day` falls inside [startdate, enddate?]."""
        return self.overlaps(day, day)

    def overlaps(self, start: date, end: date) -> bool:
        """True when [startdate, enddate?] intersects [start, end]."""
        if self.startdate > end:
            return False
        return self.enddate is None or self.enddate >= start

    @property
    def period_label(self) -> str:
        start = self.startdate.isoformat()
        if self.enddate is None:
            return f"{start} - present"
        return f"{start} - {self.enddate.isoformat()}"
