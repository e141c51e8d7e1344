"""
Period arithmetic: ISO weeks, calendar months and week parity.

The range functions are pure and do not validate their input; callers that
accept user input go through `validate_week` / `validate_month` first.
Months are one-indexed (1 = January) everywhere in the service.
"""

import calendar
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterator, Optional

from gripp_hours.core.exceptions import ValidationError

WEEK = "week"
MONTH = "month"


@dataclass(frozen=True)
class Period:
    kind: str
    year: int
    start: datetime
    end: datetime
    week: Optional[int] = None
    month: Optional[int] = None

    @property
    def start_date(self) -> date:
        return self.start.date()

    @property
    def end_date(self) -> date:
        return self.end.date()

    @property
    def key(self) -> str:
        if self.kind == WEEK:
            return f"{self.year}-W{self.week:02d}"
        return f"{self.year}-{self.month:02d}"

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    def days(self) -> Iterator[date]:
        day = self.start_date
        while day <= self.end_date:
            yield day
            day += timedelta(days=1)


def _end_of_day(day: date) -> datetime:
    return datetime.combine(day, time.max)


def iso_week_range(year: int, week: int) -> Period:
    """
    Monday 00:00 through Sunday 23:59:59.999999 of ISO week `week`.

    Week 1 is the week containing January 4th (equivalently, the year's
    first Thursday).
    """
    jan4 = date(year, 1, 4)
    week1_monday = jan4 - timedelta(days=jan4.weekday())
    start = week1_monday + timedelta(weeks=week - 1)
    return Period(
        kind=WEEK,
        year=year,
        week=week,
        start=datetime.combine(start, time.min),
        end=_end_of_day(start + timedelta(days=6)),
    )


def month_range(year: int, month: int) -> Period:
    """First through last calendar day of a one-indexed month."""
    last_day = calendar.monthrange(year, month)[1]
    return Period(
        kind=MONTH,
        year=year,
        month=month,
        start=datetime.combine(date(year, month, 1), time.min),
        end=_end_of_day(date(year, month, last_day)),
    )


def is_even_week(week: int) -> bool:
    return week % 2 == 0


def iso_week_of(day: date) -> int:
    return day.isocalendar()[1]


def weeks_in_year(year: int) -> int:
    """52 or 53. December 28th always falls in the last ISO week."""
    return date(year, 12, 28).isocalendar()[1]


def shift_week(year: int, week: int, delta: int) -> tuple[int, int]:
    """ISO (year, week) `delta` weeks away, crossing year boundaries."""
    monday = iso_week_range(year, week).start_date + timedelta(weeks=delta)
    iso = monday.isocalendar()
    return iso[0], iso[1]


def shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def validate_week(year: int, week: int) -> None:
    _validate_year(year)
    if not 1 <= week <= weeks_in_year(year):
        raise ValidationError(
            f"Week must be between 1 and {weeks_in_year(year)} for {year}, got {week}"
        )


def validate_month(year: int, month: int) -> None:
    _validate_year(year)
    if not 1 <= month <= 12:
        raise ValidationError(f"Month must be between 1 and 12, got {month}")


def _validate_year(year: int) -> None:
    if not 1900 <= year <= 2999:
        raise ValidationError(f"Year out of range: {year}")
