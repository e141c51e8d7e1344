"""
Hour reconciliation: contracted, holiday, expected, leave and written hours
for one employee in one week or month.

Missing data (no contract, no holidays, no absences) contributes zero and is
never an error.

Outline
reconcile()
reconcile_batch()
merge_employee_stats()
"""

from collections import defaultdict
from datetime import date
from typing import Iterable, Sequence

from gripp_hours.core.logging import get_logger
from gripp_hours.core.periods import WEEK, Period, is_even_week, iso_week_of
from gripp_hours.models.absence import AbsenceLineRecord
from gripp_hours.models.contract import Contract
from gripp_hours.models.employee import Employee
from gripp_hours.models.holiday import Holiday
from gripp_hours.models.hour import HourEntry
from gripp_hours.models.stats import NO_CONTRACT, EmployeeStats

logger = get_logger(__name__)

CONTRACT_PERIOD_SEPARATOR = " | "

_SUMMED_FIELDS = (
    "contract_hours",
    "holiday_hours",
    "expected_hours",
    "leave_hours",
    "actual_hours",
)


def _parity_week(period: Period, day: date) -> int:
    # A month spans weeks of both parities; each day uses its own ISO week.
    if period.kind == WEEK:
        return period.week
    return iso_week_of(day)


def _scheduled_hours(contracts: Sequence[Contract], period: Period, day: date) -> float:
    """Sum of the hours of contracts valid on `day`. Weekends are never scheduled."""
    weekday = day.weekday()
    if weekday >= 5:
        return 0.0
    even = is_even_week(_parity_week(period, day))
    return sum(
        contract.hours_vector(even)[weekday] for contract in contracts if contract.covers(day)
    )


def _identity(employee: Employee) -> dict:
    return {
        "id": employee.id,
        "name": employee.full_name,
        "function": employee.function,
        "active": employee.active,
    }


def reconcile(
    employee: Employee,
    contracts: Iterable[Contract],
    holidays: Iterable[Holiday],
    absence_lines: Iterable[AbsenceLineRecord],
    hour_entries: Iterable[HourEntry],
    period: Period,
) -> EmployeeStats:
    """
    Compute expected vs. actual hours for an employee.

    All contracts of the employee that intersect the period are summed, each
    only on the days inside its own validity interval.
    Holidays only reduce expected hours on weekdays the employee is
    contracted to work. Leave counts pending and approved absence lines on
    weekdays that are not holidays; overlapping lines are not deduplicated.

    Args:
        employee: Employee to reconcile
        contracts: Contracts to consider (other employees' are ignored)
        holidays: Global holiday calendar
        absence_lines: Absence lines joined with their request's employee
        hour_entries: Raw time bookings
        period: Week or month to reconcile

    Returns:
        EmployeeStats for the period
    """
    start, end = period.start_date, period.end_date
    matching = [
        c for c in contracts if c.employee_id == employee.id and c.overlaps(start, end)
    ]

    if not matching:
        return EmployeeStats(**_identity(employee), contract_period=NO_CONTRACT)

    weekdays = [day for day in period.days() if day.weekday() < 5]
    contract_hours = sum(_scheduled_hours(matching, period, day) for day in weekdays)

    holiday_dates = {
        h.date for h in holidays if period.contains(h.date) and h.date.weekday() < 5
    }
    holiday_hours = sum(
        _scheduled_hours(matching, period, day) for day in sorted(holiday_dates)
    )

    expected_hours = max(0.0, contract_hours - holiday_hours)

    leave_hours = sum(
        line.hours_per_day
        for line in absence_lines
        if line.employee_id == employee.id
        and line.is_counted
        and period.contains(line.date)
        and line.date.weekday() < 5
        and line.date not in holiday_dates
    )

    actual_hours = sum(
        entry.amount
        for entry in hour_entries
        if entry.employee_id == employee.id and period.contains(entry.date)
    )

    labels = []
    for contract in matching:
        if contract.period_label not in labels:
            labels.append(contract.period_label)

    return EmployeeStats(
        **_identity(employee),
        contract_period=CONTRACT_PERIOD_SEPARATOR.join(labels),
        contract_hours=round(contract_hours, 2),
        holiday_hours=round(holiday_hours, 2),
        expected_hours=round(expected_hours, 2),
        leave_hours=round(leave_hours, 2),
        actual_hours=round(actual_hours, 2),
    )


def reconcile_batch(
    employees: Iterable[Employee],
    contracts: Iterable[Contract],
    holidays: Sequence[Holiday],
    absence_lines: Iterable[AbsenceLineRecord],
    hour_entries: Iterable[HourEntry],
    period: Period,
) -> tuple[list[EmployeeStats], list[str]]:
    """
    Reconcile every employee, isolating failures.

    A failure for one employee becomes a warning; the others are still
    returned. Repeated employee rows are merged.
    """
    contracts_by_employee: dict[int, list[Contract]] = defaultdict(list)
    for contract in contracts:
        contracts_by_employee[contract.employee_id].append(contract)

    lines_by_employee: dict[int, list[AbsenceLineRecord]] = defaultdict(list)
    for line in absence_lines:
        lines_by_employee[line.employee_id].append(line)

    entries_by_employee: dict[int, list[HourEntry]] = defaultdict(list)
    for entry in hour_entries:
        entries_by_employee[entry.employee_id].append(entry)

    results: list[EmployeeStats] = []
    warnings: list[str] = []

    for employee in employees:
        try:
            results.append(
                reconcile(
                    employee,
                    contracts_by_employee.get(employee.id, []),
                    holidays,
                    lines_by_employee.get(employee.id, []),
                    entries_by_employee.get(employee.id, []),
                    period,
                )
            )
        except Exception as e:
            logger.error(
                f"Reconciliation failed for employee {employee.id} in {period.key}: {e}",
                exc_info=True,
            )
            warnings.append(f"Employee {employee.id}: {e}")

    return merge_employee_stats(results), warnings


def merge_employee_stats(stats: Iterable[EmployeeStats]) -> list[EmployeeStats]:
    """
    Merge stats records that belong to the same employee.

    Numeric fields are summed and distinct contract period labels are joined.
    Order of first appearance is preserved. Identical records are summed as
    well, so duplicated upstream rows will double count.
    """
    merged: dict[int, EmployeeStats] = {}

    for record in stats:
        existing = merged.get(record.id)
        if existing is None:
            merged[record.id] = record.model_copy()
            continue

        updates = {
            field: round(getattr(existing, field) + getattr(record, field), 2)
            for field in _SUMMED_FIELDS
        }
        updates["contract_period"] = _merge_labels(
            existing.contract_period, record.contract_period
        )
        merged[record.id] = existing.model_copy(update=updates)

    return list(merged.values())


def _merge_labels(first: str, second: str) -> str:
    labels: list[str] = []
    for label in first.split(CONTRACT_PERIOD_SEPARATOR) + second.split(
        CONTRACT_PERIOD_SEPARATOR
    ):
        if label and label not in labels:
            labels.append(label)
    if len(labels) > 1 and NO_CONTRACT in labels:
        labels.remove(NO_CONTRACT)
    return CONTRACT_PERIOD_SEPARATOR.join(labels)
