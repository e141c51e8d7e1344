"""
Tests for expected vs. actual hour reconciliation.
"""

from datetime import date

from conftest import make_contract, make_employee

from gripp_hours.core.periods import iso_week_range, month_range
from gripp_hours.core.reconciliation import (
    merge_employee_stats,
    reconcile,
    reconcile_batch,
)
from gripp_hours.models.absence import (
    STATUS_APPROVED,
    STATUS_PENDING,
    STATUS_REJECTED,
    AbsenceLineRecord,
)
from gripp_hours.models.holiday import Holiday
from gripp_hours.models.hour import HourEntry
from gripp_hours.models.stats import NO_CONTRACT, EmployeeStats

WEEK_17 = iso_week_range(2025, 17)  # Mon 2025-04-21 .. Sun 2025-04-27, odd


def absence(id, day, hours=8.0, status=STATUS_APPROVED, employee_id=1):
    return AbsenceLineRecord(
        id=id,
        employee_id=employee_id,
        date=day,
        hours_per_day=hours,
        status_id=status,
        type_name="Verlof",
    )


def hour(id, day, amount, employee_id=1):
    return HourEntry(id=id, employee_id=employee_id, date=day, amount=amount)


def test_full_time_week_without_holidays_or_leave():
    # Arrange
    employee = make_employee()
    contract = make_contract()

    # Act
    stats = reconcile(employee, [contract], [], [], [], WEEK_17)

    # Assert
    assert stats.contract_hours == 40
    assert stats.holiday_hours == 0
    assert stats.expected_hours == 40
    assert stats.leave_hours == 0
    assert stats.actual_hours == 0
    assert stats.name == "Anna de Vries"
    assert stats.contract_period == "2024-01-01 - present"


def test_week_with_holiday_leave_and_written_hours():
    """Easter Monday off, one approved leave day, 24 hours written."""
    # Arrange
    employee = make_employee()
    contract = make_contract()
    holidays = [Holiday(date=date(2025, 4, 21), name="Tweede Paasdag")]
    lines = [
        absence(1, date(2025, 4, 22)),
        absence(2, date(2025, 4, 23), status=STATUS_REJECTED),
        absence(3, date(2025, 4, 21)),  # on the holiday
    ]
    entries = [
        hour(1, date(2025, 4, 24), 8),
        hour(2, date(2025, 4, 25), 8),
        hour(3, date(2025, 4, 23), 8),
    ]

    # Act
    stats = reconcile(employee, [contract], holidays, lines, entries, WEEK_17)

    # Assert
    assert stats.contract_hours == 40
    assert stats.holiday_hours == 8
    assert stats.expected_hours == 32
    assert stats.leave_hours == 8
    assert stats.actual_hours == 24
    assert stats.written_hours == 24


def test_pending_leave_counts():
    stats = reconcile(
        make_employee(),
        [make_contract()],
        [],
        [absence(1, date(2025, 4, 22), hours=4, status=STATUS_PENDING)],
        [],
        WEEK_17,
    )

    assert stats.leave_hours == 4


def test_overlapping_absence_lines_are_summed():
    lines = [absence(1, date(2025, 4, 22), hours=8), absence(2, date(2025, 4, 22), hours=4)]

    stats = reconcile(make_employee(), [make_contract()], [], lines, [], WEEK_17)

    assert stats.leave_hours == 12


def test_weekend_holiday_and_weekend_leave_are_ignored():
    holidays = [Holiday(date=date(2025, 4, 26), name="Koningsdag")]
    lines = [absence(1, date(2025, 4, 27))]

    stats = reconcile(make_employee(), [make_contract()], holidays, lines, [], WEEK_17)

    assert stats.holiday_hours == 0
    assert stats.expected_hours == 40
    assert stats.leave_hours == 0


def test_even_and_odd_week_schedules():
    contract = make_contract(even=(8, 8, 8, 8, 8), odd=(4, 4, 4, 4, 4))

    odd_week = reconcile(make_employee(), [contract], [], [], [], iso_week_range(2025, 17))
    even_week = reconcile(make_employee(), [contract], [], [], [], iso_week_range(2025, 18))

    assert odd_week.contract_hours == 20
    assert even_week.contract_hours == 40


def test_month_uses_parity_of_each_days_own_week():
    # April 2025: 12 weekdays in even weeks (14, 16, 18), 10 in odd weeks (15, 17)
    contract = make_contract(even=(8, 8, 8, 8, 8), odd=(4, 4, 4, 4, 4))

    stats = reconcile(make_employee(), [contract], [], [], [], month_range(2025, 4))

    assert stats.contract_hours == 12 * 8 + 10 * 4


def test_employee_without_contract_reports_zeros():
    # Arrange
    employee = make_employee(function="Developer")
    ended = make_contract(startdate=date(2023, 1, 1), enddate=date(2024, 12, 31))
    entries = [hour(1, date(2025, 4, 22), 8)]

    # Act
    stats = reconcile(employee, [ended], [], [], entries, WEEK_17)

    # Assert
    assert stats.contract_period == NO_CONTRACT
    assert stats.contract_hours == 0
    assert stats.expected_hours == 0
    assert stats.actual_hours == 0
    assert stats.function == "Developer"


def test_contracts_of_other_employees_are_ignored():
    other = make_contract(id=2, employee_id=2)

    stats = reconcile(make_employee(id=1), [other], [], [], [], WEEK_17)

    assert stats.contract_period == NO_CONTRACT


def test_two_contracts_in_one_week_are_summed():
    """A 20 hour and a 15 hour contract add up to 35 contract hours."""
    first = make_contract(id=1, even=(4, 4, 4, 4, 4))
    second = make_contract(
        id=2, even=(3, 3, 3, 3, 3), startdate=date(2025, 1, 1)
    )

    stats = reconcile(make_employee(), [first, second], [], [], [], WEEK_17)

    assert stats.contract_hours == 35
    assert stats.contract_period == "2024-01-01 - present | 2025-01-01 - present"


def test_contract_ending_mid_week_only_counts_its_own_days():
    # Monday and Tuesday on the first contract, Wednesday to Friday on the second
    first = make_contract(id=1, even=(4, 4, 4, 4, 4), enddate=date(2025, 4, 22))
    second = make_contract(id=2, even=(3, 3, 3, 3, 3), startdate=date(2025, 4, 23))

    stats = reconcile(make_employee(), [first, second], [], [], [], WEEK_17)

    assert stats.contract_hours == 2 * 4 + 3 * 3
    assert stats.contract_period == "2024-01-01 - 2025-04-22 | 2025-04-23 - present"


def test_mid_month_renewal_matches_single_contract():
    # Arrange
    january = month_range(2025, 1)
    ending = make_contract(id=1, enddate=date(2025, 1, 15))
    renewal = make_contract(id=2, startdate=date(2025, 1, 16))
    single = make_contract(id=3)

    # Act
    split = reconcile(make_employee(), [ending, renewal], [], [], [], january)
    whole = reconcile(make_employee(), [single], [], [], [], january)

    # Assert
    assert whole.contract_hours == 23 * 8
    assert split.contract_hours == whole.contract_hours
    assert split.expected_hours == whole.expected_hours


def test_holiday_outside_contract_does_not_reduce_hours():
    contract = make_contract(startdate=date(2025, 4, 22))
    holidays = [Holiday(date=date(2025, 4, 21), name="Tweede Paasdag")]

    stats = reconcile(make_employee(), [contract], holidays, [], [], WEEK_17)

    assert stats.contract_hours == 32
    assert stats.holiday_hours == 0
    assert stats.expected_hours == 32


def test_merge_employee_stats_sums_and_joins_labels():
    # Arrange
    first = EmployeeStats(
        id=1,
        name="Anna de Vries",
        contract_period="2024-01-01 - 2025-04-22",
        contract_hours=20,
        expected_hours=20,
        actual_hours=10,
    )
    second = EmployeeStats(
        id=1,
        name="Anna de Vries",
        contract_period="2025-04-23 - present",
        contract_hours=15,
        expected_hours=15,
        actual_hours=5,
    )
    other = EmployeeStats(id=2, name="Bram Jansen")

    # Act
    merged = merge_employee_stats([first, other, second])

    # Assert
    assert [s.id for s in merged] == [1, 2]
    assert merged[0].contract_hours == 35
    assert merged[0].expected_hours == 35
    assert merged[0].actual_hours == 15
    assert merged[0].contract_period == "2024-01-01 - 2025-04-22 | 2025-04-23 - present"


def test_merge_drops_no_contract_label_when_a_contract_exists():
    merged = merge_employee_stats(
        [
            EmployeeStats(id=1, name="Anna"),
            EmployeeStats(id=1, name="Anna", contract_period="2024-01-01 - present", contract_hours=40),
        ]
    )

    assert merged[0].contract_period == "2024-01-01 - present"


def test_reconcile_batch_isolates_failing_employee():
    # Arrange
    employees = [make_employee(id=1), make_employee(id=2, firstname="Bram")]
    broken = make_contract(id=9, employee_id=2)
    broken.startdate = None

    # Act
    stats, warnings = reconcile_batch(
        employees, [make_contract(id=1, employee_id=1), broken], [], [], [], WEEK_17
    )

    # Assert
    assert [s.id for s in stats] == [1]
    assert stats[0].expected_hours == 40
    assert len(warnings) == 1
    assert warnings[0].startswith("Employee 2")


def test_reconcile_batch_routes_rows_to_their_employee():
    employees = [make_employee(id=1), make_employee(id=2, firstname="Bram")]
    contracts = [make_contract(id=1, employee_id=1), make_contract(id=2, employee_id=2, even=(4,) * 5)]
    entries = [hour(1, date(2025, 4, 22), 6, employee_id=2)]

    stats, warnings = reconcile_batch(employees, contracts, [], [], entries, WEEK_17)

    by_id = {s.id: s for s in stats}
    assert warnings == []
    assert by_id[1].actual_hours == 0
    assert by_id[2].contract_hours == 20
    assert by_id[2].actual_hours == 6


def test_expected_equals_contract_every_week_without_holidays_or_leave():
    contract = make_contract(even=(8, 8, 8, 8, 8), odd=(6, 6, 6, 6, 0))

    for week in range(1, 53):
        stats = reconcile(make_employee(), [contract], [], [], [], iso_week_range(2025, week))
        assert stats.expected_hours == stats.contract_hours


def test_expected_hours_never_negative():
    # Friday holiday in an odd week where Friday is not contracted
    contract = make_contract(even=(8, 8, 8, 8, 8), odd=(0, 0, 0, 0, 0))
    holidays = [Holiday(date=date(2025, 4, 25), name="Koningsdag (verschoven)")]

    stats = reconcile(make_employee(), [contract], holidays, [], [], WEEK_17)

    assert stats.contract_hours == 0
    assert stats.holiday_hours == 0
    assert stats.expected_hours == 0
