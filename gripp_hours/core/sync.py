"""
Sync orchestrator: mirrors Gripp entities into the local store.

Entity types are synced in order (employees, contracts, holidays, absences,
hours). Each type is fetched through the request queue, mapped to rows, and
written in its own transaction. A failing type rolls back only itself and the
sync moves on; an unavailable store aborts the whole run. A malformed
upstream record is logged and skipped.
"""

import asyncio
from datetime import date, datetime, timezone
from typing import Any, Awaitable, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from gripp_hours.api.clients.gripp_client import GrippClient
from gripp_hours.core.config import settings
from gripp_hours.core.exceptions import UpstreamError, ValidationError
from gripp_hours.core.logging import get_logger
from gripp_hours.core.request_queue import CancellationToken
from gripp_hours.core.store import HourStore
from gripp_hours.models.absence import (
    STATUS_PENDING,
    AbsenceRequest,
    AbsenceRequestLine,
)
from gripp_hours.models.contract import WEEKDAYS, Contract
from gripp_hours.models.employee import Employee
from gripp_hours.models.holiday import Holiday
from gripp_hours.models.hour import HourEntry
from gripp_hours.models.sync_status import EntitySyncResult, SyncReport

logger = get_logger(__name__)

EMPLOYEE_ENDPOINT = "employee.get"
CONTRACT_ENDPOINT = "employmentcontract.get"
ABSENCE_ENDPOINT = "absencerequest.get"
HOUR_ENDPOINT = "hour.get"
HOLIDAY_ENDPOINT = "absencerequest.get:holidays"


class MalformedRecordError(ValueError):
    """An upstream row that cannot be mapped to a store row."""


# Field helpers


def _parse_date(value: Any) -> Optional[date]:
    """
    Parse a Gripp date value.

    Gripp wraps dates as {"date": "2025-01-06 00:00:00.000000", ...}; plain
    ISO strings and date objects are accepted as well.
    """
    if value is None:
        return None

    if isinstance(value, dict):
        value = value.get("date")
        if value is None:
            return None

    if isinstance(value, datetime):
        return value.date()

    if isinstance(value, date):
        return value

    if isinstance(value, str):
        text = value.strip().split(" ")[0].split("T")[0]
        try:
            return date.fromisoformat(text)
        except ValueError:
            logger.warning(f"Could not parse date: {value}")
            return None

    return None


def _ref_id(value: Any) -> Optional[int]:
    """Id of a nested Gripp reference like {"id": 12, "searchname": "..."}."""
    if isinstance(value, dict):
        value = value.get("id")
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _searchname(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        return value.get("searchname")
    if isinstance(value, str):
        return value
    return None


def _row_id(row: Any) -> Any:
    return row.get("id") if isinstance(row, dict) else None


def _require_dict(row: Any, entity: str) -> dict[str, Any]:
    if not isinstance(row, dict):
        raise MalformedRecordError(f"{entity} record is not an object: {row!r}")
    return row


def _float(value: Any, default: float = 0.0) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        raise MalformedRecordError(f"Not a number: {value!r}")


# Row mapping


def map_employee(row: dict[str, Any]) -> Employee:
    row = _require_dict(row, "Employee")
    employee_id = _ref_id(row.get("id"))
    if employee_id is None:
        raise MalformedRecordError("Employee without id")

    return Employee(
        id=employee_id,
        firstname=row.get("firstname") or "",
        lastname=row.get("lastname") or "",
        email=row.get("email"),
        function=_searchname(row.get("function")),
        department_id=_ref_id(row.get("department")),
        department_name=_searchname(row.get("department")),
        active=bool(row.get("active", True)),
        synced_at=datetime.now(timezone.utc),
    )


def map_contract(row: dict[str, Any]) -> Contract:
    row = _require_dict(row, "Contract")
    contract_id = _ref_id(row.get("id"))
    employee_id = _ref_id(row.get("employee"))
    startdate = _parse_date(row.get("startdate"))

    if contract_id is None or employee_id is None:
        raise MalformedRecordError(f"Contract {row.get('id')} without id or employee")
    if startdate is None:
        raise MalformedRecordError(f"Contract {contract_id} without a valid startdate")

    hours = {
        f"hours_{day}_{parity}": _float(row.get(f"hours_{day}_{parity}"))
        for day in WEEKDAYS
        for parity in ("even", "odd")
    }
    price = row.get("internal_price_per_hour")

    return Contract(
        id=contract_id,
        employee_id=employee_id,
        startdate=startdate,
        enddate=_parse_date(row.get("enddate")),
        internal_price_per_hour=_float(price) if price not in (None, "") else None,
        **hours,
    )


def _request_lines(row: dict[str, Any]) -> list[dict[str, Any]]:
    lines = row.get("absencerequestline") or row.get("lines") or []
    return lines if isinstance(lines, list) else []


def map_absence_request(
    row: dict[str, Any], start: date, end: date
) -> tuple[AbsenceRequest, list[AbsenceRequestLine], int]:
    """
    Map an absence request and its lines inside [start, end].

    Returns:
        The request, its lines in range, and the number of lines skipped
        because they were malformed
    """
    row = _require_dict(row, "Absence request")
    request_id = _ref_id(row.get("id"))
    employee_id = _ref_id(row.get("employee"))
    if request_id is None or employee_id is None:
        raise MalformedRecordError(
            f"Absence request {row.get('id')} without id or employee"
        )

    request = AbsenceRequest(
        id=request_id,
        employee_id=employee_id,
        description=row.get("description"),
        absencetype_id=_ref_id(row.get("absencetype")),
        absencetype_searchname=_searchname(row.get("absencetype")) or "",
    )

    lines: list[AbsenceRequestLine] = []
    skipped = 0
    for line in _request_lines(row):
        if not isinstance(line, dict):
            logger.warning(f"Skipping absence line of request {request_id}: not an object")
            skipped += 1
            continue
        line_id = _ref_id(line.get("id"))
        line_date = _parse_date(line.get("date"))
        if line_id is None or line_date is None:
            logger.warning(
                f"Skipping absence line {line.get('id')} of request {request_id}: invalid id or date"
            )
            skipped += 1
            continue
        if not start <= line_date <= end:
            continue
        try:
            amount = _float(line.get("amount"))
        except MalformedRecordError as e:
            logger.warning(f"Skipping absence line {line_id}: {e}")
            skipped += 1
            continue

        status = line.get("absencerequeststatus") or line.get("status")
        lines.append(
            AbsenceRequestLine(
                id=line_id,
                absencerequest_id=request_id,
                date=line_date,
                amount=amount,
                description=line.get("description") or row.get("description"),
                status_id=_ref_id(status) or STATUS_PENDING,
                status_name=_searchname(status) or "",
            )
        )

    return request, lines, skipped


def map_holidays(
    rows: list[dict[str, Any]], holiday_type: str, start: date, end: date
) -> list[Holiday]:
    """Holidays are absence requests of the holiday type, one per date."""
    holidays: dict[date, Holiday] = {}
    for row in rows:
        if not isinstance(row, dict) or _searchname(row.get("absencetype")) != holiday_type:
            continue
        for line in _request_lines(row):
            if not isinstance(line, dict):
                continue
            day = _parse_date(line.get("date"))
            if day is None or not start <= day <= end or day in holidays:
                continue
            name = line.get("description") or row.get("description") or holiday_type
            holidays[day] = Holiday(date=day, name=name)
    return sorted(holidays.values(), key=lambda h: h.date)


def map_hour(row: dict[str, Any]) -> HourEntry:
    row = _require_dict(row, "Hour")
    hour_id = _ref_id(row.get("id"))
    employee_id = _ref_id(row.get("employee"))
    hour_date = _parse_date(row.get("date"))
    if hour_id is None or employee_id is None or hour_date is None:
        raise MalformedRecordError(f"Hour {row.get('id')} without id, employee or date")

    return HourEntry(
        id=hour_id,
        employee_id=employee_id,
        date=hour_date,
        amount=_float(row.get("amount")),
        description=row.get("description"),
        status_id=_ref_id(row.get("status")),
        project_id=_ref_id(row.get("offerprojectbase")),
        project_line_id=_ref_id(row.get("offerprojectline")),
    )


def _map_rows(entity: str, rows: list[dict[str, Any]], mapper: Callable) -> tuple[list, int]:
    mapped = []
    skipped = 0
    for row in rows:
        try:
            mapped.append(mapper(row))
        except MalformedRecordError as e:
            logger.warning(f"Skipping malformed {entity} record {_row_id(row)}: {e}")
            skipped += 1
    return mapped, skipped


class SyncOrchestrator:
    """
    Pulls employees, contracts, holidays, absences and hours for a date range.

    Args:
        client: Gripp client (all calls go through its request queue)
        store: Local store
        on_complete: Called after a run that stored anything; used to clear
            the server-side stats cache
        holiday_absence_type: Absence type that marks public holidays
    """

    def __init__(
        self,
        client: GrippClient,
        store: HourStore,
        on_complete: Optional[Callable[[], Any]] = None,
        holiday_absence_type: str = settings.HOLIDAY_ABSENCE_TYPE,
    ):
        self.client = client
        self.store = store
        self.on_complete = on_complete
        self.holiday_absence_type = holiday_absence_type
        self._lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    async def sync_all(
        self, start: date, end: date, token: Optional[CancellationToken] = None
    ) -> SyncReport:
        """
        Run a full sync for [start, end].

        Raises:
            ValidationError: if end is before start
            StoreUnavailableError: the store could not be reached
            RequestCancelledError: the token was cancelled
        """
        if end < start:
            raise ValidationError(f"End date {end} is before start date {start}")

        async with self._lock:
            logger.info(f"Starting sync for {start} to {end}")
            report = SyncReport(start_date=start, end_date=end)
            absence_rows: list[dict[str, Any]] = []

            async def fetch_absences() -> list[dict[str, Any]]:
                if not absence_rows:
                    absence_rows.extend(await self.client.fetch_all(ABSENCE_ENDPOINT, token=token))
                return absence_rows

            async def fetch_hours() -> list[dict[str, Any]]:
                return await self.client.fetch_all(
                    HOUR_ENDPOINT,
                    filters=[
                        {
                            "field": "hour.date",
                            "operator": "between",
                            "value": start.isoformat(),
                            "value2": end.isoformat(),
                        }
                    ],
                    token=token,
                )

            await self._sync_entity(
                report,
                "employees",
                EMPLOYEE_ENDPOINT,
                lambda: self.client.fetch_all(EMPLOYEE_ENDPOINT, token=token),
                lambda rows: _map_rows("employee", rows, map_employee),
                lambda session, rows: self.store.delete_and_insert(session, Employee, rows),
            )

            await self._sync_entity(
                report,
                "contracts",
                CONTRACT_ENDPOINT,
                lambda: self.client.fetch_all(
                    CONTRACT_ENDPOINT,
                    options={"orderings": [{"field": "employmentcontract.startdate", "direction": "asc"}]},
                    token=token,
                ),
                lambda rows: _map_rows("contract", rows, map_contract),
                lambda session, rows: self.store.delete_and_insert(session, Contract, rows),
            )

            await self._sync_entity(
                report,
                "holidays",
                HOLIDAY_ENDPOINT,
                fetch_absences,
                lambda rows: (map_holidays(rows, self.holiday_absence_type, start, end), 0),
                lambda session, rows: self.store.delete_and_insert(
                    session, Holiday, rows, Holiday.date >= start, Holiday.date <= end
                ),
            )

            await self._sync_entity(
                report,
                "absences",
                ABSENCE_ENDPOINT,
                fetch_absences,
                lambda rows: self._build_absences(rows, start, end),
                lambda session, rows: self._write_absences(session, rows, start, end),
            )

            await self._sync_entity(
                report,
                "hours",
                HOUR_ENDPOINT,
                fetch_hours,
                lambda rows: _map_rows("hour", rows, map_hour),
                lambda session, rows: self.store.delete_and_insert(
                    session, HourEntry, rows, HourEntry.date >= start, HourEntry.date <= end
                ),
            )

            if any(r.status == "success" for r in report.results) and self.on_complete:
                self.on_complete()
                report.cache_cleared = True

            failed = [r.entity for r in report.results if r.status != "success"]
            if failed:
                logger.warning(f"Sync for {start} to {end} finished with failures: {failed}")
            else:
                logger.info(f"Sync for {start} to {end} completed successfully")
            return report

    async def _sync_entity(
        self,
        report: SyncReport,
        entity: str,
        endpoint: str,
        fetch: Callable[[], Awaitable[list[dict[str, Any]]]],
        build: Callable[[list[dict[str, Any]]], tuple[list, int]],
        write: Callable[[Any, list], int],
    ) -> None:
        result = EntitySyncResult(entity=entity, endpoint=endpoint)
        try:
            raw_rows = await fetch()
            result.fetched = len(raw_rows)
            rows, result.skipped = build(raw_rows)

            with self.store.transaction() as session:
                result.stored = write(session, rows)

            self.store.record_sync_status(endpoint, "success")
            logger.info(
                f"Synced {entity}: fetched {result.fetched}, stored {result.stored}, skipped {result.skipped}"
            )
        except (UpstreamError, SQLAlchemyError) as e:
            result.status = "error"
            result.error = str(e)
            logger.error(f"Error syncing {entity}, rolled back: {e}", exc_info=True)
            try:
                self.store.record_sync_status(endpoint, "error", str(e))
            except SQLAlchemyError as status_error:
                logger.error(f"Could not record sync status for {endpoint}: {status_error}")

        report.results.append(result)

    def _build_absences(
        self, rows: list[dict[str, Any]], start: date, end: date
    ) -> tuple[list[tuple[AbsenceRequest, list[AbsenceRequestLine]]], int]:
        built = []
        skipped = 0
        for row in rows:
            try:
                request, lines, bad_lines = map_absence_request(row, start, end)
            except MalformedRecordError as e:
                logger.warning(f"Skipping malformed absence request {_row_id(row)}: {e}")
                skipped += 1
                continue
            skipped += bad_lines
            if lines:
                built.append((request, lines))
        return built, skipped

    def _write_absences(
        self,
        session,
        built: list[tuple[AbsenceRequest, list[AbsenceRequestLine]]],
        start: date,
        end: date,
    ) -> int:
        self.store.upsert(session, [request for request, _ in built])
        return self.store.delete_and_insert(
            session,
            AbsenceRequestLine,
            [line for _, lines in built for line in lines],
            AbsenceRequestLine.date >= start,
            AbsenceRequestLine.date <= end,
        )
