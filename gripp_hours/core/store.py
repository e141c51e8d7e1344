"""
Row reader/writer over the local SQLModel store.

Reads return plain model instances detached from their session. Writes happen
inside `transaction()`, one transaction per entity type. Connectivity
failures surface as StoreUnavailableError.
"""

from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import delete, text
from sqlalchemy.exc import DisconnectionError, InterfaceError, OperationalError
from sqlmodel import Session, SQLModel, select

from gripp_hours.core.config import settings
from gripp_hours.core.exceptions import StoreUnavailableError
from gripp_hours.core.logging import get_logger
from gripp_hours.models.absence import AbsenceLineRecord, AbsenceRequest, AbsenceRequestLine
from gripp_hours.models.contract import Contract
from gripp_hours.models.employee import Employee
from gripp_hours.models.holiday import Holiday
from gripp_hours.models.hour import HourEntry
from gripp_hours.models.sync_status import SyncStatus

logger = get_logger(__name__)

_UNAVAILABLE = (OperationalError, InterfaceError, DisconnectionError)


class HourStore:
    """
    Store access used by reconciliation and sync.

    Args:
        engine: SQLAlchemy engine
        holiday_absence_type: Absence type name that marks public holidays;
            such lines never count as leave
    """

    def __init__(self, engine, holiday_absence_type: str = settings.HOLIDAY_ABSENCE_TYPE):
        self.engine = engine
        self.holiday_absence_type = holiday_absence_type

    @contextmanager
    def session(self) -> Iterator[Session]:
        try:
            with Session(self.engine, expire_on_commit=False) as session:
                yield session
        except _UNAVAILABLE as e:
            logger.error(f"Store unavailable: {e}")
            raise StoreUnavailableError(f"Store unavailable: {e}") from e

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Begin a transaction; commit on success, roll back on any error."""
        with self.session() as session:
            try:
                yield session
                session.commit()
            except Exception:
                session.rollback()
                raise

    def ping(self) -> bool:
        try:
            with self.engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            return True
        except _UNAVAILABLE as e:
            logger.warning(f"Store ping failed: {e}")
            return False

    # Reads

    def get_employees(self, active_only: bool = True) -> list[Employee]:
        with self.session() as session:
            statement = select(Employee)
            if active_only:
                statement = statement.where(Employee.active == True)  # noqa: E712
            statement = statement.order_by(Employee.firstname, Employee.lastname)
            return list(session.exec(statement).all())

    def get_contracts(self, start: date, end: date) -> list[Contract]:
        """Contracts whose validity interval intersects [start, end]."""
        with self.session() as session:
            statement = (
                select(Contract)
                .where(Contract.startdate <= end)
                .where((Contract.enddate == None) | (Contract.enddate >= start))  # noqa: E711
                .order_by(Contract.employee_id, Contract.startdate)
            )
            return list(session.exec(statement).all())

    def get_holidays(
        self, start: Optional[date] = None, end: Optional[date] = None
    ) -> list[Holiday]:
        with self.session() as session:
            statement = select(Holiday)
            if start is not None:
                statement = statement.where(Holiday.date >= start)
            if end is not None:
                statement = statement.where(Holiday.date <= end)
            return list(session.exec(statement.order_by(Holiday.date)).all())

    def get_absence_lines(self, start: date, end: date) -> list[AbsenceLineRecord]:
        """
        Absence lines in [start, end] joined with their request's employee.

        Lines of the holiday absence type are excluded; holidays are tracked
        in their own table.
        """
        with self.session() as session:
            statement = (
                select(AbsenceRequestLine, AbsenceRequest)
                .join(AbsenceRequest, AbsenceRequestLine.absencerequest_id == AbsenceRequest.id)
                .where(AbsenceRequestLine.date >= start)
                .where(AbsenceRequestLine.date <= end)
                .where(AbsenceRequest.absencetype_searchname != self.holiday_absence_type)
                .order_by(AbsenceRequestLine.date)
            )
            return [
                AbsenceLineRecord(
                    id=line.id,
                    employee_id=request.employee_id,
                    date=line.date,
                    hours_per_day=line.amount,
                    status_id=line.status_id,
                    type_name=request.absencetype_searchname,
                )
                for line, request in session.exec(statement).all()
            ]

    def get_hour_entries(
        self, start: date, end: date, employee_id: Optional[int] = None
    ) -> list[HourEntry]:
        with self.session() as session:
            statement = (
                select(HourEntry)
                .where(HourEntry.date >= start)
                .where(HourEntry.date <= end)
            )
            if employee_id is not None:
                statement = statement.where(HourEntry.employee_id == employee_id)
            return list(session.exec(statement).all())

    def get_sync_status(self) -> list[SyncStatus]:
        with self.session() as session:
            return list(session.exec(select(SyncStatus).order_by(SyncStatus.endpoint)).all())

    # Writes

    def delete_and_insert(
        self,
        session: Session,
        model: type[SQLModel],
        rows: Iterable[SQLModel],
        *where,
    ) -> int:
        """
        Replace rows of `model` matching `where` (all rows if empty).

        Rows are merged by primary key, so repeated upstream rows collapse
        into one. Must run inside `transaction()`.
        """
        statement = delete(model)
        if where:
            statement = statement.where(*where)
        session.execute(statement)

        count = 0
        for row in rows:
            session.merge(row)
            count += 1
        session.flush()
        return count

    def upsert(self, session: Session, rows: Iterable[SQLModel]) -> int:
        count = 0
        for row in rows:
            session.merge(row)
            count += 1
        session.flush()
        return count

    def record_sync_status(
        self, endpoint: str, status: str, error: Optional[str] = None
    ) -> None:
        with self.transaction() as session:
            session.merge(
                SyncStatus(
                    endpoint=endpoint,
                    last_sync=datetime.now(timezone.utc),
                    status=status,
                    error=error[:1000] if error else None,
                )
            )
