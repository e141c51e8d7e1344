"""
Employee hour statistics for a week or a month.

Queries are answered from the server-side cache when possible and otherwise
reconciled from the local store:
1. Validate the period (nothing else happens on invalid input)
2. Look up the period key in the cache unless a refresh is forced
3. Read employees, contracts, holidays, absences and hours for the period
4. Reconcile each employee; a failure for one employee becomes a warning
"""

from typing import Optional

from gripp_hours.core.cache import TTLCache, employee_month_key, employee_week_key
from gripp_hours.core.exceptions import ValidationError
from gripp_hours.core.logging import get_logger
from gripp_hours.core.periods import (
    Period,
    iso_week_range,
    month_range,
    validate_month,
    validate_week,
)
from gripp_hours.core.reconciliation import reconcile_batch
from gripp_hours.core.store import HourStore
from gripp_hours.models.stats import CacheStats, EmployeeStatsResponse, PeriodInfo

logger = get_logger(__name__)


class EmployeeStatsService:
    """
    Query surface for reconciled employee statistics.

    Owns the server-side cache. The sync orchestrator clears it through
    `clear_cache` once new data has been stored.
    """

    def __init__(self, store: HourStore, cache: Optional[TTLCache] = None):
        self.store = store
        self.cache = cache if cache is not None else TTLCache(name="server")

    def get_employee_stats(
        self,
        year: int,
        week: Optional[int] = None,
        month: Optional[int] = None,
        force_refresh: bool = False,
    ) -> EmployeeStatsResponse:
        """
        Expected vs. actual hours for every active employee in a period.

        Exactly one of `week` (ISO week) or `month` (1-12) must be given.

        Raises:
            ValidationError: invalid or ambiguous period
            StoreUnavailableError: the store could not be read
        """
        period, key = self._resolve_period(year, week, month)

        if not force_refresh:
            cached = self.cache.get(key)
            if cached is not None:
                logger.info(f"Serving {key} from cache")
                return cached.model_copy(update={"from_cache": True})

        logger.info(f"Reconciling {key} ({period.start_date} to {period.end_date})")
        start, end = period.start_date, period.end_date

        employees = self.store.get_employees(active_only=True)
        contracts = self.store.get_contracts(start, end)
        holidays = self.store.get_holidays(start, end)
        absence_lines = self.store.get_absence_lines(start, end)
        hour_entries = self.store.get_hour_entries(start, end)

        stats, warnings = reconcile_batch(
            employees, contracts, holidays, absence_lines, hour_entries, period
        )
        if warnings:
            logger.warning(f"{len(warnings)} employees failed to reconcile for {key}")

        response = EmployeeStatsResponse(
            data=stats,
            from_cache=False,
            warnings=warnings,
            period=_period_info(period),
        )
        self.cache.set(key, response)
        return response

    def clear_cache(self) -> int:
        return self.cache.clear()

    def get_cache_stats(self) -> CacheStats:
        return self.cache.stats()

    @staticmethod
    def _resolve_period(
        year: int, week: Optional[int], month: Optional[int]
    ) -> tuple[Period, str]:
        if (week is None) == (month is None):
            raise ValidationError("Specify exactly one of week or month")

        if week is not None:
            validate_week(year, week)
            return iso_week_range(year, week), employee_week_key(year, week)

        validate_month(year, month)
        return month_range(year, month), employee_month_key(year, month)


def _period_info(period: Period) -> PeriodInfo:
    return PeriodInfo(
        kind=period.kind,
        year=period.year,
        week=period.week,
        month=period.month,
        start_date=period.start_date,
        end_date=period.end_date,
        key=period.key,
    )
