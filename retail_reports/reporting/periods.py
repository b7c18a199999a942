"""
Period Resolution

Normalizes user-supplied or default date ranges into concrete inclusive
windows and labelled periods.
"""

import calendar
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, Optional, Tuple, Union

import structlog

from retail_reports.config import ReportingSettings, get_settings
from retail_reports.reporting.errors import InvalidDateError, InvalidFilterError

logger = structlog.get_logger(__name__)

DATE_FORMAT = "%Y-%m-%d"

DateInput = Union[str, date, None]


@dataclass(frozen=True)
class Window:
    """
    A concrete time window.

    ``start`` is inclusive; ``end`` is inclusive unless ``include_end`` is
    False, which is how the first half of a split window is expressed.
    """
    start: datetime
    end: datetime
    include_end: bool = True

    @classmethod
    def for_dates(cls, start_date: date, end_date: date) -> "Window":
        """Window from the beginning of start_date to the end of end_date"""
        return cls(
            start=datetime.combine(start_date, datetime.min.time()),
            end=datetime.combine(end_date, datetime.max.time()),
        )

    @property
    def start_date(self) -> date:
        return self.start.date()

    @property
    def end_date(self) -> date:
        return self.end.date()

    @property
    def midpoint(self) -> datetime:
        return self.start + (self.end - self.start) / 2

    @property
    def days(self) -> int:
        """Number of calendar days covered"""
        return (self.end_date - self.start_date).days + 1

    @property
    def label(self) -> str:
        """Human readable label, e.g. 'Jan 01 - Jan 31, 2025'"""
        return f"{self.start:%b %d} - {self.end:%b %d, %Y}"

    def contains(self, moment: datetime) -> bool:
        if moment < self.start:
            return False
        if self.include_end:
            return moment <= self.end
        return moment < self.end

    def split(self) -> Tuple["Window", "Window"]:
        """Split at the temporal midpoint into [start, mid) and [mid, end]"""
        mid = self.midpoint
        return (
            Window(start=self.start, end=mid, include_end=False),
            Window(start=mid, end=self.end, include_end=self.include_end),
        )


@dataclass(frozen=True)
class NamedPeriod:
    """A named reporting period (daily, weekly, monthly) and its window"""
    name: str
    window: Window

    @property
    def start_date(self) -> str:
        return self.window.start_date.strftime(DATE_FORMAT)

    @property
    def end_date(self) -> str:
        return self.window.end_date.strftime(DATE_FORMAT)


NAMED_PERIODS = ("daily", "weekly", "monthly")


def parse_date(value: DateInput, field: str = "date") -> Optional[date]:
    """
    Parse a YYYY-MM-DD string.

    Args:
        value: Date string, date object or None
        field: Filter name used in the error

    Returns:
        date object, or None when no value was supplied

    Raises:
        InvalidDateError: If the string does not parse
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    try:
        return datetime.strptime(str(value).strip(), DATE_FORMAT).date()
    except (ValueError, TypeError):
        raise InvalidDateError(field, value)


class PeriodResolver:
    """
    Turns filter dates and named periods into windows.

    Example:
        resolver = PeriodResolver()
        window = resolver.resolve("2025-01-01", "2025-01-31")
        window.label  # 'Jan 01 - Jan 31, 2025'
    """

    def __init__(
        self,
        settings: Optional[ReportingSettings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.settings = settings or get_settings().reporting
        self._clock = clock or datetime.now

    def now(self) -> datetime:
        return self._clock()

    def today(self) -> date:
        return self._clock().date()

    def _parse(self, value: DateInput, field: str) -> Optional[date]:
        try:
            return parse_date(value, field)
        except InvalidDateError:
            if not self.settings.lenient_dates:
                raise
            logger.warning("Unparseable date replaced by default", field=field, value=value)
            return None

    def resolve(
        self,
        start_date: DateInput = None,
        end_date: DateInput = None,
        default_days: Optional[int] = None,
    ) -> Window:
        """
        Resolve an optional date range.

        Defaults to the trailing window ending today.

        Raises:
            InvalidDateError: If a date does not parse (strict mode)
            InvalidFilterError: If start_date is after end_date
        """
        days = default_days if default_days is not None else self.settings.default_window_days

        start = self._parse(start_date, "start_date")
        end = self._parse(end_date, "end_date")

        if end is None:
            end = self.today()
        if start is None:
            start = end - timedelta(days=days)

        if start > end:
            raise InvalidFilterError(
                "start_date must be before or equal to end_date",
                details={"start_date": str(start), "end_date": str(end)},
            )

        return Window.for_dates(start, end)

    def resolve_day(self, day: DateInput = None) -> Window:
        """Window covering one whole day, today by default"""
        target = self._parse(day, "date") or self.today()
        return Window.for_dates(target, target)

    def resolve_named(self, period: Optional[str] = None) -> NamedPeriod:
        """
        Resolve a named period relative to today.

        daily is today, weekly is the Monday-to-Sunday week containing today
        and monthly is the calendar month. Unknown names fall back to monthly.
        """
        name = (period or "monthly").lower()
        today = self.today()

        if name == "daily":
            start, end = today, today
        elif name == "weekly":
            start = today - timedelta(days=today.weekday())
            end = start + timedelta(days=6)
        else:
            if name != "monthly":
                logger.debug("Unknown period, using monthly", period=period)
                name = "monthly"
            start = today.replace(day=1)
            end = today.replace(day=calendar.monthrange(today.year, today.month)[1])

        return NamedPeriod(name=name, window=Window.for_dates(start, end))
