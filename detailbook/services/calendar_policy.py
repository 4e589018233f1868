"""
Business calendar policy: weekly operating hours in the business time zone,
blackout dates, slot granularity, buffer between jobs and minimum lead time.

Local wall-clock hours are turned into absolute UTC instants per date via
zoneinfo, so a day that straddles a DST change gets a window whose UTC length
differs from its neighbours.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, time, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from detailbook.core.config import Settings

MINUTES_PER_DAY = 24 * 60
DAY_NAMES = ["mon", "tue", "wed", "thu", "fri", "sat", "sun"]


def time_str_to_minutes(value: str) -> int:
    """'09:30' -> 570. '24:00' is accepted as end of day."""
    try:
        hh, mm = value.strip().split(":")
        hours, minutes = int(hh), int(mm)
    except ValueError:
        raise ValueError(f"Invalid time {value!r}, expected HH:MM") from None
    total = hours * 60 + minutes
    if not 0 <= minutes < 60 or not 0 <= total <= MINUTES_PER_DAY:
        raise ValueError(f"Invalid time {value!r}, expected HH:MM")
    return total


@dataclass(frozen=True)
class OperatingHours:
    """Open/close as minutes after local midnight; close may be 1440 (24:00)."""

    open_minute: int
    close_minute: int

    def __post_init__(self) -> None:
        if not 0 <= self.open_minute < self.close_minute <= MINUTES_PER_DAY:
            raise ValueError(
                f"Operating hours must open before they close, got {self.open_minute}-{self.close_minute}"
            )

    @classmethod
    def parse(cls, value: str) -> "OperatingHours":
        """Parse 'HH:MM-HH:MM'."""
        parts = value.split("-")
        if len(parts) != 2:
            raise ValueError(f"Invalid operating hours {value!r}, expected HH:MM-HH:MM")
        return cls(time_str_to_minutes(parts[0]), time_str_to_minutes(parts[1]))


def _local_instant(day: date, minute_of_day: int, tz: ZoneInfo) -> datetime:
    days, minute = divmod(minute_of_day, MINUTES_PER_DAY)
    local = datetime.combine(day + timedelta(days=days), time(minute // 60, minute % 60), tzinfo=tz)
    return local.astimezone(UTC)


@dataclass(frozen=True)
class CalendarPolicy:
    time_zone: str
    weekly_hours: Mapping[int, OperatingHours] = field(default_factory=dict)
    slot_granularity_minutes: int = 30
    buffer_minutes: int = 0
    min_lead_time_minutes: int = 0
    blackout_dates: frozenset[date] = frozenset()
    booking_horizon_days: int = 0

    def __post_init__(self) -> None:
        try:
            ZoneInfo(self.time_zone)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown time zone {self.time_zone!r}") from None
        if self.slot_granularity_minutes <= 0:
            raise ValueError("slot_granularity_minutes must be > 0")
        if self.buffer_minutes < 0 or self.min_lead_time_minutes < 0 or self.booking_horizon_days < 0:
            raise ValueError("buffer, lead time and horizon must be >= 0")

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.time_zone)

    @property
    def granularity(self) -> timedelta:
        return timedelta(minutes=self.slot_granularity_minutes)

    @property
    def buffer(self) -> timedelta:
        return timedelta(minutes=self.buffer_minutes)

    def to_local(self, instant: datetime) -> datetime:
        return instant.astimezone(self.tz)

    def local_date(self, instant: datetime) -> date:
        return self.to_local(instant).date()

    def earliest_start(self, now: datetime) -> datetime:
        return now + timedelta(minutes=self.min_lead_time_minutes)

    def is_open_on(self, day: date, now: datetime | None = None) -> bool:
        if day in self.blackout_dates or day.weekday() not in self.weekly_hours:
            return False
        if now is not None and self.booking_horizon_days:
            last_day = self.local_date(now) + timedelta(days=self.booking_horizon_days)
            if day > last_day:
                return False
        return True

    def operating_window(self, day: date, now: datetime | None = None) -> tuple[datetime, datetime] | None:
        """UTC [open, close) for the local calendar day, or None when closed."""
        if not self.is_open_on(day, now):
            return None
        hours = self.weekly_hours[day.weekday()]
        tz = self.tz
        return _local_instant(day, hours.open_minute, tz), _local_instant(day, hours.close_minute, tz)

    def day_bounds(self, day: date) -> tuple[datetime, datetime]:
        """UTC instants of local midnight to next local midnight."""
        tz = self.tz
        return _local_instant(day, 0, tz), _local_instant(day, MINUTES_PER_DAY, tz)


def parse_weekly_hours(table: Mapping[str, str | None]) -> dict[int, OperatingHours]:
    """Accepts day-name keys ("mon") or weekday-number keys ("0" = Monday).

    A null or empty value marks the day closed.
    """
    hours: dict[int, OperatingHours] = {}
    for key, value in table.items():
        k = str(key).strip().lower()
        if k.isdigit() and int(k) < 7:
            weekday = int(k)
        elif k[:3] in DAY_NAMES:
            weekday = DAY_NAMES.index(k[:3])
        else:
            raise ValueError(f"Unknown weekday {key!r} in business hours")
        if value:
            hours[weekday] = OperatingHours.parse(value)
    return hours


def build_policy(
    time_zone: str,
    hours: Mapping[str, str | None],
    slot_granularity_minutes: int = 30,
    buffer_minutes: int = 0,
    min_lead_time_minutes: int = 0,
    blackout_dates: Iterable[date] = (),
    booking_horizon_days: int = 0,
) -> CalendarPolicy:
    return CalendarPolicy(
        time_zone=time_zone,
        weekly_hours=parse_weekly_hours(hours),
        slot_granularity_minutes=slot_granularity_minutes,
        buffer_minutes=buffer_minutes,
        min_lead_time_minutes=min_lead_time_minutes,
        blackout_dates=frozenset(blackout_dates),
        booking_horizon_days=booking_horizon_days,
    )


def policy_from_settings(s: Settings) -> CalendarPolicy:
    return build_policy(
        time_zone=s.business_time_zone,
        hours=s.business_hours,
        slot_granularity_minutes=s.slot_granularity_minutes,
        buffer_minutes=s.buffer_minutes,
        min_lead_time_minutes=s.min_lead_time_minutes,
        blackout_dates=s.blackout_dates,
        booking_horizon_days=s.booking_horizon_days,
    )
