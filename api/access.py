"""Paywall window.

Free callers see the days that are 12-14 days old (Eastern time) and
everything older than 90 days; pro callers see everything. Day arithmetic is
done on calendar dates in the dashboard timezone.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional, Tuple
from zoneinfo import ZoneInfo

from ingestion.settings import get_settings

FREE_WINDOW = (12, 14)
ARCHIVE_AFTER_DAYS = 90
DASHBOARD_DAYS = 14
TIMEFRAME_DAYS = {"7d": 7, "30d": 30, "90d": 90, "all": None}


class DayLocked(PermissionError):
    def __init__(self, day: date):
        super().__init__(f"{day.isoformat()} requires a Pro subscription")
        self.day = day


def dashboard_tz() -> ZoneInfo:
    return ZoneInfo(get_settings().dashboard_timezone)


def local_date(moment: datetime, tz: Optional[ZoneInfo] = None) -> date:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(tz or dashboard_tz()).date()


def today(now: Optional[datetime] = None, tz: Optional[ZoneInfo] = None) -> date:
    return local_date(now or datetime.now(timezone.utc), tz)


def day_bounds(day: date, tz: Optional[ZoneInfo] = None) -> Tuple[datetime, datetime]:
    """[start, end) of a local calendar day, in UTC."""
    zone = tz or dashboard_tz()
    start = datetime.combine(day, time.min, tzinfo=zone)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=zone)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def days_ago(day: date, current: date) -> int:
    return (current - day).days


def is_day_locked(age_days: int, is_pro: bool) -> bool:
    if is_pro:
        return False
    if age_days > ARCHIVE_AFTER_DAYS:
        return False
    low, high = FREE_WINDOW
    return not (low <= age_days <= high)


def ensure_day_unlocked(day: date, current: date, is_pro: bool) -> None:
    if is_day_locked(days_ago(day, current), is_pro):
        raise DayLocked(day)


@dataclass(frozen=True)
class DashboardDay:
    day_index: int
    day: date
    is_locked: bool
    is_free_day: bool


def dashboard_days(current: date, is_pro: bool, count: int = DASHBOARD_DAYS) -> List[DashboardDay]:
    """The last `count` days, newest first, with their lock flags."""
    low, high = FREE_WINDOW
    return [
        DashboardDay(
            day_index=i,
            day=current - timedelta(days=i),
            is_locked=is_day_locked(i, is_pro),
            is_free_day=low <= i <= high,
        )
        for i in range(count)
    ]


def record_visible(published_at: Optional[datetime], now: datetime, is_pro: bool, tz: Optional[ZoneInfo] = None) -> bool:
    if is_pro:
        return True
    if published_at is None:
        return False
    zone = tz or dashboard_tz()
    return not is_day_locked(days_ago(local_date(published_at, zone), local_date(now, zone)), is_pro)


def within_timeframe(published_at: Optional[datetime], now: datetime, timeframe: str, tz: Optional[ZoneInfo] = None) -> bool:
    if timeframe not in TIMEFRAME_DAYS:
        raise ValueError(f"unknown timeframe: {timeframe}")
    limit = TIMEFRAME_DAYS[timeframe]
    if limit is None:
        return True
    if published_at is None:
        return False
    zone = tz or dashboard_tz()
    return days_ago(local_date(published_at, zone), local_date(now, zone)) <= limit
