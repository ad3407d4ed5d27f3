"""
Date calculation service.
All limit windows and ledger buckets are anchored on UTC calendar boundaries,
and every datetime handed to the database is naive UTC.
"""
from datetime import datetime, date, timedelta, timezone
from typing import Optional

from scholarship_points.constants import (
    SCOPE_DAILY, SCOPE_WEEKLY, SCOPE_MONTHLY, SOURCE_SCOPE_SUFFIX, WEEK_START_WEEKDAY
)


def utcnow() -> datetime:
    """Current time as naive UTC"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class DateService:
    """Service for UTC calendar window operations"""

    @staticmethod
    def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
        """
        Normalize a datetime to naive UTC.

        Aware datetimes are converted to UTC first; naive datetimes are
        assumed to already be UTC.
        """
        if value is None:
            return None
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    @staticmethod
    def start_of_day(moment: datetime) -> datetime:
        return datetime.combine(moment.date(), datetime.min.time())

    @staticmethod
    def start_of_week(moment: datetime) -> datetime:
        """Start of the calendar week (Sunday 00:00 UTC) containing moment"""
        days_back = (moment.weekday() - WEEK_START_WEEKDAY) % 7
        return DateService.start_of_day(moment) - timedelta(days=days_back)

    @staticmethod
    def start_of_month(moment: datetime) -> datetime:
        return datetime(moment.year, moment.month, 1)

    @staticmethod
    def next_month(moment: datetime) -> datetime:
        if moment.month == 12:
            return datetime(moment.year + 1, 1, 1)
        return datetime(moment.year, moment.month + 1, 1)

    @staticmethod
    def window_kind(scope: str) -> str:
        """
        Map a limit scope to its calendar window.

        "daily", "weekly", "monthly" map to themselves; source scopes such as
        "task_daily" are daily windows.

        Raises:
            ValueError: If the scope is not a known window
        """
        if scope in (SCOPE_DAILY, SCOPE_WEEKLY, SCOPE_MONTHLY):
            return scope
        if scope.endswith(SOURCE_SCOPE_SUFFIX):
            return SCOPE_DAILY
        raise ValueError(f"Unknown limit scope: {scope}")

    @staticmethod
    def window_start(scope: str, moment: datetime) -> datetime:
        """Start of the window for scope that contains moment"""
        kind = DateService.window_kind(scope)
        if kind == SCOPE_DAILY:
            return DateService.start_of_day(moment)
        if kind == SCOPE_WEEKLY:
            return DateService.start_of_week(moment)
        return DateService.start_of_month(moment)

    @staticmethod
    def window_end(scope: str, window_start: datetime) -> datetime:
        """Exclusive end of the window beginning at window_start"""
        kind = DateService.window_kind(scope)
        if kind == SCOPE_DAILY:
            return window_start + timedelta(days=1)
        if kind == SCOPE_WEEKLY:
            return window_start + timedelta(days=7)
        return DateService.next_month(window_start)

    @staticmethod
    def bucket_start(interval: str, moment: datetime) -> datetime:
        """Start of the day/week/month bucket containing moment"""
        if interval == "day":
            return DateService.start_of_day(moment)
        if interval == "week":
            return DateService.start_of_week(moment)
        if interval == "month":
            return DateService.start_of_month(moment)
        raise ValueError(f"Unknown interval: {interval}")

    @staticmethod
    def day_range(target_date: date) -> tuple[datetime, datetime]:
        """Midnight-to-midnight range for a UTC date"""
        day_start = datetime.combine(target_date, datetime.min.time())
        return day_start, day_start + timedelta(days=1)
