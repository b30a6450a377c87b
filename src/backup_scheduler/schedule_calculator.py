import calendar
from datetime import datetime, time, timedelta
from typing import Optional

from backup_scheduler.domain.schedule import (
    BaseSchedule,
    DailySchedule,
    EveryHoursSchedule,
    EveryMinutesSchedule,
    ManualSchedule,
    MonthlySchedule,
    WeeklySchedule,
)


def calculate_next_run(schedule: BaseSchedule, now: Optional[datetime] = None) -> Optional[datetime]:
    """
    Compute the next instant at which a job with the given schedule should run.

    Interval schedules are measured from ``now`` rather than from the previous
    run, so their cadence drifts by up to one scheduler tick.

    Args:
        schedule (BaseSchedule): The job schedule.
        now (Optional[datetime]): Reference instant, defaults to the current local time.

    Returns:
        Optional[datetime]: The next run, or None when the schedule never fires on its own.
    """
    if now is None:
        now = datetime.now()

    if isinstance(schedule, ManualSchedule):
        return None
    if isinstance(schedule, EveryMinutesSchedule):
        return now + timedelta(minutes=schedule.interval)
    if isinstance(schedule, EveryHoursSchedule):
        return now + timedelta(hours=schedule.interval)
    if isinstance(schedule, DailySchedule):
        return _next_daily(schedule.time_of_day, now)
    if isinstance(schedule, WeeklySchedule):
        return _next_weekly(int(schedule.day_of_week), schedule.time_of_day, now)
    if isinstance(schedule, MonthlySchedule):
        return _next_monthly(schedule.day_of_month, schedule.time_of_day, now)
    return None

def _at(day: datetime, time_of_day: time) -> datetime:
    return datetime.combine(day.date(), time_of_day.replace(tzinfo=None), tzinfo=day.tzinfo)

def _next_daily(time_of_day: time, now: datetime) -> datetime:
    candidate = _at(now, time_of_day)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate

def _next_weekly(weekday: int, time_of_day: time, now: datetime) -> datetime:
    days_ahead = (weekday - now.weekday()) % 7
    if days_ahead == 0 and now.time().replace(tzinfo=None) >= time_of_day.replace(tzinfo=None):
        days_ahead = 7
    return _at(now + timedelta(days=days_ahead), time_of_day)

def _clamped_day(year: int, month: int, day_of_month: int, time_of_day: time, tzinfo) -> datetime:
    last_day = calendar.monthrange(year, month)[1]
    day = datetime(year, month, min(day_of_month, last_day), tzinfo=tzinfo)
    return _at(day, time_of_day)

def _next_monthly(day_of_month: int, time_of_day: time, now: datetime) -> datetime:
    candidate = _clamped_day(now.year, now.month, day_of_month, time_of_day, now.tzinfo)
    if candidate <= now:
        year, month = (now.year + 1, 1) if now.month == 12 else (now.year, now.month + 1)
        candidate = _clamped_day(year, month, day_of_month, time_of_day, now.tzinfo)
    return candidate
