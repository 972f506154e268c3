"""Fixed daily check slots (e.g. 8:00, 12:00, 16:00). Not a rolling interval from the last run."""
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo


def next_scheduled_time(now: datetime, hours: list[int]) -> datetime:
    """
    The next configured hour strictly after now's hour today, else the first hour tomorrow.
    Keeps now's tzinfo.
    """
    slots = sorted(hours)
    next_hour = next((h for h in slots if h > now.hour), None)
    if next_hour is None:
        tomorrow = now + timedelta(days=1)
        return tomorrow.replace(hour=slots[0], minute=0, second=0, microsecond=0)
    return now.replace(hour=next_hour, minute=0, second=0, microsecond=0)


def next_slot_utc(now: datetime, hours: list[int], tz_name: str) -> datetime:
    """Apply the slots in tz_name wall-clock time; return the slot in UTC."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local = now.astimezone(ZoneInfo(tz_name))
    return next_scheduled_time(local, hours).astimezone(timezone.utc)


def minutes_until(target: datetime, now: datetime) -> int:
    return max(0, round((target - now).total_seconds() / 60))
