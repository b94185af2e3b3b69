import datetime
from typing import Optional
from zoneinfo import ZoneInfo

LOCAL_TZ = ZoneInfo("Australia/Sydney")


def parse_instant(value: Optional[str]) -> Optional[datetime.datetime]:
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.timezone.utc)
    return parsed


def to_utc_iso(instant: datetime.datetime) -> str:
    return instant.astimezone(datetime.timezone.utc).isoformat().replace("+00:00", "Z")


def format_hours_minutes(minutes: int) -> str:
    hours, mins = divmod(minutes, 60)
    if mins == 0:
        return f"{hours} hr"
    return f"{hours} hr {mins} min"


def format_duration(seconds: int) -> str:
    minutes = int(seconds) // 60
    if minutes < 1:
        return "< 1 min"
    if minutes == 1:
        return "1 min"
    if minutes < 60:
        return f"{minutes} mins"
    return format_hours_minutes(minutes)


def format_time(value: str) -> str:
    """Render an ISO instant as Sydney wall-clock ``h:mma``, e.g. ``5:30pm``."""
    instant = parse_instant(value)
    if instant is None:
        return value
    local = instant.astimezone(LOCAL_TZ)
    hour = local.hour % 12 or 12
    suffix = "am" if local.hour < 12 else "pm"
    return f"{hour}:{local.minute:02d}{suffix}"


def format_time_until(origin_time: str, now: datetime.datetime) -> str:
    origin = parse_instant(origin_time)
    if origin is None:
        return "now"
    minutes = int((origin - now).total_seconds() // 60)
    if minutes <= 0:
        return "now"
    if minutes == 1:
        return "in 1 min"
    if minutes < 60:
        return f"in {minutes} mins"
    return f"in {format_hours_minutes(minutes)}"
