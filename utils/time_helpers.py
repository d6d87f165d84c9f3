from datetime import datetime, timezone
from typing import Optional, Union


def parse_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Read a stored timestamp as an aware UTC datetime.

    Rows written by the query client carry ISO strings with an offset; rows
    filled by SQLite's CURRENT_TIMESTAMP are naive UTC.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def format_time_ago(dt: datetime, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    minutes = int((now - dt).total_seconds() // 60)
    if minutes < 1:
        return "just now"
    if minutes < 60:
        return f"{minutes} minute{'s' if minutes != 1 else ''} ago"
    if minutes < 1440:
        hours = minutes // 60
        return f"{hours} hour{'s' if hours != 1 else ''} ago"
    days = minutes // 1440
    return f"{days} day{'s' if days != 1 else ''} ago"
