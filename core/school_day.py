# core/school_day.py

"""
Resolves the logical day: the school-local calendar date that partitions all status records.
"""

import datetime
from zoneinfo import ZoneInfo

from core.settings import DEFAULT_SCHOOL_TIMEZONE


def resolve_logical_day(
    timezone: str = DEFAULT_SCHOOL_TIMEZONE,
    now: datetime.datetime | None = None,
) -> str:
    """
    Returns today's date in the school's time zone as an ISO-8601 string.

    Args:
        timezone (str): IANA time zone name, e.g. "America/New_York".
        now (datetime.datetime | None): The instant to resolve. Naive values are treated as UTC.
            Defaults to the current time.

    Returns:
        str: The date formatted as "YYYY-MM-DD".
    """
    if now is None:
        now = datetime.datetime.now(datetime.timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=datetime.timezone.utc)

    return now.astimezone(ZoneInfo(timezone)).date().isoformat()
