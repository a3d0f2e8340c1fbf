"""Restaurant-local time helpers used when building prompts and reading dates."""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60

_WEEKDAYS = {
    "monday": 0, "tuesday": 1, "wednesday": 2, "thursday": 3, "friday": 4, "saturday": 5, "sunday": 6,
    "понедельник": 0, "вторник": 1, "среда": 2, "среду": 2, "четверг": 3,
    "пятница": 4, "пятницу": 4, "суббота": 5, "субботу": 5, "воскресенье": 6,
}
_TODAY = {"today", "tonight", "сегодня", "danas", "ma", "heute", "aujourd'hui", "hoy", "oggi", "hoje", "vandaag"}
_TOMORROW = {"tomorrow", "завтра", "sutra", "holnap", "morgen", "demain", "mañana", "domani", "amanhã"}


def restaurant_now(tz_name: str, now: Optional[datetime] = None) -> datetime:
    """Current time in the restaurant's timezone, UTC if the zone is unknown."""
    now = now or datetime.now(timezone.utc)
    try:
        return now.astimezone(ZoneInfo(tz_name))
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown restaurant timezone, using UTC", extra={"timezone": tz_name})
        return now.astimezone(timezone.utc)


def parse_minutes(value: str) -> int:
    """'19:30' or '19:30:00' to minutes after midnight."""
    hours, minutes = value.split(":")[:2]
    return int(hours) * 60 + int(minutes)


def format_minutes(total: int) -> str:
    total %= MINUTES_PER_DAY
    return f"{total // 60:02d}:{total % 60:02d}"


def is_overnight_operation(opening_time: str, closing_time: str) -> bool:
    """True when the restaurant closes after midnight (closing earlier than opening)."""
    return parse_minutes(closing_time) <= parse_minutes(opening_time)


def last_bookable_time(opening_time: str, closing_time: str, duration_minutes: int) -> str:
    """Latest start time that still fits one average reservation before closing."""
    close = parse_minutes(closing_time)
    if is_overnight_operation(opening_time, closing_time):
        close += MINUTES_PER_DAY
    return format_minutes(close - duration_minutes)


def date_context(tz_name: str, now: Optional[datetime] = None) -> Dict[str, str]:
    """Today's facts in the restaurant timezone, as strings for prompts."""
    local = restaurant_now(tz_name, now)
    return {
        "today": local.date().isoformat(),
        "tomorrow": (local.date() + timedelta(days=1)).isoformat(),
        "current_time": local.strftime("%H:%M"),
        "current_year": str(local.year),
        "day_of_week": local.strftime("%A"),
    }


def resolve_relative_date(word: str, tz_name: str, now: Optional[datetime] = None) -> Optional[str]:
    """
    Turn 'today', 'tomorrow' or a weekday name into an ISO date.

    Weekdays resolve to the next occurrence, a week ahead if it is today.
    """
    word = word.lower().strip()
    today: date = restaurant_now(tz_name, now).date()
    if word in _TODAY:
        return today.isoformat()
    if word in _TOMORROW:
        return (today + timedelta(days=1)).isoformat()
    if word in _WEEKDAYS:
        ahead = (_WEEKDAYS[word] - today.weekday()) % 7 or 7
        return (today + timedelta(days=ahead)).isoformat()
    return None
