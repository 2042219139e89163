"""Human-readable slot labels relative to now, in a fixed display timezone."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from zoneinfo import ZoneInfo

from babel import Locale, UnknownLocaleError
from babel import dates as babel_dates

from .domain import FormatError, parse_timestamp

DEFAULT_TZ = "America/Edmonton"
DEFAULT_LOCALE = "en_US"
INVALID_TIME = "Invalid time"

# The "Today/Tomorrow/{Weekday} at" wording stays English; only the clock
# time and month/day follow the caller's locale.
WEEKDAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


def resolve_locale(locale: str | None) -> Locale:
    """BCP 47 tag ('en-US') to a Babel Locale; unknown tags fall back to en_US."""
    tag = (locale or "").strip().replace("-", "_")
    if not tag:
        return Locale.parse(DEFAULT_LOCALE)
    try:
        return Locale.parse(tag)
    except (UnknownLocaleError, ValueError):
        return Locale.parse(DEFAULT_LOCALE)


def format_time(dt: datetime, locale: str | Locale = DEFAULT_LOCALE) -> str:
    """12-hour clock with zero-padded minutes, e.g. '3:05 PM' in en_US."""
    loc = locale if isinstance(locale, Locale) else resolve_locale(locale)
    return babel_dates.format_time(dt, "h:mm a", locale=loc)


def format_display(
    timestamp: Any,
    locale: str = "en-US",
    *,
    tz: str | ZoneInfo = DEFAULT_TZ,
    now: datetime | None = None,
) -> str:
    """
    Label a slot as 'Today at 3:00 PM', 'Tomorrow at ...', 'Friday at ...'
    (2-6 days out) or 'Apr 19 at ...' (anything else, including past days).

    Both the slot and now are converted into tz before comparing calendar
    days. Unparseable input yields 'Invalid time'.
    """
    zone = tz if isinstance(tz, ZoneInfo) else ZoneInfo(tz)
    try:
        target = parse_timestamp(timestamp, zone).astimezone(zone)
    except (FormatError, OverflowError):
        return INVALID_TIME

    current = now or datetime.now(timezone.utc)
    if current.tzinfo is None:
        current = current.replace(tzinfo=zone)
    current = current.astimezone(zone)

    loc = resolve_locale(locale)
    days_diff = (target.date() - current.date()).days
    time_str = format_time(target, loc)

    if days_diff == 0:
        return f"Today at {time_str}"
    if days_diff == 1:
        return f"Tomorrow at {time_str}"
    if 2 <= days_diff <= 6:
        return f"{WEEKDAYS[target.weekday()]} at {time_str}"
    return f"{babel_dates.format_date(target.date(), 'MMM d', locale=loc)} at {time_str}"
