"""Day-by-day availability scan and the cached next-appointment lookup."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Protocol
from zoneinfo import ZoneInfo

from .cache import ResultCache
from .config import Settings
from .domain import (
    NO_TYPE_MESSAGE,
    AppointmentInfo,
    AvailabilityQuery,
    FormatError,
    NextAppointmentResult,
    Slot,
    parse_timestamp,
)
from .formatting import format_display

logger = logging.getLogger(__name__)

HORIZON_DAYS = 30


class SlotSource(Protocol):
    async def fetch_slots_for_day(self, day: date, query: AvailabilityQuery) -> list[dict[str, Any]]:
        ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_slots(raw: list[dict[str, Any]], tz: ZoneInfo) -> list[Slot]:
    """Keep entries with a usable time, sorted ascending (upstream order is not guaranteed)."""
    slots: list[Slot] = []
    for entry in raw:
        value = entry.get("time")
        if not value:
            continue
        try:
            slots.append(Slot(time=value, starts_at=parse_timestamp(value, tz)))
        except FormatError:
            logger.debug("Skipping slot with unparseable time: %r", value)
    slots.sort(key=lambda s: s.starts_at)
    return slots


async def find_next_slot(
    client: SlotSource,
    query: AvailabilityQuery,
    *,
    tz: ZoneInfo,
    horizon_days: int = HORIZON_DAYS,
    clock: Callable[[], datetime] | None = None,
) -> Slot | None:
    """
    Return the first slot strictly after now, probing today then each
    following day up to horizon_days (inclusive). None if nothing qualifies.

    Days are calendar days in tz. One upstream call per day, stopping at the
    first day that has a future slot.
    """
    clock = clock or _utcnow
    today = clock().astimezone(tz).date()
    for offset in range(horizon_days + 1):
        day = today + timedelta(days=offset)
        raw = await client.fetch_slots_for_day(day, query)
        now = clock()
        for slot in _parse_slots(raw, tz):
            if slot.starts_at > now:
                logger.debug("Next slot for %s found on day %d: %s", query.identifier, offset, slot.time)
                return slot
    return None


async def next_appointment(
    query: AvailabilityQuery,
    *,
    client: SlotSource,
    cache: ResultCache,
    settings: Settings,
    clock: Callable[[], datetime] | None = None,
) -> NextAppointmentResult:
    """Validate, consult the cache, scan on a miss, format and store."""
    if not query.is_valid:
        return NextAppointmentResult(found=False, display=NO_TYPE_MESSAGE)

    key = query.cache_key
    cached = cache.get(key)
    if cached is not None:
        logger.debug("Cache hit for %s", key)
        return cached
    logger.debug("Cache miss for %s", key)

    tz = settings.tz
    slot = await find_next_slot(
        client,
        query,
        tz=tz,
        horizon_days=settings.search_horizon_days,
        clock=clock,
    )
    if slot is None:
        result = NextAppointmentResult(
            found=False,
            display=f"No availability in next {settings.search_horizon_days} days",
        )
    else:
        result = NextAppointmentResult(
            found=True,
            display=format_display(slot.starts_at, query.locale, tz=tz, now=(clock or _utcnow)()),
            datetime=slot.time,
            appointment=AppointmentInfo(type=query.identifier or ""),
        )

    cache.set(key, result, settings.cache_ttl_seconds)
    return result
