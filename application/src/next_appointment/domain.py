"""Query, slot and result types shared by the client, scanner and routes."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from typing import Any

NO_TYPE_MESSAGE = "No type specified"


class UpstreamError(Exception):
    """The scheduling provider could not be reached or answered badly."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class FormatError(ValueError):
    """A provider timestamp could not be parsed."""


def _clean(value: str | None) -> str | None:
    value = (value or "").strip()
    return value or None


@dataclass(frozen=True)
class AvailabilityQuery:
    appointment_type_id: str | None = None
    calendar_id: str | None = None
    locale: str = "en-US"

    def __post_init__(self) -> None:
        # Blank query parameters count as missing.
        object.__setattr__(self, "appointment_type_id", _clean(self.appointment_type_id))
        object.__setattr__(self, "calendar_id", _clean(self.calendar_id))
        object.__setattr__(self, "locale", _clean(self.locale) or "en-US")

    @property
    def is_valid(self) -> bool:
        return bool(self.appointment_type_id or self.calendar_id)

    @property
    def identifier(self) -> str | None:
        """Type ID when given, else calendar ID."""
        return self.appointment_type_id or self.calendar_id

    @property
    def cache_key(self) -> str:
        if self.appointment_type_id:
            return f"avail:type:{self.appointment_type_id}"
        return f"avail:calendar:{self.calendar_id}"


@dataclass(frozen=True)
class Slot:
    """A single open time offered by the provider."""
    time: str  # raw ISO-8601 string as returned upstream
    starts_at: datetime


@dataclass(frozen=True)
class AppointmentInfo:
    type: str
    is_available: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "isAvailable": self.is_available}


@dataclass(frozen=True)
class NextAppointmentResult:
    found: bool
    display: str
    datetime: str | None = None
    appointment: AppointmentInfo | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"found": self.found, "display": self.display}
        if self.datetime is not None:
            out["datetime"] = self.datetime
        if self.appointment is not None:
            out["appointment"] = self.appointment.to_dict()
        return out


def parse_timestamp(value: Any, default_tz: tzinfo) -> datetime:
    """
    Parse a provider timestamp into an aware datetime.

    Acuity sends offsets without a colon (2024-03-10T15:00:00-0600), which
    strptime's %z handles; fromisoformat covers the rest. Naive values are
    read in default_tz.
    """
    if isinstance(value, datetime):
        dt = value
    else:
        if not isinstance(value, str) or not value.strip():
            raise FormatError(f"Not a timestamp: {value!r}")
        text = value.strip()
        dt = None
        for fmt in ("%Y-%m-%dT%H:%M:%S%z", "%Y-%m-%dT%H:%M:%S.%f%z", "%Y-%m-%dT%H:%M%z"):
            try:
                dt = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue
        if dt is None:
            try:
                dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError as e:
                raise FormatError(f"Not a timestamp: {value!r}") from e
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=default_tz)
    return dt
