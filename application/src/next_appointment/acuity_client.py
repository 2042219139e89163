"""Acuity Scheduling REST client: one GET per calendar day of availability.

All calls go through a single httpx.AsyncClient so they share a connection
pool and do not block the event loop. The Basic credential is built once
from the account's user ID and API key and sent on every request.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

import httpx

from .domain import AvailabilityQuery, UpstreamError

logger = logging.getLogger(__name__)

AVAILABILITY_PATH = "/availability/times"
DEFAULT_TIMEOUT_SECONDS = 7.0


class AcuityClient:
    def __init__(
        self,
        user_id: str,
        api_key: str,
        base_url: str = "https://acuityscheduling.com/api/v1",
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Args:
            user_id: Acuity numeric user ID (Basic auth username).
            api_key: Acuity API key (Basic auth password).
            base_url: API root, without trailing slash.
            timeout: Per-request timeout in seconds.
            transport: Optional transport for tests (httpx.MockTransport).
        """
        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            auth=httpx.BasicAuth(user_id, api_key),
            timeout=httpx.Timeout(timeout),
            headers={"Accept": "application/json"},
            transport=transport,
        )

    async def fetch_slots_for_day(self, day: date, query: AvailabilityQuery) -> list[dict[str, Any]]:
        """Return the raw slot objects ({"time": ...}) offered on `day`."""
        params = {"date": day.isoformat()}
        if query.appointment_type_id:
            params["appointmentTypeID"] = query.appointment_type_id
        if query.calendar_id:
            params["calendarID"] = query.calendar_id

        try:
            resp = await self._http.get(AVAILABILITY_PATH, params=params)
        except httpx.TimeoutException as e:
            logger.warning("Acuity request timed out for %s: %s", day, e)
            raise UpstreamError(f"Timed out fetching availability for {day}") from e
        except httpx.HTTPError as e:
            logger.warning("Acuity request failed for %s: %s", day, e)
            raise UpstreamError(f"Failed to fetch availability for {day}") from e

        if not resp.is_success:
            logger.warning(
                "Acuity returned %s for %s: %s", resp.status_code, day, resp.text[:500]
            )
            raise UpstreamError(f"Acuity returned HTTP {resp.status_code}", status_code=resp.status_code)

        try:
            data = resp.json()
        except ValueError as e:
            raise UpstreamError("Acuity returned a non-JSON body", status_code=resp.status_code) from e
        if data is None:
            return []
        if not isinstance(data, list):
            logger.warning("Unexpected availability payload for %s: %r", day, data)
            raise UpstreamError("Acuity returned an unexpected payload", status_code=resp.status_code)
        return [s for s in data if isinstance(s, dict)]

    async def aclose(self) -> None:
        await self._http.aclose()
