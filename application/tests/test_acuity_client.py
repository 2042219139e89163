"""Unit tests for AcuityClient against httpx.MockTransport (no network)."""

from __future__ import annotations

import asyncio
import base64
from datetime import date

import httpx
import pytest

from src.next_appointment.acuity_client import AcuityClient
from src.next_appointment.domain import AvailabilityQuery, UpstreamError

DAY = date(2024, 3, 10)


def _fetch(handler, query=None):
    query = query or AvailabilityQuery(appointment_type_id="8355307")

    async def go():
        client = AcuityClient("12345", "secret", base_url="https://acuity.test/api/v1", transport=httpx.MockTransport(handler))
        try:
            return await client.fetch_slots_for_day(DAY, query)
        finally:
            await client.aclose()

    return asyncio.run(go())


def test_request_shape_and_basic_auth():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[{"time": "2024-03-10T15:00:00-0600", "slotsAvailable": 1}])

    slots = _fetch(handler)
    assert slots == [{"time": "2024-03-10T15:00:00-0600", "slotsAvailable": 1}]

    req = seen[0]
    assert req.method == "GET"
    assert req.url.path == "/api/v1/availability/times"
    assert req.url.params["date"] == "2024-03-10"
    assert req.url.params["appointmentTypeID"] == "8355307"
    assert "calendarID" not in req.url.params
    expected = base64.b64encode(b"12345:secret").decode()
    assert req.headers["Authorization"] == f"Basic {expected}"


def test_calendar_and_type_both_forwarded():
    seen: list[httpx.Request] = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=[])

    _fetch(handler, AvailabilityQuery(appointment_type_id="1", calendar_id="2"))
    assert seen[0].url.params["appointmentTypeID"] == "1"
    assert seen[0].url.params["calendarID"] == "2"


def test_non_2xx_raises_upstream_error_with_status():
    def handler(request):
        return httpx.Response(401, json={"status_code": 401, "message": "Unauthorized"})

    with pytest.raises(UpstreamError) as exc_info:
        _fetch(handler)
    assert exc_info.value.status_code == 401
    assert "Unauthorized" not in str(exc_info.value)


def test_timeout_raises_upstream_error():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(UpstreamError):
        _fetch(handler)


def test_connection_failure_raises_upstream_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(UpstreamError):
        _fetch(handler)


def test_unexpected_payload_raises_upstream_error():
    def handler(request):
        return httpx.Response(200, json={"error": "weird"})

    with pytest.raises(UpstreamError):
        _fetch(handler)


def test_null_body_is_empty_day():
    def handler(request):
        return httpx.Response(200, content=b"null", headers={"Content-Type": "application/json"})

    assert _fetch(handler) == []
