"""FastAPI app: GET /api/next-appointment, POST /webhook/acuity, GET /health."""

from __future__ import annotations

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Awaitable

import uvicorn
from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from .acuity_client import AcuityClient
from .availability import next_appointment
from .cache import ResultCache
from .config import ConfigError, Settings, load_settings
from .domain import AvailabilityQuery, NextAppointmentResult, UpstreamError

logger = logging.getLogger(__name__)

TIMEOUT_BODY = {"error": "Request timed out"}
FAILURE_BODY = {"error": "Failed to fetch availability"}


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging to stdout."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def _log_abandoned_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.warning("Background lookup finished with error after timeout: %r", exc)


async def run_with_watchdog(
    coro: Awaitable[NextAppointmentResult],
    timeout: float,
    pending: set[asyncio.Task],
) -> NextAppointmentResult:
    """
    Await coro for at most timeout seconds.

    On expiry raise asyncio.TimeoutError but leave the lookup running; it is
    kept in pending until done so a late upstream answer still fills the cache.
    """
    task = asyncio.ensure_future(coro)
    pending.add(task)
    task.add_done_callback(pending.discard)
    try:
        return await asyncio.wait_for(asyncio.shield(task), timeout)
    except asyncio.TimeoutError:
        task.add_done_callback(_log_abandoned_failure)
        raise


async def _sweep_forever(cache: ResultCache, interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        cache.sweep()


def create_app(
    settings: Settings | None = None,
    *,
    cache: ResultCache | None = None,
    client: Any = None,
) -> FastAPI:
    """
    Build the app with explicit dependencies.

    settings defaults to load_settings() (raises ConfigError without
    credentials). cache and client are created from settings unless given;
    tests pass stubs.
    """
    settings = settings or load_settings()
    if cache is None:
        cache = ResultCache(default_ttl=settings.cache_ttl_seconds)
    if client is None:
        client = AcuityClient(
            settings.acuity_user_id,
            settings.acuity_api_key,
            base_url=settings.acuity_base_url,
            timeout=settings.upstream_timeout_seconds,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        sweeper = asyncio.create_task(_sweep_forever(cache, max(settings.cache_ttl_seconds, 1)))
        yield
        sweeper.cancel()
        pending = list(app.state.pending_lookups)
        for task in pending:
            task.cancel()
        await asyncio.gather(sweeper, *pending, return_exceptions=True)
        aclose = getattr(client, "aclose", None)
        if aclose is not None:
            await aclose()
            logger.info("Acuity HTTP client closed")

    app = FastAPI(title="Next Appointment Proxy", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.cache = cache
    app.state.client = client
    app.state.pending_lookups = set()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Origin", "X-Requested-With", "Content-Type", "Accept"],
    )

    @app.get("/api/next-appointment")
    async def get_next_appointment(
        request: Request,
        appointment_type_id: str | None = Query(None, alias="appointmentTypeID"),
        calendar_id: str | None = Query(None, alias="calendarID"),
        locale: str = Query("en-US"),
    ) -> JSONResponse:
        state = request.app.state
        query = AvailabilityQuery(
            appointment_type_id=appointment_type_id,
            calendar_id=calendar_id,
            locale=locale,
        )
        try:
            result = await run_with_watchdog(
                next_appointment(query, client=state.client, cache=state.cache, settings=state.settings),
                state.settings.request_timeout_seconds,
                state.pending_lookups,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Next-appointment lookup for %s exceeded %.1fs",
                query.identifier,
                state.settings.request_timeout_seconds,
            )
            return JSONResponse(status_code=504, content=TIMEOUT_BODY)
        except UpstreamError as e:
            logger.error("Availability error for %s: %s", query.identifier, e)
            return JSONResponse(status_code=500, content=FAILURE_BODY)
        except Exception:
            logger.exception("Unexpected error looking up availability for %s", query.identifier)
            return JSONResponse(status_code=500, content=FAILURE_BODY)
        return JSONResponse(content=result.to_dict())

    @app.post("/webhook/acuity")
    async def acuity_webhook(request: Request) -> PlainTextResponse:
        """Any Acuity change notification invalidates every cached result."""
        request.app.state.cache.flush_all()
        return PlainTextResponse("ok", status_code=200)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    return app


def run() -> None:
    """Console entry point: load settings (exit 1 if incomplete) and serve."""
    try:
        settings = load_settings()
    except ConfigError as e:
        setup_logging()
        logger.error("%s", e)
        sys.exit(1)
    setup_logging(settings.log_level)
    app = create_app(settings)
    logger.info("API running on port %s", settings.port)
    uvicorn.run(app, host="0.0.0.0", port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
