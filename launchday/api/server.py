"""
Launch Day API Server
=====================

HTTP surface over the event log store.

Endpoints:
- GET  /health                                   -> liveness
- GET  /api/v1/launch-day/active                 -> live and imminent launches
- GET  /api/v1/launch-day/{event_id}             -> event, mission time, phase, telemetry
- GET  /api/v1/launch-day/{event_id}/{kind}      -> ReadBatch (cursor, limit)
- POST /api/v1/launch-day/{event_id}/{kind}      -> WriteOutcome

Write status codes: 200 success, 429 rate limited (Retry-After), 400
invalid, 409 already voted. Actor identity arrives in X-Actor-Id,
X-Session-Id and X-Actor-Name, set by the session layer in front.

Usage:
    uvicorn launchday.api.server:app --reload
"""
from contextlib import asynccontextmanager
from datetime import datetime
import logging
import math
from typing import Dict, Iterable, List, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from ..config import ServerConfig
from ..contracts.base import ActorContext, ErrorCode, LogKind, MissionContext
from ..contracts.records import WriteOutcome, WriteStatus
from ..store.event_log import InMemoryEventLogStore, MAX_READ_LIMIT
from ..store.milestones import MilestoneAnnouncer
from ..store.rate_limit import RateLimiter
from ..tasks import PeriodicTask
from ..telemetry.synthesizer import synthesize, telemetry_seed
from ..temporal.clock import MissionClock, elapsed, format_mission_time
from ..temporal.phases import PhaseResolver, STANDARD_PHASE_TABLE
from .schemas import model_for


logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1/launch-day"

DEMO_POLL_QUESTION = "Will the booster stick the landing?"
DEMO_POLL_OPTIONS = ("Yes, easy", "Close call", "Splashdown")


def actor_from_request(request: Request) -> ActorContext:
    headers = request.headers
    return ActorContext(
        actor_id=headers.get("x-actor-id") or None,
        session_id=headers.get("x-session-id") or None,
        display_name=headers.get("x-actor-name") or None,
    )


def _parse_kind(kind: str) -> LogKind:
    try:
        return LogKind(kind)
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Unknown log kind: {kind}")


def _error_response(status_code: int, outcome: WriteOutcome, headers: Optional[dict] = None) -> JSONResponse:
    error = {
        "code": outcome.error_code.name if outcome.error_code else None,
        "message": outcome.reason,
    }
    if outcome.retry_after_seconds is not None:
        error["retry_after_seconds"] = outcome.retry_after_seconds
    return JSONResponse(status_code=status_code, content={"success": False, "error": error}, headers=headers)


def outcome_response(outcome: WriteOutcome) -> JSONResponse:
    if outcome.status == WriteStatus.SUCCESS:
        return JSONResponse(content={"success": True, "data": outcome.to_dict()})
    if outcome.status == WriteStatus.RATE_LIMITED:
        retry_after = max(1, math.ceil(outcome.retry_after_seconds or 0))
        return _error_response(429, outcome, headers={"Retry-After": str(retry_after)})
    if outcome.error_code == ErrorCode.ALREADY_VOTED:
        return _error_response(409, outcome)
    return _error_response(400, outcome)


def active_launch(context: MissionContext, elapsed_seconds: float, resolver: PhaseResolver, live: bool) -> dict:
    phase = resolver.resolve(elapsed_seconds).phase
    return {
        "id": context.event_id,
        "name": context.name,
        "location": context.location,
        "launch_date": context.reference_instant.isoformat(),
        "is_live": live,
        "mission_time": {
            "elapsed_seconds": elapsed_seconds,
            "label": format_mission_time(elapsed_seconds),
        },
        "phase": phase.id if phase else None,
    }


def partition_active(
    events: Iterable[MissionContext],
    now: datetime,
    resolver: PhaseResolver,
    imminent_window_seconds: float
) -> Dict[str, List[dict]]:
    """
    Split events into live and imminent launches.

    Live runs from T-0 until the final phase begins; imminent covers the
    imminent_window_seconds before T-0. Live launches are listed most
    recent liftoff first, imminent ones soonest first.
    """
    mission_end = resolver.table.offsets[-1]
    live, imminent = [], []
    for context in events:
        seconds = elapsed(now, context.reference_instant)
        if 0 <= seconds < mission_end:
            live.append((seconds, active_launch(context, seconds, resolver, live=True)))
        elif -imminent_window_seconds <= seconds < 0:
            imminent.append((-seconds, active_launch(context, seconds, resolver, live=False)))
    return {
        "live": [entry for _, entry in sorted(live, key=lambda pair: pair[0])],
        "imminent": [entry for _, entry in sorted(imminent, key=lambda pair: pair[0])],
    }


def housekeeping(store: InMemoryEventLogStore, announcer: MilestoneAnnouncer, now: datetime) -> None:
    """Server tick: announce milestones, then drop idle rate-limit buckets."""
    announcer.observe_all(now)
    store.sweep_rate_limits(now)


def create_app(
    store: Optional[InMemoryEventLogStore] = None,
    config: Optional[ServerConfig] = None
) -> FastAPI:
    config = config or ServerConfig()
    store = store or InMemoryEventLogStore(rate_limiter=RateLimiter(policies=dict(config.rate_limits)))
    resolver = PhaseResolver(STANDARD_PHASE_TABLE)

    demo = config.demo_context(store.clock.now())
    if demo is not None and store.get_event(demo.event_id) is None:
        store.register_event(demo)
        store.create_poll(demo.event_id, DEMO_POLL_QUESTION, DEMO_POLL_OPTIONS, poll_id="booster-landing")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Announce milestones and sweep rate-limit buckets while serving."""
        announcer = MilestoneAnnouncer(store, resolver)
        task = PeriodicTask(
            "milestones",
            config.milestone_tick_seconds,
            lambda: housekeeping(store, announcer, store.clock.now()),
        )
        task.start()
        logger.info("Launch day API serving %d event(s)", len(store.events()))

        yield

        await task.stop()
        logger.info("Launch day API shut down")

    app = FastAPI(
        title="Launch Day API",
        version="0.1.0",
        description="Live-event logs for launch-day dashboards",
        lifespan=lifespan
    )
    app.state.store = store
    app.state.config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.cors_origins),
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
        expose_headers=["Retry-After"],
    )

    # =========================================================================
    # ENDPOINTS
    # =========================================================================

    @app.get("/health")
    async def health_check():
        return {"status": "online", "events": len(store.events())}

    # Registered before /{event_id} so "active" is never taken for an event id
    @app.get(API_PREFIX + "/active")
    async def active_launches():
        now = store.clock.now()
        return {
            "success": True,
            "data": partition_active(store.events(), now, resolver, config.imminent_window_seconds),
        }

    @app.get(API_PREFIX + "/{event_id}")
    async def get_event(event_id: str):
        """Event summary with server-side mission time, phase and telemetry."""
        context = store.get_event(event_id)
        if context is None:
            raise HTTPException(status_code=404, detail=f"Unknown event: {event_id}")

        reading = MissionClock(context.reference_instant, store.clock).read()
        telemetry = synthesize(reading.elapsed_seconds, seed=telemetry_seed(event_id))
        return {
            "success": True,
            "data": {
                "event": context.to_dict(),
                "mission_time": {
                    "elapsed_seconds": reading.elapsed_seconds,
                    "label": reading.label,
                },
                "phase": resolver.resolve(reading).to_dict(),
                "telemetry": telemetry.to_dict(),
            },
        }

    @app.get(API_PREFIX + "/{event_id}/{kind}")
    async def read_log(
        event_id: str,
        kind: str,
        cursor: Optional[int] = Query(None, ge=0),
        limit: Optional[int] = Query(None, ge=1, le=MAX_READ_LIMIT)
    ):
        batch = store.read(event_id, _parse_kind(kind), cursor=cursor, limit=limit)
        return {"success": True, "data": batch.to_dict()}

    @app.post(API_PREFIX + "/{event_id}/{kind}")
    async def write_log(event_id: str, kind: str, request: Request):
        log_kind = _parse_kind(kind)
        model = model_for(log_kind)
        if model is None:
            return outcome_response(
                WriteOutcome.invalid(f"{log_kind.value} is read-only", ErrorCode.READ_ONLY_KIND)
            )

        try:
            body = await request.json()
        except ValueError:
            return outcome_response(WriteOutcome.invalid("Body must be JSON"))

        try:
            payload = model.model_validate(body)
        except ValidationError as e:
            return outcome_response(WriteOutcome.invalid(f"Invalid payload: {e.error_count()} error(s)"))

        outcome = store.write(event_id, log_kind, payload.model_dump(), actor_from_request(request))
        return outcome_response(outcome)

    return app


app = create_app(config=ServerConfig.from_env())
