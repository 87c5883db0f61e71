"""FastAPI application that serves live counters and the timeline of a timecard."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import Body, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware

from .aggregation import summarize, task_shares
from .config import WardenSettings
from .errors import ParseError, ReplayError
from .models import Timecard
from .parsing import dump_timecard, format_instant, load_timecard, parse_timecard
from .paths import get_log_path
from .timeline import layout_timeline, reconstruct_timeline

logger = logging.getLogger(__name__)


def create_app(
    *,
    timecard_path: Optional[Path] = None,
    settings: Optional[WardenSettings] = None,
) -> FastAPI:
    """Instantiate the FastAPI application."""
    resolved_path = Path(timecard_path or get_log_path())
    resolved_settings = settings or WardenSettings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
        if resolved_path.exists():
            try:
                app.state.timecard = load_timecard(resolved_path)
            except ParseError:
                logger.exception("Could not parse %s; waiting for a push.", resolved_path)
            else:
                logger.info("Loaded timecard from %s", resolved_path)
        else:
            logger.info("No timecard at %s yet; waiting for a push.", resolved_path)
        yield

    app = FastAPI(title="Work Warden", version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.timecard_path = resolved_path
    app.state.timecard = None

    @app.get("/api/status")
    def status(request: Request) -> Dict[str, Any]:
        timecard: Optional[Timecard] = request.app.state.timecard
        return {
            "timecard_loaded": timecard is not None,
            "timecard_path": str(request.app.state.timecard_path),
            "event_count": len(timecard.events) if timecard else 0,
            "min_segment_minutes": resolved_settings.min_segment.total_seconds() / 60.0,
            "counter_refresh_seconds": resolved_settings.counter_refresh.total_seconds(),
            "timeline_refresh_seconds": resolved_settings.timeline_refresh.total_seconds(),
        }

    @app.get("/api/timecard")
    def get_timecard(request: Request) -> Dict[str, Any]:
        return dump_timecard(_current_timecard(request))

    @app.put("/api/timecard")
    def replace_timecard(
        request: Request, payload: Dict[str, Any] = Body(...)
    ) -> Dict[str, Any]:
        try:
            timecard = parse_timecard(payload)
        except ParseError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        request.app.state.timecard = timecard
        logger.info("Timecard replaced; %d events.", len(timecard.events))
        return {"event_count": len(timecard.events)}

    @app.get("/api/summary")
    def summary(request: Request) -> Dict[str, Any]:
        timecard = _current_timecard(request)
        now = datetime.now().astimezone()
        totals = summarize(timecard.current_state, now)
        return {
            "as_of": format_instant(now),
            "live": totals.live,
            "totals_ms": {
                "work": totals.work,
                "break": totals.break_,
                "lunch": totals.lunch,
                "idle": totals.idle,
            },
            "remaining_ms": totals.remaining(resolved_settings),
        }

    @app.get("/api/tasks")
    def tasks(request: Request) -> Dict[str, Any]:
        timecard = _current_timecard(request)
        now = datetime.now().astimezone()
        task_time = timecard.current_state.tasks
        active = set(task_time.active_members)
        return {
            "as_of": format_instant(now),
            "tasks": [
                {"id": member, "ms": ms, "active": member in active}
                for member, ms in task_shares(task_time, now).items()
            ],
        }

    @app.get("/api/timeline")
    def timeline(
        request: Request,
        partial: bool = Query(
            default=True,
            description="Cut open segments at the current time and include a cursor.",
        ),
    ) -> Dict[str, Any]:
        timecard = _current_timecard(request)
        now = datetime.now().astimezone() if partial else None
        try:
            rebuilt = reconstruct_timeline(timecard, now=now, settings=resolved_settings)
        except ReplayError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return {
            "midnight": format_instant(rebuilt.midnight) if rebuilt.midnight else None,
            "bands": [
                {
                    "kind": band.kind,
                    "left": band.left,
                    "width": band.width,
                    "start": format_instant(band.start),
                    "duration_ms": band.duration,
                }
                for band in layout_timeline(rebuilt)
            ],
        }

    return app


def _current_timecard(request: Request) -> Timecard:
    timecard = request.app.state.timecard
    if timecard is None:
        raise HTTPException(status_code=404, detail="No timecard available")
    return timecard
