"""KINN RADAR API."""

import datetime as dt
import logging
from contextlib import asynccontextmanager
from typing import Literal

from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from radar.calendar import build_calendar, build_ics
from radar.config import get_settings
from radar.errors import (
    InvalidPayload,
    InvalidStatusTransition,
    RadarError,
    SheetsError,
    SourceMisconfigured,
    SourceNotFound,
    StoreError,
)
from radar.logs import setup_logging
from radar.models import EventStatus
from radar.pipeline import run_all_sources
from radar.services import Services
from radar.sheets import sync_events
from radar.sweep import prune_past_events, sweep_duplicates

logger = logging.getLogger(__name__)


class _Body(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ExtractRequest(_Body):
    source: str
    test: bool = False


class RunAllRequest(_Body):
    sources: list[str] | None = None
    test: bool = False


class CleanupRequest(_Body):
    dry_run: bool = False
    resync_sheets: bool = False


class ReviewRequest(_Body):
    ids: list[str] = Field(min_length=1)
    action: Literal["approve", "reject"]


def _error(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error, "message": message},
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


async def _maybe_resync(svc: Services, body: CleanupRequest):
    if body.dry_run or not body.resync_sheets:
        return None
    return await svc.resync_sheets()


def create_app(services: Services | None = None) -> FastAPI:
    """Build the app. Tests pass prepared *services*; otherwise they come from settings."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = services is None
        if owned:
            setup_logging(get_settings().log_level)
        app.state.services = services or Services.from_settings()
        yield
        if owned:
            await app.state.services.aclose()

    app = FastAPI(title="KINN RADAR", version="0.1.0", lifespan=lifespan)
    if services is not None:
        app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StoreError)
    async def store_error(request: Request, exc: StoreError):
        return _error(503, "store_unavailable", str(exc))

    @app.exception_handler(SourceNotFound)
    async def source_not_found(request: Request, exc: SourceNotFound):
        return _error(404, "source_not_found", str(exc))

    @app.exception_handler(SourceMisconfigured)
    async def source_misconfigured(request: Request, exc: SourceMisconfigured):
        return _error(400, "source_misconfigured", str(exc))

    @app.exception_handler(SheetsError)
    async def sheets_error(request: Request, exc: SheetsError):
        return _error(502, "sheets_error", str(exc))

    @app.get("/health")
    async def health(svc: Services = Depends(get_services)):
        try:
            events = await svc.store.count()
        except StoreError as exc:
            return _error(503, "store_unavailable", str(exc))
        return {"status": "ok", "events": events}

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    @app.post("/api/radar/inbound")
    async def inbound(request: Request, svc: Services = Depends(get_services)):
        """Resend ``email.received`` webhook.

        Answers 200 for anything a retry would not fix; only store outages
        return 503 so the sender redelivers.
        """
        try:
            payload = await request.json()
        except ValueError:
            return {"success": False, "error": "invalid_json", "message": "Body is not JSON"}
        if not isinstance(payload, dict):
            return {"success": False, "error": "invalid_payload", "message": "Body must be an object"}

        try:
            outcome = await svc.newsletter.handle(payload)
        except InvalidPayload as exc:
            logger.warning("Invalid inbound payload: %s", exc)
            return {"success": False, "error": "invalid_payload", "message": str(exc)}

        if outcome.ignored:
            return {"success": True, "ignored": True, "message": outcome.reason}
        result = outcome.result
        return {
            "success": True,
            "message": f"Processed {result.found} events, added {result.added}",
            **result.model_dump(),
        }

    @app.post("/api/radar/extract")
    async def extract(body: ExtractRequest, svc: Services = Depends(get_services)):
        result = await svc.fixed.run(body.source, test_mode=body.test)
        return result.model_dump()

    @app.post("/api/radar/extract-dynamic")
    async def extract_dynamic(body: ExtractRequest, svc: Services = Depends(get_services)):
        result = await svc.dynamic.run(body.source, test_mode=body.test)
        return result.model_dump()

    @app.post("/api/radar/run-all")
    async def run_all(body: RunAllRequest | None = None, svc: Services = Depends(get_services)):
        body = body or RunAllRequest()
        results = await run_all_sources(svc.fixed, svc.notifier, names=body.sources, test_mode=body.test)
        failed = [r.source for r in results if not r.success]
        return {
            "success": not failed,
            "message": f"{len(results) - len(failed)}/{len(results)} sources succeeded",
            "totalAdded": sum(r.added for r in results),
            "failed": failed,
            "results": [r.model_dump() for r in results],
        }

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    @app.post("/api/radar/cleanup")
    async def cleanup(body: CleanupRequest | None = None, svc: Services = Depends(get_services)):
        body = body or CleanupRequest()
        before = await svc.store.count()
        result = await sweep_duplicates(svc.store, svc.metrics, dry_run=body.dry_run)
        after = await svc.store.count()
        sheets = await _maybe_resync(svc, body)
        return {
            "success": True,
            "message": f"Removed {result.removed} of {result.total_scanned} records",
            "before": before,
            "after": after,
            **result.model_dump(),
            "sheets": sheets.model_dump() if sheets else None,
        }

    @app.post("/api/radar/cleanup-past")
    async def cleanup_past(body: CleanupRequest | None = None, svc: Services = Depends(get_services)):
        body = body or CleanupRequest()
        before = await svc.store.count()
        result = await prune_past_events(svc.store, svc.metrics, dry_run=body.dry_run)
        after = await svc.store.count()
        sheets = await _maybe_resync(svc, body)
        return {
            "success": True,
            "message": f"Removed {result.removed} past events",
            "before": before,
            "after": after,
            **result.model_dump(),
            "sheets": sheets.model_dump() if sheets else None,
        }

    # ------------------------------------------------------------------
    # Read views
    # ------------------------------------------------------------------

    @app.get("/api/radar/calendar")
    async def calendar(year: int | None = Query(None, ge=2000, le=2100), svc: Services = Depends(get_services)):
        data = await build_calendar(svc.store, year or dt.date.today().year)
        return {"success": True, **data}

    @app.get("/api/radar/calendar.ics")
    async def calendar_ics(svc: Services = Depends(get_services)):
        records = [r async for r in svc.store.list_all()]
        return Response(
            content=build_ics(records),
            media_type="text/calendar; charset=utf-8",
            headers={"Content-Disposition": 'inline; filename="kinn-radar.ics"'},
        )

    @app.get("/api/radar/metrics")
    async def metrics(svc: Services = Depends(get_services)):
        return {"success": True, **await svc.metrics.summary(svc.store)}

    @app.get("/api/radar/events/{event_id}")
    async def get_event(event_id: str, svc: Services = Depends(get_services)):
        record = await svc.store.get(event_id)
        if record is None:
            return _error(404, "not_found", f"Event {event_id} not found")
        return {"success": True, "event": record.to_public()}

    # ------------------------------------------------------------------
    # Review and reporting
    # ------------------------------------------------------------------

    @app.post("/api/radar/events/review")
    async def review(body: ReviewRequest, svc: Services = Depends(get_services)):
        target = EventStatus.APPROVED if body.action == "approve" else EventStatus.REJECTED
        updated: list[str] = []
        errors: dict[str, str] = {}
        for event_id in body.ids:
            try:
                record = await svc.store.set_status(event_id, target)
            except InvalidStatusTransition as exc:
                errors[event_id] = str(exc)
                continue
            if record is None:
                errors[event_id] = "not found"
            else:
                updated.append(event_id)
        return {
            "success": not errors,
            "message": f"{len(updated)} event(s) {target.value}",
            "updated": updated,
            "errors": errors,
        }

    @app.post("/api/radar/sheets-sync")
    async def sheets_sync(svc: Services = Depends(get_services)):
        if svc.sheets is None:
            return _error(400, "sheets_not_configured", "Google Sheets is not configured")
        result = await sync_events(svc.store, svc.sheets, svc.metrics)
        return {
            "success": True,
            "message": f"Synced {result.upcoming} upcoming events",
            **result.model_dump(),
        }

    @app.exception_handler(RadarError)
    async def radar_error(request: Request, exc: RadarError):
        logger.error("Unhandled radar error: %s", exc)
        return _error(500, type(exc).__name__, str(exc))

    return app


app = create_app()
