from __future__ import annotations

from typing import List, Optional, Sequence

from fastapi import FastAPI, Header, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from skihaus.config import AppConfig, app_config
from skihaus.logging import get_logger, setup_logging
from skihaus.resolver import NameResolver
from skihaus.scheduler import build_scheduler
from skihaus.scrapers import build_default_providers, build_resolver
from skihaus.scrapers.base import Provider
from skihaus.services.conditions import (
    UNAUTHORIZED_HINT,
    TriggerResult,
    is_authorized,
    query_conditions,
    trigger_scrape,
)
from skihaus.storage import SnapshotStore, build_store

setup_logging(app_config.logging)
logger = get_logger(__name__)

CONDITIONS_CACHE_CONTROL = "public, max-age=3600, stale-while-revalidate=7200"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MountainPayload(CamelModel):
    name: str
    base: Optional[float] = None
    summit: Optional[float] = None
    new_snow_24: Optional[float] = None
    new_snow_48: Optional[float] = None
    new_snow_7d: Optional[float] = None
    trails_open: Optional[int] = None
    trails_total: Optional[int] = None
    lifts_open: Optional[int] = None
    lifts_total: Optional[int] = None
    surface: Optional[str] = None
    season: Optional[float] = None
    status: str
    updated_at: str
    source: str


class ConditionsResponse(CamelModel):
    ok: bool
    scraped_at: str
    stored_at: Optional[str] = None
    success_count: int
    total_count: int
    mountains: List[MountainPayload]


class MountainSummary(BaseModel):
    name: str
    base: Optional[float] = None
    new24: Optional[float] = None
    ok: bool


class ScrapeResponse(CamelModel):
    ok: bool
    scraped_at: str
    success_count: int
    total_count: int
    saved: bool
    mountains: List[MountainSummary]


class ErrorResponse(BaseModel):
    ok: bool = False
    error: str
    hint: Optional[str] = None


def _error(status_code: int, error: str, hint: Optional[str] = None) -> JSONResponse:
    body = ErrorResponse(error=error, hint=hint).model_dump(exclude_none=True)
    return JSONResponse(status_code=status_code, content=body)


def create_app(
    config: Optional[AppConfig] = None,
    *,
    providers: Optional[Sequence[Provider]] = None,
    resolver: Optional[NameResolver] = None,
    store: Optional[SnapshotStore] = None,
    enable_scheduler: Optional[bool] = None,
) -> FastAPI:
    config = config or app_config
    if resolver is None:
        resolver = build_resolver(config)
    providers = list(providers) if providers is not None else build_default_providers(config, resolver)
    if store is None:
        store = build_store(config.storage)

    app = FastAPI(title="Skihaus Conditions API")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    async def run_trigger(method: Optional[str]) -> TriggerResult:
        return await trigger_scrape(
            providers, resolver, store, method=method, timeout=config.http.timeout
        )

    @app.get("/api/conditions", response_model=ConditionsResponse)
    def get_conditions(response: Response):
        body = query_conditions(store)
        if not body["ok"]:
            return _error(503, body["error"], body["hint"])
        response.headers["Cache-Control"] = CONDITIONS_CACHE_CONTROL
        return body

    @app.api_route("/api/scrape", methods=["GET", "POST"], response_model=ScrapeResponse)
    async def scrape(
        request: Request,
        authorization: Optional[str] = Header(default=None),
    ):
        access = is_authorized(config.trigger_secret, authorization, request.query_params.get("secret"))
        if not access:
            return _error(401, "Unauthorized", UNAUTHORIZED_HINT)
        try:
            result = await run_trigger(access.method)
        except Exception as exc:
            logger.exception("trigger.failed", method=access.method, error=str(exc))
            return _error(500, str(exc))
        return result.to_dict()

    scheduler_enabled = config.scheduler.enabled if enable_scheduler is None else enable_scheduler
    scheduler = None
    if scheduler_enabled:

        async def scheduled_scrape() -> None:
            try:
                await run_trigger("cron")
            except Exception as exc:
                logger.exception("scheduler.job_failed", error=str(exc))

        scheduler = build_scheduler(scheduled_scrape, config.scheduler)

    @app.on_event("startup")
    async def _start_scheduler() -> None:
        if scheduler and not scheduler.running:
            logger.info("scheduler.start", cron=config.scheduler.cron)
            scheduler.start()

    @app.on_event("shutdown")
    async def _stop_scheduler() -> None:
        if scheduler and scheduler.running:
            logger.info("scheduler.stop")
            scheduler.shutdown()

    app.state.providers = providers
    app.state.resolver = resolver
    app.state.store = store
    app.state.scheduler = scheduler
    return app


app = create_app()
