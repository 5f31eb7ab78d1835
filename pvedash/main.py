"""FastAPI application entry-point."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from pvedash import __version__
from pvedash.config import Settings
from pvedash.dependencies import Services, build_services
from pvedash.errors import (
    DashboardError,
    InvalidTarget,
    LaunchFailure,
    RemoteCommandFailure,
    ScriptNotFound,
    SuggestionUnavailable,
)
from pvedash.routers import health, host, maintenance, overview, scripts, suggestions, targets
from pvedash.utils.logging import get_logger, setup_logging

log = get_logger(__name__)

_STATUS_FOR_ERROR: list[tuple[type[DashboardError], int]] = [
    (InvalidTarget, 422),
    (ScriptNotFound, 404),
    (LaunchFailure, 503),
    (RemoteCommandFailure, 502),
    (SuggestionUnavailable, 502),
]


async def dashboard_error_handler(request: Request, exc: DashboardError) -> JSONResponse:
    code = 500
    for exc_type, http_status in _STATUS_FOR_ERROR:
        if isinstance(exc, exc_type):
            code = http_status
            break
    log.warning("request.failed", path=request.url.path, code=exc.code, error=str(exc))
    return JSONResponse(status_code=code, content={"detail": str(exc), "code": exc.code})


def create_app(
    settings: Settings | None = None,
    services: Services | None = None,
) -> FastAPI:
    """Build the app with its services constructed up front."""
    cfg = settings or (services.settings if services else Settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup / shutdown hooks."""
        setup_logging(cfg.pve_log_level, json_logs=cfg.pve_log_json)
        log.info("app.started", host=cfg.pve_host_alias, version=__version__)
        yield
        app.state.services.cache.clear()

    app = FastAPI(
        title="Proxmox Dashboard API",
        description="Cached state and control for a Proxmox host, its containers and VMs",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.services = services or build_services(cfg)
    app.add_exception_handler(DashboardError, dashboard_error_handler)

    app.include_router(health.router)
    app.include_router(overview.router)
    app.include_router(targets.router)
    app.include_router(host.router)
    app.include_router(maintenance.router)
    app.include_router(scripts.router)
    app.include_router(suggestions.router)
    return app


app = create_app()
