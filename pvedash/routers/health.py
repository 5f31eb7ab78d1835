"""Health-check and cache endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from pvedash import __version__
from pvedash.auth import require_api_key
from pvedash.dependencies import Services, get_services
from pvedash.models.responses import CacheClearResponse, HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def service_health(services: Services = Depends(get_services)) -> HealthResponse:
    """Liveness check plus the live cache size (no auth required)."""
    services.cache.sweep()
    return HealthResponse(
        status="ok",
        version=__version__,
        cached_entries=len(services.cache),
    )


@router.delete(
    "/cache",
    response_model=CacheClearResponse,
    dependencies=[Depends(require_api_key)],
)
async def clear_cache(services: Services = Depends(get_services)) -> CacheClearResponse:
    """Drop every cached aggregate so the next request refetches."""
    cleared = len(services.cache)
    services.aggregator.invalidate_all()
    return CacheClearResponse(cleared=cleared)
