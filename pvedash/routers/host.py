"""Virtualization host endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from pvedash.auth import require_api_key
from pvedash.dependencies import get_aggregator, get_inspector
from pvedash.models.records import HostHealth, HostInfo, PerformanceMetrics
from pvedash.services.aggregator import Aggregator
from pvedash.services.inspector import TargetInspector

router = APIRouter(
    prefix="/host",
    tags=["host"],
    dependencies=[Depends(require_api_key)],
)


@router.get("/info", response_model=HostInfo)
async def get_host_info(
    refresh: bool = Query(False),
    aggregator: Aggregator = Depends(get_aggregator),
) -> HostInfo:
    return await aggregator.host_info(refresh=refresh)


@router.get("/health", response_model=HostHealth)
async def get_host_health(
    inspector: TargetInspector = Depends(get_inspector),
) -> HostHealth:
    """Live disk / memory / load figures; errors if the host is unreachable."""
    return await inspector.host_health()


@router.get("/metrics", response_model=PerformanceMetrics)
async def get_performance_metrics(
    refresh: bool = Query(False),
    aggregator: Aggregator = Depends(get_aggregator),
) -> PerformanceMetrics:
    return await aggregator.performance_metrics(refresh=refresh)
