"""Overview endpoints backed by the cached aggregator."""

from __future__ import annotations

from typing import Union

from fastapi import APIRouter, Depends, Query

from pvedash.auth import require_api_key
from pvedash.dependencies import get_aggregator
from pvedash.models.records import MaintenanceOverview, OverviewKind, SystemOverview
from pvedash.services.aggregator import Aggregator

router = APIRouter(
    prefix="/overview",
    tags=["overview"],
    dependencies=[Depends(require_api_key)],
)


@router.get("/{kind}", response_model=Union[SystemOverview, MaintenanceOverview])
async def get_overview(
    kind: OverviewKind,
    refresh: bool = Query(False, description="Bypass the cache"),
    aggregator: Aggregator = Depends(get_aggregator),
) -> SystemOverview | MaintenanceOverview:
    """System or maintenance overview; partial when some targets are down."""
    return await aggregator.get_overview(kind, refresh=refresh)
