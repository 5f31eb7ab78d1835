"""Container / VM status and power-control endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from pvedash.auth import require_api_key
from pvedash.dependencies import get_aggregator, get_inspector, target_from_query
from pvedash.models.records import StatusRecord
from pvedash.models.responses import ActionResponse
from pvedash.models.targets import Target, TargetAction
from pvedash.services.aggregator import Aggregator
from pvedash.services.inspector import TargetInspector

router = APIRouter(
    prefix="/targets",
    tags=["targets"],
    dependencies=[Depends(require_api_key)],
)


@router.get("/status", response_model=StatusRecord)
async def get_target_status(
    target: Target = Depends(target_from_query),
    inspector: TargetInspector = Depends(get_inspector),
) -> StatusRecord:
    """Live status of one container or VM (never cached)."""
    return await inspector.get_target_status(target)


@router.get("/detail", response_model=StatusRecord)
async def get_target_detail(
    target: Target = Depends(target_from_query),
    refresh: bool = Query(False),
    aggregator: Aggregator = Depends(get_aggregator),
) -> StatusRecord:
    """Status plus OS and memory enrichment, cached briefly."""
    return await aggregator.target_detail(target, refresh=refresh)


@router.post("/actions/{action}", response_model=ActionResponse)
async def control_target(
    action: TargetAction,
    target: Target = Depends(target_from_query),
    inspector: TargetInspector = Depends(get_inspector),
    aggregator: Aggregator = Depends(get_aggregator),
) -> ActionResponse:
    """Start, stop, restart, shut down or reset a container or VM."""
    message = await inspector.control_target(target, action)
    aggregator.invalidate_target(target)
    return ActionResponse(success=True, message=message)
