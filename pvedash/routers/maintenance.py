"""Service, binary and config-file endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from pvedash.auth import require_api_key
from pvedash.dependencies import get_aggregator, get_inspector, target_from_query
from pvedash.models.records import BinaryRecord, ConfigRecord, ConfigWriteResult, ServiceRecord
from pvedash.models.responses import ActionResponse, ConfigContentResponse, ConfigWriteRequest
from pvedash.models.targets import ServiceAction, Target
from pvedash.services.aggregator import Aggregator
from pvedash.services.inspector import TargetInspector

router = APIRouter(tags=["maintenance"], dependencies=[Depends(require_api_key)])


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


@router.get("/services/{service_name}", response_model=ServiceRecord)
async def get_service_status(
    service_name: str,
    target: Target = Depends(target_from_query),
    inspector: TargetInspector = Depends(get_inspector),
) -> ServiceRecord:
    return await inspector.get_service_status(target, service_name)


@router.post("/services/{service_name}/{action}", response_model=ActionResponse)
async def control_service(
    service_name: str,
    action: ServiceAction,
    target: Target = Depends(target_from_query),
    inspector: TargetInspector = Depends(get_inspector),
    aggregator: Aggregator = Depends(get_aggregator),
) -> ActionResponse:
    message = await inspector.control_service(target, service_name, action)
    aggregator.invalidate_maintenance()
    return ActionResponse(success=True, message=message)


# ---------------------------------------------------------------------------
# Binaries
# ---------------------------------------------------------------------------


@router.get("/binaries/{binary_name}", response_model=BinaryRecord)
async def check_binary(
    binary_name: str,
    target: Target = Depends(target_from_query),
    inspector: TargetInspector = Depends(get_inspector),
) -> BinaryRecord:
    """Locate a binary ($PATH, then common directories) and its version."""
    return await inspector.check_binary(target, binary_name)


# ---------------------------------------------------------------------------
# Config files
# ---------------------------------------------------------------------------


@router.get("/configs/check", response_model=ConfigRecord)
async def check_config(
    path: str = Query(..., min_length=1),
    target: Target = Depends(target_from_query),
    inspector: TargetInspector = Depends(get_inspector),
) -> ConfigRecord:
    return await inspector.check_config(target, path)


@router.get("/configs/content", response_model=ConfigContentResponse)
async def read_config(
    path: str = Query(..., min_length=1),
    target: Target = Depends(target_from_query),
    inspector: TargetInspector = Depends(get_inspector),
) -> ConfigContentResponse:
    content = await inspector.read_config(target, path)
    return ConfigContentResponse(path=path, content=content)


@router.put("/configs/content", response_model=ConfigWriteResult)
async def write_config(
    req: ConfigWriteRequest,
    inspector: TargetInspector = Depends(get_inspector),
    aggregator: Aggregator = Depends(get_aggregator),
) -> ConfigWriteResult:
    """Overwrite a config file after taking a timestamped backup."""
    target = Target.from_ids(req.container_id, req.vm_id)
    result = await inspector.write_config(target, req.path, req.content)
    aggregator.invalidate_maintenance()
    return result
