"""Local maintenance script endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from pvedash.auth import require_api_key
from pvedash.dependencies import Services, get_services
from pvedash.models.records import ScriptResult
from pvedash.models.responses import ScriptInfo
from pvedash.services.scripts import ScriptId

router = APIRouter(
    prefix="/scripts",
    tags=["scripts"],
    dependencies=[Depends(require_api_key)],
)


@router.get("", response_model=list[ScriptInfo])
async def list_scripts(services: Services = Depends(get_services)) -> list[ScriptInfo]:
    return [
        ScriptInfo(script_id=sid, available=ok)
        for sid, ok in services.scripts.available().items()
    ]


@router.post("/{script_id}", response_model=ScriptResult)
async def run_named_script(
    script_id: ScriptId,
    services: Services = Depends(get_services),
) -> ScriptResult:
    result = await services.scripts.run(script_id)
    # Scripts may change anything on the host
    services.aggregator.invalidate_all()
    return result
