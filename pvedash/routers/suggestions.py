"""Suggestion endpoint (text generation passed through)."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from pvedash.auth import require_api_key
from pvedash.dependencies import Services, get_services
from pvedash.models.records import SuggestionList
from pvedash.models.responses import SuggestionRequest

router = APIRouter(tags=["suggestions"], dependencies=[Depends(require_api_key)])


@router.post("/suggestions", response_model=SuggestionList)
async def create_suggestions(
    req: SuggestionRequest,
    services: Services = Depends(get_services),
) -> SuggestionList:
    context = dict(req.context or {})
    if req.include_overview:
        overview = await services.aggregator.system_overview()
        context["overview"] = overview.model_dump(mode="json")
    return await services.suggestions.suggest(req.topic, context or None)
