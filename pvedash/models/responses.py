"""Common API request and response models."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str
    version: str
    cached_entries: int = 0


class ActionResponse(BaseModel):
    success: bool
    message: str


class ConfigWriteRequest(BaseModel):
    path: str = Field(min_length=1)
    content: str
    container_id: Optional[int] = Field(default=None, ge=0)
    vm_id: Optional[int] = Field(default=None, ge=0)


class ConfigContentResponse(BaseModel):
    path: str
    content: str


class ScriptInfo(BaseModel):
    script_id: str
    available: bool


class SuggestionRequest(BaseModel):
    topic: str = Field(min_length=1)
    include_overview: bool = False
    context: Optional[dict[str, Any]] = None


class CacheClearResponse(BaseModel):
    cleared: int
