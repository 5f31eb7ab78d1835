"""Service wiring.

All services are constructed once by ``build_services`` and hung off
``app.state``; routers receive them through FastAPI dependencies.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx
from fastapi import Query, Request

from pvedash.config import Settings
from pvedash.models.targets import Target
from pvedash.services.aggregator import Aggregator
from pvedash.services.cache import TTLCache
from pvedash.services.catalog import MetadataCatalog, load_catalog
from pvedash.services.executor import RemoteExecutor
from pvedash.services.inspector import TargetInspector
from pvedash.services.scripts import ScriptRunner
from pvedash.services.suggestions import SuggestionService


@dataclass
class Services:
    settings: Settings
    cache: TTLCache
    catalog: MetadataCatalog
    executor: RemoteExecutor
    inspector: TargetInspector
    aggregator: Aggregator
    scripts: ScriptRunner
    suggestions: SuggestionService


def build_services(
    cfg: Settings,
    *,
    executor: RemoteExecutor | None = None,
    catalog: MetadataCatalog | None = None,
    cache: TTLCache | None = None,
    llm_transport: httpx.AsyncBaseTransport | None = None,
) -> Services:
    if catalog is None:
        catalog = load_catalog(cfg.pve_catalog_path)
    # An empty cache is falsy, so test for None explicitly
    if cache is None:
        cache = TTLCache(cfg.cache_durations(), max_entries=cfg.pve_cache_max_entries)
    if executor is None:
        executor = RemoteExecutor(cfg)
    inspector = TargetInspector(executor, catalog, cfg)
    return Services(
        settings=cfg,
        cache=cache,
        catalog=catalog,
        executor=executor,
        inspector=inspector,
        aggregator=Aggregator(executor, inspector, catalog, cache, cfg),
        scripts=ScriptRunner(cfg),
        suggestions=SuggestionService(cfg, transport=llm_transport),
    )


# ── FastAPI dependencies ──────────────────────────────────────────────────


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_aggregator(request: Request) -> Aggregator:
    return request.app.state.services.aggregator


def get_inspector(request: Request) -> TargetInspector:
    return request.app.state.services.inspector


def target_from_query(
    container_id: Optional[int] = Query(None, ge=0, description="LXC container id"),
    vm_id: Optional[int] = Query(None, ge=0, description="QEMU VM id"),
) -> Target:
    """At most one of the two ids; neither means the host."""
    return Target.from_ids(container_id, vm_id)
