"""Cached, best-effort aggregate passes over many targets.

Each pass: cache check -> discover -> bounded concurrent fetch per target
under a shared wall-clock deadline -> catalog overlay -> compose -> store.

A target whose fetch fails (launch failure, remote failure, timeout, or the
pass deadline) is dropped from the result; the pass itself never raises
because of one target.  Results always follow discovery/definition order,
however the fetches complete.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional, Sequence, TypeVar

from pvedash.config import Settings
from pvedash.errors import DashboardError, RemoteCommandFailure
from pvedash.models.records import (
    BinaryRecord,
    ConfigRecord,
    HostHealth,
    HostInfo,
    MaintenanceOverview,
    OverviewKind,
    PerformanceMetrics,
    ServiceRecord,
    StatusRecord,
    SystemOverview,
)
from pvedash.models.targets import Operation, Target, TargetKind
from pvedash.services.cache import TTLCache
from pvedash.services.catalog import BinaryCheck, ConfigCheck, MetadataCatalog, ServiceCheck
from pvedash.services.executor import RemoteExecutor
from pvedash.services.inspector import TargetInspector
from pvedash.utils.logging import get_logger
from pvedash.utils.parsers import parse_id_listing

log = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")

SYSTEM_OVERVIEW_KEY = "system_overview"
MAINTENANCE_KEY = "maintenance"
HOST_INFO_KEY = "host_info"
PERFORMANCE_KEY = "performance"

_LIST_TOOL = {TargetKind.container: "pct", TargetKind.vm: "qm"}


def target_detail_key(target: Target) -> str:
    return f"target_detail:{target.label}"


class Aggregator:
    """Builds and caches the dashboard's overview objects."""

    def __init__(
        self,
        executor: RemoteExecutor,
        inspector: TargetInspector,
        catalog: MetadataCatalog,
        cache: TTLCache,
        cfg: Settings,
    ) -> None:
        self._executor = executor
        self._inspector = inspector
        self._catalog = catalog
        self._cache = cache
        self._cfg = cfg
        self._semaphore = asyncio.Semaphore(max(cfg.pve_max_concurrent_calls, 1))

    @property
    def cache(self) -> TTLCache:
        return self._cache

    # ── fan-out machinery ─────────────────────────────────────────────

    def _deadline(self) -> float:
        return asyncio.get_running_loop().time() + self._cfg.pve_pass_deadline_seconds

    async def _bounded(self, fetch: Callable[[T], Awaitable[R]], item: T) -> R:
        async with self._semaphore:
            return await fetch(item)

    async def _fan_out(
        self,
        items: Sequence[T],
        fetch: Callable[[T], Awaitable[R]],
        deadline: float,
        *,
        what: str,
    ) -> list[Optional[R]]:
        """Run *fetch* for every item concurrently; ``None`` marks a drop.

        The returned list is index-aligned with *items*.
        """
        if not items:
            return []
        tasks = [asyncio.ensure_future(self._bounded(fetch, item)) for item in items]
        remaining = max(deadline - asyncio.get_running_loop().time(), 0.0)
        _, pending = await asyncio.wait(tasks, timeout=remaining)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            log.warning("aggregate.deadline_exceeded", what=what, dropped=len(pending))

        results: list[Optional[R]] = []
        for item, task in zip(items, tasks):
            if task.cancelled():
                results.append(None)
                continue
            exc = task.exception()
            if exc is None:
                results.append(task.result())
            elif isinstance(exc, DashboardError):
                log.warning("aggregate.item_dropped", what=what, item=str(item), error=str(exc))
                results.append(None)
            else:
                raise exc
        return results

    # ── discovery ─────────────────────────────────────────────────────

    async def discover(self, kind: TargetKind) -> list[int]:
        """Ids of existing containers or VMs, in listing order."""
        result = await self._executor.execute(
            Target.host(), Operation.exec(_LIST_TOOL[kind], "list"),
        )
        if not result.succeeded:
            raise RemoteCommandFailure(
                f"Command failed: {result.stderr.strip()}", stderr=result.stderr,
            )
        return parse_id_listing(result.stdout)

    async def _discover_or_empty(self, kind: TargetKind) -> list[int]:
        try:
            return await self.discover(kind)
        except DashboardError as exc:
            log.warning("aggregate.discovery_failed", kind=kind.value, error=str(exc))
            return []

    # ── system overview ───────────────────────────────────────────────

    async def _fetch_status(self, target: Target) -> StatusRecord:
        text = await self._inspector.fetch_status_text(target)
        if not self._cfg.pve_overview_enrichment:
            return self._inspector.build_status_record(target, text)
        os_info, memory_mb = await self._inspector.enrichment(target)
        return self._inspector.build_status_record(
            target, text, os_info=os_info, memory_mb=memory_mb,
        )

    async def system_overview(self, *, refresh: bool = False) -> SystemOverview:
        if not refresh:
            cached = self._cache.get(SYSTEM_OVERVIEW_KEY)
            if cached is not None:
                return cached

        deadline = self._deadline()
        container_ids, vm_ids = await asyncio.gather(
            self._discover_or_empty(TargetKind.container),
            self._discover_or_empty(TargetKind.vm),
        )
        targets = [Target.container(i) for i in container_ids] + [Target.vm(i) for i in vm_ids]
        records = await self._fan_out(targets, self._fetch_status, deadline, what="status")

        containers = [r for r in records if r is not None and r.kind is TargetKind.container]
        vms = [r for r in records if r is not None and r.kind is TargetKind.vm]
        overview = SystemOverview.compose(containers, vms)
        self._cache.put(SYSTEM_OVERVIEW_KEY, overview)
        log.info(
            "aggregate.system_overview",
            containers=overview.total_containers,
            vms=overview.total_vms,
            discovered=len(targets),
        )
        return overview

    # ── maintenance overview ──────────────────────────────────────────

    async def _fetch_check(self, check: ServiceCheck | BinaryCheck | ConfigCheck):
        if isinstance(check, ConfigCheck):
            return await self._inspector.check_config(check.target, check.path)
        if isinstance(check, BinaryCheck):
            return await self._inspector.check_binary(check.target, check.name)
        return await self._inspector.get_service_status(check.target, check.name)

    async def _health_or_default(self) -> HostHealth:
        try:
            return await self._inspector.host_health()
        except DashboardError as exc:
            log.warning("aggregate.health_failed", error=str(exc))
            return HostHealth()

    async def maintenance_overview(self, *, refresh: bool = False) -> MaintenanceOverview:
        if not refresh:
            cached = self._cache.get(MAINTENANCE_KEY)
            if cached is not None:
                return cached

        deadline = self._deadline()
        catalog = self._catalog
        checks: list[ServiceCheck | BinaryCheck | ConfigCheck] = [
            *catalog.services, *catalog.binaries, *catalog.configs,
        ]
        results, health = await asyncio.gather(
            self._fan_out(checks, self._fetch_check, deadline, what="maintenance"),
            self._health_or_default(),
        )
        services = [r for r in results if isinstance(r, ServiceRecord)]
        binaries = [r for r in results if isinstance(r, BinaryRecord)]
        configs = [r for r in results if isinstance(r, ConfigRecord)]
        overview = MaintenanceOverview(
            services=services,
            binaries=binaries,
            configs=configs,
            system_health=health,
            total_services=len(services),
            active_services=sum(1 for s in services if s.active),
        )
        self._cache.put(MAINTENANCE_KEY, overview)
        log.info(
            "aggregate.maintenance_overview",
            services=len(services),
            binaries=len(binaries),
            configs=len(configs),
        )
        return overview

    async def get_overview(self, kind: OverviewKind, *, refresh: bool = False):
        if kind is OverviewKind.maintenance:
            return await self.maintenance_overview(refresh=refresh)
        return await self.system_overview(refresh=refresh)

    # ── single-target and host queries (cached, strict) ───────────────

    async def target_detail(self, target: Target, *, refresh: bool = False) -> StatusRecord:
        key = target_detail_key(target)
        if not refresh:
            cached = self._cache.get(key)
            if cached is not None:
                return cached
        record = await self._inspector.get_target_detail(target)
        self._cache.put(key, record)
        return record

    async def host_info(self, *, refresh: bool = False) -> HostInfo:
        if not refresh:
            cached = self._cache.get(HOST_INFO_KEY)
            if cached is not None:
                return cached
        info = await self._inspector.host_info()
        self._cache.put(HOST_INFO_KEY, info)
        return info

    async def performance_metrics(self, *, refresh: bool = False) -> PerformanceMetrics:
        if not refresh:
            cached = self._cache.get(PERFORMANCE_KEY)
            if cached is not None:
                return cached

        async def _storage():
            try:
                return await self._inspector.storage_pools()
            except DashboardError as exc:
                log.warning("aggregate.storage_failed", error=str(exc))
                return []

        health, storage = await asyncio.gather(self._health_or_default(), _storage())
        metrics = PerformanceMetrics(health=health, storage=storage)
        self._cache.put(PERFORMANCE_KEY, metrics)
        return metrics

    # ── invalidation ──────────────────────────────────────────────────

    def invalidate_target(self, target: Target) -> None:
        """Forget everything a power-state change can make stale."""
        self._cache.invalidate(target_detail_key(target))
        self._cache.invalidate(SYSTEM_OVERVIEW_KEY)

    def invalidate_maintenance(self) -> None:
        self._cache.invalidate(MAINTENANCE_KEY)

    def invalidate_all(self) -> None:
        self._cache.clear()
