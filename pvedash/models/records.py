"""Typed records built from remote command output, and the aggregates that
fold them together.

Every record is frozen: records are constructed fresh on each pass and a
catalog overlay is part of construction, never a later mutation.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from pvedash.models.targets import TargetKind

UNKNOWN = "Unknown"
NOT_APPLICABLE = "N/A"
NOT_FOUND = "Not found"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RunState(str, Enum):
    running = "Running"
    stopped = "Stopped"
    unknown = "Unknown"


class _Frozen(BaseModel):
    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Per-target records
# ---------------------------------------------------------------------------


class StatusRecord(_Frozen):
    """Status of a single container or VM."""

    id: int
    kind: TargetKind
    name: str
    status: RunState = RunState.unknown
    uptime: str = UNKNOWN
    cpu_usage: float = 0.0
    memory_usage: float = 0.0
    category: str = "Other"
    description: str = ""
    web_ui_url: Optional[str] = None
    os_info: Optional[str] = None
    memory_mb: Optional[int] = None


class ServiceRecord(_Frozen):
    name: str
    status: str
    active: bool
    enabled: bool
    description: str
    container_id: Optional[int] = None
    vm_id: Optional[int] = None


class BinaryRecord(_Frozen):
    name: str
    path: str = NOT_FOUND
    version: str = NOT_APPLICABLE
    exists: bool = False
    executable: bool = False
    container_id: Optional[int] = None
    vm_id: Optional[int] = None


class ConfigRecord(_Frozen):
    name: str
    path: str
    exists: bool = False
    readable: bool = False
    writable: bool = False
    size_bytes: int = 0
    modified_timestamp: int = 0
    modified: str = NOT_APPLICABLE
    container_id: Optional[int] = None
    vm_id: Optional[int] = None


class ConfigWriteResult(_Frozen):
    path: str
    backup_path: Optional[str] = None
    message: str


# ---------------------------------------------------------------------------
# Host records
# ---------------------------------------------------------------------------


class HostHealth(_Frozen):
    disk_usage: float = 0.0
    memory_usage: float = 0.0
    cpu_load: float = 0.0
    network_status: str = UNKNOWN
    uptime: str = UNKNOWN


class HostInfo(_Frozen):
    hostname: str = UNKNOWN
    pve_version: str = UNKNOWN
    kernel: str = UNKNOWN
    cpu_count: int = 0
    uptime: str = UNKNOWN
    generated_at: datetime = Field(default_factory=_utcnow)


class StoragePool(_Frozen):
    name: str
    type: str = ""
    status: str = UNKNOWN
    total_bytes: int = 0
    used_bytes: int = 0
    available_bytes: int = 0
    used_percent: float = 0.0


class PerformanceMetrics(_Frozen):
    health: HostHealth
    storage: list[StoragePool] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=_utcnow)


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------


class OverviewKind(str, Enum):
    system = "system"
    maintenance = "maintenance"


class SystemOverview(_Frozen):
    containers: list[StatusRecord]
    vms: list[StatusRecord]
    total_containers: int
    running_containers: int
    total_vms: int
    running_vms: int
    generated_at: datetime = Field(default_factory=_utcnow)

    @classmethod
    def compose(
        cls,
        containers: list[StatusRecord],
        vms: list[StatusRecord],
    ) -> "SystemOverview":
        return cls(
            containers=containers,
            vms=vms,
            total_containers=len(containers),
            running_containers=sum(
                1 for c in containers if c.status is RunState.running
            ),
            total_vms=len(vms),
            running_vms=sum(1 for v in vms if v.status is RunState.running),
        )


class MaintenanceOverview(_Frozen):
    services: list[ServiceRecord]
    binaries: list[BinaryRecord]
    configs: list[ConfigRecord]
    system_health: HostHealth
    total_services: int = 0
    active_services: int = 0
    generated_at: datetime = Field(default_factory=_utcnow)


# ---------------------------------------------------------------------------
# Scripts and suggestions
# ---------------------------------------------------------------------------


class ScriptResult(_Frozen):
    script_id: str
    output: str
    success: bool
    exit_status: Optional[int] = None
    duration_seconds: float = 0.0


class Suggestion(_Frozen):
    title: str
    body: str


class SuggestionList(_Frozen):
    topic: str
    model: str
    suggestions: list[Suggestion]
    generated_at: datetime = Field(default_factory=_utcnow)
