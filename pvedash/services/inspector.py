"""Single-target operations: status, power control, services, binaries,
config files and host health.

These are strict.  ``LaunchFailure`` always propagates, and a failed remote
command surfaces as ``RemoteCommandFailure`` carrying stderr.  Only
secondary enrichment calls (OS info, ``is-enabled``, ``test -x``, stat) are
downgraded to sentinels here; aggregate-level leniency lives in the
aggregator.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

from pvedash.config import Settings
from pvedash.errors import InvalidTarget, LaunchFailure, RemoteCommandFailure
from pvedash.models.commands import ExecutionResult
from pvedash.models.records import (
    NOT_APPLICABLE,
    NOT_FOUND,
    UNKNOWN,
    BinaryRecord,
    ConfigRecord,
    ConfigWriteResult,
    HostHealth,
    HostInfo,
    ServiceRecord,
    StatusRecord,
    StoragePool,
)
from pvedash.models.targets import (
    Operation,
    OperationKind,
    ServiceAction,
    Target,
    TargetAction,
    TargetKind,
)
from pvedash.services.catalog import MetadataCatalog
from pvedash.services.executor import RemoteExecutor
from pvedash.services.binaries import (
    DEFAULT_SEARCH_DIRECTORIES,
    detect_version,
    find_binary_fallback,
)
from pvedash.utils.logging import get_logger
from pvedash.utils.parsers import (
    first_line,
    format_epoch,
    parse_df_usage,
    parse_enabled_state,
    parse_free_memory,
    parse_guest_metrics,
    parse_guest_state,
    parse_load_average,
    parse_memory_config,
    parse_os_release,
    parse_stat_pair,
    parse_storage_status,
    parse_systemd_active,
)

log = get_logger(__name__)

_PAST_TENSE = {
    TargetAction.start: "started",
    TargetAction.stop: "stopped",
    TargetAction.restart: "restarted",
    TargetAction.shutdown: "shut down",
    TargetAction.reset: "reset",
}


def _describe(target: Target) -> str:
    if target.kind is TargetKind.vm:
        return f"VM {target.id}"
    if target.kind is TargetKind.container:
        return f"Container {target.id}"
    return "Host"


def _stderr(result: ExecutionResult) -> str:
    return result.stderr.strip() or result.stdout.strip()


class TargetInspector:
    """Strict operations against one target at a time."""

    def __init__(
        self,
        executor: RemoteExecutor,
        catalog: MetadataCatalog,
        cfg: Settings,
        search_directories: Sequence[str] = DEFAULT_SEARCH_DIRECTORIES,
    ) -> None:
        self._executor = executor
        self._catalog = catalog
        self._cfg = cfg
        self._search_directories = tuple(search_directories)
        self._last_backup_at: Optional[datetime] = None

    # ── helpers ───────────────────────────────────────────────────────

    def _backup_stamp(self) -> str:
        now = datetime.now(timezone.utc)
        # Strictly increasing, so two writes in one clock tick never share a backup
        if self._last_backup_at is not None and now <= self._last_backup_at:
            now = self._last_backup_at + timedelta(microseconds=1)
        self._last_backup_at = now
        return now.strftime("%Y%m%d%H%M%S%f")

    async def _exec(
        self,
        target: Target,
        *argv: str,
        timeout: float | None = None,
        input_text: str | None = None,
    ) -> ExecutionResult:
        return await self._executor.execute(
            target, Operation.exec(*argv), timeout=timeout, input_text=input_text,
        )

    async def _optional(
        self,
        target: Target,
        *argv: str,
        timeout: float | None = None,
    ) -> Optional[ExecutionResult]:
        """Run a secondary call; ``None`` when the channel is unreachable."""
        try:
            return await self._exec(target, *argv, timeout=timeout)
        except LaunchFailure as exc:
            log.debug("inspector.optional_failed", target=target.label, argv=argv, error=str(exc))
            return None

    @staticmethod
    def _require_guest(target: Target) -> None:
        if target.kind is TargetKind.host:
            raise InvalidTarget(
                "A container_id or vm_id is required",
                code="guest_required",
            )

    # ── container / VM status ─────────────────────────────────────────

    def build_status_record(
        self,
        target: Target,
        status_text: str,
        *,
        os_info: Optional[str] = None,
        memory_mb: Optional[int] = None,
    ) -> StatusRecord:
        """Construct a status record with the catalog overlay applied."""
        metrics = parse_guest_metrics(status_text)
        entry = self._catalog.lookup(target)
        if entry is not None:
            name, description, category = entry.name, entry.description, entry.category
            web_ui_url = entry.web_ui_url
        else:
            name = self._catalog.fallback_name(target)
            description = self._catalog.fallback_description(target)
            category = self._catalog.category_for(target)
            web_ui_url = None
        return StatusRecord(
            id=target.id,
            kind=target.kind,
            name=name,
            status=parse_guest_state(status_text),
            uptime=metrics["uptime"],
            cpu_usage=metrics["cpu_usage"],
            memory_usage=metrics["memory_usage"],
            category=category,
            description=description,
            web_ui_url=web_ui_url,
            os_info=os_info,
            memory_mb=memory_mb,
        )

    async def fetch_status_text(
        self,
        target: Target,
        *,
        timeout: float | None = None,
    ) -> str:
        self._require_guest(target)
        result = await self._executor.execute(
            target, Operation.of(OperationKind.status), timeout=timeout,
        )
        if not result.succeeded:
            raise RemoteCommandFailure(
                f"Command failed: {_stderr(result)}", stderr=result.stderr,
            )
        return result.stdout

    async def get_target_status(self, target: Target) -> StatusRecord:
        text = await self.fetch_status_text(target)
        return self.build_status_record(target, text)

    async def enrichment(self, target: Target) -> tuple[Optional[str], Optional[int]]:
        """OS release and configured memory, each bounded by a short timeout.

        VMs without their own ssh alias skip the OS lookup, since it would
        describe the host instead.
        """
        timeout = self._cfg.pve_enrichment_timeout_seconds

        async def _os_info() -> Optional[str]:
            if not self._executor.addressing.has_dedicated_destination(target):
                return None
            result = await self._optional(target, "cat", "/etc/os-release", timeout=timeout)
            if result is None or not result.succeeded:
                return None
            return parse_os_release(result.stdout)

        async def _memory() -> Optional[int]:
            try:
                result = await self._executor.execute(
                    target, Operation.of(OperationKind.config), timeout=timeout,
                )
            except LaunchFailure:
                return None
            if not result.succeeded:
                return None
            return parse_memory_config(result.stdout)

        os_info, memory_mb = await asyncio.gather(_os_info(), _memory())
        return os_info, memory_mb

    async def get_target_detail(self, target: Target) -> StatusRecord:
        text = await self.fetch_status_text(target)
        os_info, memory_mb = await self.enrichment(target)
        return self.build_status_record(target, text, os_info=os_info, memory_mb=memory_mb)

    async def control_target(self, target: Target, action: TargetAction) -> str:
        self._require_guest(target)
        result = await self._executor.execute(target, Operation.of(action.operation_kind))
        label = _describe(target)
        if not result.succeeded:
            raise RemoteCommandFailure(
                f"Failed to {action.value} {label.lower()}: {_stderr(result)}",
                stderr=result.stderr,
            )
        log.info("target.controlled", target=target.label, action=action.value)
        return f"{label} {_PAST_TENSE[action]} successfully"

    # ── services ──────────────────────────────────────────────────────

    async def get_service_status(self, target: Target, service_name: str) -> ServiceRecord:
        # systemctl status exits non-zero for inactive units; only launch
        # failures are errors here
        status = await self._exec(target, "systemctl", "status", service_name)
        active = parse_systemd_active(status.stdout)
        enabled_result = await self._optional(target, "systemctl", "is-enabled", service_name)
        enabled = enabled_result is not None and parse_enabled_state(enabled_result.stdout)
        return ServiceRecord(
            name=service_name,
            status="Active" if active else "Inactive",
            active=active,
            enabled=enabled,
            description=f"Service: {service_name}",
            container_id=target.container_id,
            vm_id=target.vm_id,
        )

    async def control_service(
        self,
        target: Target,
        service_name: str,
        action: ServiceAction,
    ) -> str:
        result = await self._exec(target, "systemctl", action.value, service_name)
        if not result.succeeded:
            raise RemoteCommandFailure(
                f"Failed to {action.value} service {service_name}: {_stderr(result)}",
                stderr=result.stderr,
            )
        log.info("service.controlled", target=target.label, service=service_name, action=action.value)
        return f"Service {service_name} {action.value} successfully"

    # ── binaries ──────────────────────────────────────────────────────

    async def check_binary(self, target: Target, binary_name: str) -> BinaryRecord:
        which = await self._exec(target, "which", binary_name)
        path = first_line(which.stdout) if which.succeeded else ""
        destination = self._executor.addressing.resolve(target)
        timeout = self._cfg.pve_enrichment_timeout_seconds

        if not path:
            path = await find_binary_fallback(
                self._executor,
                destination,
                self._search_directories,
                binary_name,
                timeout=timeout,
            ) or ""

        if not path:
            return BinaryRecord(
                name=binary_name,
                path=NOT_FOUND,
                version=NOT_APPLICABLE,
                exists=False,
                executable=False,
                container_id=target.container_id,
                vm_id=target.vm_id,
            )

        version = await detect_version(self._executor, destination, path, timeout=timeout)
        test_x = await self._optional(target, "test", "-x", path, timeout=timeout)
        return BinaryRecord(
            name=binary_name,
            path=path,
            version=version,
            exists=True,
            executable=test_x is not None and test_x.succeeded,
            container_id=target.container_id,
            vm_id=target.vm_id,
        )

    # ── config files ──────────────────────────────────────────────────

    async def check_config(self, target: Target, config_path: str) -> ConfigRecord:
        exists_result = await self._exec(target, "test", "-f", config_path)
        name = config_path.rstrip("/").rsplit("/", 1)[-1] or UNKNOWN
        if not exists_result.succeeded:
            return ConfigRecord(
                name=name,
                path=config_path,
                modified=NOT_APPLICABLE,
                container_id=target.container_id,
                vm_id=target.vm_id,
            )

        readable, writable, stat = await asyncio.gather(
            self._optional(target, "test", "-r", config_path),
            self._optional(target, "test", "-w", config_path),
            self._optional(target, "stat", "-c", "%s %Y", config_path),
        )
        size, mtime = parse_stat_pair(stat.stdout if stat is not None else "")
        return ConfigRecord(
            name=name,
            path=config_path,
            exists=True,
            readable=readable is not None and readable.succeeded,
            writable=writable is not None and writable.succeeded,
            size_bytes=size,
            modified_timestamp=mtime,
            modified=format_epoch(mtime),
            container_id=target.container_id,
            vm_id=target.vm_id,
        )

    async def read_config(self, target: Target, config_path: str) -> str:
        result = await self._exec(target, "cat", config_path)
        if not result.succeeded:
            raise RemoteCommandFailure(
                f"Failed to read config file: {_stderr(result)}", stderr=result.stderr,
            )
        return result.stdout

    async def write_config(
        self,
        target: Target,
        config_path: str,
        content: str,
    ) -> ConfigWriteResult:
        """Back up the current file with a timestamp suffix, then overwrite it."""
        backup_path: Optional[str] = None
        exists = await self._exec(target, "test", "-f", config_path)
        if exists.succeeded:
            backup_path = f"{config_path}.backup.{self._backup_stamp()}"
            backup = await self._exec(target, "cp", "-p", config_path, backup_path)
            if not backup.succeeded:
                raise RemoteCommandFailure(
                    f"Failed to back up {config_path}: {_stderr(backup)}",
                    stderr=backup.stderr,
                )

        result = await self._exec(
            target, "sh", "-c", 'cat > "$1"', "sh", config_path, input_text=content,
        )
        if not result.succeeded:
            raise RemoteCommandFailure(
                f"Failed to write config file: {_stderr(result)}", stderr=result.stderr,
            )
        log.info("config.written", target=target.label, path=config_path, backup=backup_path)
        return ConfigWriteResult(
            path=config_path,
            backup_path=backup_path,
            message=f"Config file {config_path} updated successfully",
        )

    # ── host ──────────────────────────────────────────────────────────

    async def host_health(self) -> HostHealth:
        """Disk, memory, load and uptime of the host.

        An unreachable channel raises; a metric command that fails reads as 0.
        """
        host = Target.host()
        uptime = await self._exec(host, "uptime", "-p")
        df, free, loadavg = await asyncio.gather(
            self._exec(host, "df", "-h", "/"),
            self._exec(host, "free", "-m"),
            self._exec(host, "cat", "/proc/loadavg"),
        )
        return HostHealth(
            disk_usage=parse_df_usage(df.stdout) if df.succeeded else 0.0,
            memory_usage=parse_free_memory(free.stdout) if free.succeeded else 0.0,
            cpu_load=parse_load_average(loadavg.stdout) if loadavg.succeeded else 0.0,
            network_status="Connected",
            uptime=uptime.stdout.strip() if uptime.succeeded and uptime.stdout.strip() else UNKNOWN,
        )

    async def host_info(self) -> HostInfo:
        host = Target.host()
        hostname, pveversion, kernel, nproc, uptime = await asyncio.gather(
            self._exec(host, "hostname"),
            self._exec(host, "pveversion"),
            self._exec(host, "uname", "-r"),
            self._exec(host, "nproc"),
            self._exec(host, "uptime", "-p"),
        )

        def _line(result: ExecutionResult) -> str:
            return (first_line(result.stdout) if result.succeeded else "") or UNKNOWN

        cpu_count = _line(nproc)
        return HostInfo(
            hostname=_line(hostname),
            pve_version=_line(pveversion),
            kernel=_line(kernel),
            cpu_count=int(cpu_count) if cpu_count.isdigit() else 0,
            uptime=_line(uptime),
        )

    async def storage_pools(self) -> list[StoragePool]:
        result = await self._exec(Target.host(), "pvesm", "status")
        if not result.succeeded:
            raise RemoteCommandFailure(
                f"Failed to read storage status: {_stderr(result)}", stderr=result.stderr,
            )
        return parse_storage_status(result.stdout)
