"""Map a logical target to the destination string the ssh channel uses."""

from __future__ import annotations

from typing import Mapping

from pvedash.config import Settings
from pvedash.models.targets import Target, TargetKind


class TargetAddressing:
    """Total, deterministic resolution of targets to destinations.

    * host      -> the host alias
    * container -> the host alias followed by a ``pct exec <id> --`` prefix
    * vm        -> its own ssh alias when one is configured, else the host
    """

    def __init__(
        self,
        host_alias: str = "proxmox",
        vm_aliases: Mapping[int, str] | None = None,
        container_template: str = "{host} pct exec {id} --",
    ) -> None:
        self._host = host_alias
        self._vm_aliases = dict(vm_aliases or {})
        self._container_template = container_template

    @classmethod
    def from_settings(cls, cfg: Settings) -> "TargetAddressing":
        return cls(
            host_alias=cfg.pve_host_alias,
            vm_aliases=cfg.pve_vm_aliases,
            container_template=cfg.pve_container_exec_template,
        )

    @property
    def host_destination(self) -> str:
        return self._host

    def resolve(self, target: Target) -> str:
        if target.kind is TargetKind.container:
            return self._container_template.format(host=self._host, id=target.id)
        if target.kind is TargetKind.vm:
            return self._vm_aliases.get(target.id, self._host)
        return self._host

    def has_dedicated_destination(self, target: Target) -> bool:
        """False for VMs that fall back to the host alias."""
        if target.kind is TargetKind.vm:
            return target.id in self._vm_aliases
        return True
