"""Addressable targets and the closed set of remote operations."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from pvedash.errors import InvalidTarget


class TargetKind(str, Enum):
    host = "host"
    container = "container"
    vm = "vm"


class Target(BaseModel):
    """The host, one container, or one VM.  Hashable and immutable."""

    kind: TargetKind
    id: Optional[int] = Field(default=None, ge=0)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_id(self) -> "Target":
        if self.kind is TargetKind.host and self.id is not None:
            raise ValueError("host target takes no id")
        if self.kind is not TargetKind.host and self.id is None:
            raise ValueError(f"{self.kind.value} target requires an id")
        return self

    @classmethod
    def host(cls) -> "Target":
        return cls(kind=TargetKind.host)

    @classmethod
    def container(cls, container_id: int) -> "Target":
        return cls(kind=TargetKind.container, id=container_id)

    @classmethod
    def vm(cls, vm_id: int) -> "Target":
        return cls(kind=TargetKind.vm, id=vm_id)

    @classmethod
    def from_ids(
        cls,
        container_id: Optional[int] = None,
        vm_id: Optional[int] = None,
    ) -> "Target":
        """Build a target from the optional id pair used by the API.

        Passing both ids is invalid input; passing neither means the host.
        """
        if container_id is not None and vm_id is not None:
            raise InvalidTarget(
                "Pass at most one of container_id and vm_id",
                code="ambiguous_target",
            )
        if container_id is not None:
            return cls.container(container_id)
        if vm_id is not None:
            return cls.vm(vm_id)
        return cls.host()

    @property
    def container_id(self) -> Optional[int]:
        return self.id if self.kind is TargetKind.container else None

    @property
    def vm_id(self) -> Optional[int]:
        return self.id if self.kind is TargetKind.vm else None

    @property
    def label(self) -> str:
        if self.kind is TargetKind.host:
            return "host"
        return f"{self.kind.value}:{self.id}"


class OperationKind(str, Enum):
    status = "status"
    start = "start"
    stop = "stop"
    restart = "restart"
    shutdown = "shutdown"
    reset = "reset"
    config = "config"
    exec = "exec"


class Operation(BaseModel):
    """A typed remote operation consumed by ``RemoteExecutor.execute``."""

    kind: OperationKind
    argv: tuple[str, ...] = ()

    model_config = {"frozen": True}

    @classmethod
    def exec(cls, *argv: str) -> "Operation":
        return cls(kind=OperationKind.exec, argv=argv)

    @classmethod
    def of(cls, kind: OperationKind) -> "Operation":
        return cls(kind=kind)


class TargetAction(str, Enum):
    """Power-state actions exposed by ``control_target``."""

    start = "start"
    stop = "stop"
    restart = "restart"
    shutdown = "shutdown"
    reset = "reset"

    @property
    def operation_kind(self) -> OperationKind:
        return OperationKind(self.value)


class ServiceAction(str, Enum):
    start = "start"
    stop = "stop"
    restart = "restart"
    reload = "reload"
    enable = "enable"
    disable = "disable"
