"""Remote command execution over a pre-authenticated ssh channel.

Each call spawns one ``ssh`` process with ``asyncio.create_subprocess_exec``
so the event loop is never blocked.  Two failure modes are kept apart:

* ``LaunchFailure`` - ssh could not be started, or ssh itself reported a
  channel error (exit status 255).  Nothing ran remotely.
* an ``ExecutionResult`` with ``succeeded=False`` - the remote command ran
  and failed, or the call timed out and the process was killed.

No retries happen here; retry policy belongs to callers.
"""

from __future__ import annotations

import asyncio
import shlex
import time
from typing import Sequence

from pvedash.config import Settings
from pvedash.errors import InvalidTarget, LaunchFailure
from pvedash.models.commands import ExecutionResult
from pvedash.models.targets import Operation, OperationKind, Target, TargetKind
from pvedash.services.addressing import TargetAddressing
from pvedash.utils.logging import get_logger
from pvedash.utils.processes import kill_process_group

log = get_logger(__name__)

# ssh exits with 255 when the channel itself fails
SSH_CHANNEL_ERROR = 255

_GUEST_TOOL = {TargetKind.container: "pct", TargetKind.vm: "qm"}

_GUEST_VERBS = {
    OperationKind.status: "status",
    OperationKind.start: "start",
    OperationKind.stop: "stop",
    OperationKind.restart: "reboot",
    OperationKind.shutdown: "shutdown",
    OperationKind.reset: "reset",
    OperationKind.config: "config",
}


class RemoteExecutor:
    """Runs commands against a host, container or VM."""

    def __init__(
        self,
        cfg: Settings,
        addressing: TargetAddressing | None = None,
    ) -> None:
        self._cfg = cfg
        self.addressing = addressing or TargetAddressing.from_settings(cfg)

    # ── argv assembly ─────────────────────────────────────────────────

    def build_argv(self, destination: str, command: Sequence[str]) -> list[str]:
        """Turn a destination and a command into the local ssh argv.

        The destination's first word is the ssh host; any further words
        (``pct exec 101 --``) prefix the remote command line.  Every remote
        word is shell-quoted, so the remote shell sees the argv unchanged.
        """
        words = shlex.split(destination)
        if not words:
            raise LaunchFailure("Empty destination", code="bad_destination")
        host, prefix = words[0], words[1:]
        remote = " ".join(shlex.quote(word) for word in [*prefix, *command])
        return [self._cfg.pve_ssh_binary, *self._cfg.pve_ssh_options, host, remote]

    def plan(self, target: Target, operation: Operation) -> tuple[str, list[str]]:
        """Resolve an operation to ``(destination, command)``."""
        if operation.kind is OperationKind.exec:
            if not operation.argv:
                raise InvalidTarget("Exec operation needs a command", code="empty_command")
            return self.addressing.resolve(target), list(operation.argv)

        if target.kind is TargetKind.host:
            raise InvalidTarget(
                f"Operation '{operation.kind.value}' is not supported on the host",
                code="unsupported_operation",
            )
        if operation.kind is OperationKind.reset and target.kind is TargetKind.container:
            raise InvalidTarget(
                "Containers cannot be reset; use restart or stop",
                code="unsupported_operation",
            )

        command = [_GUEST_TOOL[target.kind], _GUEST_VERBS[operation.kind], str(target.id)]
        if operation.kind is OperationKind.status:
            command.append("--verbose")
        # Power and inventory commands run on the host, not inside the guest
        return self.addressing.host_destination, command

    # ── execution ─────────────────────────────────────────────────────

    async def execute(
        self,
        target: Target,
        operation: Operation,
        *,
        timeout: float | None = None,
        input_text: str | None = None,
    ) -> ExecutionResult:
        """Single typed entry point; defaults to the configured timeout."""
        destination, command = self.plan(target, operation)
        if timeout is None:
            timeout = self._cfg.pve_command_timeout_seconds
        return await self.run(destination, command, timeout=timeout, input_text=input_text)

    async def run(
        self,
        destination: str,
        command: Sequence[str],
        *,
        timeout: float | None = None,
        input_text: str | None = None,
    ) -> ExecutionResult:
        argv = self.build_argv(destination, command)
        t0 = time.monotonic()
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE if input_text is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
            )
        except OSError as exc:
            log.error("executor.launch_failed", binary=argv[0], error=str(exc))
            raise LaunchFailure(f"Failed to execute SSH command: {exc}") from exc

        data = input_text.encode() if input_text is not None else None
        try:
            if timeout is not None:
                stdout, stderr = await asyncio.wait_for(proc.communicate(data), timeout)
            else:
                stdout, stderr = await proc.communicate(data)
        except asyncio.TimeoutError:
            await kill_process_group(proc)
            elapsed = time.monotonic() - t0
            log.warning(
                "executor.timeout",
                destination=destination,
                command=list(command),
                timeout=timeout,
            )
            return ExecutionResult(
                destination=destination,
                command=list(command),
                succeeded=False,
                stderr=f"Command timed out after {timeout}s",
                timed_out=True,
                elapsed_time=elapsed,
            )
        except asyncio.CancelledError:
            await kill_process_group(proc)
            raise

        out = stdout.decode(errors="replace")
        err = stderr.decode(errors="replace")
        elapsed = time.monotonic() - t0
        log.debug(
            "executor.run",
            destination=destination,
            command=list(command),
            rc=proc.returncode,
            elapsed=round(elapsed, 3),
        )
        if proc.returncode == SSH_CHANNEL_ERROR:
            raise LaunchFailure(
                f"SSH channel to '{destination}' failed: {err.strip()}",
                code="channel_unreachable",
            )
        return ExecutionResult(
            destination=destination,
            command=list(command),
            succeeded=proc.returncode == 0,
            stdout=out,
            stderr=err,
            exit_status=proc.returncode,
            elapsed_time=elapsed,
        )
