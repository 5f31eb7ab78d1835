"""Run the known local maintenance scripts.

The scripts themselves are opaque programs shipped alongside the service;
this module only finds them, runs them with a timeout and reports output,
exit status and duration.
"""

from __future__ import annotations

import asyncio
import os
import time
from enum import Enum
from pathlib import Path

from pvedash.config import Settings
from pvedash.errors import LaunchFailure, ScriptNotFound
from pvedash.models.records import ScriptResult
from pvedash.utils.logging import get_logger
from pvedash.utils.processes import kill_process_group

log = get_logger(__name__)


class ScriptId(str, Enum):
    system_cleanup = "system_cleanup"
    optimize_containers = "optimize_containers"
    update_host = "update_host"
    backup_configs = "backup_configs"
    check_disks = "check_disks"


SCRIPT_FILES: dict[ScriptId, str] = {
    ScriptId.system_cleanup: "system-cleanup.sh",
    ScriptId.optimize_containers: "optimize-containers.sh",
    ScriptId.update_host: "update-host.sh",
    ScriptId.backup_configs: "backup-configs.sh",
    ScriptId.check_disks: "check-disks.sh",
}


class ScriptRunner:
    def __init__(self, cfg: Settings) -> None:
        self._dir = Path(cfg.pve_scripts_dir)
        self._timeout = cfg.pve_script_timeout_seconds

    def path_for(self, script_id: ScriptId) -> Path:
        return self._dir / SCRIPT_FILES[script_id]

    def available(self) -> dict[str, bool]:
        return {
            sid.value: os.access(self.path_for(sid), os.X_OK)
            for sid in ScriptId
        }

    async def run(self, script_id: ScriptId) -> ScriptResult:
        path = self.path_for(script_id)
        if not path.is_file():
            raise ScriptNotFound(f"Script {script_id.value} not found at {path}")

        t0 = time.monotonic()
        try:
            proc = await asyncio.create_subprocess_exec(
                str(path),
                cwd=str(self._dir),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                start_new_session=True,
            )
        except OSError as exc:
            raise LaunchFailure(f"Failed to run script {script_id.value}: {exc}") from exc

        try:
            stdout, _ = await asyncio.wait_for(proc.communicate(), self._timeout)
        except asyncio.TimeoutError:
            await kill_process_group(proc)
            duration = time.monotonic() - t0
            log.warning("script.timeout", script=script_id.value, timeout=self._timeout)
            return ScriptResult(
                script_id=script_id.value,
                output=f"Script timed out after {self._timeout}s",
                success=False,
                duration_seconds=round(duration, 3),
            )
        except asyncio.CancelledError:
            await kill_process_group(proc)
            raise

        duration = time.monotonic() - t0
        log.info("script.finished", script=script_id.value, rc=proc.returncode, duration=round(duration, 3))
        return ScriptResult(
            script_id=script_id.value,
            output=stdout.decode(errors="replace"),
            success=proc.returncode == 0,
            exit_status=proc.returncode,
            duration_seconds=round(duration, 3),
        )
