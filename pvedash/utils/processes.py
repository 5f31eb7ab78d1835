"""Helpers for subprocesses started in their own session."""

from __future__ import annotations

import asyncio
import os
import signal


async def kill_process_group(proc: asyncio.subprocess.Process) -> None:
    """Kill *proc* and every process it forked, then reap it.

    The process must have been started with ``start_new_session=True`` so
    its pid is also its process-group id.  Descendants holding the output
    pipes would otherwise keep ``wait`` blocked until they exit.
    """
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
    except PermissionError:
        # Group already gone and the pid reused; fall back to the child only
        if proc.returncode is None:
            proc.kill()
    await proc.wait()
