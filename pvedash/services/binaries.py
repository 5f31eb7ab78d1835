"""Order-sensitive remote heuristics for locating binaries and versions.

CLI tools share no machine-readable status format, so these lookups walk a
fixed priority list and take the first answer that looks plausible.  Every
lookup is best-effort: a failed or unreachable attempt just moves on to the
next candidate.
"""

from __future__ import annotations

import shlex
from typing import Sequence

from pvedash.errors import LaunchFailure
from pvedash.models.records import UNKNOWN
from pvedash.services.executor import RemoteExecutor
from pvedash.utils.logging import get_logger
from pvedash.utils.parsers import acceptable_version_line, first_line

log = get_logger(__name__)

# Searched in this order when ``which`` finds nothing on $PATH
DEFAULT_SEARCH_DIRECTORIES: tuple[str, ...] = (
    "/opt/*/bin",
    "/opt/bin",
    "/usr/local/sbin",
    "/usr/games",
    "/snap/bin",
    "~/.local/bin",
    "/home/*/bin",
    "/var/lib/*/bin",
    "/srv/*/bin",
    "/app/bin",
    "/config/bin",
    "/data/bin",
    "/media/*/bin",
    "/mnt/*/bin",
)

PRIMARY_VERSION_FLAG = "--version"
FALLBACK_VERSION_FLAGS: tuple[str, ...] = ("-v", "-V", "version", "--help")


def _find_script(directory: str, binary_name: str) -> str:
    # The directory stays unquoted so the target's shell expands globs and ~
    return (
        f"find {directory} -name {shlex.quote(binary_name)} "
        "-type f -executable 2>/dev/null | head -n 1"
    )


async def find_binary_fallback(
    executor: RemoteExecutor,
    destination: str,
    candidate_directories: Sequence[str],
    binary_name: str,
    *,
    timeout: float | None = None,
) -> str | None:
    """Return the first match found, searching directories in the given order."""
    for directory in candidate_directories:
        try:
            result = await executor.run(
                destination,
                ["sh", "-c", _find_script(directory, binary_name)],
                timeout=timeout,
            )
        except LaunchFailure as exc:
            log.debug("binary.find_unreachable", directory=directory, error=str(exc))
            continue
        if not result.succeeded:
            continue
        found = first_line(result.stdout)
        if found:
            log.debug("binary.found", binary=binary_name, path=found)
            return found
    return None


async def detect_version(
    executor: RemoteExecutor,
    destination: str,
    path: str,
    *,
    timeout: float | None = None,
) -> str:
    """Try ``--version`` then the fallback flags; ``"Unknown"`` if none work."""
    for flag in (PRIMARY_VERSION_FLAG, *FALLBACK_VERSION_FLAGS):
        try:
            result = await executor.run(destination, [path, flag], timeout=timeout)
        except LaunchFailure:
            continue
        if not result.succeeded:
            continue
        line = acceptable_version_line(result.stdout)
        if line is not None:
            return line
    return UNKNOWN
