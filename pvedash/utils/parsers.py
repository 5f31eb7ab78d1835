"""Utilities for parsing Proxmox and Linux command output.

Everything here is a pure function over strings.  Output that matches no
known pattern degrades to a sentinel value; nothing in this module raises
on unexpected text.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone

from pvedash.models.records import UNKNOWN, RunState, StoragePool

MAX_VERSION_LINE = 200


# ---------------------------------------------------------------------------
# Status and listings
# ---------------------------------------------------------------------------


def parse_running_state(text: str) -> RunState:
    """Derive the run state by substring, "running" taking priority."""
    if "running" in text:
        return RunState.running
    if "stopped" in text:
        return RunState.stopped
    return RunState.unknown


def parse_guest_state(text: str) -> RunState:
    """Run state from ``pct/qm status --verbose``.

    Free-text fields such as ``name:`` may contain "running", so only the
    ``status`` value is scanned when present.
    """
    value = parse_key_value_block(text, ":").get("status")
    return parse_running_state(text if value is None else value)


def parse_id_listing(text: str) -> list[int]:
    """Return the numeric ids of a ``pct list`` / ``qm list`` table.

    The first line is a header.  Rows whose first token is not an unsigned
    integer are skipped.  Order is preserved.
    """
    ids: list[int] = []
    for line in text.splitlines()[1:]:
        tokens = line.split()
        if not tokens:
            continue
        # int() would also accept "+7", "1_00" and non-ASCII digits
        if tokens[0].isascii() and tokens[0].isdigit():
            ids.append(int(tokens[0]))
    return ids


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def parse_key_value_block(text: str, separator: str = "=") -> dict[str, str]:
    """Parse ``key<sep>value`` lines; the last duplicate key wins."""
    data: dict[str, str] = {}
    for line in text.splitlines():
        if separator not in line:
            continue
        key, _, value = line.partition(separator)
        key = key.strip()
        if not key or key.startswith("#"):
            continue
        data[key] = _unquote(value.strip())
    return data


# ---------------------------------------------------------------------------
# systemd
# ---------------------------------------------------------------------------


def parse_systemd_active(text: str) -> bool:
    return "Active: active" in text


def parse_enabled_state(text: str) -> bool:
    """``systemctl is-enabled`` prints exactly ``enabled`` for enabled units."""
    return text.strip() == "enabled"


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------


def parse_stat_pair(text: str) -> tuple[int, int]:
    """Parse ``stat -c '%s %Y'`` into ``(size, modified_epoch)``."""
    parts = text.split()

    def _field(index: int) -> int:
        try:
            return int(parts[index])
        except (IndexError, ValueError):
            return 0

    return _field(0), _field(1)


def format_epoch(epoch: int) -> str:
    if epoch <= 0:
        return UNKNOWN
    try:
        dt = datetime.fromtimestamp(epoch, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return UNKNOWN
    return dt.strftime("%Y-%m-%d %H:%M:%S")


# ---------------------------------------------------------------------------
# Versions
# ---------------------------------------------------------------------------


def first_line(text: str) -> str:
    for line in text.splitlines():
        return line.strip()
    return ""


def acceptable_version_line(text: str) -> str | None:
    """Return the first line of *text* if it looks like a version string."""
    line = first_line(text)
    if line and len(line) < MAX_VERSION_LINE:
        return line
    return None


# ---------------------------------------------------------------------------
# Host metrics
# ---------------------------------------------------------------------------

_PERCENT_RE = re.compile(r"^(\d+(?:\.\d+)?)%$")
_LOAD_AVG_RE = re.compile(r"load average:\s*([\d.]+)")


def parse_df_usage(text: str) -> float:
    """Use% of the first filesystem row of ``df -h <mount>``."""
    lines = text.splitlines()
    if len(lines) < 2:
        return 0.0
    fields = lines[1].split()
    if len(fields) < 5:
        return 0.0
    match = _PERCENT_RE.match(fields[4])
    return float(match.group(1)) if match else 0.0


def parse_free_memory(text: str) -> float:
    """Used memory percentage from the ``Mem:`` row of ``free -m``."""
    for line in text.splitlines():
        if not line.startswith("Mem:"):
            continue
        fields = line.split()
        try:
            total = float(fields[1])
            used = float(fields[2])
        except (IndexError, ValueError):
            return 0.0
        if total <= 0:
            return 0.0
        return round(used / total * 100, 1)
    return 0.0


def parse_load_average(text: str) -> float:
    """One-minute load from ``/proc/loadavg`` or ``uptime`` output."""
    match = _LOAD_AVG_RE.search(text)
    if match:
        raw = match.group(1).rstrip(".")
    else:
        tokens = text.split()
        raw = tokens[0] if tokens else ""
    try:
        return float(raw.rstrip(","))
    except ValueError:
        return 0.0


def parse_os_release(text: str) -> str:
    data = parse_key_value_block(text, "=")
    return data.get("PRETTY_NAME") or data.get("NAME") or UNKNOWN


def parse_uptime_seconds(value: str) -> int:
    try:
        return max(int(float(value)), 0)
    except (TypeError, ValueError):
        return 0


def format_uptime(seconds: int) -> str:
    if seconds <= 0:
        return UNKNOWN
    days, rest = divmod(seconds, 86400)
    hours, rest = divmod(rest, 3600)
    minutes = rest // 60
    if days:
        return f"{days}d {hours}h {minutes}m"
    if hours:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def parse_guest_metrics(text: str) -> dict:
    """Uptime, cpu and memory from ``pct status --verbose`` / ``qm status --verbose``.

    Both print ``key: value`` lines.  ``cpu`` is a fraction of the
    allocated cores, ``mem``/``maxmem`` are bytes.
    """
    data = parse_key_value_block(text, ":")
    try:
        cpu = round(float(data.get("cpu", "0")) * 100, 1)
    except ValueError:
        cpu = 0.0
    try:
        mem = float(data.get("mem", "0"))
        maxmem = float(data.get("maxmem", "0"))
        memory = round(mem / maxmem * 100, 1) if maxmem > 0 else 0.0
    except ValueError:
        memory = 0.0
    return {
        "uptime": format_uptime(parse_uptime_seconds(data.get("uptime", "0"))),
        "cpu_usage": cpu,
        "memory_usage": memory,
    }


def parse_memory_config(text: str) -> int | None:
    """Configured memory in MiB from ``pct config`` / ``qm config``."""
    value = parse_key_value_block(text, ":").get("memory")
    if value is None or not value.isdigit():
        return None
    return int(value)


def parse_storage_status(text: str) -> list[StoragePool]:
    """Parse the ``pvesm status`` table.

    Columns: Name Type Status Total Used Available %.  Sizes are KiB.
    """
    pools: list[StoragePool] = []
    for line in text.splitlines()[1:]:
        fields = line.split()
        if len(fields) < 6:
            continue
        try:
            total, used, available = (int(f) * 1024 for f in fields[3:6])
        except ValueError:
            continue
        percent = 0.0
        if len(fields) > 6:
            try:
                percent = float(fields[6].rstrip("%"))
            except ValueError:
                percent = 0.0
        elif total:
            percent = round(used / total * 100, 2)
        pools.append(
            StoragePool(
                name=fields[0],
                type=fields[1],
                status=fields[2],
                total_bytes=total,
                used_bytes=used,
                available_bytes=available,
                used_percent=percent,
            ),
        )
    return pools
