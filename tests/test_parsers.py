"""Tests for Proxmox / Linux output parsing utilities."""

from __future__ import annotations

from pvedash.models.records import RunState
from pvedash.utils.parsers import (
    acceptable_version_line,
    format_epoch,
    format_uptime,
    parse_df_usage,
    parse_enabled_state,
    parse_free_memory,
    parse_guest_metrics,
    parse_guest_state,
    parse_id_listing,
    parse_key_value_block,
    parse_load_average,
    parse_memory_config,
    parse_os_release,
    parse_running_state,
    parse_stat_pair,
    parse_storage_status,
    parse_systemd_active,
)
from tests.mock_executor import (
    DF_ROOT,
    FREE_M,
    LOADAVG,
    OS_RELEASE,
    PCT_CONFIG,
    PCT_LIST,
    PCT_STATUS_RUNNING,
    PVESM_STATUS,
    QM_LIST,
    SYSTEMCTL_ACTIVE,
    SYSTEMCTL_INACTIVE,
)


class TestRunningState:
    def test_running(self):
        assert parse_running_state("status: running\n") is RunState.running

    def test_stopped(self):
        assert parse_running_state("status: stopped\n") is RunState.stopped

    def test_neither(self):
        assert parse_running_state("status: paused\n") is RunState.unknown

    def test_empty(self):
        assert parse_running_state("") is RunState.unknown

    def test_running_wins_over_stopped(self):
        assert parse_running_state("stopped earlier, running now") is RunState.running

    def test_case_sensitive(self):
        assert parse_running_state("Status: RUNNING") is RunState.unknown

    def test_guest_state_ignores_name_field(self):
        text = "name: running-tracker\nstatus: stopped\n"
        assert parse_guest_state(text) is RunState.stopped

    def test_guest_state_without_status_key(self):
        assert parse_guest_state("VM is running") is RunState.running


class TestIdListing:
    def test_header_skipped_and_bad_rows_dropped(self):
        text = "ID\n100 running\n214 stopped\nabc bad\n230 running\n"
        assert parse_id_listing(text) == [100, 214, 230]

    def test_pct_list(self):
        assert parse_id_listing(PCT_LIST) == [100, 214, 230]

    def test_qm_list_with_leading_whitespace(self):
        assert parse_id_listing(QM_LIST) == [500, 611]

    def test_negative_and_blank_rows_skipped(self):
        assert parse_id_listing("VMID\n\n-5 x\n7 y\n") == [7]

    def test_only_plain_ascii_digits(self):
        assert parse_id_listing("VMID\n1_00 x\n+7 y\n\u0663 z\n12 ok\n") == [12]

    def test_header_only(self):
        assert parse_id_listing("VMID Status\n") == []

    def test_empty(self):
        assert parse_id_listing("") == []


class TestKeyValueBlock:
    def test_quotes_stripped(self):
        data = parse_key_value_block(OS_RELEASE)
        assert data["PRETTY_NAME"] == "Debian GNU/Linux 12 (bookworm)"
        assert data["ID"] == "debian"

    def test_last_duplicate_wins(self):
        assert parse_key_value_block("a=1\nb=2\na=3\n") == {"a": "3", "b": "2"}

    def test_lines_without_separator_ignored(self):
        assert parse_key_value_block("junk\nk=v\n# c=d\n") == {"k": "v"}

    def test_value_may_contain_separator(self):
        assert parse_key_value_block("opts=a=b\n")["opts"] == "a=b"

    def test_colon_separator(self):
        data = parse_key_value_block(PCT_CONFIG, ":")
        assert data["memory"] == "2048"
        assert data["net0"].startswith("name=eth0")


class TestSystemd:
    def test_active(self):
        assert parse_systemd_active(SYSTEMCTL_ACTIVE)

    def test_inactive(self):
        assert not parse_systemd_active(SYSTEMCTL_INACTIVE)

    def test_enabled_state(self):
        assert parse_enabled_state("enabled\n")
        assert not parse_enabled_state("disabled\n")
        assert not parse_enabled_state("enabled-runtime\n")


class TestStatPair:
    def test_both_fields(self):
        assert parse_stat_pair("2048 1700000000\n") == (2048, 1700000000)

    def test_missing_field_defaults_to_zero(self):
        assert parse_stat_pair("512") == (512, 0)

    def test_garbage(self):
        assert parse_stat_pair("stat: cannot stat") == (0, 0)

    def test_format_epoch(self):
        assert format_epoch(0) == "Unknown"
        assert format_epoch(1700000000) == "2023-11-14 22:13:20"


class TestVersionLine:
    def test_short_line_accepted(self):
        assert acceptable_version_line("tool 1.2.3\nmore\n") == "tool 1.2.3"

    def test_empty_rejected(self):
        assert acceptable_version_line("") is None
        assert acceptable_version_line("\n") is None

    def test_long_line_rejected(self):
        assert acceptable_version_line("x" * 200) is None
        assert acceptable_version_line("x" * 199) == "x" * 199


class TestHostMetrics:
    def test_df_usage(self):
        assert parse_df_usage(DF_ROOT) == 43.0

    def test_df_garbage(self):
        assert parse_df_usage("df: /: No such file") == 0.0

    def test_free_memory(self):
        assert parse_free_memory(FREE_M) == 25.0

    def test_free_memory_missing_row(self):
        assert parse_free_memory("Swap: 1 0 1") == 0.0

    def test_loadavg(self):
        assert parse_load_average(LOADAVG) == 0.52

    def test_uptime_load(self):
        text = " 10:00:00 up 3 days,  2 users,  load average: 1.25, 0.80, 0.60"
        assert parse_load_average(text) == 1.25

    def test_load_garbage(self):
        assert parse_load_average("") == 0.0

    def test_os_release(self):
        assert parse_os_release(OS_RELEASE) == "Debian GNU/Linux 12 (bookworm)"
        assert parse_os_release("") == "Unknown"


class TestGuestMetrics:
    def test_running_container(self):
        metrics = parse_guest_metrics(PCT_STATUS_RUNNING)
        assert metrics["memory_usage"] == 25.0
        assert metrics["uptime"] == "1d 2h 3m"
        assert metrics["cpu_usage"] > 5

    def test_bare_status(self):
        metrics = parse_guest_metrics("status: running\n")
        assert metrics == {"uptime": "Unknown", "cpu_usage": 0.0, "memory_usage": 0.0}

    def test_format_uptime(self):
        assert format_uptime(0) == "Unknown"
        assert format_uptime(59 * 60) == "59m"
        assert format_uptime(3 * 3600 + 60) == "3h 1m"

    def test_memory_config(self):
        assert parse_memory_config(PCT_CONFIG) == 2048
        assert parse_memory_config("cores: 2\n") is None


class TestStorageStatus:
    def test_pvesm_status(self):
        pools = parse_storage_status(PVESM_STATUS)
        assert [p.name for p in pools] == ["local", "local-lvm"]
        assert pools[0].type == "dir"
        assert pools[0].status == "active"
        assert pools[0].total_bytes == 98497780 * 1024
        assert pools[0].used_percent == 39.85

    def test_short_rows_skipped(self):
        assert parse_storage_status("Name Type\nbroken row\n") == []
