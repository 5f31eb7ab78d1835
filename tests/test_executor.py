"""Tests for RemoteExecutor: argv assembly, operation planning, and the
subprocess lifecycle against a stand-in ssh binary."""

from __future__ import annotations

import asyncio
import os
import stat
import time
from pathlib import Path

import pytest

from pvedash.config import Settings
from pvedash.errors import InvalidTarget, LaunchFailure
from pvedash.models.targets import Operation, OperationKind, Target
from pvedash.services.executor import RemoteExecutor

# Runs its last argument (the remote command line) through a local shell.
FAKE_SSH = '#!/bin/sh\nfor last; do :; done\nexec /bin/sh -c "$last"\n'


async def _alive(pid: int) -> bool:
    """Whether *pid* still runs; an unreaped zombie counts as dead."""
    for _ in range(20):
        try:
            os.kill(pid, 0)
        except ProcessLookupError:
            return False
        try:
            state = Path(f"/proc/{pid}/stat").read_text().rsplit(")", 1)[1].split()[0]
        except (OSError, IndexError):
            state = ""
        if state == "Z":
            return False
        await asyncio.sleep(0.1)
    return True


@pytest.fixture
def executor():
    cfg = Settings(
        pve_ssh_binary="ssh",
        pve_ssh_options=["-o", "BatchMode=yes"],
        pve_host_alias="proxmox",
        pve_vm_aliases={500: "homeassistant"},
    )
    return RemoteExecutor(cfg)


@pytest.fixture
def local_executor(tmp_path):
    script = tmp_path / "fake-ssh"
    script.write_text(FAKE_SSH)
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return RemoteExecutor(Settings(pve_ssh_binary=str(script), pve_ssh_options=[]))


class TestBuildArgv:
    def test_host_command(self, executor):
        argv = executor.build_argv("proxmox", ["pct", "list"])
        assert argv == ["ssh", "-o", "BatchMode=yes", "proxmox", "pct list"]

    def test_destination_prefix_goes_remote(self, executor):
        argv = executor.build_argv("proxmox pct exec 101 --", ["cat", "/etc/os-release"])
        assert argv[-2] == "proxmox"
        assert argv[-1] == "pct exec 101 -- cat /etc/os-release"

    def test_arguments_are_quoted(self, executor):
        argv = executor.build_argv("proxmox", ["test", "-f", "/etc/my app.conf; rm -rf /"])
        assert argv[-1] == "test -f '/etc/my app.conf; rm -rf /'"

    def test_empty_destination(self, executor):
        with pytest.raises(LaunchFailure):
            executor.build_argv("", ["true"])


class TestPlan:
    def test_container_status_runs_on_host(self, executor):
        dest, cmd = executor.plan(Target.container(214), Operation.of(OperationKind.status))
        assert dest == "proxmox"
        assert cmd == ["pct", "status", "214", "--verbose"]

    def test_vm_restart_is_reboot(self, executor):
        dest, cmd = executor.plan(Target.vm(500), Operation.of(OperationKind.restart))
        assert dest == "proxmox"
        assert cmd == ["qm", "reboot", "500"]

    def test_vm_reset(self, executor):
        _, cmd = executor.plan(Target.vm(611), Operation.of(OperationKind.reset))
        assert cmd == ["qm", "reset", "611"]

    def test_container_config(self, executor):
        _, cmd = executor.plan(Target.container(100), Operation.of(OperationKind.config))
        assert cmd == ["pct", "config", "100"]

    def test_exec_uses_resolved_destination(self, executor):
        dest, cmd = executor.plan(Target.vm(500), Operation.exec("uptime", "-p"))
        assert dest == "homeassistant"
        assert cmd == ["uptime", "-p"]

    def test_exec_in_container(self, executor):
        dest, _ = executor.plan(Target.container(230), Operation.exec("hostname"))
        assert dest == "proxmox pct exec 230 --"

    def test_host_power_rejected(self, executor):
        with pytest.raises(InvalidTarget) as exc_info:
            executor.plan(Target.host(), Operation.of(OperationKind.stop))
        assert exc_info.value.code == "unsupported_operation"

    def test_container_reset_rejected(self, executor):
        with pytest.raises(InvalidTarget):
            executor.plan(Target.container(100), Operation.of(OperationKind.reset))

    def test_empty_exec_rejected(self, executor):
        with pytest.raises(InvalidTarget):
            executor.plan(Target.host(), Operation.exec())


class TestRun:
    @pytest.mark.asyncio
    async def test_success(self, local_executor):
        result = await local_executor.run("localhost", ["echo", "hello world"], timeout=5)
        assert result.succeeded
        assert result.exit_status == 0
        assert result.stdout == "hello world\n"
        assert result.destination == "localhost"
        assert result.command == ["echo", "hello world"]

    @pytest.mark.asyncio
    async def test_remote_failure_is_a_result(self, local_executor):
        result = await local_executor.run("localhost", ["sh", "-c", "echo oops >&2; exit 3"], timeout=5)
        assert not result.succeeded
        assert result.exit_status == 3
        assert result.stderr.strip() == "oops"
        assert not result.timed_out

    @pytest.mark.asyncio
    async def test_channel_error_is_launch_failure(self, local_executor):
        with pytest.raises(LaunchFailure) as exc_info:
            await local_executor.run("localhost", ["sh", "-c", "exit 255"], timeout=5)
        assert exc_info.value.code == "channel_unreachable"

    @pytest.mark.asyncio
    async def test_missing_binary_is_launch_failure(self, tmp_path):
        executor = RemoteExecutor(
            Settings(pve_ssh_binary=str(tmp_path / "no-such-ssh"), pve_ssh_options=[]),
        )
        with pytest.raises(LaunchFailure) as exc_info:
            await executor.run("localhost", ["true"])
        assert "Failed to execute SSH command" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self, local_executor):
        t0 = time.monotonic()
        result = await local_executor.run("localhost", ["sleep", "10"], timeout=0.3)
        assert result.timed_out
        assert not result.succeeded
        assert time.monotonic() - t0 < 5

    @pytest.mark.asyncio
    async def test_timeout_kills_forked_children(self, local_executor, tmp_path):
        pidfile = tmp_path / "child.pid"
        script = f"sleep 10 & echo $! > {pidfile}; wait; echo finished"
        t0 = time.monotonic()
        result = await local_executor.run("localhost", ["sh", "-c", script], timeout=0.5)
        assert result.timed_out
        assert time.monotonic() - t0 < 5
        assert not await _alive(int(pidfile.read_text()))

    @pytest.mark.asyncio
    async def test_cancel_kills_forked_children(self, local_executor):
        t0 = time.monotonic()
        task = asyncio.ensure_future(
            local_executor.run("localhost", ["sh", "-c", "sleep 10; echo finished"]),
        )
        await asyncio.sleep(0.3)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert time.monotonic() - t0 < 5

    @pytest.mark.asyncio
    async def test_input_text_reaches_stdin(self, local_executor):
        result = await local_executor.run("localhost", ["cat"], timeout=5, input_text="a=1\nb=2\n")
        assert result.stdout == "a=1\nb=2\n"

    @pytest.mark.asyncio
    async def test_execute_exec_operation(self, local_executor):
        cfg = Settings(pve_host_alias="localhost", pve_ssh_options=[])
        local_executor.addressing = local_executor.addressing.from_settings(cfg)
        result = await local_executor.execute(Target.host(), Operation.exec("echo", "ok"))
        assert result.stdout == "ok\n"
