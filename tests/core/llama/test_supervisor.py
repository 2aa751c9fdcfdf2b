"""Tests for the local server supervisor.

Real child processes are used: ``make`` is replaced by a Python one-liner
and ``./server`` by an executable script written into a temp directory.
"""

from __future__ import annotations

import asyncio
import stat
import sys
import textwrap
from pathlib import Path

import pytest

from codechat.configs.system import LlamaConfig
from codechat.core.llama import (
    BuildFailed,
    LlamaServerSupervisor,
    ServerExited,
    ServerState,
    SpawnFailed,
    SupervisionFailed,
    SupervisorBusy,
    SupervisorStopped,
    parse_server_message,
)

READY_LINE = '{"message": "HTTP server listening", "port": 8080}'


def _write_server(directory: Path, body: str) -> None:
    script = directory / "server"
    script.write_text(
        f"#!{sys.executable}\n" + textwrap.dedent(body), encoding="utf-8"
    )
    script.chmod(script.stat().st_mode | stat.S_IXUSR)


def _config(directory: Path, build_exit: int = 0) -> LlamaConfig:
    return LlamaConfig(
        source_path=directory,
        model_path="models/test.gguf",
        build_command=[
            sys.executable,
            "-c",
            f"import sys; print('compiling'); sys.exit({build_exit})",
        ],
        server_executable="./server",
        stop_timeout=2.0,
    )


SERVING_SCRIPT = f"""
import sys, time
print("loading model...", flush=True)
print({READY_LINE!r}, flush=True)
print('{{"message": "request received"}}', flush=True)
print({READY_LINE!r}, flush=True)
print("warning: something", file=sys.stderr, flush=True)
time.sleep(30)
"""


# ---------------------------------------------------------------------------
# Log parsing
# ---------------------------------------------------------------------------


class TestParseServerMessage:
    def test_structured_line(self):
        message = parse_server_message(READY_LINE)
        assert message is not None
        assert message.message == "HTTP server listening"

    def test_unstructured_line_is_none(self):
        assert parse_server_message("loading model...") is None

    def test_json_without_object_is_none(self):
        assert parse_server_message('"just a string"') is None

    def test_object_without_message(self):
        message = parse_server_message('{"level": "INFO"}')
        assert message is not None
        assert message.message is None


# ---------------------------------------------------------------------------
# Line handler (no processes)
# ---------------------------------------------------------------------------


class TestHandleServerLine:
    def test_ready_fires_once(self, tmp_path):
        supervisor = LlamaServerSupervisor(_config(tmp_path))
        calls = []
        supervisor._on_ready = lambda: calls.append("ready")
        supervisor._state = ServerState.LAUNCHING

        for line in ("loading model...", READY_LINE, '{"message": "x"}', READY_LINE):
            supervisor._handle_server_line(line)

        assert calls == ["ready"]
        assert supervisor.state is ServerState.READY
        assert supervisor.is_ready

    def test_ready_line_ignored_outside_launching(self, tmp_path):
        supervisor = LlamaServerSupervisor(_config(tmp_path))
        supervisor._handle_server_line(READY_LINE)
        assert supervisor.state is ServerState.IDLE
        assert not supervisor.is_ready


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def test_server_command_uses_model_and_context(tmp_path):
    supervisor = LlamaServerSupervisor(LlamaConfig(source_path=tmp_path))
    assert supervisor.build_command() == ["make", "-j"]
    assert supervisor.server_command("m.gguf") == [
        "./server",
        "-m",
        "m.gguf",
        "-c",
        "2048",
    ]


# ---------------------------------------------------------------------------
# Full cycles
# ---------------------------------------------------------------------------


class TestStartCycle:
    @pytest.mark.asyncio
    async def test_build_launch_ready_stop(self, tmp_path):
        _write_server(tmp_path, SERVING_SCRIPT)
        supervisor = LlamaServerSupervisor(_config(tmp_path))
        calls = []

        await supervisor.start(on_ready=lambda: calls.append("ready"))
        await supervisor.wait_ready(timeout=10)
        # Give the reader time to see the second ready line.
        await asyncio.sleep(0.2)

        assert calls == ["ready"]
        assert supervisor.state is ServerState.READY
        assert supervisor.status().pid is not None

        await supervisor.stop()
        assert supervisor.state is ServerState.IDLE
        assert not supervisor.is_ready

    @pytest.mark.asyncio
    async def test_build_failure(self, tmp_path):
        _write_server(tmp_path, SERVING_SCRIPT)
        supervisor = LlamaServerSupervisor(_config(tmp_path, build_exit=2))
        calls = []

        await supervisor.start(on_ready=lambda: calls.append("ready"))
        with pytest.raises(BuildFailed) as exc_info:
            await supervisor.wait_ready(timeout=10)

        assert exc_info.value.returncode == 2
        assert supervisor.state is ServerState.FAILED
        assert calls == []

    @pytest.mark.asyncio
    async def test_server_exits_before_ready(self, tmp_path):
        _write_server(tmp_path, 'print("loading model...")\nraise SystemExit(3)\n')
        supervisor = LlamaServerSupervisor(_config(tmp_path))

        await supervisor.start()
        with pytest.raises(ServerExited) as exc_info:
            await supervisor.wait_ready(timeout=10)

        assert exc_info.value.returncode == 3
        assert supervisor.state is ServerState.FAILED

    @pytest.mark.asyncio
    async def test_missing_server_binary(self, tmp_path):
        supervisor = LlamaServerSupervisor(_config(tmp_path))

        await supervisor.start()
        with pytest.raises(SpawnFailed):
            await supervisor.wait_ready(timeout=10)
        assert supervisor.state is ServerState.FAILED

    @pytest.mark.asyncio
    async def test_build_spawn_failure_is_raised(self, tmp_path):
        config = _config(tmp_path).model_copy(
            update={"build_command": [str(tmp_path / "no-such-make")]}
        )
        supervisor = LlamaServerSupervisor(config)

        with pytest.raises(SpawnFailed):
            await supervisor.start()
        assert supervisor.state is ServerState.FAILED

    @pytest.mark.asyncio
    async def test_restart_after_failure(self, tmp_path):
        supervisor = LlamaServerSupervisor(_config(tmp_path))
        await supervisor.start()
        with pytest.raises(SpawnFailed):
            await supervisor.wait_ready(timeout=10)

        _write_server(tmp_path, SERVING_SCRIPT)
        await supervisor.start()
        await supervisor.wait_ready(timeout=10)
        assert supervisor.is_ready
        await supervisor.stop()

    @pytest.mark.asyncio
    async def test_start_while_active_is_rejected(self, tmp_path):
        _write_server(tmp_path, SERVING_SCRIPT)
        supervisor = LlamaServerSupervisor(_config(tmp_path))
        await supervisor.start()
        try:
            with pytest.raises(SupervisorBusy):
                await supervisor.start()
        finally:
            await supervisor.stop()

    @pytest.mark.asyncio
    async def test_stop_before_ready_wakes_waiters(self, tmp_path):
        _write_server(tmp_path, "import time\ntime.sleep(30)\n")
        supervisor = LlamaServerSupervisor(_config(tmp_path))
        await supervisor.start()
        waiter = asyncio.create_task(supervisor.wait_ready(timeout=10))
        await asyncio.sleep(0.5)

        await supervisor.stop()

        with pytest.raises(SupervisorStopped):
            await waiter
        assert supervisor.state is ServerState.IDLE

    @pytest.mark.asyncio
    async def test_start_without_model_path(self, tmp_path):
        config = _config(tmp_path).model_copy(update={"model_path": ""})
        supervisor = LlamaServerSupervisor(config)
        with pytest.raises(ValueError):
            await supervisor.start()
        assert supervisor.state is ServerState.IDLE


# ---------------------------------------------------------------------------
# Misbehaving children
# ---------------------------------------------------------------------------


OVERSIZED_LINE_SCRIPT = f"""
import sys, time
sys.stdout.write("x" * (2 * 1024 * 1024))
sys.stdout.write("\\n")
print({READY_LINE!r}, flush=True)
time.sleep(30)
"""

# A build that forks a long-running "compiler" and records its pid.
FORKING_BUILD = (
    "import subprocess, sys, time\n"
    "child = subprocess.Popen([sys.executable, '-c', 'import time; time.sleep(60)'])\n"
    "open('compiler.pid', 'w').write(str(child.pid))\n"
    "print('compiling', flush=True)\n"
    "time.sleep(60)\n"
)


def _is_running(pid: int) -> bool:
    try:
        stat_line = Path(f"/proc/{pid}/stat").read_text()
    except FileNotFoundError:
        return False
    return stat_line.rsplit(")", 1)[1].split()[0] != "Z"


class TestMisbehavingChildren:
    @pytest.mark.asyncio
    async def test_oversized_line_before_ready(self, tmp_path):
        _write_server(tmp_path, OVERSIZED_LINE_SCRIPT)
        supervisor = LlamaServerSupervisor(_config(tmp_path))

        await supervisor.start()
        try:
            await supervisor.wait_ready(timeout=10)
            assert supervisor.state is ServerState.READY
        finally:
            await supervisor.stop()

    @pytest.mark.asyncio
    async def test_handler_crash_fails_cycle(self, tmp_path):
        _write_server(tmp_path, SERVING_SCRIPT)
        supervisor = LlamaServerSupervisor(_config(tmp_path))

        def explode(line):
            raise RuntimeError("parser bug")

        supervisor._handle_server_line = explode

        await supervisor.start()
        with pytest.raises(SupervisionFailed):
            await supervisor.wait_ready(timeout=10)

        assert supervisor.state is ServerState.FAILED
        assert supervisor.status().pid is None
        await supervisor.stop()

    @pytest.mark.skipif(not Path("/proc").is_dir(), reason="needs procfs")
    @pytest.mark.asyncio
    async def test_stop_during_build_kills_build_children(self, tmp_path):
        config = _config(tmp_path).model_copy(
            update={"build_command": [sys.executable, "-c", FORKING_BUILD]}
        )
        supervisor = LlamaServerSupervisor(config)
        pid_file = tmp_path / "compiler.pid"

        await supervisor.start()
        for _ in range(100):
            if pid_file.exists() and pid_file.read_text():
                break
            await asyncio.sleep(0.05)
        compiler_pid = int(pid_file.read_text())
        assert supervisor.state is ServerState.BUILDING

        await supervisor.stop()

        for _ in range(100):
            if not _is_running(compiler_pid):
                break
            await asyncio.sleep(0.05)
        assert not _is_running(compiler_pid)
        assert supervisor.state is ServerState.IDLE
