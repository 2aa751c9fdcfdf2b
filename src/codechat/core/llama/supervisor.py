"""Builds and runs a local llama.cpp server as a child process.

State machine (one child process per start cycle)::

    IDLE ──start()──▶ BUILDING ──exit 0──▶ LAUNCHING ──ready line──▶ READY
                         │                     │                      │
                      exit ≠ 0            exit before ready        stop()
                         ▼                     ▼                      ▼
                       FAILED               FAILED                  IDLE

Readiness is detected by parsing the server's stdout: the line whose
JSON ``message`` field equals ``"HTTP server listening"``.  stderr is
read separately so build warnings never reach the readiness parser.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import threading
from collections.abc import Callable
from typing import Any

from codechat.configs.system import LlamaConfig
from codechat.core.metrics import LLAMA_SERVER_STARTS_TOTAL, LLAMA_SERVER_STATE
from codechat.infra.telemetry import (
    ATTR_LLAMA_RETURNCODE,
    SPAN_LLAMA_BUILD,
    SPAN_LLAMA_LAUNCH,
    tracer,
)

from .models import (
    ACTIVE_STATES,
    READY_MESSAGE,
    BuildFailed,
    LlamaServerError,
    LlamaServerStatus,
    ServerExited,
    ServerState,
    SpawnFailed,
    SupervisionFailed,
    SupervisorBusy,
    SupervisorStopped,
    parse_server_message,
)

logger = logging.getLogger(__name__)

CHILD_ENCODING = "utf-8"
STREAM_LIMIT = 1024 * 1024  # bytes per line


class LlamaServerSupervisor:
    """Owns the build/server child process of the current start cycle.

    Runs on the asyncio loop that called ``start``.  ``state`` and
    ``is_ready`` may be read from any thread.
    """

    def __init__(self, config: LlamaConfig) -> None:
        self._config = config
        self._lock = threading.Lock()
        self._state = ServerState.IDLE
        self._ready = threading.Event()
        self._error: LlamaServerError | None = None
        self._model_path: str | None = None
        self._process: asyncio.subprocess.Process | None = None
        self._task: asyncio.Task[None] | None = None
        self._done: asyncio.Future[None] | None = None
        self._on_ready: Callable[[], Any] | None = None
        self._stopping = False
        self._publish_state(ServerState.IDLE)

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    @property
    def state(self) -> ServerState:
        with self._lock:
            return self._state

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set()

    @property
    def error(self) -> LlamaServerError | None:
        return self._error

    def status(self) -> LlamaServerStatus:
        process = self._process
        with self._lock:
            return LlamaServerStatus(
                state=self._state,
                model_path=self._model_path,
                pid=process.pid if process and process.returncode is None else None,
                error=str(self._error) if self._error else None,
            )

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def build_command(self) -> list[str]:
        return list(self._config.build_command)

    def server_command(self, model_path: str) -> list[str]:
        return [
            self._config.server_executable,
            "-m",
            model_path,
            "-c",
            str(self._config.context_size),
        ]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(
        self,
        model_path: str | None = None,
        on_ready: Callable[[], Any] | None = None,
    ) -> None:
        """Start a build-and-launch cycle.

        Returns once the build process is running; the rest of the cycle
        continues in the background.  ``on_ready`` fires at most once.

        Raises:
            ValueError: no model path given or configured.
            SupervisorBusy: a cycle is already building, launching or ready.
            SpawnFailed: the build command could not be started.
        """
        model_path = model_path or self._config.model_path
        if not model_path:
            raise ValueError("No model path configured for the local server")

        with self._lock:
            if self._state in ACTIVE_STATES:
                raise SupervisorBusy(self._state)
            self._set_state(ServerState.BUILDING)
            self._error = None
            self._model_path = model_path
            self._on_ready = on_ready
            self._stopping = False
        self._ready.clear()
        self._done = asyncio.get_running_loop().create_future()

        logger.info("Building llama.cpp in %s", self._config.source_path)
        try:
            build = await self._spawn(self.build_command())
        except SpawnFailed as exc:
            self._fail(exc)
            raise
        self._process = build
        self._task = asyncio.create_task(
            self._run(build, model_path), name="llama-supervisor"
        )

    async def wait_ready(self, timeout: float | None = None) -> None:
        """Wait until READY.

        Raises the cycle's ``LlamaServerError`` if it failed, or
        ``SupervisorStopped`` if it was stopped first.
        """
        if self._done is None:
            raise SupervisorStopped("Local server was never started")
        await asyncio.wait_for(asyncio.shield(self._done), timeout)
        if self.is_ready:
            return
        if self._error is not None:
            raise self._error
        raise SupervisorStopped("Local server stopped before becoming ready")

    async def stop(self) -> None:
        """Terminate the child process group and return to IDLE."""
        self._stopping = True
        process, task = self._process, self._task

        if process is not None and process.returncode is None:
            logger.info("Stopping local server (pid=%s)", process.pid)
            _signal_group(process, signal.SIGTERM)
            try:
                await asyncio.wait_for(process.wait(), self._config.stop_timeout)
            except asyncio.TimeoutError:
                logger.warning("Local server did not stop in time; killing it")
                _signal_group(process, signal.SIGKILL)
                await process.wait()

        if task is not None and not task.done():
            await task

        with self._lock:
            self._set_state(ServerState.IDLE)
        self._ready.clear()
        self._process = None
        self._task = None
        self._resolve()

    # ------------------------------------------------------------------
    # Background cycle
    # ------------------------------------------------------------------

    async def _run(
        self, build: asyncio.subprocess.Process, model_path: str
    ) -> None:
        try:
            with tracer.start_as_current_span(SPAN_LLAMA_BUILD) as span:
                returncode = await self._pump(build, self._on_build_line)
                span.set_attribute(ATTR_LLAMA_RETURNCODE, returncode)
            if self._stopping:
                return
            if returncode != 0:
                raise BuildFailed(returncode)

            with self._lock:
                self._set_state(ServerState.LAUNCHING)
            logger.info("Starting local server with model %s", model_path)

            with tracer.start_as_current_span(SPAN_LLAMA_LAUNCH) as span:
                server = await self._spawn(self.server_command(model_path))
                self._process = server
                if self._stopping:
                    _signal_group(server, signal.SIGTERM)
                returncode = await self._pump(server, self._handle_server_line)
                span.set_attribute(ATTR_LLAMA_RETURNCODE, returncode)
            if not self._stopping:
                raise ServerExited(returncode)
        except LlamaServerError as exc:
            if not self._stopping:
                self._fail(exc)
        except Exception as exc:
            logger.exception("Local server supervision crashed")
            process = self._process
            if process is not None and process.returncode is None:
                _signal_group(process, signal.SIGKILL)
                await process.wait()
            if not self._stopping:
                self._fail(SupervisionFailed(exc))

    async def _spawn(self, command: list[str]) -> asyncio.subprocess.Process:
        try:
            return await asyncio.create_subprocess_exec(
                *command,
                cwd=self._config.source_path,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                limit=STREAM_LIMIT,
                start_new_session=True,
            )
        except OSError as exc:
            raise SpawnFailed(command, str(exc)) from exc

    async def _pump(
        self,
        process: asyncio.subprocess.Process,
        on_stdout_line: Callable[[str], None],
    ) -> int:
        await asyncio.gather(
            self._read_lines(process.stdout, on_stdout_line),
            self._read_lines(process.stderr, self._on_stderr_line),
        )
        return await process.wait()

    @staticmethod
    async def _read_lines(
        stream: asyncio.StreamReader | None, handler: Callable[[str], None]
    ) -> None:
        if stream is None:
            return
        while True:
            try:
                raw = await stream.readline()
            except ValueError:
                # readline() drops the buffered part of an over-long line;
                # its tail arrives as an ordinary (unparseable) line.
                logger.warning("Discarded child output line over %d bytes", STREAM_LIMIT)
                continue
            if not raw:
                return
            handler(raw.decode(CHILD_ENCODING, errors="replace").rstrip("\r\n"))

    # ------------------------------------------------------------------
    # Line handlers
    # ------------------------------------------------------------------

    def _on_build_line(self, line: str) -> None:
        logger.info("[make] %s", line)

    def _on_stderr_line(self, line: str) -> None:
        logger.debug("[stderr] %s", line)

    def _handle_server_line(self, line: str) -> None:
        logger.info("[server] %s", line)
        message = parse_server_message(line)
        if message is not None and message.message == READY_MESSAGE:
            self._mark_ready()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _mark_ready(self) -> None:
        with self._lock:
            if self._state is not ServerState.LAUNCHING:
                return
            self._set_state(ServerState.READY)
            callback, self._on_ready = self._on_ready, None
        self._ready.set()
        LLAMA_SERVER_STARTS_TOTAL.labels(result="ready").inc()
        logger.info("Local server is ready")
        self._resolve()
        if callback is not None:
            try:
                callback()
            except Exception:
                logger.exception("Local server on_ready callback failed")

    def _fail(self, exc: LlamaServerError) -> None:
        with self._lock:
            self._set_state(ServerState.FAILED)
            self._error = exc
            self._on_ready = None
        self._ready.clear()
        LLAMA_SERVER_STARTS_TOTAL.labels(result=exc.result).inc()
        logger.error("Local server start failed: %s", exc)
        self._resolve()

    def _resolve(self) -> None:
        if self._done is not None and not self._done.done():
            self._done.set_result(None)

    def _set_state(self, state: ServerState) -> None:
        """Caller holds ``self._lock``."""
        logger.debug("Local server state %s -> %s", self._state.value, state.value)
        self._state = state
        self._publish_state(state)

    @staticmethod
    def _publish_state(current: ServerState) -> None:
        for state in ServerState:
            LLAMA_SERVER_STATE.labels(state=state.value).set(
                1 if state is current else 0
            )


def _signal_group(process: asyncio.subprocess.Process, sig: signal.Signals) -> None:
    """Signal the child's whole process group (it leads its own session)."""
    try:
        os.killpg(process.pid, sig)
    except ProcessLookupError:
        pass
