"""Local server states, log records and errors."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, ValidationError

READY_MESSAGE = "HTTP server listening"


class ServerState(str, Enum):
    IDLE = "idle"
    BUILDING = "building"
    LAUNCHING = "launching"
    READY = "ready"
    FAILED = "failed"


ACTIVE_STATES = frozenset(
    {ServerState.BUILDING, ServerState.LAUNCHING, ServerState.READY}
)


class LlamaServerMessage(BaseModel):
    """Structured stdout record of the llama.cpp server."""

    model_config = ConfigDict(extra="allow")

    message: str | None = None
    level: str | None = None


def parse_server_message(line: str) -> LlamaServerMessage | None:
    """Parse a stdout line; ``None`` for unstructured output."""
    try:
        return LlamaServerMessage.model_validate_json(line)
    except ValidationError:
        return None


class LlamaServerStatus(BaseModel):
    state: ServerState
    model_path: str | None = None
    pid: int | None = None
    error: str | None = None


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class LlamaServerError(Exception):
    """Base class for local server failures."""

    result = "error"


class SpawnFailed(LlamaServerError):
    """A child process could not be started."""

    result = "spawn_failed"

    def __init__(self, command: list[str], reason: str) -> None:
        super().__init__(f"Failed to start {' '.join(command)}: {reason}")
        self.command = command


class BuildFailed(LlamaServerError):
    """The build command exited with a non-zero status."""

    result = "build_failed"

    def __init__(self, returncode: int) -> None:
        super().__init__(f"Build exited with status {returncode}")
        self.returncode = returncode


class ServerExited(LlamaServerError):
    """The server process exited on its own."""

    result = "exited"

    def __init__(self, returncode: int) -> None:
        super().__init__(f"Server exited with status {returncode}")
        self.returncode = returncode


class SupervisorStopped(LlamaServerError):
    """The start cycle was stopped before the server became ready."""

    result = "stopped"


class SupervisorBusy(LlamaServerError):
    """``start`` was called while a start cycle is active."""

    def __init__(self, state: ServerState) -> None:
        super().__init__(f"Local server is already {state.value}")
        self.state = state


class SupervisionFailed(LlamaServerError):
    """Reading or driving the child processes failed unexpectedly."""

    result = "crashed"

    def __init__(self, cause: Exception) -> None:
        super().__init__(f"Local server supervision failed: {cause}")
        self.__cause__ = cause
