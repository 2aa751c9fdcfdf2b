"""Local llama.cpp server supervision."""

from .deps import get_llama_supervisor
from .models import (
    READY_MESSAGE,
    BuildFailed,
    LlamaServerError,
    LlamaServerMessage,
    LlamaServerStatus,
    ServerExited,
    ServerState,
    SpawnFailed,
    SupervisionFailed,
    SupervisorBusy,
    SupervisorStopped,
    parse_server_message,
)
from .supervisor import LlamaServerSupervisor

__all__ = [
    "READY_MESSAGE",
    "BuildFailed",
    "LlamaServerError",
    "LlamaServerMessage",
    "LlamaServerStatus",
    "LlamaServerSupervisor",
    "ServerExited",
    "ServerState",
    "SpawnFailed",
    "SupervisionFailed",
    "SupervisorBusy",
    "SupervisorStopped",
    "get_llama_supervisor",
    "parse_server_message",
]
