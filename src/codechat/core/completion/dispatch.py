"""Gate between request assembly and dispatch to the active backend."""

from codechat.configs.system import ServiceType
from codechat.core.llama import LlamaServerSupervisor, ServerState

from .exceptions import BackendNotReady


def ensure_backend_ready(
    service: ServiceType, supervisor: LlamaServerSupervisor
) -> None:
    """Raise ``BackendNotReady`` unless *service* can take a request now.

    Remote providers are always considered ready; the local server must
    have reached READY.
    """
    if service is ServiceType.LLAMA and not supervisor.is_ready:
        state: ServerState = supervisor.state
        raise BackendNotReady(service.value, state.value)
