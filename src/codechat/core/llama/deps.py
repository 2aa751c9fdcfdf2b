"""Process-wide local server supervisor."""

from codechat.configs.config import get_llama_config
from codechat.infra.singleton import singleton

from .supervisor import LlamaServerSupervisor


@singleton
def get_llama_supervisor() -> LlamaServerSupervisor:
    """One supervisor per process (FastAPI dependency).

    Built from the configuration at first use; later configuration
    changes apply after a restart.
    """
    return LlamaServerSupervisor(get_llama_config())
