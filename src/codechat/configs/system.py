from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field


class ServiceType(str, Enum):
    """Remote (or local) completion backends a turn can be sent to."""

    OPENAI = "openai"
    AZURE = "azure"
    YOU = "you"
    LLAMA = "llama"


class APIConfig(BaseModel):
    """API configuration settings."""

    host: str = Field(default="127.0.0.1", description="API server host")
    port: int = Field(default=8000, description="API server port")


class ChatConfig(BaseModel):
    """Configuration for completion requests."""

    system_prompt: str = Field(
        default="",
        description="Custom system prompt; empty means use the built-in default",
    )
    max_tokens: int = Field(
        default=1000, gt=0, description="Maximum tokens in a single response"
    )
    temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=2.0,
        description="Sampling temperature for model responses",
    )


class ServiceConfig(BaseModel):
    """Which backend is active and its per-backend toggles."""

    active: ServiceType = Field(
        default=ServiceType.OPENAI, description="Active completion backend"
    )
    model: str = Field(
        default="gpt-3.5-turbo", description="Default chat model code"
    )
    use_larger_model: bool = Field(
        default=False,
        description="Ask the You.com backend for its larger (GPT-4) model",
    )


class EmbeddingConfig(BaseModel):
    """OpenAI-compatible embedding endpoint and local index settings."""

    base_path: Path = Field(
        default=Path.home() / ".codechat",
        description="Directory holding the local vector index",
    )
    index_file: str = Field(
        default="embeddings.json", description="Index file name under base_path"
    )
    endpoint: str | None = Field(
        default=None, description="Embedding API base URL (None = OpenAI)"
    )
    api_key: str = Field(default="", description="Embedding API key")
    model_name: str = Field(
        default="text-embedding-ada-002", description="Embedding model name"
    )
    top_k: int = Field(
        default=4, gt=0, description="Snippets retrieved per prompt"
    )
    chunk_size: int = Field(
        default=1500, gt=0, description="Max characters per indexed chunk"
    )

    @property
    def index_path(self) -> Path:
        return self.base_path / self.index_file


class LlamaConfig(BaseModel):
    """Local llama.cpp server build and launch settings."""

    source_path: Path = Field(
        default=Path.home() / ".codechat" / "llama.cpp",
        description="Model-source directory where make and ./server run",
    )
    model_path: str = Field(default="", description="Path to the GGUF model")
    build_command: list[str] = Field(
        default_factory=lambda: ["make", "-j"],
        description="Command that compiles the server",
    )
    server_executable: str = Field(
        default="./server", description="Server binary, relative to source_path"
    )
    context_size: int = Field(
        default=2048, gt=0, description="Context size passed with -c"
    )
    stop_timeout: float = Field(
        default=5.0, gt=0, description="Seconds to wait for a graceful stop"
    )


class ModelEntry(BaseModel):
    """Extra model known to the registry (e.g. a custom deployment)."""

    code: str
    description: str = ""
    max_context_tokens: int = Field(gt=0)


class LoggingConfig(BaseModel):
    """Root logger configuration."""

    level: str = Field(default="INFO", description="Root log level")
    json_output: bool = Field(
        default=False, description="Emit JSON lines instead of coloured text"
    )


class TracingConfig(BaseModel):
    """OpenTelemetry OTLP exporter settings."""

    enabled: bool = Field(default=False, description="Enable OTLP tracing")
    endpoint: str = Field(default="", description="OTLP HTTP traces endpoint")
    service_name: str = Field(default="codechat", description="service.name")
    sample_rate: float = Field(default=1.0, ge=0.0, le=1.0)
    excluded_urls: list[str] = Field(
        default_factory=lambda: ["/health", "/metrics"],
        description="Paths not traced or measured",
    )
