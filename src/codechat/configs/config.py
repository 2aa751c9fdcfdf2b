"""Configuration management using pydantic-settings.

**Not a singleton**: each call to ``get_app_config()`` re-reads config
so that a request is always assembled from a fresh settings snapshot.

Priority order (highest first):

1. Environment variables (``CODECHAT_`` prefix, ``__`` nesting)
2. ``.env`` dotenv file
3. Static YAML (``configs/config.yaml``)
4. Init defaults / field defaults
5. File secrets
"""

from dataclasses import dataclass
from pathlib import Path

from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from .system import (
    APIConfig,
    ChatConfig,
    EmbeddingConfig,
    LlamaConfig,
    LoggingConfig,
    ModelEntry,
    ServiceConfig,
    ServiceType,
    TracingConfig,
)

# ---------------------------------------------------------------------------
# Path constants
# ---------------------------------------------------------------------------

CONFIG_PY_PATH = Path(__file__).resolve()
PROJECT_ROOT = CONFIG_PY_PATH.parent.parent.parent.parent
CONFIG_DIR = PROJECT_ROOT / "configs"

STATIC_CONFIG_FILE = CONFIG_DIR / "config.yaml"

DOTENV_FILE_PATH = PROJECT_ROOT / ".env"
ENV_DELIMITER = "__"
ENV_PREFIX = "CODECHAT_"

DEFAULT_ENCODING = "utf-8"


class AppConfig(BaseSettings):
    """Application configuration."""

    model_config = SettingsConfigDict(
        env_file=DOTENV_FILE_PATH,
        env_file_encoding=DEFAULT_ENCODING,
        env_nested_delimiter=ENV_DELIMITER,
        env_prefix=ENV_PREFIX,
        case_sensitive=False,
        extra="ignore",
        yaml_file=STATIC_CONFIG_FILE,
        yaml_file_encoding=DEFAULT_ENCODING,
    )

    api: APIConfig = Field(
        default_factory=APIConfig, description="API configuration settings"
    )

    chat: ChatConfig = Field(
        default_factory=ChatConfig, description="Completion request settings"
    )

    service: ServiceConfig = Field(
        default_factory=ServiceConfig, description="Active backend selection"
    )

    embedding: EmbeddingConfig = Field(
        default_factory=EmbeddingConfig,
        description="Embedding endpoint and local index settings",
    )

    llama: LlamaConfig = Field(
        default_factory=LlamaConfig, description="Local llama.cpp server settings"
    )

    models: list[ModelEntry] = Field(
        default_factory=list,
        description="Extra models merged into the built-in registry",
    )

    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging settings"
    )

    tracing: TracingConfig = Field(
        default_factory=TracingConfig, description="OpenTelemetry settings"
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
            init_settings,
            file_secret_settings,
        )


@dataclass(frozen=True)
class SettingsView:
    """Read-only snapshot of the settings a request is assembled from."""

    system_prompt: str = ""
    max_output_tokens: int = 1000
    temperature: float = 0.1
    use_alternate_backend: bool = False
    use_larger_model: bool = False

    @classmethod
    def from_config(cls, config: AppConfig) -> "SettingsView":
        return cls(
            system_prompt=config.chat.system_prompt,
            max_output_tokens=config.chat.max_tokens,
            temperature=config.chat.temperature,
            use_alternate_backend=config.service.active == ServiceType.YOU,
            use_larger_model=config.service.use_larger_model,
        )


def get_app_config() -> AppConfig:
    """Get the application configuration (re-read on every call)."""
    return AppConfig()


def get_embedding_config() -> EmbeddingConfig:
    return get_app_config().embedding


def get_llama_config() -> LlamaConfig:
    return get_app_config().llama
