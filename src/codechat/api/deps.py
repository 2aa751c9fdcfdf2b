"""Centralized FastAPI dependency type aliases.

Import these ``*Dep`` aliases in route modules instead of writing
``Annotated[T, Depends(get_xxx)]`` everywhere.  Each alias maps to a
single ``get_*`` factory that tests can replace through
``app.dependency_overrides[get_xxx]``.
"""

from collections.abc import Callable
from typing import Annotated

from fastapi import Depends

from codechat.configs.config import AppConfig, SettingsView, get_app_config
from codechat.core.conversation import ConversationStore, get_conversation_store
from codechat.core.embedding import EmbeddingIndexer, EmbeddingsContextBuilder
from codechat.core.embedding.deps import get_context_builder, get_embedding_indexer
from codechat.core.llama import LlamaServerSupervisor, get_llama_supervisor
from codechat.core.models import ModelRegistry, get_model_registry
from codechat.core.tokens import TokenCounter, encoder_for_model


def get_settings_view(
    config: Annotated[AppConfig, Depends(get_app_config)],
) -> SettingsView:
    """Per-request settings snapshot (FastAPI dependency)."""
    return SettingsView.from_config(config)


def get_encoder_factory() -> Callable[[str], TokenCounter]:
    """Model code -> token counter (FastAPI dependency)."""
    return encoder_for_model


AppConfigDep = Annotated[AppConfig, Depends(get_app_config)]
SettingsViewDep = Annotated[SettingsView, Depends(get_settings_view)]
ConversationStoreDep = Annotated[ConversationStore, Depends(get_conversation_store)]
ModelRegistryDep = Annotated[ModelRegistry, Depends(get_model_registry)]
ContextBuilderDep = Annotated[
    EmbeddingsContextBuilder, Depends(get_context_builder)
]
EmbeddingIndexerDep = Annotated[EmbeddingIndexer, Depends(get_embedding_indexer)]
EncoderFactoryDep = Annotated[
    Callable[[str], TokenCounter], Depends(get_encoder_factory)
]
LlamaSupervisorDep = Annotated[LlamaServerSupervisor, Depends(get_llama_supervisor)]
