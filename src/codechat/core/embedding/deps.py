"""FastAPI factories for the embedding components."""

from typing import Annotated

from fastapi import Depends

from codechat.configs.config import get_embedding_config
from codechat.configs.system import EmbeddingConfig

from .client import EmbeddingClient
from .context import EmbeddingsContextBuilder
from .index import EmbeddingIndexer


def get_embedding_client(
    config: Annotated[EmbeddingConfig, Depends(get_embedding_config)],
) -> EmbeddingClient:
    return EmbeddingClient(config)


def get_context_builder(
    config: Annotated[EmbeddingConfig, Depends(get_embedding_config)],
    client: Annotated[EmbeddingClient, Depends(get_embedding_client)],
) -> EmbeddingsContextBuilder:
    return EmbeddingsContextBuilder.from_config(client, config)


def get_embedding_indexer(
    config: Annotated[EmbeddingConfig, Depends(get_embedding_config)],
    client: Annotated[EmbeddingClient, Depends(get_embedding_client)],
) -> EmbeddingIndexer:
    return EmbeddingIndexer(
        client, config.index_path, config.chunk_size, model_name=config.model_name
    )
