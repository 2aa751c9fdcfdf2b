"""Embedding infrastructure -- client, on-disk index and context builder."""

from .client import Embedder, EmbeddingClient
from .context import (
    CONTEXT_PROMPT_TEMPLATE,
    EMPTY_CONTEXT_MARKER,
    ContextBuilder,
    EmbeddingsContextBuilder,
    render_context_prompt,
)
from .index import EmbeddingIndex, EmbeddingIndexer, IndexEntry

__all__ = [
    "CONTEXT_PROMPT_TEMPLATE",
    "EMPTY_CONTEXT_MARKER",
    "ContextBuilder",
    "Embedder",
    "EmbeddingClient",
    "EmbeddingIndex",
    "EmbeddingIndexer",
    "EmbeddingsContextBuilder",
    "IndexEntry",
    "render_context_prompt",
]
