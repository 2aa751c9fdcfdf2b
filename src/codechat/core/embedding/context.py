"""Retrieval-augmented prompt building.

``build_prompt_with_context`` never fails: when the index is missing or
empty, or the embedding call errors, the prompt is rendered with an
empty-context marker so the caller always gets a usable string.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

import openai

from codechat.configs.system import EmbeddingConfig
from codechat.core.metrics import EMBEDDING_CONTEXT_TOTAL
from codechat.infra.telemetry import (
    ATTR_EMBEDDING_FALLBACK,
    ATTR_EMBEDDING_RESULT_COUNT,
    ATTR_EMBEDDING_TOP_K,
    SPAN_EMBEDDING_CONTEXT,
    tracer,
)

from .client import Embedder
from .index import EmbeddingIndex, IndexEntry

logger = logging.getLogger(__name__)

EMPTY_CONTEXT_MARKER = "(no indexed context available)"

CONTEXT_PROMPT_TEMPLATE = """Use the following pieces of context to answer the question at the end. If the context does not contain the answer, say that you don't know instead of making one up.

Context:
{context}

Question: {question}
Helpful answer in Markdown format:"""  # noqa: E501

RESULT_HIT = "hit"
RESULT_EMPTY_INDEX = "empty_index"
RESULT_ERROR = "error"


class ContextBuilder(Protocol):
    async def build_prompt_with_context(self, prompt: str) -> str: ...


def render_context_prompt(question: str, snippets: list[IndexEntry]) -> str:
    if snippets:
        context = "\n\n".join(
            f"### {entry.source}\n{entry.text}" if entry.source else entry.text
            for entry in snippets
        )
    else:
        context = EMPTY_CONTEXT_MARKER
    return CONTEXT_PROMPT_TEMPLATE.format(context=context, question=question)


class EmbeddingsContextBuilder:
    """Embeds the prompt, retrieves the closest indexed snippets and
    renders them into the context prompt template."""

    def __init__(
        self,
        embedder: Embedder,
        index_path: Path,
        top_k: int,
    ) -> None:
        self._embedder = embedder
        self._index_path = index_path
        self._top_k = top_k

    @classmethod
    def from_config(
        cls, embedder: Embedder, config: EmbeddingConfig
    ) -> "EmbeddingsContextBuilder":
        return cls(embedder, config.index_path, config.top_k)

    async def build_prompt_with_context(self, prompt: str) -> str:
        with tracer.start_as_current_span(SPAN_EMBEDDING_CONTEXT) as span:
            span.set_attribute(ATTR_EMBEDDING_TOP_K, self._top_k)
            snippets, result = await self._retrieve(prompt)
            span.set_attribute(ATTR_EMBEDDING_RESULT_COUNT, len(snippets))
            span.set_attribute(ATTR_EMBEDDING_FALLBACK, result != RESULT_HIT)
            EMBEDDING_CONTEXT_TOTAL.labels(result=result).inc()
            return render_context_prompt(prompt, snippets)

    async def _retrieve(self, prompt: str) -> tuple[list[IndexEntry], str]:
        try:
            index = EmbeddingIndex.load(self._index_path)
        except (OSError, ValueError):
            logger.warning(
                "Failed to read embeddings index %s", self._index_path, exc_info=True
            )
            return [], RESULT_ERROR

        if not len(index):
            logger.info("Embeddings index %s is empty", self._index_path)
            return [], RESULT_EMPTY_INDEX

        try:
            query_embedding = await self._embedder.embed(prompt)
        except openai.OpenAIError:
            logger.warning("Failed to embed prompt", exc_info=True)
            return [], RESULT_ERROR

        results = index.search(query_embedding, self._top_k)
        if not results:
            return [], RESULT_EMPTY_INDEX
        logger.info(
            "Retrieved %d context snippets (best similarity=%.2f)",
            len(results),
            results[0][1],
        )
        return [entry for entry, _ in results], RESULT_HIT
