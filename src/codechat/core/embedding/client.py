"""EmbeddingClient -- OpenAI-compatible embeddings."""

import logging
from collections.abc import Sequence
from typing import Protocol

import openai

from codechat.configs.system import EmbeddingConfig

logger = logging.getLogger(__name__)


class Embedder(Protocol):
    async def embed(self, text: str) -> list[float]: ...

    async def embed_batch(self, texts: Sequence[str]) -> list[list[float]]: ...


class EmbeddingClient:
    """Thin async wrapper over the ``/embeddings`` endpoint."""

    def __init__(self, config: EmbeddingConfig) -> None:
        self._config = config
        self._openai = openai.AsyncOpenAI(
            base_url=config.endpoint,
            api_key=config.api_key or "unused",
        )

    @property
    def model_name(self) -> str:
        return self._config.model_name

    async def embed(self, text: str) -> list[float]:
        """Return the embedding for *text*."""
        response = await self._openai.embeddings.create(
            input=text,
            model=self._config.model_name,
        )
        return response.data[0].embedding

    async def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        """Return one embedding per input text, in input order."""
        if not texts:
            return []
        response = await self._openai.embeddings.create(
            input=list(texts),
            model=self._config.model_name,
        )
        ordered = sorted(response.data, key=lambda item: item.index)
        return [item.embedding for item in ordered]
