"""On-disk vector index used for contextual search.

The index is a single JSON document under the configured base path::

    {"model": "text-embedding-ada-002",
     "entries": [{"text": "...", "source": "src/app.py", "embedding": [...]}]}

Search ranks entries by cosine similarity with a single matrix-vector
product over unit-normalised embeddings.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Sequence
from pathlib import Path

import numpy as np
from pydantic import BaseModel, Field

from codechat.configs.config import DEFAULT_ENCODING
from codechat.infra.telemetry import SPAN_EMBEDDING_INDEX, tracer

from .client import Embedder

logger = logging.getLogger(__name__)


class IndexEntry(BaseModel):
    text: str
    source: str = ""
    embedding: list[float]


class IndexDocument(BaseModel):
    model: str = ""
    entries: list[IndexEntry] = Field(default_factory=list)


class EmbeddingIndex:
    """In-memory view of the index file.

    Embeddings are scored as a float32 matrix of unit rows, built on the
    first search and rebuilt after ``add``/``remove_source``.
    """

    def __init__(
        self, path: Path, entries: Iterable[IndexEntry] = (), model: str = ""
    ) -> None:
        self.path = path
        self.model = model
        self._entries: list[IndexEntry] = list(entries)
        self._matrices: dict[int, tuple[list[int], np.ndarray]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> tuple[IndexEntry, ...]:
        return tuple(self._entries)

    @classmethod
    def load(cls, path: Path) -> "EmbeddingIndex":
        """Read the index at *path*; a missing file yields an empty index.

        Raises ``OSError`` or ``ValueError`` for unreadable/corrupt files.
        """
        if not path.is_file():
            return cls(path)
        document = IndexDocument.model_validate_json(
            path.read_text(encoding=DEFAULT_ENCODING)
        )
        return cls(path, document.entries, model=document.model)

    def save(self) -> None:
        """Write the index atomically (temp file + rename)."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        document = IndexDocument(model=self.model, entries=self._entries)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(document.model_dump_json(), encoding=DEFAULT_ENCODING)
        os.replace(tmp_path, self.path)

    def add(self, entries: Iterable[IndexEntry]) -> None:
        self._entries.extend(entries)
        self._matrices.clear()

    def remove_source(self, source: str) -> int:
        """Drop all chunks of *source*; returns how many were removed."""
        before = len(self._entries)
        self._entries = [e for e in self._entries if e.source != source]
        self._matrices.clear()
        return before - len(self._entries)

    def search(
        self, query_embedding: Sequence[float], top_k: int
    ) -> list[tuple[IndexEntry, float]]:
        """Return up to *top_k* ``(entry, cosine similarity)`` pairs, best first.

        Entries whose dimension differs from the query's are skipped.
        """
        query = np.asarray(query_embedding, dtype=np.float32)
        if top_k <= 0 or query.ndim != 1:
            return []
        rows, matrix = self._unit_matrix(query.shape[0])
        if not rows:
            return []

        query_norm = np.linalg.norm(query)
        if query_norm == 0:
            scores = np.zeros(len(rows), dtype=np.float32)
        else:
            scores = matrix @ (query / query_norm)

        k = min(top_k, len(rows))
        best = np.argpartition(-scores, k - 1)[:k]
        best = best[np.argsort(-scores[best], kind="stable")]
        return [(self._entries[rows[i]], float(scores[i])) for i in best]

    def _unit_matrix(self, dim: int) -> tuple[list[int], np.ndarray]:
        cached = self._matrices.get(dim)
        if cached is None:
            rows = [
                i for i, entry in enumerate(self._entries) if len(entry.embedding) == dim
            ]
            matrix = np.asarray(
                [self._entries[i].embedding for i in rows], dtype=np.float32
            ).reshape(len(rows), dim)
            norms = np.linalg.norm(matrix, axis=1, keepdims=True)
            matrix = np.divide(
                matrix, norms, out=np.zeros_like(matrix), where=norms > 0
            )
            cached = self._matrices[dim] = (rows, matrix)
        return cached


def split_into_chunks(text: str, chunk_size: int) -> list[str]:
    """Split *text* into line-aligned chunks of at most *chunk_size* chars.

    A single line longer than *chunk_size* is hard-split.
    """
    chunks: list[str] = []
    current = ""
    for line in text.splitlines(keepends=True):
        while len(line) > chunk_size:
            if current:
                chunks.append(current)
                current = ""
            chunks.append(line[:chunk_size])
            line = line[chunk_size:]
        if len(current) + len(line) > chunk_size:
            chunks.append(current)
            current = ""
        current += line
    if current.strip():
        chunks.append(current)
    return [chunk for chunk in chunks if chunk.strip()]


class EmbeddingIndexer:
    """Embeds source files into the on-disk index."""

    def __init__(
        self,
        embedder: Embedder,
        index_path: Path,
        chunk_size: int,
        model_name: str = "",
    ) -> None:
        self._embedder = embedder
        self._index_path = index_path
        self._chunk_size = chunk_size
        self._model_name = model_name

    async def index_files(self, paths: Iterable[Path]) -> EmbeddingIndex:
        """(Re-)index *paths* and persist the result.

        Files that cannot be read as UTF-8 are skipped with a warning.
        Re-indexing a file replaces its previous chunks.
        """
        with tracer.start_as_current_span(SPAN_EMBEDDING_INDEX):
            index = EmbeddingIndex.load(self._index_path)
            index.model = self._model_name or index.model

            for path in paths:
                try:
                    text = path.read_text(encoding=DEFAULT_ENCODING)
                except (OSError, UnicodeDecodeError):
                    logger.warning("Skipping unreadable file %s", path, exc_info=True)
                    continue

                chunks = split_into_chunks(text, self._chunk_size)
                source = str(path)
                index.remove_source(source)
                if not chunks:
                    continue
                vectors = await self._embedder.embed_batch(chunks)
                index.add(
                    IndexEntry(text=chunk, source=source, embedding=vector)
                    for chunk, vector in zip(chunks, vectors)
                )
                logger.info("Indexed %s (%d chunks)", path, len(chunks))

            index.save()
            return index
