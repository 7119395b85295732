"""Embedding gateway backed by OpenAI embeddings."""

from __future__ import annotations

from typing import Protocol

from openai import OpenAI

EMBED_BATCH_SIZE = 100


class EmbeddingGateway(Protocol):
    """Anything that turns texts into fixed-dimension vectors, one per text, in order."""

    def embed(self, texts: list[str]) -> list[list[float]]: ...


class OpenAIEmbeddingGateway:
    """Batched OpenAI embeddings.

    Args:
        api_key: OpenAI API key.
        model: Embedding model name.
        dimensions: Output vector size.
        batch_size: Maximum inputs per API call.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-large",
        dimensions: int = 3072,
        batch_size: int = EMBED_BATCH_SIZE,
        client: OpenAI | None = None,
    ) -> None:
        self.model = model
        self.dimensions = dimensions
        self.batch_size = batch_size
        self._client = client or OpenAI(api_key=api_key)

    def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed *texts*, preserving order across batches."""
        vectors: list[list[float]] = []
        for i in range(0, len(texts), self.batch_size):
            batch = texts[i : i + self.batch_size]
            response = self._client.embeddings.create(
                input=batch,
                model=self.model,
                dimensions=self.dimensions,
            )
            # The API returns items tagged with their input index.
            ordered = sorted(response.data, key=lambda item: item.index)
            vectors.extend(item.embedding for item in ordered)
        return vectors
