"""Hybrid retrieval: semantic vector search merged with keyword search."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from typing import Protocol

from pydantic import BaseModel

from voicekeeper.errors import GatewayUnavailableError, RetrievalError
from voicekeeper.ingestion.embeddings import EmbeddingGateway
from voicekeeper.ingestion.storage import TranscriptMatch
from voicekeeper.ingestion.vector_index import VectorIndexGateway, VectorMatch
from voicekeeper.pipeline_config import RetrievalConfig, SourceType

logger = logging.getLogger(__name__)


class RetrievedSource(BaseModel):
    """A cited excerpt from one recording."""

    recording_id: str
    date: str
    start_time: float = 0.0
    end_time: float = 0.0
    chunk_text: str
    relevance_score: float
    speaker: str | None = None
    source_type: SourceType = SourceType.SEMANTIC


class TranscriptSearch(Protocol):
    def keyword_search(self, query: str, limit: int = 5) -> list[TranscriptMatch]: ...


def source_from_vector_match(match: VectorMatch) -> RetrievedSource | None:
    """Build a source from vector metadata; ``None`` if it has no recording id."""
    metadata = match.metadata
    recording_id = metadata.get("recording_id")
    if not recording_id:
        return None
    return RetrievedSource(
        recording_id=str(recording_id),
        date=str(metadata.get("date") or ""),
        start_time=float(metadata.get("start_time") or 0.0),
        end_time=float(metadata.get("end_time") or 0.0),
        chunk_text=str(metadata.get("chunk_text") or ""),
        relevance_score=match.score,
        speaker=metadata.get("speaker"),
        source_type=SourceType.SEMANTIC,
    )


def source_from_transcript_match(match: TranscriptMatch, config: RetrievalConfig) -> RetrievedSource:
    return RetrievedSource(
        recording_id=match.recording_id,
        date=match.date,
        chunk_text=match.text[: config.keyword_excerpt_chars],
        relevance_score=config.keyword_score,
        source_type=SourceType.KEYWORD,
    )


def merge_sources(
    semantic: Iterable[RetrievedSource],
    keyword: Iterable[RetrievedSource],
    limit: int = 5,
) -> list[RetrievedSource]:
    """Merge two ranked lists into one, at most one source per recording.

    Semantic sources are visited first in the index's own order, then keyword
    sources; the first source seen for a recording wins.  The result is sorted
    by relevance (stable, so equal scores keep merge order) and truncated.
    """
    merged: list[RetrievedSource] = []
    seen: set[str] = set()
    for source in [*semantic, *keyword]:
        if source.recording_id in seen:
            continue
        seen.add(source.recording_id)
        merged.append(source)

    merged.sort(key=lambda s: s.relevance_score, reverse=True)
    return merged[:limit]


class HybridRetriever:
    """Runs semantic and keyword search concurrently and merges the results.

    Semantic search is best-effort: it only runs when both an embedding
    gateway and a vector index are configured, and any failure empties that
    branch.  Keyword search always runs.

    Args:
        transcripts: Keyword search over stored transcripts.
        embedder: Optional embedding gateway.
        vector_index: Optional vector index gateway.
        config: Retrieval policy.
    """

    def __init__(
        self,
        transcripts: TranscriptSearch,
        embedder: EmbeddingGateway | None = None,
        vector_index: VectorIndexGateway | None = None,
        config: RetrievalConfig | None = None,
    ) -> None:
        self.transcripts = transcripts
        self.embedder = embedder
        self.vector_index = vector_index
        self.config = config or RetrievalConfig()

    @property
    def semantic_enabled(self) -> bool:
        return self.embedder is not None and self.vector_index is not None

    def semantic_search(self, query: str) -> list[RetrievedSource]:
        if self.embedder is None or self.vector_index is None:
            raise GatewayUnavailableError("Semantic search needs an embedder and a vector index")
        [vector] = self.embedder.embed([query])
        matches = self.vector_index.query(vector, top_k=self.config.top_k)
        return [s for s in (source_from_vector_match(m) for m in matches) if s is not None]

    def keyword_search(self, query: str) -> list[RetrievedSource]:
        matches = self.transcripts.keyword_search(query, limit=self.config.top_k)
        return [source_from_transcript_match(m, self.config) for m in matches]

    async def _semantic_branch(self, query: str) -> list[RetrievedSource]:
        if not self.semantic_enabled:
            return []
        try:
            return await asyncio.to_thread(self.semantic_search, query)
        except Exception:
            logger.warning("Semantic search failed; continuing with keyword results", exc_info=True)
            return []

    async def retrieve(self, query: str) -> list[RetrievedSource]:
        """Return up to ``top_k`` sources for *query*, best first.

        An empty list means no relevant memories were found.

        Raises:
            RetrievalError: Keyword search failed and semantic search produced
                nothing to fall back on.
        """
        semantic, keyword = await asyncio.gather(
            self._semantic_branch(query),
            asyncio.to_thread(self.keyword_search, query),
            return_exceptions=True,
        )
        if isinstance(semantic, BaseException):
            raise semantic
        if isinstance(keyword, BaseException):
            if not isinstance(keyword, Exception):
                raise keyword
            if not semantic:
                raise RetrievalError("Keyword search failed and no semantic results are available") from keyword
            logger.warning("Keyword search failed; using semantic results only", exc_info=keyword)
            keyword = []

        logger.debug("Retrieved %d semantic and %d keyword sources", len(semantic), len(keyword))
        return merge_sources(semantic, keyword, self.config.top_k)
