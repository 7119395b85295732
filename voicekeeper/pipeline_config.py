"""Pipeline policy: source-type enum and frozen chunking/retrieval configs."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from voicekeeper.config import Settings

MAX_TOKENS = 400
OVERLAP_TOKENS = 50

# Keyword hits carry no similarity score of their own.  pgvector cosine
# similarity lies in [-1, 1]; 0.5 places an unscored keyword hit below strong
# semantic matches.  This is a ranking policy, not a calibrated probability.
KEYWORD_RELEVANCE_SCORE = 0.5

MIN_QUERY_LENGTH = 2


class SourceType(str, Enum):
    """Which retrieval branch produced a source."""

    SEMANTIC = "semantic"
    KEYWORD = "keyword"


@dataclass(frozen=True)
class ChunkingConfig:
    """Immutable token budget for transcript chunking."""

    max_tokens: int = MAX_TOKENS
    overlap_tokens: int = OVERLAP_TOKENS


@dataclass(frozen=True)
class RetrievalConfig:
    """Immutable retrieval policy.

    ``top_k`` bounds each branch fetch and the merged result list.
    ``keyword_score`` is assigned to keyword-only matches.
    """

    top_k: int = 5
    keyword_score: float = KEYWORD_RELEVANCE_SCORE
    keyword_excerpt_chars: int = 500


def chunking_config_from(settings: Settings) -> ChunkingConfig:
    return ChunkingConfig(
        max_tokens=settings.max_chunk_tokens,
        overlap_tokens=settings.chunk_overlap_tokens,
    )


def retrieval_config_from(settings: Settings) -> RetrievalConfig:
    return RetrievalConfig(
        top_k=settings.retrieval_top_k,
        keyword_score=settings.keyword_relevance_score,
    )
