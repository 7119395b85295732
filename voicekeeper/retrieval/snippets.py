"""Keyword-only instant search with query-centred snippets."""

from __future__ import annotations

from pydantic import BaseModel

from voicekeeper.pipeline_config import MIN_QUERY_LENGTH, SourceType
from voicekeeper.retrieval.search import TranscriptSearch

SNIPPET_CONTEXT_CHARS = 60
SNIPPET_FALLBACK_CHARS = 150


class InstantResult(BaseModel):
    recording_id: str
    date: str
    title: str | None = None
    duration_seconds: int | None = None
    snippet: str
    source_type: SourceType = SourceType.KEYWORD


def extract_snippet(text: str, query: str, context: int = SNIPPET_CONTEXT_CHARS) -> str:
    """Window of *text* around the first case-insensitive hit of *query*.

    Ellipses mark truncation on either side.  Without a hit, the start of the
    text is returned.
    """
    index = text.lower().find(query.lower())
    if index == -1:
        head = text[:SNIPPET_FALLBACK_CHARS]
        return head + ("..." if len(text) > SNIPPET_FALLBACK_CHARS else "")

    start = max(0, index - context)
    end = min(len(text), index + len(query) + context)
    snippet = text[start:end]
    if start > 0:
        snippet = "..." + snippet
    if end < len(text):
        snippet = snippet + "..."
    return snippet


def instant_search(transcripts: TranscriptSearch, query: str, limit: int = 5) -> list[InstantResult]:
    """Fast keyword lookup for search-as-you-type.

    Queries shorter than the minimum length return nothing.
    """
    query = query.strip()
    if len(query) < MIN_QUERY_LENGTH:
        return []

    return [
        InstantResult(
            recording_id=match.recording_id,
            date=match.date,
            title=match.title,
            duration_seconds=match.duration_seconds,
            snippet=extract_snippet(match.text, query),
        )
        for match in transcripts.keyword_search(query, limit=limit)
    ]
