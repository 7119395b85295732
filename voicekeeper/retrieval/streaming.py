"""Staged answer streaming.

For one query the consumer sees exactly one of::

    [error]
    [status, token, sources, done]                          no sources
    [status, sources, status, token+, suggestions, done]    generated answer
    [status, sources, token+, suggestions, done]            excerpts only

``sources`` always precedes any answer token, and every run ends with a
single ``done`` or ``error``.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Iterator, Sequence
from contextlib import aclosing

from voicekeeper.pipeline_config import MIN_QUERY_LENGTH
from voicekeeper.retrieval.events import (
    DoneEvent,
    ErrorEvent,
    SourcesEvent,
    StatusEvent,
    StreamEvent,
    SuggestionsEvent,
    TokenEvent,
)
from voicekeeper.retrieval.generation import RAG_SYSTEM_PROMPT, AnswerGenerator, build_grounding_prompt
from voicekeeper.retrieval.search import HybridRetriever, RetrievedSource

logger = logging.getLogger(__name__)

SEARCHING_STATUS = "Searching your memories..."
QUERY_TOO_SHORT = "Query too short"
SEARCH_FAILED = "Search failed"
NO_MATCHES_MESSAGE = (
    "I couldn't find any recordings that match your question. "
    "Try recording more memories or asking a different question."
)
FOLLOW_UP_SUGGESTIONS = (
    "Tell me more about this",
    "What else happened that day?",
    "Any related memories?",
)
MAX_EXCERPTS = 3
EXCERPT_CHARS = 200
MAX_STATUS_DATES = 3
PARAGRAPH_BREAK = "\n\n"


def analyzing_status(sources: Sequence[RetrievedSource]) -> str:
    dates = list(dict.fromkeys(s.date for s in sources if s.date))[:MAX_STATUS_DATES]
    if not dates:
        return f"Analyzing {len(sources)} recordings..."
    return f"Analyzing {len(sources)} recordings from {', '.join(dates)}..."


def excerpt_tokens(sources: Sequence[RetrievedSource]) -> Iterator[TokenEvent]:
    """Literal excerpts from the top sources, used when no answer is generated."""
    yield TokenEvent(content=f"Found {len(sources)} relevant recordings. Here are some excerpts:\n\n")
    for source in sources[:MAX_EXCERPTS]:
        yield TokenEvent(content=f'From {source.date}: "{source.chunk_text[:EXCERPT_CHARS]}..."\n\n')


class AnswerStreamer:
    """Drives retrieval and answer generation for one query at a time.

    Args:
        retriever: Hybrid retriever.
        generator: Optional answer generator; without it the stream falls
            back to literal excerpts.
        system_prompt: System prompt for the generator.
    """

    def __init__(
        self,
        retriever: HybridRetriever,
        generator: AnswerGenerator | None = None,
        system_prompt: str = RAG_SYSTEM_PROMPT,
    ) -> None:
        self.retriever = retriever
        self.generator = generator
        self.system_prompt = system_prompt

    async def stream(self, query: str) -> AsyncIterator[StreamEvent]:
        """Yield the events answering *query*."""
        query = (query or "").strip()
        if len(query) < MIN_QUERY_LENGTH:
            yield ErrorEvent(error=QUERY_TOO_SHORT)
            return

        try:
            async with aclosing(self._answer(query)) as events:
                async for event in events:
                    yield event
        except Exception:
            logger.exception("Stream search failed for query %r", query)
            yield ErrorEvent(error=SEARCH_FAILED)

    async def _answer(self, query: str) -> AsyncIterator[StreamEvent]:
        yield StatusEvent(content=SEARCHING_STATUS)

        sources = await self.retriever.retrieve(query)
        if not sources:
            yield TokenEvent(content=NO_MATCHES_MESSAGE)
            yield SourcesEvent(sources=[])
            yield DoneEvent()
            return

        yield SourcesEvent(sources=sources)

        generator = self.generator
        if generator is None:
            for token in excerpt_tokens(sources):
                yield token
        else:
            yield StatusEvent(content=analyzing_status(sources))
            async with aclosing(self._generate(generator, query, sources)) as tokens:
                async for token in tokens:
                    yield token

        yield SuggestionsEvent(suggestions=list(FOLLOW_UP_SUGGESTIONS))
        yield DoneEvent()

    async def _generate(
        self, generator: AnswerGenerator, query: str, sources: list[RetrievedSource]
    ) -> AsyncIterator[TokenEvent]:
        """Relay generated fragments one event each; excerpts if the provider fails.

        A failure after some fragments were sent keeps the partial answer and
        appends the excerpts as a separate paragraph.
        """
        prompt = build_grounding_prompt(query, sources)
        emitted = 0
        failed = False
        try:
            async with aclosing(generator.stream(self.system_prompt, prompt)) as fragments:
                async for fragment in fragments:
                    emitted += 1
                    yield TokenEvent(content=fragment)
        except Exception:
            logger.warning("Answer generation failed after %d tokens; showing excerpts", emitted, exc_info=True)
            failed = True

        if failed or not emitted:
            if emitted:
                yield TokenEvent(content=PARAGRAPH_BREAK)
            for token in excerpt_tokens(sources):
                yield token
