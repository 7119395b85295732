"""Claude-powered answer generation grounded in retrieved recordings."""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from typing import Protocol

from anthropic import AsyncAnthropic

from voicekeeper.retrieval.search import RetrievedSource

RAG_SYSTEM_PROMPT = (
    "You are a warm, compassionate memory assistant helping someone recall "
    "their recorded memories.\n\n"
    "Rules:\n"
    "- Answer using ONLY the provided transcript excerpts.\n"
    "- Never invent or assume information that is not in the sources.\n"
    "- Speak naturally and warmly, in plain language.\n"
    '- Reference sources naturally (e.g. "In your recording from January 3rd...").\n'
    "- If the sources do not contain enough information, say so honestly.\n"
    "- Do not use markdown, asterisks or quotation marks.\n"
    "- Keep answers to 3-5 sentences."
)


class AnswerGenerator(Protocol):
    """Streams answer text fragments in arrival order."""

    def stream(self, system: str, prompt: str) -> AsyncIterator[str]: ...


def build_grounding_prompt(query: str, sources: Sequence[RetrievedSource]) -> str:
    """User prompt embedding each source's date, speaker and text."""
    parts: list[str] = []
    for i, source in enumerate(sources):
        speaker = f", Speaker {source.speaker}" if source.speaker else ""
        parts.append(f"[Source {i + 1} - Recording from {source.date}{speaker}]\n{source.chunk_text}")
    excerpts = "\n\n".join(parts)

    return (
        f"Question: {query}\n\n"
        f"Relevant excerpts from your recordings:\n\n{excerpts}\n\n"
        "Answer the question naturally, referencing the dates/speakers:"
    )


class ClaudeAnswerGenerator:
    """Token streaming over the Anthropic Messages API."""

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-20250514",
        max_tokens: int = 500,
        temperature: float = 0.7,
        client: AsyncAnthropic | None = None,
    ) -> None:
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._client = client or AsyncAnthropic(api_key=api_key)

    async def stream(self, system: str, prompt: str) -> AsyncIterator[str]:
        """Yield text fragments as Claude produces them.

        The underlying HTTP stream is closed when the consumer stops iterating
        or is cancelled.
        """
        async with self._client.messages.stream(
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            system=system,
            messages=[{"role": "user", "content": prompt}],
        ) as stream:
            async for text in stream.text_stream:
                if text:
                    yield text
