"""Tests for tiktoken-backed token counting.

Skipped when the encoding cannot be loaded (it is downloaded on first use).
"""

from __future__ import annotations

import pytest

from voicekeeper.ingestion.chunking import chunk_transcript
from voicekeeper.ingestion.models import Utterance
from voicekeeper.ingestion.tokens import count_tokens, get_encoding, last_tokens_text
from voicekeeper.pipeline_config import ChunkingConfig


@pytest.fixture(autouse=True)
def _require_encoding() -> None:
    try:
        get_encoding()
    except Exception as exc:
        pytest.skip(f"tiktoken encoding unavailable: {exc}")


class TestCountTokens:
    def test_empty_is_zero(self) -> None:
        assert count_tokens("") == 0

    def test_deterministic(self) -> None:
        text = "We walked along the river after dinner."
        assert count_tokens(text) == count_tokens(text)
        assert count_tokens(text) > 0

    def test_special_token_text_is_counted_not_rejected(self) -> None:
        assert count_tokens("<|endoftext|>") > 0

    def test_longer_text_has_more_tokens(self) -> None:
        assert count_tokens("one two three four five six") > count_tokens("one")


class TestLastTokensTextWithTokenizer:
    def test_stays_within_budget(self) -> None:
        text = "The quarterly numbers looked strong despite the supply delays in March."
        tail = last_tokens_text(text, 5)
        assert tail
        assert text.endswith(tail)
        assert count_tokens(tail) <= 5 + len(tail.split())


class TestChunkingWithTokenizer:
    def test_chunks_respect_model_token_budget(self) -> None:
        text = " ".join(f"Sentence number {i} talks about the garden party." for i in range(60))
        utterance = Utterance(speaker="A", text=text, start_seconds=0.0, end_seconds=120.0)
        config = ChunkingConfig(max_tokens=60, overlap_tokens=10)

        chunks = chunk_transcript([], [utterance], config)

        assert len(chunks) > 1
        # Words are counted one at a time, so a joined text may differ by a
        # token per word boundary; allow that slack on top of the budget.
        for chunk in chunks:
            assert chunk.token_count == count_tokens(chunk.text)
            assert chunk.token_count <= config.max_tokens + config.overlap_tokens
