"""Speaker-aware transcript chunking.

Two phases, both pure:

1. ``pack_sentences`` reduces a sentence sequence into immutable
   :class:`SentenceGroup` values bounded by the token budget.
2. ``apply_overlap`` prefixes every group after the first with the tail of
   the previous group's core text.

``chunk_transcript`` wires the phases to word timings and assigns indices.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from functools import reduce

from voicekeeper.ingestion.models import Chunk, Utterance, Word
from voicekeeper.ingestion.sentences import segment
from voicekeeper.ingestion.tokens import TokenCounter, count_tokens, last_tokens_text
from voicekeeper.pipeline_config import ChunkingConfig

logger = logging.getLogger(__name__)

_STRIP_CHARS = ".!?,"


@dataclass(frozen=True)
class SentenceGroup:
    """Consecutive sentences packed into one chunk's core text."""

    sentences: tuple[str, ...]
    token_count: int

    @property
    def text(self) -> str:
        return " ".join(self.sentences)


def pack_sentences(
    sentences: Sequence[str],
    max_tokens: int,
    count: TokenCounter = count_tokens,
    continuation_budget: int | None = None,
) -> list[SentenceGroup]:
    """Greedily pack *sentences* into groups of at most *max_tokens*.

    A sentence joins the open group only if the group stays within budget;
    otherwise it starts a new group.  A sentence larger than the budget is
    never split and becomes a group of its own.

    Args:
        sentences: Ordered sentences.
        max_tokens: Budget for the first group.
        count: Token counter.
        continuation_budget: Budget for every later group (defaults to
            *max_tokens*).  Used to leave room for an overlap prefix.
    """
    later_budget = max_tokens if continuation_budget is None else continuation_budget

    def step(groups: tuple[SentenceGroup, ...], sentence: str) -> tuple[SentenceGroup, ...]:
        tokens = count(sentence)
        if groups:
            last = groups[-1]
            budget = max_tokens if len(groups) == 1 else later_budget
            if last.token_count + tokens <= budget:
                merged = SentenceGroup(last.sentences + (sentence,), last.token_count + tokens)
                return groups[:-1] + (merged,)
        return groups + (SentenceGroup((sentence,), tokens),)

    return list(reduce(step, sentences, ()))


def apply_overlap(
    groups: Sequence[SentenceGroup],
    overlap_tokens: int,
    count: TokenCounter = count_tokens,
) -> list[str]:
    """Chunk texts with the previous group's trailing context prepended.

    The prefix is always taken from the previous group's core text, never from
    its already-overlapped text, so duplication does not compound.
    """
    texts: list[str] = []
    for i, group in enumerate(groups):
        if i == 0 or overlap_tokens <= 0:
            texts.append(group.text)
            continue
        prefix = last_tokens_text(groups[i - 1].text, overlap_tokens, count)
        texts.append(f"{prefix} {group.text}".strip())
    return texts


def _normalize(token: str) -> str:
    return token.lower().strip(_STRIP_CHARS)


def _avg_confidence(words: Sequence[Word]) -> float:
    """Mean word confidence rounded to 2 places; 1.0 when nothing matched."""
    if not words:
        return 1.0
    total = sum(w.confidence or 1.0 for w in words)
    return round(total / len(words), 2)


def _match_words(words: Sequence[Word], text: str, cursor: int) -> tuple[list[Word], int]:
    """Progressively match the tokens of *text* to *words* starting at *cursor*.

    Each token matches the first later word whose normalised text contains it.
    Returns the matched words and the cursor after the last match.
    """
    matched: list[Word] = []
    for token in text.split():
        needle = _normalize(token)
        if not needle:
            continue
        for i in range(cursor, len(words)):
            if needle in _normalize(words[i].text):
                matched.append(words[i])
                cursor = i + 1
                break
    return matched, cursor


def _find_word(words: Sequence[Word], token: str, start: int) -> int | None:
    needle = _normalize(token)
    if not needle:
        return None
    for i in range(max(start, 0), len(words)):
        if _normalize(words[i].text) == needle:
            return i
    return None


def _chunk_utterance(
    utterance: Utterance,
    start_index: int,
    config: ChunkingConfig,
    count: TokenCounter,
) -> list[Chunk]:
    text = utterance.text.strip()
    if not text:
        return []

    token_count = count(text)
    if token_count <= config.max_tokens:
        return [
            Chunk(
                text=text,
                index=start_index,
                start_seconds=utterance.start_seconds,
                end_seconds=utterance.end_seconds,
                speaker=utterance.speaker,
                word_count=len(utterance.words) or len(text.split()),
                token_count=token_count,
                avg_confidence=_avg_confidence(utterance.words),
            )
        ]

    # Later chunks carry an overlap prefix; keep their core small enough for it.
    continuation_budget = max(config.max_tokens - config.overlap_tokens, 1)
    groups = pack_sentences(segment(text), config.max_tokens, count, continuation_budget)
    texts = apply_overlap(groups, config.overlap_tokens, count)

    chunks: list[Chunk] = []
    cursor = 0
    for offset, (group, chunk_text) in enumerate(zip(groups, texts, strict=True)):
        matched, cursor = _match_words(utterance.words, group.text, cursor)
        chunks.append(
            Chunk(
                text=chunk_text,
                index=start_index + offset,
                start_seconds=matched[0].start_seconds if matched else utterance.start_seconds,
                end_seconds=matched[-1].end_seconds if matched else utterance.end_seconds,
                speaker=utterance.speaker,
                word_count=len(chunk_text.split()),
                token_count=count(chunk_text),
                avg_confidence=_avg_confidence(matched),
            )
        )
    return chunks


def _chunk_words(words: Sequence[Word], config: ChunkingConfig, count: TokenCounter) -> list[Chunk]:
    all_text = " ".join(w.text for w in words if w.text)
    groups = pack_sentences(segment(all_text), config.max_tokens, count)

    chunks: list[Chunk] = []
    cursor = 0
    last = len(words) - 1
    for index, group in enumerate(groups):
        span = group.text
        tokens = span.split()

        # Best-effort: first match wins, ordinal position when nothing matches.
        start = _find_word(words, tokens[0], cursor)
        if start is None:
            start = min(cursor, last)
        end = _find_word(words, tokens[-1], start + len(tokens) - 1)
        if end is None:
            end = min(start + len(tokens) - 1, last)
        cursor = end + 1

        covered = list(words[start : end + 1])
        chunks.append(
            Chunk(
                text=span,
                index=index,
                start_seconds=words[start].start_seconds,
                end_seconds=words[end].end_seconds,
                word_count=len(tokens),
                token_count=count(span),
                avg_confidence=_avg_confidence(covered),
            )
        )
    return chunks


def chunk_transcript(
    words: Sequence[Word] | None,
    utterances: Sequence[Utterance] | None = None,
    config: ChunkingConfig | None = None,
    count: TokenCounter = count_tokens,
) -> list[Chunk]:
    """Split a transcript into bounded, overlapping, speaker-aware chunks.

    Utterances are preferred when present: each contributes one or more
    chunks, split on sentence boundaries with overlap.  Without utterances
    the word texts are joined and packed by sentence with no overlap.

    Never raises on malformed input.  An empty list means there is nothing
    to embed.

    Args:
        words: Word-level timings for the whole recording.
        utterances: Optional speaker turns.
        config: Token budget; defaults to :class:`ChunkingConfig`.
        count: Token counter, shared by every size decision.

    Returns:
        Chunks with indices ``0..N-1``.
    """
    config = config or ChunkingConfig()
    chunks: list[Chunk] = []

    if utterances:
        for utterance in utterances:
            try:
                chunks.extend(_chunk_utterance(utterance, len(chunks), config, count))
            except Exception:
                logger.warning("Skipping malformed utterance at chunk %d", len(chunks), exc_info=True)
        return chunks

    if not words:
        return []
    try:
        return _chunk_words(words, config, count)
    except Exception:
        logger.warning("Word-level chunking failed; no chunks produced", exc_info=True)
        return []
