"""Parsers for transcription-provider payloads and utterance assembly.

The live transcription stream delivers finalized segments with word timings
in milliseconds.  Consecutive segments from the same speaker are merged into
one :class:`Utterance`.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from voicekeeper.ingestion.models import TranscriptSegment, Utterance, Word

DEFAULT_SPEAKER = "A"


def parse_provider_word(data: dict[str, Any]) -> Word:
    """Convert a provider word (times in milliseconds) into a :class:`Word`."""
    confidence = data.get("confidence")
    return Word(
        text=str(data.get("text", "")),
        start_seconds=(data.get("start") or 0) / 1000.0,
        end_seconds=(data.get("end") or 0) / 1000.0,
        confidence=float(confidence) if confidence is not None else 1.0,
        speaker=data.get("speaker") or DEFAULT_SPEAKER,
    )


def parse_final_transcript(message: dict[str, Any]) -> TranscriptSegment | None:
    """Parse one real-time message.

    Returns ``None`` for anything other than a non-empty ``FinalTranscript``
    (partials, session begin/terminate).
    """
    if message.get("message_type") != "FinalTranscript":
        return None
    text = str(message.get("text") or "").strip()
    if not text:
        return None

    words = tuple(parse_provider_word(w) for w in message.get("words") or [])
    speaker = words[0].speaker if words else DEFAULT_SPEAKER
    return TranscriptSegment(speaker=speaker, text=text, words=words)


def merge_segments(segments: Iterable[TranscriptSegment]) -> list[Utterance]:
    """Merge consecutive same-speaker segments into utterances.

    Start is the first word's start and end is the last word's end; a segment
    without words keeps the running bounds.
    """
    utterances: list[Utterance] = []
    for seg in segments:
        speaker = seg.speaker or DEFAULT_SPEAKER
        start = seg.words[0].start_seconds if seg.words else None
        end = seg.words[-1].end_seconds if seg.words else None

        if utterances and utterances[-1].speaker == speaker:
            last = utterances[-1]
            utterances[-1] = Utterance(
                speaker=speaker,
                text=f"{last.text} {seg.text}",
                start_seconds=last.start_seconds,
                end_seconds=end if end is not None else last.end_seconds,
                words=last.words + seg.words,
            )
        else:
            fallback = utterances[-1].end_seconds if utterances else 0.0
            utterances.append(
                Utterance(
                    speaker=speaker,
                    text=seg.text,
                    start_seconds=start if start is not None else fallback,
                    end_seconds=end if end is not None else fallback,
                    words=seg.words,
                )
            )
    return utterances


def parse_realtime_messages(messages: Iterable[dict[str, Any]]) -> tuple[list[Word], list[Utterance]]:
    """Collapse a real-time message log into words and speaker utterances."""
    segments = [s for s in (parse_final_transcript(m) for m in messages) if s is not None]
    words = [w for seg in segments for w in seg.words]
    return words, merge_segments(segments)


def parse_words(rows: Iterable[dict[str, Any]] | None) -> list[Word]:
    """Parse stored word rows (seconds).  Malformed rows are skipped."""
    words: list[Word] = []
    for row in rows or []:
        try:
            words.append(Word.from_dict(row))
        except (TypeError, ValueError, AttributeError):
            continue
    return words


def parse_utterances(rows: Iterable[dict[str, Any]] | None) -> list[Utterance] | None:
    """Parse stored utterance rows; ``None`` when there are none."""
    utterances: list[Utterance] = []
    for row in rows or []:
        try:
            utterances.append(Utterance.from_dict(row))
        except (TypeError, ValueError, AttributeError):
            continue
    return utterances or None
