"""Data models for the ingestion pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Word:
    """A single recognised word with timing in seconds."""

    text: str
    start_seconds: float
    end_seconds: float
    confidence: float = 1.0
    speaker: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "start": self.start_seconds,
            "end": self.end_seconds,
            "confidence": self.confidence,
            "speaker": self.speaker,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Word:
        """Build a Word from a stored row (``start``/``end`` already in seconds)."""
        return cls(
            text=str(data.get("text", "")),
            start_seconds=float(data.get("start", data.get("start_seconds", 0.0)) or 0.0),
            end_seconds=float(data.get("end", data.get("end_seconds", 0.0)) or 0.0),
            confidence=float(data["confidence"]) if data.get("confidence") is not None else 1.0,
            speaker=data.get("speaker"),
        )


@dataclass(frozen=True)
class TranscriptSegment:
    """A finalized segment from the live transcription stream."""

    speaker: str | None
    text: str
    words: tuple[Word, ...] = ()


@dataclass(frozen=True)
class Utterance:
    """A maximal contiguous speech segment attributed to one speaker."""

    speaker: str
    text: str
    start_seconds: float
    end_seconds: float
    words: tuple[Word, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "speaker": self.speaker,
            "text": self.text,
            "start": self.start_seconds,
            "end": self.end_seconds,
            "words": [w.to_dict() for w in self.words],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Utterance:
        words = tuple(Word.from_dict(w) for w in data.get("words") or [])
        return cls(
            speaker=str(data.get("speaker") or "A"),
            text=str(data.get("text", "")),
            start_seconds=float(data.get("start", words[0].start_seconds if words else 0.0)),
            end_seconds=float(data.get("end", words[-1].end_seconds if words else 0.0)),
            words=words,
        )


@dataclass
class Transcript:
    """One transcript per recording; written once."""

    recording_id: str
    text: str
    language: str = "en"
    words: list[Word] = field(default_factory=list)
    utterances: list[Utterance] | None = None


@dataclass(frozen=True)
class Chunk:
    """A bounded, retrievable unit of transcript text ready for embedding."""

    text: str
    index: int
    start_seconds: float
    end_seconds: float
    word_count: int
    token_count: int
    avg_confidence: float = 1.0
    speaker: str | None = None


@dataclass(frozen=True)
class EmbeddingRecord:
    """Relational mirror of one upserted vector."""

    recording_id: str
    chunk_text: str
    chunk_index: int
    external_vector_id: str
    id: str | None = None


def vector_id(recording_id: str, chunk_index: int) -> str:
    """Vector-store key for a chunk."""
    return f"{recording_id}_chunk_{chunk_index}"
