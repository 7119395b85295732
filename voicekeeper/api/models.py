"""Pydantic request/response schemas for the VoiceKeeper API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from voicekeeper.ingestion.models import Utterance, Word


class WordIn(BaseModel):
    """A recognised word; times in seconds."""

    text: str
    start: float
    end: float
    confidence: float = 1.0
    speaker: str | None = None

    def to_word(self) -> Word:
        return Word(
            text=self.text,
            start_seconds=self.start,
            end_seconds=self.end,
            confidence=self.confidence,
            speaker=self.speaker,
        )


class UtteranceIn(BaseModel):
    speaker: str
    text: str
    start: float
    end: float
    words: list[WordIn] = []

    def to_utterance(self) -> Utterance:
        return Utterance(
            speaker=self.speaker,
            text=self.text,
            start_seconds=self.start,
            end_seconds=self.end,
            words=tuple(w.to_word() for w in self.words),
        )


class RecordingCreate(BaseModel):
    """Request body for POST /api/recordings.

    Either ``utterances`` or the raw real-time ``segments`` log may carry
    speaker turns; ``segments`` (provider messages, times in milliseconds)
    are merged into utterances server-side.
    """

    duration_seconds: int = Field(ge=0)
    text: str = ""
    language: str = "en"
    title: str | None = None
    words: list[WordIn] = []
    utterances: list[UtteranceIn] | None = None
    segments: list[dict[str, Any]] | None = None


class RecordingResponse(BaseModel):
    id: str
    title: str
    duration_seconds: int
    created_at: str | None = None
    indexing_scheduled: bool = False


class RecordingSummary(BaseModel):
    """Summary representation of a recording for list views."""

    id: str
    title: str | None = None
    description: str | None = None
    duration_seconds: int | None = None
    created_at: str | None = None
    transcript: str | None = None


class SearchRequest(BaseModel):
    """Request body for POST /api/search/stream."""

    query: str


class TranscriptionTokenResponse(BaseModel):
    token: str


class ExportedTranscript(BaseModel):
    text: str
    language: str | None = None


class ExportedRecording(BaseModel):
    id: str
    title: str | None = None
    description: str | None = None
    duration_seconds: int | None = None
    created_at: str | None = None
    transcript: ExportedTranscript | None = None


class ExportResponse(BaseModel):
    """Body of the JSON export download."""

    exported_at: str
    recordings: list[ExportedRecording]


class DeleteAllResponse(BaseModel):
    deleted: int
