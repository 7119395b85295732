"""Supabase storage for recordings, transcripts, and embedding records."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, cast

from supabase import Client, create_client

from voicekeeper.ingestion.models import EmbeddingRecord, Transcript
from voicekeeper.ingestion.parsers import parse_utterances, parse_words

EMBEDDING_RECORD_BATCH_SIZE = 50
NIL_UUID = "00000000-0000-0000-0000-000000000000"


def get_supabase_client(url: str | None = None, key: str | None = None) -> Client:
    """Create and return a Supabase client (environment variables by default)."""
    return create_client(
        url or os.getenv("SUPABASE_URL", ""),
        key or os.getenv("SUPABASE_KEY", ""),
    )


def iso_date(timestamp: str | None) -> str:
    """``YYYY-MM-DD`` part of an ISO timestamp ("" when missing)."""
    return (timestamp or "")[:10]


def _escape_like(query: str) -> str:
    return query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@dataclass(frozen=True)
class TranscriptMatch:
    """A transcript whose text contains the keyword query."""

    recording_id: str
    text: str
    date: str
    title: str | None = None
    duration_seconds: int | None = None


class RecordingStore:
    """CRUD over the ``recordings``, ``transcripts`` and ``embeddings`` tables."""

    def __init__(self, client: Client) -> None:
        self.client = client

    # -- recordings ---------------------------------------------------------

    def create_recording(
        self,
        recording_id: str,
        duration_seconds: int,
        title: str,
        description: str | None = None,
    ) -> dict[str, Any]:
        """Insert a recording row and return it."""
        result = (
            self.client.table("recordings")
            .insert(
                {
                    "id": recording_id,
                    "duration_seconds": duration_seconds,
                    "title": title,
                    "description": description,
                }
            )
            .execute()
        )
        return cast(list[dict[str, Any]], result.data)[0]

    def get_recording(self, recording_id: str) -> dict[str, Any] | None:
        result = self.client.table("recordings").select("*").eq("id", recording_id).execute()
        rows = cast(list[dict[str, Any]], result.data)
        return rows[0] if rows else None

    def list_recordings(self, limit: int = 10, offset: int = 0) -> list[dict[str, Any]]:
        """Recordings newest first, each with its transcript text embedded."""
        result = (
            self.client.table("recordings")
            .select("*, transcripts(text)")
            .order("created_at", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )
        return cast(list[dict[str, Any]], result.data)

    def export_recordings(self) -> list[dict[str, Any]]:
        """Every recording newest first, with its transcript text and language."""
        result = (
            self.client.table("recordings")
            .select("*, transcripts(text, language)")
            .order("created_at", desc=True)
            .execute()
        )
        return cast(list[dict[str, Any]], result.data)

    # -- transcripts --------------------------------------------------------

    def create_transcript(self, transcript: Transcript) -> None:
        self.client.table("transcripts").insert(
            {
                "recording_id": transcript.recording_id,
                "text": transcript.text,
                "language": transcript.language,
                "words": [w.to_dict() for w in transcript.words],
                "utterances": (
                    [u.to_dict() for u in transcript.utterances] if transcript.utterances else None
                ),
            }
        ).execute()

    def get_transcript(self, recording_id: str) -> Transcript | None:
        result = (
            self.client.table("transcripts").select("*").eq("recording_id", recording_id).execute()
        )
        rows = cast(list[dict[str, Any]], result.data)
        if not rows:
            return None
        row = rows[0]
        return Transcript(
            recording_id=recording_id,
            text=row.get("text") or "",
            language=row.get("language") or "en",
            words=parse_words(row.get("words")),
            utterances=parse_utterances(row.get("utterances")),
        )

    def keyword_search(self, query: str, limit: int = 5) -> list[TranscriptMatch]:
        """Case-insensitive substring match over transcript text."""
        result = (
            self.client.table("transcripts")
            .select("recording_id, text, recordings(created_at, title, duration_seconds)")
            .ilike("text", f"%{_escape_like(query)}%")
            .limit(limit)
            .execute()
        )
        matches: list[TranscriptMatch] = []
        for row in cast(list[dict[str, Any]], result.data):
            recording = row.get("recordings") or {}
            matches.append(
                TranscriptMatch(
                    recording_id=str(row["recording_id"]),
                    text=row.get("text") or "",
                    date=iso_date(recording.get("created_at")),
                    title=recording.get("title"),
                    duration_seconds=recording.get("duration_seconds"),
                )
            )
        return matches

    # -- embedding records --------------------------------------------------

    def store_embedding_records(self, records: list[EmbeddingRecord]) -> None:
        """Insert embedding records (batched by 50)."""
        rows = [
            {
                "recording_id": r.recording_id,
                "chunk_text": r.chunk_text,
                "chunk_index": r.chunk_index,
                "external_vector_id": r.external_vector_id,
            }
            for r in records
        ]
        for i in range(0, len(rows), EMBEDDING_RECORD_BATCH_SIZE):
            self.client.table("embeddings").insert(rows[i : i + EMBEDDING_RECORD_BATCH_SIZE]).execute()

    # -- deletion -----------------------------------------------------------

    def delete_recording(self, recording_id: str) -> bool:
        """Delete a recording and its dependent rows.

        Returns:
            False if no recording row existed.
        """
        self.client.table("embeddings").delete().eq("recording_id", recording_id).execute()
        self.client.table("transcripts").delete().eq("recording_id", recording_id).execute()
        result = self.client.table("recordings").delete().eq("id", recording_id).execute()
        return bool(result.data)

    def delete_all(self) -> int:
        """Delete every recording with its transcript and chunk rows.

        Returns:
            Number of recordings deleted.
        """
        for table in ("embeddings", "transcripts"):
            self.client.table(table).delete().neq("id", NIL_UUID).execute()
        result = self.client.table("recordings").delete().neq("id", NIL_UUID).execute()
        return len(result.data or [])
