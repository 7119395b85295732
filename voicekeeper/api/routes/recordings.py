"""Recording endpoints: save, list, and purge."""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from voicekeeper.api.deps import Services, get_services
from voicekeeper.api.models import RecordingCreate, RecordingResponse, RecordingSummary
from voicekeeper.ingestion.models import Transcript, Utterance, Word
from voicekeeper.ingestion.parsers import parse_realtime_messages
from voicekeeper.ingestion.pipeline import purge_recording

logger = logging.getLogger(__name__)

router = APIRouter()

TITLE_WORDS = 6
DELETE_FAILED = "Delete failed"


def make_title(text: str, now: datetime | None = None) -> str:
    """First few words of the transcript, or a timestamped fallback."""
    words = text.split()
    if not words:
        return f"Recording {(now or datetime.now()).strftime('%Y-%m-%d %H:%M')}"
    title = " ".join(words[:TITLE_WORDS])
    return title + ("..." if len(words) > TITLE_WORDS else "")


def _transcript_parts(body: RecordingCreate) -> tuple[list[Word], list[Utterance] | None]:
    words = [w.to_word() for w in body.words]
    if body.utterances:
        return words, [u.to_utterance() for u in body.utterances]
    if body.segments:
        segment_words, utterances = parse_realtime_messages(body.segments)
        return words or segment_words, utterances or None
    return words, None


def _transcript_text(row: dict[str, Any]) -> str | None:
    # PostgREST embeds a one-to-one relation as an object, otherwise a list.
    embedded = row.get("transcripts")
    if isinstance(embedded, list):
        embedded = embedded[0] if embedded else None
    return embedded.get("text") if embedded else None


@router.post("/api/recordings", response_model=RecordingResponse, status_code=201)
async def create_recording(
    body: RecordingCreate,
    services: Annotated[Services, Depends(get_services)],
) -> RecordingResponse:
    """Save a recording and its transcript, then index it in the background.

    The response returns as soon as the rows are committed; embedding
    failures are logged by the indexing worker and never affect the save.
    """
    recording_id = str(uuid.uuid4())
    words, utterances = _transcript_parts(body)
    text = body.text.strip() or " ".join(u.text for u in utterances or [])
    title = body.title or make_title(text)

    row = await asyncio.to_thread(
        services.store.create_recording,
        recording_id,
        body.duration_seconds,
        title,
        text or None,
    )

    scheduled = False
    if text:
        transcript = Transcript(
            recording_id=recording_id,
            text=text,
            language=body.language,
            words=words,
            utterances=utterances,
        )
        await asyncio.to_thread(services.store.create_transcript, transcript)
        scheduled = services.worker.schedule(recording_id) is not None

    return RecordingResponse(
        id=recording_id,
        title=title,
        duration_seconds=body.duration_seconds,
        created_at=row.get("created_at"),
        indexing_scheduled=scheduled,
    )


@router.get("/api/recordings", response_model=list[RecordingSummary])
async def list_recordings(
    services: Annotated[Services, Depends(get_services)],
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> list[RecordingSummary]:
    """List recordings ordered by creation date (newest first)."""
    rows = await asyncio.to_thread(services.store.list_recordings, limit, offset)
    return [
        RecordingSummary(
            id=str(r["id"]),
            title=r.get("title"),
            description=r.get("description"),
            duration_seconds=r.get("duration_seconds"),
            created_at=r.get("created_at"),
            transcript=_transcript_text(r),
        )
        for r in rows
    ]


@router.delete("/api/recordings/{recording_id}", status_code=204)
async def delete_recording(
    recording_id: str,
    services: Annotated[Services, Depends(get_services)],
) -> Response:
    """Delete a recording, removing its vectors before its rows."""
    try:
        deleted = await asyncio.to_thread(
            purge_recording, recording_id, services.store, services.vector_index
        )
    except Exception as exc:
        logger.exception("Failed to purge recording %s", recording_id)
        raise HTTPException(status_code=503, detail=DELETE_FAILED) from exc

    if not deleted:
        raise HTTPException(status_code=404, detail="Recording not found")
    return Response(status_code=204)
