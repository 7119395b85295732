"""Whole-archive endpoints: export everything, or wipe everything."""

from __future__ import annotations

import asyncio
import csv
import io
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from voicekeeper.api.deps import Services, get_services
from voicekeeper.api.models import DeleteAllResponse, ExportedRecording, ExportedTranscript, ExportResponse
from voicekeeper.api.routes.recordings import DELETE_FAILED
from voicekeeper.ingestion.pipeline import purge_all

logger = logging.getLogger(__name__)

router = APIRouter()

CSV_HEADER = ("Type", "ID", "Title", "Duration", "Date", "Transcript")
CSV_TRANSCRIPT_CHARS = 200


class ExportFormat(str, Enum):
    JSON = "json"
    CSV = "csv"


def _embedded_transcript(row: dict[str, Any]) -> ExportedTranscript | None:
    embedded = row.get("transcripts")
    if isinstance(embedded, list):
        embedded = embedded[0] if embedded else None
    if not embedded:
        return None
    return ExportedTranscript(text=embedded.get("text") or "", language=embedded.get("language"))


def to_exported(rows: list[dict[str, Any]]) -> list[ExportedRecording]:
    return [
        ExportedRecording(
            id=str(r["id"]),
            title=r.get("title"),
            description=r.get("description"),
            duration_seconds=r.get("duration_seconds"),
            created_at=r.get("created_at"),
            transcript=_embedded_transcript(r),
        )
        for r in rows
    ]


def render_csv(recordings: list[ExportedRecording]) -> str:
    """One ``Recording`` line per recording; transcripts are truncated."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for r in recordings:
        transcript = r.transcript.text[:CSV_TRANSCRIPT_CHARS] if r.transcript else ""
        writer.writerow(
            (
                "Recording",
                r.id,
                r.title or "",
                r.duration_seconds if r.duration_seconds is not None else "",
                r.created_at or "",
                transcript,
            )
        )
    return buffer.getvalue()


@router.get("/api/export")
async def export_data(
    services: Annotated[Services, Depends(get_services)],
    format: Annotated[ExportFormat, Query()] = ExportFormat.JSON,
) -> Response:
    """Download every recording with its transcript as JSON or CSV."""
    rows = await asyncio.to_thread(services.store.export_recordings)
    recordings = to_exported(rows)
    now = datetime.now(timezone.utc)
    filename = f"voicekeeper-export-{now.date().isoformat()}.{format.value}"
    headers = {"Content-Disposition": f'attachment; filename="{filename}"'}

    if format is ExportFormat.CSV:
        return Response(content=render_csv(recordings), media_type="text/csv", headers=headers)

    body = ExportResponse(exported_at=now.isoformat(), recordings=recordings)
    return Response(content=body.model_dump_json(), media_type="application/json", headers=headers)


@router.delete("/api/data", response_model=DeleteAllResponse)
async def delete_all_data(
    services: Annotated[Services, Depends(get_services)],
) -> DeleteAllResponse:
    """Delete every vector, then every recording and transcript."""
    try:
        deleted = await asyncio.to_thread(purge_all, services.store, services.vector_index)
    except Exception as exc:
        logger.exception("Failed to delete all data")
        raise HTTPException(status_code=503, detail=DELETE_FAILED) from exc
    return DeleteAllResponse(deleted=deleted)
