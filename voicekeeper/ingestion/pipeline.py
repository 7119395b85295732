"""Indexing pipeline: transcript -> chunk -> embed -> upsert -> record.

Indexing runs after the recording is saved, as a background job owned by
:class:`IndexingWorker`.  A failed job is logged and leaves the recording
keyword-searchable but not semantically indexed.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date as date_cls
from typing import Any

from voicekeeper.ingestion.chunking import chunk_transcript
from voicekeeper.ingestion.embeddings import EmbeddingGateway
from voicekeeper.ingestion.models import Chunk, EmbeddingRecord, vector_id
from voicekeeper.ingestion.storage import RecordingStore, iso_date
from voicekeeper.ingestion.tokens import TokenCounter, count_tokens
from voicekeeper.ingestion.vector_index import VectorIndexGateway, VectorRecord
from voicekeeper.pipeline_config import ChunkingConfig

logger = logging.getLogger(__name__)

METADATA_TEXT_LIMIT = 1000


def build_vector_records(
    recording_id: str,
    chunks: list[Chunk],
    vectors: list[list[float]],
    recorded_on: str,
) -> list[VectorRecord]:
    """Pair chunks with their vectors and attach search metadata."""
    records: list[VectorRecord] = []
    for chunk, values in zip(chunks, vectors, strict=True):
        metadata: dict[str, Any] = {
            "recording_id": recording_id,
            "chunk_index": chunk.index,
            "chunk_text": chunk.text[:METADATA_TEXT_LIMIT],
            "start_time": chunk.start_seconds,
            "end_time": chunk.end_seconds,
            "date": recorded_on,
            "confidence": chunk.avg_confidence,
        }
        if chunk.speaker:
            metadata["speaker"] = chunk.speaker
        records.append(VectorRecord(id=vector_id(recording_id, chunk.index), values=values, metadata=metadata))
    return records


def index_recording(
    recording_id: str,
    store: RecordingStore,
    embedder: EmbeddingGateway,
    vector_index: VectorIndexGateway,
    config: ChunkingConfig | None = None,
    count: TokenCounter = count_tokens,
) -> int:
    """Chunk, embed and index one recording's transcript.

    Returns:
        Number of chunks indexed (0 when there was nothing to embed).
    """
    transcript = store.get_transcript(recording_id)
    if transcript is None:
        logger.error("No transcript found for recording %s", recording_id)
        return 0

    chunks = chunk_transcript(transcript.words, transcript.utterances, config, count)
    if not chunks:
        logger.info("No chunks generated for recording %s", recording_id)
        return 0

    recording = store.get_recording(recording_id)
    recorded_on = iso_date(recording.get("created_at")) if recording else ""
    recorded_on = recorded_on or date_cls.today().isoformat()

    vectors = embedder.embed([c.text for c in chunks])
    records = build_vector_records(recording_id, chunks, vectors, recorded_on)
    vector_index.upsert(records)

    store.store_embedding_records(
        [
            EmbeddingRecord(
                recording_id=recording_id,
                chunk_text=chunk.text,
                chunk_index=chunk.index,
                external_vector_id=record.id,
            )
            for chunk, record in zip(chunks, records, strict=True)
        ]
    )
    logger.info("Generated %d embeddings for recording %s", len(chunks), recording_id)
    return len(chunks)


def purge_recording(
    recording_id: str,
    store: RecordingStore,
    vector_index: VectorIndexGateway | None,
) -> bool:
    """Delete a recording's vectors, then its relational rows.

    Vectors go first so a failure leaves the recording in place rather than
    orphaning vectors.  Errors from the vector index propagate.

    Returns:
        False if the recording did not exist.
    """
    if vector_index is not None:
        vector_index.delete_by_recording_id(recording_id)
    return store.delete_recording(recording_id)


def purge_all(store: RecordingStore, vector_index: VectorIndexGateway | None) -> int:
    """Delete every vector, then every recording with its transcript and chunks.

    Same ordering as :func:`purge_recording`: a vector index failure
    propagates before any row is touched.

    Returns:
        Number of recordings deleted.
    """
    if vector_index is not None:
        vector_index.delete_all()
    deleted = store.delete_all()
    logger.info("Deleted all data: %d recordings", deleted)
    return deleted


class IndexingWorker:
    """Runs :func:`index_recording` as detached, awaitable background jobs."""

    def __init__(
        self,
        store: RecordingStore,
        embedder: EmbeddingGateway | None,
        vector_index: VectorIndexGateway | None,
        config: ChunkingConfig | None = None,
        count: TokenCounter = count_tokens,
    ) -> None:
        self.store = store
        self.embedder = embedder
        self.vector_index = vector_index
        self.config = config
        self.count = count
        self._tasks: set[asyncio.Task[int]] = set()

    @property
    def enabled(self) -> bool:
        return self.embedder is not None and self.vector_index is not None

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def schedule(self, recording_id: str) -> asyncio.Task[int] | None:
        """Start indexing *recording_id* without waiting for it.

        Must be called from a running event loop.  Returns ``None`` when the
        embedding providers are not configured.
        """
        embedder, vector_index = self.embedder, self.vector_index
        if embedder is None or vector_index is None:
            logger.info("Skipping embeddings for %s: providers not configured", recording_id)
            return None

        task = asyncio.get_running_loop().create_task(
            self._run(recording_id, embedder, vector_index), name=f"index-recording-{recording_id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, recording_id: str, embedder: EmbeddingGateway, vector_index: VectorIndexGateway) -> int:
        try:
            return await asyncio.to_thread(
                index_recording,
                recording_id,
                self.store,
                embedder,
                vector_index,
                self.config,
                self.count,
            )
        except Exception:
            logger.exception("Error generating embeddings for recording %s", recording_id)
            return 0

    async def drain(self) -> None:
        """Wait for every scheduled job, including ones scheduled meanwhile."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
