"""Shared fakes and fixtures.  No test here talks to a live provider."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Iterator
from typing import Any
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from voicekeeper.api.deps import Services, get_services
from voicekeeper.api.main import app
from voicekeeper.ingestion.models import Word
from voicekeeper.ingestion.pipeline import IndexingWorker
from voicekeeper.ingestion.storage import RecordingStore, TranscriptMatch
from voicekeeper.ingestion.vector_index import VectorMatch, VectorRecord
from voicekeeper.retrieval.search import HybridRetriever
from voicekeeper.retrieval.streaming import AnswerStreamer


def word_counter(text: str) -> int:
    """One token per whitespace-delimited word; additive, so bounds are exact."""
    return len(text.split())


def make_words(text: str, confidence: float = 0.9, speaker: str | None = None) -> list[Word]:
    """One Word per token of *text*, word i spanning [i, i + 0.5] seconds."""
    return [
        Word(text=t, start_seconds=float(i), end_seconds=i + 0.5, confidence=confidence, speaker=speaker)
        for i, t in enumerate(text.split())
    ]


class FakeTranscripts:
    def __init__(self, matches: list[TranscriptMatch] | None = None, error: Exception | None = None) -> None:
        self.matches = matches or []
        self.error = error
        self.queries: list[str] = []

    def keyword_search(self, query: str, limit: int = 5) -> list[TranscriptMatch]:
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return self.matches[:limit]


class FakeEmbedder:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[list[str]] = []

    def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        if self.error is not None:
            raise self.error
        return [[float(len(t)), 1.0] for t in texts]


class FakeVectorIndex:
    def __init__(self, matches: list[VectorMatch] | None = None, error: Exception | None = None) -> None:
        self.matches = matches or []
        self.error = error
        self.upserted: list[VectorRecord] = []
        self.deleted: list[str] = []
        self.cleared = False

    def upsert(self, records: list[VectorRecord]) -> int:
        self.upserted.extend(records)
        return len(records)

    def query(self, vector: list[float], top_k: int = 5, filter: dict[str, Any] | None = None) -> list[VectorMatch]:
        if self.error is not None:
            raise self.error
        return self.matches[:top_k]

    def delete_by_recording_id(self, recording_id: str) -> None:
        if self.error is not None:
            raise self.error
        self.deleted.append(recording_id)

    def delete_all(self) -> None:
        if self.error is not None:
            raise self.error
        self.cleared = True


class FakeGenerator:
    """Yields canned fragments; optionally raises after ``fail_after`` of them."""

    def __init__(self, fragments: list[str], fail_after: int | None = None) -> None:
        self.fragments = fragments
        self.fail_after = fail_after
        self.prompts: list[str] = []

    async def stream(self, system: str, prompt: str) -> AsyncIterator[str]:
        self.prompts.append(prompt)
        for i, fragment in enumerate(self.fragments):
            if self.fail_after is not None and i >= self.fail_after:
                raise RuntimeError("provider dropped the stream")
            yield fragment
        if self.fail_after is not None and self.fail_after >= len(self.fragments):
            raise RuntimeError("provider dropped the stream")


class BlockingGenerator:
    """Yields one fragment, then waits until cancelled."""

    def __init__(self) -> None:
        self.started = asyncio.Event()
        self.closed = False

    async def stream(self, system: str, prompt: str) -> AsyncIterator[str]:
        try:
            yield "partial"
            self.started.set()
            await asyncio.sleep(3600)
        finally:
            self.closed = True


def keyword_match(recording_id: str, text: str = "We had lunch by the lake.", date: str = "2024-01-03") -> TranscriptMatch:
    return TranscriptMatch(recording_id=recording_id, text=text, date=date, title=text[:20])


def vector_match(recording_id: str, score: float, text: str = "semantic excerpt", **extra: Any) -> VectorMatch:
    metadata = {
        "recording_id": recording_id,
        "chunk_index": 0,
        "chunk_text": text,
        "start_time": 1.0,
        "end_time": 4.0,
        "date": "2024-02-01",
        **extra,
    }
    return VectorMatch(id=f"{recording_id}_chunk_0", score=score, metadata=metadata)


@pytest.fixture
def store() -> MagicMock:
    mock = MagicMock(spec=RecordingStore)
    mock.keyword_search.return_value = []
    mock.create_recording.return_value = {"id": "rec", "created_at": "2024-01-03T10:00:00+00:00"}
    mock.delete_recording.return_value = True
    mock.delete_all.return_value = 0
    mock.export_recordings.return_value = []
    return mock


def build_test_services(
    store: Any,
    generator: Any = None,
    embedder: Any = None,
    vector_index: Any = None,
    worker: Any = None,
    assemblyai_api_key: str = "",
) -> Services:
    retriever = HybridRetriever(store, embedder, vector_index)
    return Services(
        store=store,
        retriever=retriever,
        streamer=AnswerStreamer(retriever, generator),
        worker=worker or IndexingWorker(store, embedder, vector_index, count=word_counter),
        vector_index=vector_index,
        assemblyai_api_key=assemblyai_api_key,
    )


@pytest.fixture
def services(store: MagicMock) -> Services:
    return build_test_services(store)


@pytest.fixture
def client(services: Services) -> Iterator[TestClient]:
    app.dependency_overrides[get_services] = lambda: services
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
