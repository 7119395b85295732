"""Streaming answer events: a discriminated union on ``type`` plus SSE framing."""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, Field, TypeAdapter

from voicekeeper.retrieval.search import RetrievedSource


class StatusEvent(BaseModel):
    type: Literal["status"] = "status"
    content: str


class TokenEvent(BaseModel):
    type: Literal["token"] = "token"
    content: str


class SourcesEvent(BaseModel):
    type: Literal["sources"] = "sources"
    sources: list[RetrievedSource]


class SuggestionsEvent(BaseModel):
    type: Literal["suggestions"] = "suggestions"
    suggestions: list[str]


class ErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    error: str


class DoneEvent(BaseModel):
    type: Literal["done"] = "done"


StreamEvent = Annotated[
    StatusEvent | TokenEvent | SourcesEvent | SuggestionsEvent | ErrorEvent | DoneEvent,
    Field(discriminator="type"),
]

stream_event_adapter: TypeAdapter[StreamEvent] = TypeAdapter(StreamEvent)

TERMINAL_TYPES = frozenset({"done", "error"})


def is_terminal(event: StreamEvent) -> bool:
    return event.type in TERMINAL_TYPES


def to_sse(event: StreamEvent) -> str:
    """Frame one event as a server-sent ``data:`` message."""
    return f"data: {event.model_dump_json(exclude_none=True)}\n\n"


def parse_sse(body: str) -> list[StreamEvent]:
    """Decode a buffered SSE body back into events (used by clients and tests)."""
    events: list[StreamEvent] = []
    for frame in body.split("\n\n"):
        frame = frame.strip()
        if frame.startswith("data:"):
            events.append(stream_event_adapter.validate_json(frame[len("data:") :].strip()))
    return events
