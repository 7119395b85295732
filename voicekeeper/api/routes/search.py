"""Search endpoints: streamed grounded answers and instant keyword lookup."""

from __future__ import annotations

import asyncio
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse

from voicekeeper.api.deps import Services, get_services
from voicekeeper.api.models import SearchRequest
from voicekeeper.api.streams import relay_events
from voicekeeper.retrieval.snippets import InstantResult, instant_search

logger = logging.getLogger(__name__)

router = APIRouter()

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def client_id_for(request: Request) -> str:
    """Explicit ``X-Client-Id`` header, else the peer address."""
    header = request.headers.get("x-client-id")
    if header:
        return header
    return request.client.host if request.client else "anonymous"


@router.post("/api/search/stream")
async def search_stream(
    body: SearchRequest,
    request: Request,
    services: Annotated[Services, Depends(get_services)],
) -> StreamingResponse:
    """Answer a question over recorded memories as a server-sent event stream.

    Events arrive in order: status, sources, answer tokens, suggestions and
    a final ``done``; or a single ``error``.  A newer search from the same
    client cancels this one.
    """
    events = relay_events(services.streamer, body.query, client_id_for(request), services.registry)
    return StreamingResponse(events, media_type="text/event-stream", headers=SSE_HEADERS)


@router.get("/api/search/instant", response_model=list[InstantResult])
async def search_instant(
    services: Annotated[Services, Depends(get_services)],
    q: str = "",
    limit: Annotated[int, Query(ge=1, le=20)] = 5,
) -> list[InstantResult]:
    """Keyword search-as-you-type.  Failures degrade to an empty list."""
    try:
        return await asyncio.to_thread(instant_search, services.store, q, limit)
    except Exception:
        logger.warning("Instant search failed for %r", q, exc_info=True)
        return []
