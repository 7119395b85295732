"""Temporary credentials for the browser's real-time transcription session."""

from __future__ import annotations

import logging
from typing import Annotated

import httpx
from fastapi import APIRouter, Depends, HTTPException

from voicekeeper.api.deps import Services, get_services
from voicekeeper.api.models import TranscriptionTokenResponse

logger = logging.getLogger(__name__)

router = APIRouter()

REALTIME_TOKEN_URL = "https://api.assemblyai.com/v2/realtime/token"
TOKEN_TTL_SECONDS = 3600


async def request_realtime_token(api_key: str, expires_in: int = TOKEN_TTL_SECONDS) -> str:
    """Exchange the server API key for a short-lived real-time token.

    Raises:
        httpx.HTTPError: Network failure or non-2xx response from the provider.
    """
    async with httpx.AsyncClient(timeout=10.0) as client:
        response = await client.post(
            REALTIME_TOKEN_URL,
            headers={"Authorization": api_key},
            json={"expires_in": expires_in},
        )
        response.raise_for_status()
        return str(response.json()["token"])


@router.post("/api/transcription/token", response_model=TranscriptionTokenResponse)
async def transcription_token(
    services: Annotated[Services, Depends(get_services)],
) -> TranscriptionTokenResponse:
    """Mint a temporary real-time transcription token for the recording UI."""
    if not services.assemblyai_api_key:
        raise HTTPException(status_code=501, detail="Real-time transcription is not configured.")

    try:
        token = await request_realtime_token(services.assemblyai_api_key)
    except (httpx.HTTPError, KeyError, ValueError) as exc:
        # Provider outage or bad key, not a client error.
        logger.warning("Transcription token request failed: %s", exc)
        raise HTTPException(status_code=503, detail="Transcription service unavailable") from exc

    return TranscriptionTokenResponse(token=token)
