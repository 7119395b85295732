from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from voicekeeper.api.deps import get_services, services_initialized
from voicekeeper.api.routes.data import router as data_router
from voicekeeper.api.routes.recordings import router as recordings_router
from voicekeeper.api.routes.search import router as search_router
from voicekeeper.api.routes.transcription import router as transcription_router
from voicekeeper.config import settings
from voicekeeper.logging_config import configure_logging


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    configure_logging(settings.log_level)
    yield
    # Let in-flight indexing jobs finish before the loop closes.
    if services_initialized():
        await get_services().worker.drain()


app = FastAPI(
    title="VoiceKeeper API",
    description="Recorded-memory search with streamed, grounded answers",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_origin_regex=r"http://localhost:\d+",
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(recordings_router)
app.include_router(search_router)
app.include_router(transcription_router)
app.include_router(data_router)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "healthy"}


def run() -> None:
    """Console entry point: serve the API with uvicorn."""
    import uvicorn

    uvicorn.run("voicekeeper.api.main:app", host=settings.api_host, port=settings.api_port)
