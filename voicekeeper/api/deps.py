"""Service wiring: every gateway is constructed once and injected via ``Depends``.

Tests replace :func:`get_services` through ``app.dependency_overrides``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import lru_cache

from voicekeeper.api.streams import StreamRegistry
from voicekeeper.config import Settings, settings
from voicekeeper.ingestion.embeddings import EmbeddingGateway, OpenAIEmbeddingGateway
from voicekeeper.ingestion.pipeline import IndexingWorker
from voicekeeper.ingestion.storage import RecordingStore, get_supabase_client
from voicekeeper.ingestion.vector_index import SupabaseVectorIndex, VectorIndexGateway
from voicekeeper.pipeline_config import chunking_config_from, retrieval_config_from
from voicekeeper.retrieval.generation import AnswerGenerator, ClaudeAnswerGenerator
from voicekeeper.retrieval.search import HybridRetriever
from voicekeeper.retrieval.streaming import AnswerStreamer

logger = logging.getLogger(__name__)


@dataclass
class Services:
    store: RecordingStore
    retriever: HybridRetriever
    streamer: AnswerStreamer
    worker: IndexingWorker
    vector_index: VectorIndexGateway | None = None
    registry: StreamRegistry = field(default_factory=StreamRegistry)
    assemblyai_api_key: str = ""


def build_services(config: Settings) -> Services:
    """Construct gateways from *config*; optional providers stay ``None`` when unconfigured."""
    client = get_supabase_client(config.supabase_url, config.supabase_key)
    store = RecordingStore(client)

    embedder: EmbeddingGateway | None = None
    vector_index: VectorIndexGateway | None = None
    if config.semantic_search_enabled:
        embedder = OpenAIEmbeddingGateway(
            api_key=config.openai_api_key,
            model=config.embedding_model,
            dimensions=config.embedding_dimensions,
        )
        vector_index = SupabaseVectorIndex(client)
    else:
        logger.info("Semantic search disabled (missing OPENAI_API_KEY or Supabase settings)")

    generator: AnswerGenerator | None = None
    if config.anthropic_api_key:
        generator = ClaudeAnswerGenerator(
            api_key=config.anthropic_api_key,
            model=config.llm_model,
            max_tokens=config.llm_max_tokens,
        )
    else:
        logger.info("Answer generation disabled (missing ANTHROPIC_API_KEY); excerpts only")

    retriever = HybridRetriever(store, embedder, vector_index, retrieval_config_from(config))
    return Services(
        store=store,
        retriever=retriever,
        streamer=AnswerStreamer(retriever, generator),
        worker=IndexingWorker(store, embedder, vector_index, chunking_config_from(config)),
        vector_index=vector_index,
        assemblyai_api_key=config.assemblyai_api_key,
    )


@lru_cache(maxsize=1)
def get_services() -> Services:
    return build_services(settings)


def services_initialized() -> bool:
    return get_services.cache_info().currsize > 0
