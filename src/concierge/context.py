"""Collaborator context built once at process start and passed to the pipeline."""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from concierge.agent.llm import CompletionProvider, create_openai_provider
from concierge.config import AppSettings
from concierge.retrieval.embedder import Embedder, OpenAIEmbedder
from concierge.retrieval.vector_store import FaissVectorStoreAdapter, InMemoryVectorStore, VectorStore
from concierge.retrieval.web_search import DisabledWebSearch, SearxWebSearch, WebSearch

logger = structlog.get_logger(__name__)


@dataclass(slots=True)
class ConciergeContext:
    settings: AppSettings
    llm: CompletionProvider
    embedder: Embedder
    vector_store: VectorStore
    web_search: WebSearch


def build_context(settings: AppSettings) -> ConciergeContext:
    """Wire the production collaborators described by `settings`.

    Raises:
        RuntimeError: when no OpenAI API key is configured.
    """

    if not settings.openai_api_key:
        raise RuntimeError("OPENAI_API_KEY (or CONCIERGE_OPENAI_API_KEY) must be set.")

    model = settings.model
    llm = create_openai_provider(
        api_key=settings.openai_api_key,
        model_names=[model.chat_model, model.classifier_model, model.resolved_temporal_model],
        timeout=model.request_timeout_seconds,
        max_retries=model.max_retries,
    )
    embedder = OpenAIEmbedder(
        model=model.embedding_model,
        api_key=settings.openai_api_key,
        timeout=model.request_timeout_seconds,
        max_retries=model.max_retries,
    )

    vector_store: VectorStore
    if settings.vector_store == "faiss":
        vector_store = FaissVectorStoreAdapter(embedder, path=settings.vector_store_path)
    else:
        vector_store = InMemoryVectorStore(settings.vector_store_path)
    if settings.vector_store_path is None:
        logger.warning("vector_store_not_persisted", store=vector_store.name)

    web_search: WebSearch
    if settings.web_search.enabled:
        web_search = SearxWebSearch(settings.web_search, region_name=settings.retrieval.region_name)
    else:
        web_search = DisabledWebSearch()

    return ConciergeContext(
        settings=settings,
        llm=llm,
        embedder=embedder,
        vector_store=vector_store,
        web_search=web_search,
    )
