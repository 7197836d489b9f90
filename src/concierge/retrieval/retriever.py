"""DataVault retriever with candidate-query expansion and filter relaxation."""

from __future__ import annotations

from typing import Any

import structlog

from concierge.config import RetrievalConfig
from concierge.retrieval.embedder import Embedder, EmbeddingError
from concierge.retrieval.vector_store import MetadataFilter, VectorStore
from concierge.types import (
    ClassifiedIntent,
    RetrievedSource,
    TemporalRange,
    VectorMatch,
    WebSearchResult,
    date_to_numeric,
)

logger = structlog.get_logger(__name__)


class DataVaultRetriever:
    """Searches the vector store, trying several phrasings and filter tiers.

    Candidate queries are a search-quality mechanism: the next phrasing is
    tried only when the previous one succeeded with zero matches. Provider
    errors are not retried here.
    """

    def __init__(
        self,
        vector_store: VectorStore,
        embedder: Embedder,
        config: RetrievalConfig | None = None,
    ) -> None:
        self.vector_store = vector_store
        self.embedder = embedder
        self.config = config or RetrievalConfig()

    async def retrieve(
        self,
        query: str,
        *,
        intent: ClassifiedIntent,
        temporal: TemporalRange | None = None,
        web_results: list[WebSearchResult] | None = None,
    ) -> list[RetrievedSource]:
        """Run the candidate queries through primary, relaxed and open filters.

        `temporal` is only honoured for `Event` intent.
        """

        candidates = build_candidate_queries(
            query,
            web_results or [],
            region_name=self.config.region_name,
            max_anchors=self.config.max_web_anchors,
        )
        primary = build_filter(intent, temporal if intent is ClassifiedIntent.EVENT else None)

        sources = await self._search_candidates(candidates, primary)
        if sources or primary is None:
            return sources

        relaxed = relaxed_filter(intent)
        if relaxed is not None:
            logger.debug("datavault_filter_relaxed", tier="relaxed", filter=relaxed)
            sources = await self._search_candidates(candidates, relaxed)
        if not sources:
            logger.debug("datavault_filter_relaxed", tier="none")
            sources = await self._search_candidates(candidates, None)
        return sources

    async def search(
        self,
        query: str,
        metadata_filter: MetadataFilter | None = None,
    ) -> list[RetrievedSource]:
        """Embed one query and map the raw matches."""
        vector = await self.embedder.embed_query(query)
        if not vector:
            raise EmbeddingError("Failed to generate embedding for query.")

        matches = await self.vector_store.query(
            vector,
            top_k=self.config.top_k,
            include_metadata=True,
            metadata_filter=metadata_filter,
        )
        return [map_match(match, idx) for idx, match in enumerate(matches)]

    async def _search_candidates(
        self,
        candidates: list[str],
        metadata_filter: MetadataFilter | None,
    ) -> list[RetrievedSource]:
        for candidate in candidates:
            results = await self.search(candidate, metadata_filter)
            if results:
                return results
        return []


def build_augmented_query(
    base_query: str, web_results: list[WebSearchResult], *, limit: int = 3
) -> str:
    signals = [title for title in (r.title.strip() for r in web_results) if title][:limit]
    if not signals:
        return base_query
    return f"{base_query}. Prioritise matches for: {' | '.join(signals)}"


def build_candidate_queries(
    base_query: str,
    web_results: list[WebSearchResult],
    *,
    region_name: str,
    max_anchors: int = 3,
) -> list[str]:
    """Augmented query, raw query, then web titles as region-suffixed anchors."""
    anchors = [
        f"{title} {region_name}"
        for title in (r.title.strip() for r in web_results[:max_anchors])
        if title
    ]
    ordered = [build_augmented_query(base_query, web_results), base_query, *anchors]
    return list(dict.fromkeys(ordered))


def build_filter(
    intent: ClassifiedIntent, temporal: TemporalRange | None = None
) -> MetadataFilter | None:
    """Primary metadata filter; Event windows use an overlap test."""
    if intent is ClassifiedIntent.GENERAL:
        return None

    metadata_filter: MetadataFilter = {"type": {"$eq": intent.value}}
    if intent is ClassifiedIntent.EVENT and temporal is not None:
        start_numeric = date_to_numeric(temporal.start)
        end_numeric = date_to_numeric(temporal.end)
        if start_numeric is not None and end_numeric is not None:
            metadata_filter["start_date_numeric"] = {"$lte": end_numeric}
            metadata_filter["end_date_numeric"] = {"$gte": start_numeric}
    return metadata_filter


def relaxed_filter(intent: ClassifiedIntent) -> MetadataFilter | None:
    """Type-only filter, dropping temporal bounds."""
    if intent is ClassifiedIntent.GENERAL:
        return None
    return {"type": {"$eq": intent.value}}


def map_match(match: VectorMatch, idx: int) -> RetrievedSource:
    """Map a raw match defensively; absent metadata becomes None or ''."""
    metadata = match.metadata or {}
    return RetrievedSource(
        id=match.record_id,
        title=_string_or(metadata.get("title"), f"Source {idx + 1}"),
        summary=_nullable_string(metadata.get("summary")),
        source_path=_string_or(metadata.get("source"), f"MATCH_{idx + 1}"),
        url=_nullable_string(metadata.get("url")),
        score=match.score,
        start_date=_nullable_string(metadata.get("start_date")),
        end_date=_nullable_string(metadata.get("end_date")),
        start_time=_nullable_string(metadata.get("start_time")),
        end_time=_nullable_string(metadata.get("end_time")),
        start_date_numeric=_nullable_int(metadata.get("start_date_numeric")),
        end_date_numeric=_nullable_int(metadata.get("end_date_numeric")),
        full_text=_string_or(metadata.get("text"), ""),
        location=_nullable_string(metadata.get("location")),
    )


def _nullable_string(value: Any) -> str | None:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return str(value)
    return None


def _string_or(value: Any, fallback: str) -> str:
    result = _nullable_string(value)
    return result if result is not None else fallback


def _nullable_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None
