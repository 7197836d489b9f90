"""Vector store interfaces and concrete adapters."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from math import sqrt
from pathlib import Path
from typing import Any, Protocol

from concierge.types import VectorMatch, VectorRecord

MetadataFilter = dict[str, Any]


class VectorStore(Protocol):
    """Minimal vector store contract for DataVault retrieval."""

    name: str

    async def upsert(self, records: list[VectorRecord]) -> None:
        """Insert or update vectors."""

    async def query(
        self,
        vector: list[float],
        *,
        top_k: int,
        include_metadata: bool = True,
        metadata_filter: MetadataFilter | None = None,
    ) -> list[VectorMatch]:
        """Return the `top_k` nearest records that satisfy the filter."""

    async def delete_many(self, metadata_filter: MetadataFilter) -> int:
        """Delete every record matching the filter and return the count."""


class InMemoryVectorStore:
    """Deterministic vector store used for tests and local prototyping.

    With a `path` the records are snapshotted to a JSON file after every
    write and reloaded on construction.
    """

    name = "memory"

    def __init__(self, path: str | Path | None = None) -> None:
        self._store: dict[str, VectorRecord] = {}
        self._path = Path(path) if path is not None else None
        if self._path is not None and self._path.exists():
            for raw in json.loads(self._path.read_text(encoding="utf-8")):
                record = VectorRecord(
                    record_id=raw["id"], values=raw["values"], metadata=raw["metadata"]
                )
                self._store[record.record_id] = record

    async def upsert(self, records: list[VectorRecord]) -> None:
        for record in records:
            self._store[record.record_id] = record
        await self._persist()

    async def query(
        self,
        vector: list[float],
        *,
        top_k: int,
        include_metadata: bool = True,
        metadata_filter: MetadataFilter | None = None,
    ) -> list[VectorMatch]:
        candidates = [
            rec
            for rec in self._store.values()
            if metadata_matches(rec.metadata, metadata_filter)
        ]
        ranked = sorted(
            candidates,
            key=lambda rec: _cosine_similarity(vector, rec.values),
            reverse=True,
        )
        return [
            VectorMatch(
                record_id=rec.record_id,
                score=_cosine_similarity(vector, rec.values),
                metadata=dict(rec.metadata) if include_metadata else {},
            )
            for rec in ranked[:top_k]
        ]

    async def delete_many(self, metadata_filter: MetadataFilter) -> int:
        doomed = [
            record_id
            for record_id, rec in self._store.items()
            if metadata_matches(rec.metadata, metadata_filter)
        ]
        for record_id in doomed:
            del self._store[record_id]
        if doomed:
            await self._persist()
        return len(doomed)

    def __len__(self) -> int:
        return len(self._store)

    async def _persist(self) -> None:
        if self._path is None:
            return
        payload = [
            {"id": rec.record_id, "values": rec.values, "metadata": rec.metadata}
            for rec in self._store.values()
        ]
        await asyncio.to_thread(self._write_snapshot, json.dumps(payload))

    def _write_snapshot(self, text: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(text, encoding="utf-8")


class FaissVectorStoreAdapter:
    """FAISS adapter via LangChain community integration.

    Keeps the same contract as `InMemoryVectorStore`; filters are evaluated
    by `metadata_matches` so both stores share one filter language.
    Vectors are L2-normalised before they reach FAISS, so inner-product
    scores are cosine similarities.

    With a `path` the index is loaded with `FAISS.load_local` when the folder
    exists and written back with `save_local` after every write.
    """

    name = "faiss"

    def __init__(self, embedder: Any, *, path: str | Path | None = None) -> None:
        try:
            from langchain_community.vectorstores import FAISS
            from langchain_community.vectorstores.utils import DistanceStrategy
            from langchain_core.embeddings import Embeddings
        except Exception as exc:  # pragma: no cover - import path is environment-dependent
            raise RuntimeError(
                "FAISS dependencies are not available. Install the `faiss` extra."
            ) from exc

        class _EmbeddingAdapter(Embeddings):
            def __init__(self, adapter_embedder: Any) -> None:
                self._embedder = adapter_embedder

            def embed_documents(self, texts: list[str]) -> list[list[float]]:
                raise NotImplementedError("records are upserted with precomputed vectors")

            def embed_query(self, text: str) -> list[float]:
                raise NotImplementedError("queries are issued with precomputed vectors")

            async def aembed_documents(self, texts: list[str]) -> list[list[float]]:
                return await self._embedder.embed_documents(texts)

            async def aembed_query(self, text: str) -> list[float]:
                return await self._embedder.embed_query(text)

        self._faiss_cls = FAISS
        self._distance = DistanceStrategy.MAX_INNER_PRODUCT
        self._embeddings = _EmbeddingAdapter(embedder)
        self._path = Path(path) if path is not None else None
        self._index: Any | None = None
        if self._path is not None and (self._path / "index.faiss").exists():
            # Only folders written by `_persist` are loaded here.
            self._index = FAISS.load_local(
                str(self._path),
                self._embeddings,
                allow_dangerous_deserialization=True,
                distance_strategy=self._distance,
            )

    async def upsert(self, records: list[VectorRecord]) -> None:
        if not records:
            return
        ids = [record.record_id for record in records]
        if self._index is not None:
            stored = set(self._index.index_to_docstore_id.values())
            existing = [record_id for record_id in ids if record_id in stored]
            if existing:
                self._index.delete(existing)

        text_embeddings = [
            (str(record.metadata.get("text", "")), _normalize(record.values)) for record in records
        ]
        metadatas = [dict(record.metadata, record_id=record.record_id) for record in records]

        if self._index is None:
            self._index = self._faiss_cls.from_embeddings(
                text_embeddings=text_embeddings,
                embedding=self._embeddings,
                metadatas=metadatas,
                ids=ids,
                distance_strategy=self._distance,
            )
        else:
            self._index.add_embeddings(
                text_embeddings=text_embeddings,
                metadatas=metadatas,
                ids=ids,
            )
        await self._persist()

    async def query(
        self,
        vector: list[float],
        *,
        top_k: int,
        include_metadata: bool = True,
        metadata_filter: MetadataFilter | None = None,
    ) -> list[VectorMatch]:
        if self._index is None or len(self) == 0:
            return []
        options: dict[str, Any] = {}
        predicate = _as_predicate(metadata_filter)
        if predicate is not None:
            # Filter over the whole index, not just the nearest default batch.
            options["filter"] = predicate
            options["fetch_k"] = max(top_k, len(self))
        docs_and_scores = await self._index.asimilarity_search_with_score_by_vector(
            _normalize(vector),
            k=top_k,
            **options,
        )
        matches: list[VectorMatch] = []
        for doc, score in docs_and_scores:
            metadata = dict(doc.metadata)
            record_id = str(metadata.pop("record_id", getattr(doc, "id", None) or ""))
            matches.append(
                VectorMatch(
                    record_id=record_id,
                    score=float(score),
                    metadata=metadata if include_metadata else {},
                )
            )
        return matches

    async def delete_many(self, metadata_filter: MetadataFilter) -> int:
        if self._index is None:
            return 0
        doomed = [
            docstore_id
            for docstore_id in self._index.index_to_docstore_id.values()
            if metadata_matches(self._index.docstore.search(docstore_id).metadata, metadata_filter)
        ]
        if doomed:
            self._index.delete(doomed)
            await self._persist()
        return len(doomed)

    def __len__(self) -> int:
        if self._index is None:
            return 0
        return int(self._index.index.ntotal)

    async def _persist(self) -> None:
        if self._path is None or self._index is None:
            return
        await asyncio.to_thread(self._index.save_local, str(self._path))


_COMPARATORS = {
    "$eq": lambda actual, expected: actual == expected,
    "$ne": lambda actual, expected: actual != expected,
    "$gt": lambda actual, expected: actual > expected,
    "$gte": lambda actual, expected: actual >= expected,
    "$lt": lambda actual, expected: actual < expected,
    "$lte": lambda actual, expected: actual <= expected,
    "$in": lambda actual, expected: actual in expected,
    "$nin": lambda actual, expected: actual not in expected,
}


def _as_predicate(metadata_filter: MetadataFilter | None) -> Callable[[dict[str, Any]], bool] | None:
    if not metadata_filter:
        return None
    return lambda metadata: metadata_matches(metadata, metadata_filter)


def metadata_matches(metadata: dict[str, Any], metadata_filter: MetadataFilter | None) -> bool:
    """Evaluate a Pinecone-style filter; top-level keys are AND-ed."""
    if not metadata_filter:
        return True
    for key, condition in metadata_filter.items():
        if not isinstance(condition, dict):
            condition = {"$eq": condition}
        actual = metadata.get(key)
        for operator, expected in condition.items():
            compare = _COMPARATORS.get(operator)
            if compare is None:
                raise ValueError(f"Unsupported filter operator: {operator}")
            if actual is None and operator not in ("$ne", "$nin"):
                return False
            try:
                if not compare(actual, expected):
                    return False
            except TypeError:
                return False
    return True


def _cosine_similarity(a: list[float], b: list[float]) -> float:
    if not a or not b or len(a) != len(b):
        return 0.0
    numerator = sum(x * y for x, y in zip(a, b, strict=True))
    norm_a = sqrt(sum(x * x for x in a))
    norm_b = sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return numerator / (norm_a * norm_b)


def _normalize(vector: list[float]) -> list[float]:
    norm = sqrt(sum(value * value for value in vector))
    if norm == 0:
        return list(vector)
    return [value / norm for value in vector]
