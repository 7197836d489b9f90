"""Embedding abstractions and the OpenAI-backed implementation."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class EmbeddingError(RuntimeError):
    """Raised when the embedding provider returns no usable vector."""


class Embedder(ABC):
    """Embedder interface used by retrieval components."""

    @abstractmethod
    async def embed_documents(self, texts: list[str]) -> list[list[float]]:
        """Embed many documents."""

    @abstractmethod
    async def embed_query(self, text: str) -> list[float]:
        """Embed one query."""


class OpenAIEmbedder(Embedder):
    """Embeddings through LangChain's OpenAI integration."""

    def __init__(
        self,
        *,
        model: str,
        api_key: str,
        timeout: float | None = None,
        max_retries: int = 2,
        client: Any | None = None,
    ) -> None:
        if client is None:
            from langchain_openai import OpenAIEmbeddings

            client = OpenAIEmbeddings(
                model=model,
                api_key=api_key,
                timeout=timeout,
                max_retries=max_retries,
            )
        self._client = client

    async def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return await self._client.aembed_documents(texts)

    async def embed_query(self, text: str) -> list[float]:
        return await self._client.aembed_query(text)
