"""Live web search backends.

Every backend returns a (possibly empty) list and never raises into the
pipeline: zero web results simply means DataVault-only operation.
"""

from __future__ import annotations

from typing import Any, Protocol

import httpx
import structlog

from concierge.config import WebSearchConfig
from concierge.types import WebSearchResult

logger = structlog.get_logger(__name__)


class WebSearch(Protocol):
    enabled: bool

    async def search(self, query: str) -> list[WebSearchResult]:
        """Return live results for `query`."""


class DisabledWebSearch:
    """No-op backend used when no live search is configured."""

    enabled = False

    async def search(self, query: str) -> list[WebSearchResult]:
        logger.warning("web_search_disabled", query=query)
        return []


class SearxWebSearch:
    """Queries a SearXNG instance through its JSON API."""

    enabled = True

    def __init__(
        self,
        config: WebSearchConfig,
        *,
        region_name: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self.region_name = region_name
        self._transport = transport

    async def search(self, query: str) -> list[WebSearchResult]:
        params = {"q": f"{query} {self.region_name}", "format": "json", "categories": "general"}
        url = f"{self.config.searx_url.rstrip('/')}/search"
        try:
            async with httpx.AsyncClient(
                timeout=self.config.timeout_seconds,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                response = await client.get(url, params=params)
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "web_search_failed",
                query=query,
                status_code=exc.response.status_code,
            )
            return []
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("web_search_failed", query=query, error=str(exc))
            return []

        return _parse_results(payload, self.config.max_results)


def _parse_results(payload: Any, limit: int) -> list[WebSearchResult]:
    if not isinstance(payload, dict):
        return []
    results: list[WebSearchResult] = []
    seen: set[str] = set()
    for item in payload.get("results", []):
        if not isinstance(item, dict):
            continue
        title = str(item.get("title") or "").strip()
        url = str(item.get("url") or "").strip()
        if not title or not url:
            continue
        normalized = url.lower().split("?")[0].rstrip("/")
        if normalized in seen:
            continue
        seen.add(normalized)
        snippet = str(item.get("content") or "").strip()[:300] or None
        results.append(WebSearchResult(title=title, url=url, snippet=snippet))
        if len(results) >= limit:
            break
    return results
