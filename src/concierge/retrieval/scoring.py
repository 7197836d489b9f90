"""Confidence scoring and match-type classification of DataVault results."""

from __future__ import annotations

import re

import structlog

from concierge.agent.llm import CompletionProvider
from concierge.types import MatchType, RetrievedSource, WebSearchResult

logger = structlog.get_logger(__name__)

_FIRST_INTEGER = re.compile(r"-?\d+")

LOWEST_CONFIDENCE = 1

_SCORING_PROMPT = (
    "You are a relevance scoring agent. Based on the supplied DataVault results and "
    "the user's request, return a single integer from 1 to 10 indicating how "
    "completely and precisely the results answer the request. Respond with only the integer."
)


def summarize_for_scoring(sources: list[RetrievedSource]) -> str:
    blocks = []
    for idx, source in enumerate(sources, start=1):
        summary = source.summary or source.full_text[:200].strip() or "No summary available."
        blocks.append(f"Result {idx}: {source.title}\nSummary: {summary}")
    return "\n\n".join(blocks)


async def score_datavault_confidence(
    llm: CompletionProvider,
    query: str,
    sources: list[RetrievedSource],
    *,
    model: str | None = None,
    sample_size: int = 3,
) -> int:
    """Rate 1-10 how well the top sources answer the query.

    Empty input and any failure score the lowest confidence, which makes the
    web-search gate fire.
    """
    if not sources:
        return LOWEST_CONFIDENCE

    try:
        raw = await llm.complete(
            [
                {"role": "system", "content": _SCORING_PROMPT},
                {
                    "role": "user",
                    "content": (
                        f"User Query: \"{query}\"\nDataVault Results:\n"
                        f"{summarize_for_scoring(sources[:sample_size])}"
                    ),
                },
            ],
            temperature=0,
            model=model,
        )
    except Exception as exc:
        logger.warning("confidence_scoring_failed", error=str(exc))
        return LOWEST_CONFIDENCE
    return parse_confidence(raw)


def parse_confidence(raw: str) -> int:
    match = _FIRST_INTEGER.search(raw or "")
    if match is None:
        logger.warning("confidence_score_unparseable", raw=raw)
        return LOWEST_CONFIDENCE
    return max(1, min(10, int(match.group(0))))


def classify_match_types(
    sources: list[RetrievedSource],
    web_results: list[WebSearchResult],
    query_location: str | None,
) -> list[RetrievedSource]:
    """Tag each source direct, indirect or orphan.

    A source title "appears" in the web results when the whole source title
    is contained in a web title, or a web title's first three words are
    contained in the source title. Location comparison is case-insensitive
    substring containment.
    """
    web_titles = [t for t in (r.title.strip().lower() for r in web_results) if t]
    location = (query_location or "").strip().lower()

    tagged = []
    for source in sources:
        title = source.title.lower()
        source_location = (source.location or "").strip().lower()
        appears = any(
            title in web_title or _leading_words(web_title) in title
            for web_title in web_titles
        )

        if appears and location and location in source_location:
            match_type = MatchType.DIRECT
        elif location and source_location and location not in source_location:
            match_type = MatchType.INDIRECT
        else:
            match_type = MatchType.ORPHAN
        tagged.append(source.with_match_type(match_type))
    return tagged


def _leading_words(title: str, count: int = 3) -> str:
    return " ".join(title.split()[:count])
