"""Parsing of the model's citation trailer and shaping of cited sources."""

from __future__ import annotations

import json
from dataclasses import dataclass, field

import structlog

from concierge.agent.prompts import CITATION_MARKER
from concierge.types import RetrievedSource

logger = structlog.get_logger(__name__)


@dataclass(slots=True)
class ParsedAnswer:
    answer: str
    cited_paths: list[str] = field(default_factory=list)


def parse_cited_paths(raw: str) -> ParsedAnswer:
    """Split the answer from the last `CITED_SOURCES_JSON:` trailer.

    The last occurrence wins because models sometimes echo the instruction
    text earlier in the answer. An unparseable trailer leaves the whole raw
    response as the answer with no citations.
    """
    index = raw.rfind(CITATION_MARKER)
    if index == -1:
        return ParsedAnswer(answer=raw.strip())

    answer = raw[:index].strip()
    tail = raw[index + len(CITATION_MARKER):].strip()
    try:
        parsed = json.loads(tail)
    except json.JSONDecodeError as exc:
        logger.warning("cited_sources_unparseable", error=str(exc))
        return ParsedAnswer(answer=raw.strip())

    if not isinstance(parsed, list):
        return ParsedAnswer(answer=raw.strip())
    return ParsedAnswer(
        answer=answer,
        cited_paths=[value for value in parsed if isinstance(value, str)],
    )


def select_cited_sources(
    sources: list[RetrievedSource], cited_paths: list[str]
) -> list[RetrievedSource]:
    """Sources the model cited, or the top source when it cited none."""
    wanted = set(cited_paths)
    cited = [source for source in sources if source.source_path in wanted]
    if not cited and sources:
        cited = [sources[0]]
    return dedupe_by_source_path(cited)


def dedupe_by_source_path(sources: list[RetrievedSource]) -> list[RetrievedSource]:
    seen: set[str] = set()
    unique = []
    for source in sources:
        if source.source_path in seen:
            continue
        seen.add(source.source_path)
        unique.append(source)
    return unique
