"""Shared domain models."""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any


class ClassifiedIntent(str, Enum):
    ACCOMMODATION = "Accommodation"
    RESTAURANT = "Restaurant"
    EVENT = "Event"
    GENERAL = "General"


class TemporalIntent(str, Enum):
    PAST = "PAST"
    PRESENT = "PRESENT"
    IMMEDIATE_FUTURE = "IMMEDIATE_FUTURE"
    BROADER_FUTURE = "BROADER_FUTURE"


class MatchType(str, Enum):
    DIRECT = "direct"
    INDIRECT = "indirect"
    ORPHAN = "orphan"


@dataclass(slots=True, frozen=True)
class ChatTurn:
    """One message of the conversation resent by the caller."""

    role: str
    content: str


@dataclass(slots=True, frozen=True)
class TemporalRange:
    """Resolved date window; `start <= end` always holds."""

    start: str
    end: str
    intent: TemporalIntent

    def as_payload(self) -> dict[str, str]:
        return {"start": self.start, "end": self.end, "intent": self.intent.value}


@dataclass(slots=True, frozen=True)
class GeographicIntent:
    has_constraint: bool
    location: str | None
    confidence: int


@dataclass(slots=True, frozen=True)
class ToolPlan:
    """Which sources to consult and why.

    Stages never mutate a plan; they derive a new one with `with_reason` or
    `with_confidence` and hand it to the next stage.
    """

    run_datavault: bool
    run_web_search: bool
    fallback_to_web_on_empty_datavault: bool
    reason: str
    confidence_threshold: int | None = None
    datavault_confidence: int | None = None

    def with_reason(self, reason: str) -> ToolPlan:
        return replace(self, reason=reason)

    def with_confidence(self, confidence: int) -> ToolPlan:
        return replace(self, datavault_confidence=confidence)

    def as_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "runDatavault": self.run_datavault,
            "runGoogle": self.run_web_search,
            "fallbackToGoogleOnEmptyDatavault": self.fallback_to_web_on_empty_datavault,
            "reason": self.reason,
        }
        if self.confidence_threshold is not None:
            payload["confidenceThreshold"] = self.confidence_threshold
        if self.datavault_confidence is not None:
            payload["datavaultConfidence"] = self.datavault_confidence
        return payload


@dataclass(slots=True, frozen=True)
class WebSearchResult:
    title: str
    url: str
    snippet: str | None = None

    def as_payload(self) -> dict[str, str]:
        payload = {"title": self.title, "url": self.url}
        if self.snippet:
            payload["snippet"] = self.snippet
        return payload


@dataclass(slots=True)
class VectorRecord:
    """A vector plus metadata as written to the vector store."""

    record_id: str
    values: list[float]
    metadata: dict[str, Any]


@dataclass(slots=True)
class VectorMatch:
    """A raw vector store hit before enrichment."""

    record_id: str
    score: float | None
    metadata: dict[str, Any]


@dataclass(slots=True, frozen=True)
class RetrievedSource:
    """A DataVault match mapped into the fields the pipeline consumes.

    `source_path` is the document-level provenance key the model cites;
    `id` is the per-chunk vector store id.
    """

    id: str
    title: str
    summary: str | None
    source_path: str
    url: str | None
    score: float | None
    start_date: str | None
    end_date: str | None
    start_time: str | None
    end_time: str | None
    start_date_numeric: int | None
    end_date_numeric: int | None
    full_text: str
    location: str | None = None
    match_type: MatchType = MatchType.ORPHAN

    def with_match_type(self, match_type: MatchType) -> RetrievedSource:
        return replace(self, match_type=match_type)

    def as_citation(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "summary": self.summary,
            "source": self.source_path,
            "url": self.url,
            "score": self.score,
            "startDate": self.start_date,
            "endDate": self.end_date,
            "startTime": self.start_time,
            "endTime": self.end_time,
        }


_NON_DIGITS = re.compile(r"[^0-9]")


def date_to_numeric(value: str | None) -> int | None:
    """Encode an ISO date as an 8-digit integer (`2025-10-30` -> 20251030)."""
    if not value:
        return None
    digits = _NON_DIGITS.sub("", value)
    if len(digits) < 8:
        return None
    return int(digits[:8])
