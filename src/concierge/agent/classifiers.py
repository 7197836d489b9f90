"""LLM-backed query classifiers: intent, temporal window, geographic constraint.

Each classifier fails soft. A provider error or malformed answer is logged and
replaced with a documented default so retrieval always proceeds.
"""

from __future__ import annotations

import json
import re
from math import isfinite
from typing import Any

import structlog

from concierge.agent.llm import CompletionProvider, strip_code_fences
from concierge.types import ClassifiedIntent, GeographicIntent, TemporalIntent, TemporalRange

logger = structlog.get_logger(__name__)

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

_INTENT_PROMPT = (
    "You are a classification agent. Classify the user's request into one of the "
    "following categories: 'Accommodation', 'Restaurant', 'Event', or 'General'. "
    "Respond with only the category name."
)

GEO_FALLBACK = GeographicIntent(has_constraint=False, location=None, confidence=1)


def _temporal_prompt(today: str) -> str:
    return "\n".join(
        [
            f"Analyze the user's query and the current date ({today}). Respond with a JSON object "
            "that includes a start_date, an end_date, and a temporal_intent.",
            "temporal_intent can be one of: PAST, PRESENT, IMMEDIATE_FUTURE (e.g., today/this weekend), "
            "BROADER_FUTURE (e.g., next month/coming up).",
            "When the query is ambiguous, make a sensible assumption and choose the most contextually "
            "appropriate window.",
            "Ensure the start_date is never after the end_date.",
            "Examples (for a current date of 2025-10-30):",
            'Query: "What happened yesterday?" -> {"start_date": "2025-10-29", "end_date": "2025-10-29", '
            '"temporal_intent": "PAST"}',
            'Query: "what halloween events are coming up" -> {"start_date": "2025-10-30", '
            '"end_date": "2025-11-30", "temporal_intent": "BROADER_FUTURE"}',
            'Query: "What\'s happening this weekend?" -> {"start_date": "2025-10-31", '
            '"end_date": "2025-11-02", "temporal_intent": "IMMEDIATE_FUTURE"}',
        ]
    )


def _geographic_prompt(region_name: str, places: list[str]) -> str:
    first = places[0] if places else "the main town"
    second = places[1] if len(places) > 1 else first
    return "\n".join(
        [
            f"Analyze the user's query to determine if they are asking about a specific location on the {region_name}.",
            "Respond with a JSON object containing:",
            "- hasConstraint (boolean): true if the query mentions a specific town, village, or area",
            "- location (string | null): the extracted location name, or null if no constraint",
            "- confidence (number 1-10): how confident you are about the location constraint",
            f"Common {region_name} locations: {', '.join(places)}." if places else "",
            "Examples:",
            f'"where can I eat in {first}" -> {{"hasConstraint": true, "location": "{first}", "confidence": 10}}',
            f'"best pubs near {second}" -> {{"hasConstraint": true, "location": "{second}", "confidence": 9}}',
            '"where can I eat" -> {"hasConstraint": false, "location": null, "confidence": 10}',
            '"cozy pubs with fires" -> {"hasConstraint": false, "location": null, "confidence": 10}',
        ]
    )


async def classify_intent(
    llm: CompletionProvider, query: str, *, model: str | None = None
) -> ClassifiedIntent:
    """Single-label intent; `General` on any failure."""
    try:
        raw = await llm.complete(
            [
                {"role": "system", "content": _INTENT_PROMPT},
                {"role": "user", "content": query},
            ],
            temperature=0,
            model=model,
        )
    except Exception as exc:
        logger.warning("intent_classification_failed", error=str(exc))
        return ClassifiedIntent.GENERAL
    return parse_intent(raw)


def parse_intent(raw: str) -> ClassifiedIntent:
    label = raw.strip().strip("'\".").strip().lower()
    for intent in ClassifiedIntent:
        if intent.value.lower() == label:
            return intent
    return ClassifiedIntent.GENERAL


async def classify_temporal_window(
    llm: CompletionProvider,
    query: str,
    today: str,
    *,
    model: str | None = None,
) -> TemporalRange | None:
    """Resolve the date window a query refers to, or None when unsure."""
    try:
        raw = await llm.complete(
            [
                {"role": "system", "content": _temporal_prompt(today)},
                {"role": "user", "content": query},
            ],
            temperature=0,
            model=model,
        )
    except Exception as exc:
        logger.warning("temporal_classification_failed", error=str(exc))
        return None
    return parse_temporal_classification(strip_code_fences(raw))


def parse_temporal_classification(raw: str) -> TemporalRange | None:
    """Validate a temporal JSON answer as a whole; reversed ranges are swapped."""
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        logger.warning("temporal_classification_unparseable", error=str(exc))
        return None
    if not isinstance(parsed, dict):
        logger.warning("temporal_classification_invalid", raw=raw)
        return None

    start = _clean_str(parsed.get("start_date"))
    end = _clean_str(parsed.get("end_date"))
    intent = normalize_temporal_intent(parsed.get("temporal_intent"))
    if not _ISO_DATE.match(start) or not _ISO_DATE.match(end) or intent is None:
        logger.warning("temporal_classification_invalid", raw=raw)
        return None

    if start > end:
        start, end = end, start
    return TemporalRange(start=start, end=end, intent=intent)


def normalize_temporal_intent(value: Any) -> TemporalIntent | None:
    if not isinstance(value, str):
        return None
    try:
        return TemporalIntent(value.strip().upper())
    except ValueError:
        return None


async def extract_geographic_intent(
    llm: CompletionProvider,
    query: str,
    *,
    region_name: str,
    places: list[str],
    model: str | None = None,
) -> GeographicIntent:
    """Detect a town/area constraint; disables geo prioritisation on failure."""
    try:
        raw = await llm.complete(
            [
                {"role": "system", "content": _geographic_prompt(region_name, places)},
                {"role": "user", "content": query},
            ],
            temperature=0,
            model=model,
        )
    except Exception as exc:
        logger.warning("geographic_classification_failed", error=str(exc))
        return GEO_FALLBACK
    return parse_geographic_intent(strip_code_fences(raw))


def parse_geographic_intent(raw: str) -> GeographicIntent:
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        logger.warning("geographic_classification_unparseable", error=str(exc))
        return GEO_FALLBACK
    if not isinstance(parsed, dict):
        logger.warning("geographic_classification_invalid", raw=raw)
        return GEO_FALLBACK

    location = parsed.get("location")
    confidence = parsed.get("confidence")
    if isinstance(confidence, (int, float)) and not isinstance(confidence, bool) and isfinite(confidence):
        confidence = max(1, min(10, round(confidence)))
    else:
        confidence = 5
    return GeographicIntent(
        has_constraint=bool(parsed.get("hasConstraint")),
        location=(location.strip() or None) if isinstance(location, str) else None,
        confidence=confidence,
    )


def _clean_str(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""
