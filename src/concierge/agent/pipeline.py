"""Request handler: classify, plan, retrieve, score, synthesise, cite."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

import structlog

from concierge.agent.citations import parse_cited_paths, select_cited_sources
from concierge.agent.classifiers import (
    classify_intent,
    classify_temporal_window,
    extract_geographic_intent,
)
from concierge.agent.planner import apply_geographic_override, is_geo_constrained, select_tool_plan
from concierge.agent.prompts import (
    build_prompt,
    build_prompt_question,
    build_synthesizer_envelope,
    build_temporal_narrative,
    render_datavault_context,
)
from concierge.context import ConciergeContext
from concierge.obs.tracing import StageTrace
from concierge.retrieval.retriever import DataVaultRetriever
from concierge.retrieval.scoring import classify_match_types, score_datavault_confidence
from concierge.types import (
    ChatTurn,
    ClassifiedIntent,
    RetrievedSource,
    TemporalRange,
    ToolPlan,
    WebSearchResult,
)

logger = structlog.get_logger(__name__)

DEFAULT_ANSWER = (
    "I am still gathering the right passages. May I hear a little more about what you need?"
)


@dataclass(slots=True)
class ChatResult:
    """Terminal state of one request."""

    answer: str
    sources: list[RetrievedSource]
    tool_plan: ToolPlan
    web_results: list[WebSearchResult] = field(default_factory=list)
    temporal: TemporalRange | None = None

    def as_payload(self) -> dict[str, Any]:
        return {
            "answer": self.answer,
            "sources": [source.as_citation() for source in self.sources],
            "toolPlan": self.tool_plan.as_payload(),
            "googleResults": [result.as_payload() for result in self.web_results],
            "temporalClassification": self.temporal.as_payload() if self.temporal else None,
        }


class ConciergePipeline:
    """Drives one request through the query-understanding pipeline.

    Holds only the injected collaborators; all per-request state lives in
    local variables of `handle`, so one instance can serve concurrent calls.
    """

    def __init__(self, context: ConciergeContext) -> None:
        self.context = context
        self.settings = context.settings
        self.retriever = DataVaultRetriever(
            context.vector_store,
            context.embedder,
            self.settings.retrieval,
        )

    async def handle(self, query: str) -> ChatResult:
        settings = self.settings
        region_name = settings.retrieval.region_name
        trace = StageTrace()

        with trace.stage("classify"):
            intent, temporal, geo = await asyncio.gather(
                classify_intent(self.context.llm, query, model=settings.model.classifier_model),
                classify_temporal_window(
                    self.context.llm,
                    query,
                    settings.temporal.today(),
                    model=settings.model.resolved_temporal_model,
                ),
                extract_geographic_intent(
                    self.context.llm,
                    query,
                    region_name=region_name,
                    places=settings.retrieval.region_places,
                    model=settings.model.classifier_model,
                ),
            )

        plan = select_tool_plan(
            temporal,
            query,
            intent,
            confidence_threshold=settings.planner.confidence_threshold,
            region_name=region_name,
        )
        event_window = temporal if intent is ClassifiedIntent.EVENT else None

        async def resolve(web_results: list[WebSearchResult]) -> list[RetrievedSource]:
            if not plan.run_datavault:
                return []
            with trace.stage("retrieve", seeded=bool(web_results)) as detail:
                sources = await self.retriever.retrieve(
                    query,
                    intent=intent,
                    temporal=event_window,
                    web_results=web_results,
                )
                detail["sources"] = len(sources)
            return sources

        async def score(sources: list[RetrievedSource]) -> int:
            with trace.stage("score"):
                return await score_datavault_confidence(
                    self.context.llm,
                    query,
                    sources,
                    model=settings.model.classifier_model,
                    sample_size=settings.retrieval.confidence_sample_size,
                )

        async def search_web() -> list[WebSearchResult]:
            with trace.stage("web_search") as detail:
                results = await self.context.web_search.search(query)
                detail["results"] = len(results)
            return results

        web_results: list[WebSearchResult] = []
        minimum_geo_confidence = settings.planner.geo_confidence_minimum

        if is_geo_constrained(geo, minimum_geo_confidence):
            web_results = await search_web()
            sources = await resolve(web_results)
            confidence = await score(sources)
            plan = apply_geographic_override(
                plan, geo, minimum_confidence=minimum_geo_confidence
            ).with_confidence(confidence)
        else:
            sources = await resolve([])
            confidence = await score(sources)
            plan = plan.with_confidence(confidence)
            threshold = plan.confidence_threshold or settings.planner.confidence_threshold

            if plan.run_web_search and (confidence < threshold or not sources):
                web_results = await search_web()
                if web_results:
                    augmented = await resolve(web_results)
                    if augmented:
                        sources = augmented
                        confidence = await score(sources)
                        plan = plan.with_confidence(confidence)

            if not web_results and plan.fallback_to_web_on_empty_datavault and not sources:
                web_results = await search_web()

        if geo.has_constraint:
            sources = classify_match_types(sources, web_results, geo.location)

        question = build_prompt_question(query, build_temporal_narrative(event_window))
        envelope = build_synthesizer_envelope(
            query,
            sources,
            web_results,
            temporal,
            plan,
            geo,
            region_name=region_name,
        )
        messages = build_prompt(
            question,
            render_datavault_context(sources),
            envelope,
            region_name=region_name,
        )

        with trace.stage("synthesize"):
            raw = await self.context.llm.complete(
                messages,
                temperature=settings.model.answer_temperature,
                model=settings.model.chat_model,
            )

        parsed = parse_cited_paths(raw if raw and raw.strip() else DEFAULT_ANSWER)
        cited = select_cited_sources(sources, parsed.cited_paths)

        logger.info(
            "chat_request_completed",
            intent=intent.value,
            temporal_intent=temporal.intent.value if temporal else None,
            geo_location=geo.location if geo.has_constraint else None,
            geo_confidence=geo.confidence,
            plan_reason=plan.reason,
            datavault_confidence=plan.datavault_confidence,
            sources=len(sources),
            web_results=len(web_results),
            citations=len(cited),
            latency_ms=trace.summary(),
        )

        return ChatResult(
            answer=parsed.answer,
            sources=cited,
            tool_plan=plan,
            web_results=web_results,
            temporal=temporal,
        )


async def handle_chat(context: ConciergeContext, query: str) -> ChatResult:
    return await ConciergePipeline(context).handle(query)


def extract_query(body: Any) -> str | None:
    """Pull the question from `query`, else from the last user message.

    Messages without a role count as user messages. Returns None when no
    non-blank text is found.
    """
    if not isinstance(body, dict):
        return None

    query = body.get("query") if isinstance(body.get("query"), str) else None
    messages = body.get("messages")
    if not query and isinstance(messages, list):
        for candidate in reversed(messages):
            turn = _as_turn(candidate)
            if turn is not None and turn.role == "user":
                query = turn.content
                break

    if not query or not query.strip():
        return None
    return query.strip()


def _as_turn(candidate: Any) -> ChatTurn | None:
    if not isinstance(candidate, dict):
        return None

    role = candidate.get("role")
    content = candidate.get("content")
    if isinstance(content, list):
        content = " ".join(piece if isinstance(piece, str) else "" for piece in content).strip()
    if not isinstance(content, str) or not content:
        return None
    return ChatTurn(role=role if isinstance(role, str) else "user", content=content)
