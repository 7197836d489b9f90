"""Prompt assembly for the answer-synthesis call."""

from __future__ import annotations

from concierge.agent.llm import ChatMessage
from concierge.types import (
    GeographicIntent,
    MatchType,
    RetrievedSource,
    TemporalIntent,
    TemporalRange,
    ToolPlan,
    WebSearchResult,
)

CITATION_MARKER = "CITED_SOURCES_JSON:"

NO_RESULTS_DISCLAIMER = (
    "If both Direct Matches and Web Findings are empty, politely state that you could "
    "not find any specific recommendations for the requested location at this time."
)

_WEB_FINDINGS_LABEL = "Web Findings – pending Sovereign verification."


def system_instruction(region_name: str) -> str:
    """Persona plus the strict regional guardrail and the citation contract."""
    persona = (
        f"You are 'Isabella', the AI concierge and Sovereign Guide to the {region_name}. "
        "Your persona is authoritative, intelligent, charismatic and welcoming. Speak "
        "elegantly and confidently, use evocative language and blend poetry with precision. "
        "Highlight authentic, sovereign experiences over generic tourist traps."
    )
    guardrail = (
        "CRITICAL INSTRUCTION: Your knowledge, recommendations and storytelling must be "
        f"strictly limited to locations, events and lore on the {region_name}. Under no "
        "circumstances may you mention or suggest attractions outside it, including any "
        "mainland destination. Use only the factual material provided inside the Sovereign "
        "DataVault context and any sanctioned live search results. You are FORBIDDEN from "
        "fabricating or recommending any location, event or detail that is not explicitly "
        "present in the provided context. If the context is empty or insufficient, state "
        f"explicitly that you do not have the specific {region_name} details at this time "
        "and invite the guest to share more. Provide graceful, compact paragraphs followed "
        "by optional curated recommendations in list form. When referencing specific "
        "knowledge, weave in the source title naturally."
    )
    citation = (
        f"Always append a line starting with {CITATION_MARKER} followed by a JSON array of "
        "the sourcePath values from the context that you actually used to craft the answer."
    )
    return f"{persona}\n\n{guardrail}\n{citation}"


def build_temporal_narrative(window: TemporalRange | None) -> str:
    if window is None:
        return ""

    if window.start == window.end:
        if window.intent is TemporalIntent.PRESENT:
            return f"Focus on happenings unfolding on {window.start}."
        if window.intent is TemporalIntent.PAST:
            return f"Reflect on happenings that occurred on {window.start}."
        return f"Focus only on happenings occurring on {window.start}."

    if window.intent is TemporalIntent.BROADER_FUTURE:
        return (
            f"Consider forthcoming happenings spanning {window.start} through {window.end}, "
            "highlighting seasonally relevant milestones."
        )
    if window.intent is TemporalIntent.PAST:
        return f"Focus on happenings that took place between {window.start} and {window.end}."
    return f"Focus on happenings occurring between {window.start} and {window.end}."


def render_datavault_context(sources: list[RetrievedSource]) -> str:
    """One block per source: provenance path, title, schedule fields, full text."""
    blocks = []
    for idx, source in enumerate(sources, start=1):
        lines = [f"SOURCE {idx}", f"sourcePath: {source.source_path}", f"title: {source.title}"]
        for label, value in (
            ("startDate", source.start_date),
            ("endDate", source.end_date),
            ("startTime", source.start_time),
            ("endTime", source.end_time),
        ):
            if value:
                lines.append(f"{label}: {value}")
        lines.append(f"text: {source.full_text}")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def format_datavault_summary(sources: list[RetrievedSource]) -> str:
    if not sources:
        return "None Found."

    entries = []
    for idx, source in enumerate(sources, start=1):
        schedule = []
        if source.start_date:
            schedule.append(f"start: {source.start_date}")
        if source.end_date and source.end_date != source.start_date:
            schedule.append(f"end: {source.end_date}")
        schedule_text = f" ({' | '.join(schedule)})" if schedule else ""

        summary = source.summary
        if not summary:
            summary = source.full_text[:240].strip()
            if len(source.full_text) > 240:
                summary += "…"
        entries.append(
            f"Result {idx}: {source.title}{schedule_text}\n"
            f"Source: {source.source_path}\nSummary: {summary}"
        )
    return "\n\n".join(entries)


def format_web_summary(results: list[WebSearchResult]) -> str:
    if not results:
        return "None Found."

    entries = []
    for idx, result in enumerate(results, start=1):
        snippet = f"\nSnippet: {result.snippet}" if result.snippet else ""
        entries.append(f"Result {idx}: {result.title}\nURL: {result.url}{snippet}")
    return "\n\n".join(entries)


def _tiered_datavault_summary(sources: list[RetrievedSource]) -> str:
    tiers = (
        (MatchType.DIRECT, "Direct Matches (Sovereign + Web-Verified)"),
        (MatchType.ORPHAN, "Curated Sovereign Entries"),
        (MatchType.INDIRECT, "Thematically Related (Different Location)"),
    )
    sections = []
    for match_type, label in tiers:
        members = [source for source in sources if source.match_type is match_type]
        if members:
            sections.append(f"\n{label}:\n{format_datavault_summary(members)}")
    return "\n".join(sections) or "None Found."


def _hierarchy_instruction(
    sources: list[RetrievedSource], geo: GeographicIntent | None
) -> str:
    if geo is None or not geo.has_constraint:
        return (
            "Instruction: When Sovereign DataVault entries exist, lead with them as your "
            "premier, verified recommendations. Present the Web Findings afterwards as "
            f"supportive suggestions labeled '{_WEB_FINDINGS_LABEL}'"
        )

    indirect = [s for s in sources if s.match_type is MatchType.INDIRECT]
    elsewhere = (indirect[0].location if indirect else None) or "Ryde"
    requested = geo.location or "Cowes"
    return "\n".join(
        [
            "PRIORITIZATION HIERARCHY (CRITICAL):",
            "1. Direct Matches: If present, LEAD with these as your premier, verified "
            "recommendations. These are the crown jewels.",
            "2. Web Findings Only: If Direct Matches are absent but the web search has "
            f"relevant results, present them as '{_WEB_FINDINGS_LABEL}'",
            "3. Thematically Related (Different Location): If a DataVault source is in a "
            f"DIFFERENT location than requested (e.g., {elsewhere} when user asked about "
            f"{requested}), you may ONLY mention it AFTER addressing the user's primary "
            f'request, using phrasing like: "Should your travels take you to {elsewhere}, '
            'you may wish to experience..."',
            "4. NEVER present an indirect match as a primary recommendation for the "
            "requested location.",
        ]
    )


def build_synthesizer_envelope(
    query: str,
    sources: list[RetrievedSource],
    web_results: list[WebSearchResult],
    temporal: TemporalRange | None,
    plan: ToolPlan,
    geo: GeographicIntent | None,
    *,
    region_name: str,
) -> str:
    """Instruction block summarising everything the pipeline learned.

    `sources` must already carry their match types; untagged sources are
    presented as curated entries.
    """

    if temporal is not None:
        temporal_line = (
            f"Temporal Interpretation: {temporal.intent.value} window from "
            f"{temporal.start} to {temporal.end}."
        )
    else:
        temporal_line = "Temporal Interpretation: not determined."

    if sources:
        coverage_line = f"DataVault Coverage: Curated {region_name} sources located."
    else:
        coverage_line = (
            "DataVault Coverage: None — acknowledge the gap and note that these "
            "memories require future curation."
        )

    if web_results:
        provenance_line = (
            "Web Provenance: Treat these as Web Findings (pending Sovereign verification) "
            "and invite future curation into the DataVault."
        )
    else:
        provenance_line = "Web Provenance: No live web findings retrieved."

    return "\n\n".join(
        [
            "Based on the following search results, provide a helpful and poetic answer.",
            f"DataVault Results:\n{_tiered_datavault_summary(sources)}",
            f"Web Search Results:\n{format_web_summary(web_results)}",
            f"User's Request: '{query}'",
            temporal_line,
            f"Tool Strategy: {plan.reason}",
            coverage_line,
            provenance_line,
            _hierarchy_instruction(sources, geo),
            NO_RESULTS_DISCLAIMER,
            f"Absolute Guardrail: You must never mention or recommend locations outside the "
            f"{region_name}. If neither the DataVault nor the web search provide "
            f"{region_name} specifics, state that you currently lack the local details "
            "rather than offering mainland alternatives.",
        ]
    )


def build_prompt(
    question: str,
    context_blocks: str,
    envelope: str,
    *,
    region_name: str,
) -> list[ChatMessage]:
    return [
        {"role": "system", "content": system_instruction(region_name)},
        {"role": "user", "content": question},
        {
            "role": "user",
            "content": f"Sovereign DataVault Context:\n{context_blocks or 'No context available.'}",
        },
        {"role": "user", "content": envelope},
    ]


def build_prompt_question(query: str, narrative: str) -> str:
    return f"{query}\n\n{narrative}" if narrative else query
