from concierge.agent.prompts import (
    CITATION_MARKER,
    NO_RESULTS_DISCLAIMER,
    build_prompt,
    build_synthesizer_envelope,
    build_temporal_narrative,
    render_datavault_context,
    system_instruction,
)
from concierge.types import (
    GeographicIntent,
    MatchType,
    RetrievedSource,
    TemporalIntent,
    TemporalRange,
    ToolPlan,
    WebSearchResult,
)

PLAN = ToolPlan(True, True, True, "Initiate with a live Isle of Wight web scan.", 8)


def _source(title: str, location: str | None, match_type: MatchType, **extra) -> RetrievedSource:
    values = dict(
        id=f"{title}-chunk-0",
        title=title,
        summary=f"{title} summary",
        source_path=f"admin/{title.lower().replace(' ', '-')}",
        url=None,
        score=0.8,
        start_date=None,
        end_date=None,
        start_time=None,
        end_time=None,
        start_date_numeric=None,
        end_date_numeric=None,
        full_text=f"{title} full text",
        location=location,
        match_type=match_type,
    )
    values.update(extra)
    return RetrievedSource(**values)


def test_system_prompt_carries_guardrail_and_citation_contract() -> None:
    prompt = system_instruction("Isle of Wight")

    assert "strictly limited to locations, events and lore on the Isle of Wight" in prompt
    assert "FORBIDDEN from fabricating" in prompt
    assert f"Always append a line starting with {CITATION_MARKER}" in prompt


def test_empty_sources_envelope_carries_no_results_disclaimer() -> None:
    envelope = build_synthesizer_envelope(
        "vegan brunch in Yarmouth", [], [], None, PLAN, None, region_name="Isle of Wight"
    )

    assert NO_RESULTS_DISCLAIMER in envelope
    assert "DataVault Results:\nNone Found." in envelope
    assert "Web Search Results:\nNone Found." in envelope
    assert "DataVault Coverage: None" in envelope
    assert "Web Provenance: No live web findings retrieved." in envelope
    assert "Temporal Interpretation: not determined." in envelope
    assert f"Tool Strategy: {PLAN.reason}" in envelope
    assert "Absolute Guardrail" in envelope


def test_geo_constrained_envelope_orders_tiers_and_forbids_indirect_primary() -> None:
    sources = [
        _source("Ryde Tandoori", "Ryde", MatchType.INDIRECT),
        _source("The Coast", "Cowes", MatchType.DIRECT),
        _source("Mystery Cafe", None, MatchType.ORPHAN),
    ]
    web = [WebSearchResult(title="The Coast Cowes", url="https://thecoast.example", snippet="Grill")]

    envelope = build_synthesizer_envelope(
        "restaurants in Cowes",
        sources,
        web,
        None,
        PLAN,
        GeographicIntent(True, "Cowes", 9),
        region_name="Isle of Wight",
    )

    direct = envelope.index("Direct Matches (Sovereign + Web-Verified)")
    curated = envelope.index("Curated Sovereign Entries")
    related = envelope.index("Thematically Related (Different Location)")
    assert direct < curated < related
    assert "PRIORITIZATION HIERARCHY (CRITICAL):" in envelope
    assert "4. NEVER present an indirect match as a primary recommendation" in envelope
    assert "Should your travels take you to Ryde" in envelope
    assert "when user asked about Cowes" in envelope
    assert "Result 1: The Coast Cowes\nURL: https://thecoast.example\nSnippet: Grill" in envelope
    assert "DataVault Coverage: Curated Isle of Wight sources located." in envelope


def test_unconstrained_envelope_leads_with_datavault() -> None:
    envelope = build_synthesizer_envelope(
        "cozy pubs with fires",
        [_source("The Buddle Inn", "Niton", MatchType.ORPHAN)],
        [],
        TemporalRange("2025-10-30", "2025-11-30", TemporalIntent.BROADER_FUTURE),
        PLAN,
        GeographicIntent(False, None, 10),
        region_name="Isle of Wight",
    )

    assert "PRIORITIZATION HIERARCHY" not in envelope
    assert "Instruction: When Sovereign DataVault entries exist, lead with them" in envelope
    assert "Temporal Interpretation: BROADER_FUTURE window from 2025-10-30 to 2025-11-30." in envelope


def test_temporal_narratives() -> None:
    assert build_temporal_narrative(None) == ""
    assert build_temporal_narrative(
        TemporalRange("2025-10-30", "2025-10-30", TemporalIntent.PRESENT)
    ) == "Focus on happenings unfolding on 2025-10-30."
    assert build_temporal_narrative(
        TemporalRange("2025-10-29", "2025-10-29", TemporalIntent.PAST)
    ) == "Reflect on happenings that occurred on 2025-10-29."
    assert build_temporal_narrative(
        TemporalRange("2025-10-31", "2025-10-31", TemporalIntent.IMMEDIATE_FUTURE)
    ) == "Focus only on happenings occurring on 2025-10-31."
    assert build_temporal_narrative(
        TemporalRange("2025-10-30", "2025-11-30", TemporalIntent.BROADER_FUTURE)
    ).startswith("Consider forthcoming happenings spanning 2025-10-30 through 2025-11-30")
    assert build_temporal_narrative(
        TemporalRange("2025-10-01", "2025-10-05", TemporalIntent.PAST)
    ) == "Focus on happenings that took place between 2025-10-01 and 2025-10-05."
    assert build_temporal_narrative(
        TemporalRange("2025-10-31", "2025-11-02", TemporalIntent.IMMEDIATE_FUTURE)
    ) == "Focus on happenings occurring between 2025-10-31 and 2025-11-02."


def test_context_blocks_and_message_layout() -> None:
    event = _source(
        "Fireworks Night",
        "Cowes",
        MatchType.ORPHAN,
        start_date="2025-11-05",
        start_time="19:00",
    )

    blocks = render_datavault_context([event])
    messages = build_prompt("When are the fireworks?", blocks, "ENVELOPE", region_name="Isle of Wight")
    empty = build_prompt("Hello", "", "ENVELOPE", region_name="Isle of Wight")

    assert blocks == (
        "SOURCE 1\nsourcePath: admin/fireworks-night\ntitle: Fireworks Night\n"
        "startDate: 2025-11-05\nstartTime: 19:00\ntext: Fireworks Night full text"
    )
    assert [message["role"] for message in messages] == ["system", "user", "user", "user"]
    assert messages[2]["content"].startswith("Sovereign DataVault Context:\nSOURCE 1")
    assert messages[3]["content"] == "ENVELOPE"
    assert empty[2]["content"] == "Sovereign DataVault Context:\nNo context available."
