import pytest

from concierge.agent.planner import apply_geographic_override, is_geo_constrained, select_tool_plan
from concierge.types import ClassifiedIntent, GeographicIntent, TemporalIntent, TemporalRange


def _reason(temporal, query, intent) -> str:
    return select_tool_plan(temporal, query, intent).reason


def test_every_branch_runs_both_sources_with_fallback() -> None:
    cases = [
        (None, "tell me about the island", ClassifiedIntent.GENERAL),
        (None, "anything upcoming for families?", ClassifiedIntent.EVENT),
        (None, "a quiet hotel", ClassifiedIntent.ACCOMMODATION),
        (TemporalRange("2025-10-30", "2025-10-30", TemporalIntent.PRESENT), "today", ClassifiedIntent.EVENT),
        (TemporalRange("2025-10-30", "2025-11-30", TemporalIntent.BROADER_FUTURE), "soon", ClassifiedIntent.EVENT),
        (TemporalRange("2025-10-01", "2025-10-02", TemporalIntent.PAST), "last month", ClassifiedIntent.EVENT),
    ]
    for temporal, query, intent in cases:
        plan = select_tool_plan(temporal, query, intent, confidence_threshold=6)
        assert plan.run_datavault and plan.run_web_search
        assert plan.fallback_to_web_on_empty_datavault
        assert plan.confidence_threshold == 6
        assert plan.datavault_confidence is None


def test_branch_reasons_follow_rule_order() -> None:
    present = TemporalRange("2025-10-30", "2025-10-30", TemporalIntent.PRESENT)
    near = TemporalRange("2025-10-31", "2025-11-02", TemporalIntent.IMMEDIATE_FUTURE)
    broad = TemporalRange("2025-10-30", "2025-11-30", TemporalIntent.BROADER_FUTURE)
    past = TemporalRange("2025-10-01", "2025-10-02", TemporalIntent.PAST)

    general = _reason(None, "what's happening", ClassifiedIntent.GENERAL)
    outlook = _reason(None, "What's On this week", ClassifiedIntent.EVENT)
    default = _reason(None, "a quiet hotel", ClassifiedIntent.ACCOMMODATION)

    assert general.startswith("General query")
    assert "broad outlook" in outlook
    assert default.startswith("Initiate with a live Isle of Wight web scan")
    assert _reason(present, "x", ClassifiedIntent.EVENT) == _reason(near, "x", ClassifiedIntent.EVENT)
    assert "web pulse" in _reason(present, "x", ClassifiedIntent.EVENT)
    assert "Broader future horizon" in _reason(broad, "x", ClassifiedIntent.EVENT)
    assert _reason(past, "x", ClassifiedIntent.EVENT) == default


def test_plan_selection_is_idempotent() -> None:
    window = TemporalRange("2025-10-30", "2025-11-30", TemporalIntent.BROADER_FUTURE)

    first = select_tool_plan(window, "halloween", ClassifiedIntent.EVENT)
    second = select_tool_plan(window, "halloween", ClassifiedIntent.EVENT)

    assert first == second


@pytest.mark.parametrize(
    ("geo", "expected"),
    [
        (GeographicIntent(True, "Cowes", 7), True),
        (GeographicIntent(True, "Cowes", 6), False),
        (GeographicIntent(False, None, 10), False),
    ],
)
def test_geo_constraint_requires_confidence(geo: GeographicIntent, expected: bool) -> None:
    assert is_geo_constrained(geo) is expected


def test_geographic_override_returns_new_plan() -> None:
    plan = select_tool_plan(None, "restaurants", ClassifiedIntent.RESTAURANT)

    overridden = apply_geographic_override(plan, GeographicIntent(True, "Brighstone", 9))
    untouched = apply_geographic_override(plan, GeographicIntent(True, "Brighstone", 3))

    assert overridden is not plan
    assert "Geographic constraint detected (Brighstone)" in overridden.reason
    assert plan.reason.startswith("Initiate")
    assert untouched is plan
