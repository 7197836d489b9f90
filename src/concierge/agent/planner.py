"""Tool-selection policy: which sources to consult and in what order."""

from __future__ import annotations

from concierge.types import ClassifiedIntent, GeographicIntent, TemporalIntent, TemporalRange, ToolPlan

BROAD_OUTLOOK_KEYWORDS = (
    "coming up",
    "upcoming",
    "future",
    "ideas",
    "anything",
    "what's on",
    "happening",
)


def select_tool_plan(
    temporal: TemporalRange | None,
    query: str,
    intent: ClassifiedIntent,
    *,
    confidence_threshold: int = 8,
    region_name: str = "Isle of Wight",
) -> ToolPlan:
    """Pick the plan for a query; rules are evaluated in order, first match wins.

    Every branch runs both sources and allows a web fallback on an empty
    DataVault. Only the `reason` differs, for observability.
    """

    def plan(reason: str) -> ToolPlan:
        return ToolPlan(
            run_datavault=True,
            run_web_search=True,
            fallback_to_web_on_empty_datavault=True,
            reason=reason,
            confidence_threshold=confidence_threshold,
        )

    default_reason = (
        f"Initiate with a live {region_name} web scan, then cross-reference the DataVault."
    )

    if temporal is None:
        if intent is ClassifiedIntent.GENERAL:
            return plan(
                f"General query: begin with {region_name} web reconnaissance, "
                "then verify against the DataVault."
            )
        normalized = query.lower()
        if any(keyword in normalized for keyword in BROAD_OUTLOOK_KEYWORDS):
            return plan(
                "Query wording implies a broad outlook; scout the open web "
                "and then surface any DataVault confirmations."
            )
        return plan(default_reason)

    if temporal.intent in (TemporalIntent.PRESENT, TemporalIntent.IMMEDIATE_FUTURE):
        return plan(
            f"Prioritising a {region_name} web pulse before validating present "
            "or near-future needs with the DataVault."
        )

    if temporal.intent is TemporalIntent.BROADER_FUTURE:
        return plan(
            "Broader future horizon detected; blend curated DataVault memories "
            "with live web augmentation."
        )

    return plan(default_reason)


def is_geo_constrained(geo: GeographicIntent, minimum_confidence: int = 7) -> bool:
    return geo.has_constraint and geo.confidence >= minimum_confidence


def apply_geographic_override(
    plan: ToolPlan,
    geo: GeographicIntent,
    *,
    minimum_confidence: int = 7,
) -> ToolPlan:
    """Return a plan whose reason records the web-first geographic branch."""
    if not is_geo_constrained(geo, minimum_confidence):
        return plan
    return plan.with_reason(
        f"Geographic constraint detected ({geo.location}): web reconnaissance first, "
        "then DataVault cross-reference."
    )
