# tests/core/test_merge.py
from a11y_auditor.model import EngineViolation
from a11y_auditor.services.merge_service import merge_violations
from a11y_extraction.model import ElementSnapshot
from a11y_providers.model import SEVERITY_RANK
from a11y_rules.core import RuleResult


def engine(engine_id, selector, severity="serious", category=None):
    return EngineViolation(
        id=engine_id,
        severity=severity,
        selector=selector,
        help=f"{engine_id} help",
        failure_summary=f"{engine_id} summary",
        category=category,
    )


def rule(rule_id, selector, severity="moderate", confidence=0.8, message="AI message", suggestion="AI fix"):
    return RuleResult(
        rule_id=rule_id,
        category="alt-text",
        severity=severity,
        element=ElementSnapshot(selector=selector),
        message=message,
        suggestion=suggestion,
        confidence=confidence,
        source="ai",
    )


def test_matching_pair_becomes_both_with_worst_severity():
    merged = merge_violations(
        [engine("image-alt", "#hero", severity="critical")],
        [rule("ai/alt-text-quality", "#hero", severity="moderate", confidence=0.7)],
    )

    assert len(merged) == 1
    assert merged[0].source == "both"
    assert merged[0].severity == "critical"
    assert merged[0].message == "AI message"
    assert merged[0].confidence == 0.7
    assert merged[0].engine.id == "image-alt"


def test_empty_rule_text_falls_back_to_engine_text():
    merged = merge_violations(
        [engine("link-name", "#nav-1")],
        [rule("ai/link-text-quality", "#nav-1", message="", suggestion="")],
    )
    assert merged[0].message == "link-name help"
    assert merged[0].suggestion == "link-name summary"


def test_engine_violation_is_consumed_only_once():
    """Twee regelresultaten op dezelfde selector: maar één 'both'."""
    merged = merge_violations(
        [engine("image-alt", "#hero")],
        [rule("ai/alt-text-quality", "#hero"), rule("ai/alt-text-quality", "#hero")],
    )
    sources = sorted(v.source for v in merged)
    assert sources == ["ai", "both"]


def test_unmapped_rules_and_selectors_never_merge():
    merged = merge_violations(
        [engine("image-alt", "#hero"), engine("html-has-lang", "html", category="language")],
        [rule("ai/heading-structure", "#hero"), rule("ai/alt-text-quality", "#other")],
    )

    assert len(merged) == 4
    assert {v.source for v in merged} == {"ai", "engine"}
    engine_only = [v for v in merged if v.source == "engine"]
    assert all(v.confidence == 1.0 for v in engine_only)
    assert {v.category for v in engine_only} == {"image-alt", "language"}


def test_bare_rule_id_uses_the_same_allow_list():
    merged = merge_violations([engine("label", "#email")], [rule("form-label-relevance", "#email")])
    assert merged[0].source == "both"


def test_length_and_ordering_invariants():
    engine_violations = [
        engine("image-alt", "#a", "critical"),
        engine("link-name", "#b", "minor"),
        engine("label", "#c", "serious"),
        engine("duplicate-id", "#d", "minor"),
    ]
    rule_results = [
        rule("ai/alt-text-quality", "#a", "minor", 0.2),
        rule("ai/link-text-quality", "#x", "serious", 0.9),
        rule("ai/form-label-relevance", "#c", "moderate", 0.4),
        rule("ai/language-readability", "html", "moderate", 0.95),
    ]

    merged = merge_violations(engine_violations, rule_results)
    both = sum(1 for v in merged if v.source == "both")

    assert both == 2
    assert len(merged) == len(engine_violations) + len(rule_results) - both
    keys = [(SEVERITY_RANK[v.severity], v.confidence) for v in merged]
    assert keys == sorted(keys, reverse=True)


def test_merge_of_nothing_is_empty():
    assert merge_violations([], []) == []
