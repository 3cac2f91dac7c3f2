# src/a11y_auditor/services/scoring_service.py
import math
import time
from typing import Dict, Optional, Sequence

from a11y_extraction.model import ExtractionSnapshot
from a11y_providers.base import clamp01

from ..model import AuditSummary, CategoryScore, MergedViolation

SEVERITY_PENALTY: Dict[str, int] = {
    "critical": 10,
    "serious": 5,
    "moderate": 2,
    "minor": 1,
}

GRADE_THRESHOLDS = ((90, "A"), (80, "B"), (70, "C"), (60, "D"))

# Violations 1..9 in a category count fully, later ones at half weight.
FULL_WEIGHT_PER_CATEGORY = 9
DIMINISHED_WEIGHT = 0.5

UNCATEGORIZED = "uncategorized"


def to_grade(score: int) -> str:
    for threshold, grade in GRADE_THRESHOLDS:
        if score >= threshold:
            return grade
    return "F"


def clamp_score(value: float) -> int:
    return int(min(100, max(0, value)))


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def diminishing_factor(category_count: int) -> float:
    return 1.0 if category_count <= FULL_WEIGHT_PER_CATEGORY else DIMINISHED_WEIGHT


def importance_weight(violation: MergedViolation) -> float:
    """Rough weight from where the element lives and what kind of control it is."""
    selector = violation.selector.lower()
    if "footer" in selector:
        return 0.7
    if "nav" in selector or "header" in selector:
        return 1.2

    if violation.engine is not None and violation.engine.html:
        html = violation.engine.html.lower()
    elif violation.rule is not None:
        html = violation.rule.element.html.lower()
    else:
        html = ""

    if "<input" in html or "<select" in html or "<textarea" in html:
        return 1.5
    if "<button" in html:
        return 1.3
    return 1.0


def elements_analyzed(extraction: ExtractionSnapshot) -> int:
    return (
        len(extraction.images)
        + len(extraction.links)
        + len(extraction.form_fields)
        + len(extraction.headings)
        + len(extraction.aria_elements)
    )


class AccessibilityScorer:
    """
    Turns merged violations into a 0-100 score with a letter grade.

    Each violation costs `severity x confidence x importance x diminishing`
    points off 100, and category scores use the same formula over their own
    violations. Apart from the duration field the output depends only on the
    inputs.
    """

    def score(
            self,
            merged: Sequence[MergedViolation],
            extraction: ExtractionSnapshot,
            ai_calls: int = 0,
            started_at: Optional[float] = None,
            now: Optional[float] = None,
    ) -> AuditSummary:
        """
        `started_at` / `now` are epoch seconds; `now` defaults to the wall clock.
        """
        by_severity = {severity: 0 for severity in SEVERITY_PENALTY}
        counts: Dict[str, int] = {}
        penalties: Dict[str, float] = {}
        top_issue: Dict[str, str] = {}

        total_penalty = 0.0
        estimated_tokens = 0

        for violation in merged:
            by_severity[violation.severity] += 1
            category = violation.category or UNCATEGORIZED
            counts[category] = counts.get(category, 0) + 1

            penalty = (
                SEVERITY_PENALTY[violation.severity]
                * clamp01(violation.confidence, default=1.0)
                * importance_weight(violation)
                * diminishing_factor(counts[category])
            )
            total_penalty += penalty
            penalties[category] = penalties.get(category, 0.0) + penalty
            top_issue.setdefault(category, violation.message)

            estimated_tokens += math.ceil((len(violation.message) + len(violation.suggestion or "")) / 4)

        score = clamp_score(round_half_up(100 - total_penalty))

        categories = {}
        for category, count in counts.items():
            category_score = clamp_score(round_half_up(100 - penalties[category]))
            categories[category] = CategoryScore(
                score=category_score,
                grade=to_grade(category_score),
                violation_count=count,
                top_issue=top_issue.get(category, ""),
            )

        duration_ms = 0
        if started_at is not None:
            current = time.time() if now is None else now
            duration_ms = max(0, int((current - started_at) * 1000))

        return AuditSummary(
            score=score,
            grade=to_grade(score),
            categories=categories,
            total_violations=len(merged),
            by_severity=by_severity,
            elements_analyzed=elements_analyzed(extraction),
            ai_calls=ai_calls,
            estimated_tokens=estimated_tokens,
            audit_duration_ms=duration_ms,
        )
