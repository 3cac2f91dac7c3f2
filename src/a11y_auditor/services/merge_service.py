# src/a11y_auditor/services/merge_service.py
import logging
from typing import Dict, List, Sequence, Set, Tuple

from a11y_providers.model import SEVERITY_RANK
from a11y_rules.core import RuleResult

from ..model import EngineViolation, MergedViolation

logger = logging.getLogger(__name__)

# Which engine ids describe the same problem as a rule. Rules missing here
# never merge with engine findings.
RULE_TO_ENGINE_IDS: Dict[str, Tuple[str, ...]] = {
    "ai/alt-text-quality": ("image-alt", "input-image-alt", "object-alt", "area-alt"),
    "ai/link-text-quality": ("link-name",),
    "ai/contrast-analysis": ("color-contrast",),
    "ai/form-label-relevance": (
        "label",
        "select-name",
        "textarea-name",
        "input-button-name",
        "aria-input-field-name",
    ),
}


def engine_ids_for(rule_id: str) -> Tuple[str, ...]:
    if rule_id in RULE_TO_ENGINE_IDS:
        return RULE_TO_ENGINE_IDS[rule_id]
    # Providers sometimes answer with the bare id.
    return RULE_TO_ENGINE_IDS.get(f"ai/{rule_id}", ())


def worst_severity(a: str, b: str) -> str:
    return a if SEVERITY_RANK[a] >= SEVERITY_RANK[b] else b


def sort_key(violation: MergedViolation) -> Tuple[int, float]:
    return -SEVERITY_RANK[violation.severity], -violation.confidence


def merge_violations(
        engine_violations: Sequence[EngineViolation],
        rule_results: Sequence[RuleResult],
) -> List[MergedViolation]:
    """
    Unifies engine violations and rule results into one list.

    Each rule result claims at most one unclaimed engine violation on the
    same selector whose id is mapped to the rule; the pair becomes one
    `both` entry. Everything else is emitted on its own. The result is
    ordered by severity, then confidence, both descending.
    """
    merged: List[MergedViolation] = []
    consumed: Set[int] = set()

    for result in rule_results:
        selector = result.element.selector
        engine_ids = engine_ids_for(result.rule_id)

        match_index = next(
            (
                i for i, v in enumerate(engine_violations)
                if i not in consumed and v.selector == selector and v.id in engine_ids
            ),
            None,
        )

        if match_index is None:
            merged.append(MergedViolation(
                category=result.category,
                selector=selector,
                severity=result.severity,
                source="ai",
                message=result.message,
                suggestion=result.suggestion,
                confidence=result.confidence,
                rule=result,
            ))
            continue

        engine = engine_violations[match_index]
        consumed.add(match_index)
        merged.append(MergedViolation(
            category=result.category,
            selector=selector,
            severity=worst_severity(engine.severity, result.severity),
            source="both",
            message=result.message or engine.help,
            suggestion=result.suggestion or engine.failure_summary,
            confidence=result.confidence,
            engine=engine,
            rule=result,
        ))

    for i, engine in enumerate(engine_violations):
        if i in consumed:
            continue
        merged.append(MergedViolation(
            category=engine.category or engine.id,
            selector=engine.selector,
            severity=engine.severity,
            source="engine",
            message=engine.help,
            suggestion=engine.failure_summary,
            confidence=1.0,
            engine=engine,
        ))

    logger.debug(
        "Merged %d engine violations and %d rule results into %d (%d matched).",
        len(engine_violations), len(rule_results), len(merged), len(consumed),
    )
    # sorted() is stable, so equal keys keep their emission order.
    return sorted(merged, key=sort_key)
