# src/a11y_rules/builtin/aria.py
from typing import List, Optional, Set

from bs4 import BeautifulSoup

from a11y_extraction.model import ElementSnapshot
from a11y_extraction.utils import normalize_text
from a11y_providers.model import CapabilityProvider

from ..core import Rule, RuleContext, RuleResult, confidence_of
from ..prompts import build_prompt

VALID_ARIA_ATTRIBUTES = {
    "aria-label", "aria-labelledby", "aria-describedby", "aria-hidden", "aria-expanded",
    "aria-controls", "aria-checked", "aria-selected", "aria-current", "aria-haspopup",
    "aria-pressed", "aria-live", "aria-busy", "aria-modal", "aria-required", "aria-invalid",
    "aria-valuenow", "aria-valuemin", "aria-valuemax", "aria-valuetext", "aria-level",
    "aria-orientation", "aria-activedescendant",
}

ABSTRACT_ROLES = {
    "command", "composite", "input", "landmark", "range", "roletype", "section",
    "sectionhead", "select", "structure", "widget", "window",
}

ROLE_REQUIRED_PROPS = {
    "slider": ("aria-valuenow", "aria-valuemin", "aria-valuemax"),
    "spinbutton": ("aria-valuenow",),
    "combobox": ("aria-expanded",),
    "tab": ("aria-selected",),
    "switch": ("aria-checked",),
    "checkbox": ("aria-checked",),
    "radio": ("aria-checked",),
}

_IMPLICIT_ROLES = {
    "button": "button",
    "nav": "navigation",
    "main": "main",
    "header": "banner",
    "footer": "contentinfo",
}

_FOCUSABLE_TAGS = ("button", "input", "select", "textarea")

ARIA_SCHEMA = {
    "type": "object",
    "properties": {
        "results": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "element": {"type": "string"},
                    "issues": {"type": "array", "items": {"type": "string"}},
                    "recommendation": {"type": "string", "enum": ["keep", "simplify", "fix"]},
                    "suggested_markup": {"type": "string"},
                    "confidence": {"type": "number"},
                },
                "required": ["element", "issues", "recommendation"],
            },
        },
    },
    "required": ["results"],
}


def has_href(element: ElementSnapshot) -> bool:
    return bool(element.attributes.get("href", "").strip())


def tab_index(element: ElementSnapshot) -> Optional[int]:
    try:
        return int(element.attributes["tabindex"].strip())
    except (KeyError, ValueError):
        return None


def is_focusable(element: ElementSnapshot) -> bool:
    if element.tag_name == "a" and has_href(element):
        return True
    if element.tag_name in _FOCUSABLE_TAGS:
        return True
    index = tab_index(element)
    return index is not None and index >= 0


def implicit_role(element: ElementSnapshot) -> Optional[str]:
    if element.tag_name == "a":
        return "link" if has_href(element) else None
    return _IMPLICIT_ROLES.get(element.tag_name)


def page_ids(raw_html: str) -> Set[str]:
    soup = BeautifulSoup(raw_html or "", "html.parser")
    return {tag["id"] for tag in soup.find_all(id=True) if isinstance(tag.get("id"), str)}


class AriaRule(Rule):
    """
    Best-effort ARIA validator: unknown attributes, bad boolean values, hidden
    focusable elements, abstract or redundant roles, missing required
    properties and dangling id references. Remaining custom widgets go to the
    model for a "prefer native HTML" review.
    """

    id = "ai/aria-validation"
    category = "aria"
    description = "Validates common ARIA attribute and role misuse patterns."
    requires_ai = True
    estimated_cost = "1 request per ~10 elements (optional)"

    async def evaluate(self, context: RuleContext, provider: CapabilityProvider) -> List[RuleResult]:
        elements = context.extraction.aria_elements
        if not elements:
            return []

        ids = page_ids(context.extraction.raw_html)
        results: List[RuleResult] = []
        for element in elements:
            results.extend(self._static(element, ids))

        if not self.ai_enabled(context):
            return results

        flagged = {r.element.selector for r in results}
        candidates = [e for e in elements if e.attributes.get("role") and e.selector not in flagged]
        if candidates:
            results.extend(await self.evaluate_in_batches(
                candidates,
                self.batch_size(context),
                lambda batch: self._evaluate_ai(batch, context, provider),
            ))
        return results

    def _static(self, element: ElementSnapshot, ids: Set[str]) -> List[RuleResult]:
        out = []
        attrs = element.attributes

        for name, value in attrs.items():
            if name.startswith("aria-") and name not in VALID_ARIA_ATTRIBUTES:
                out.append(self.make_result(
                    element,
                    f"Invalid ARIA attribute: {name}.",
                    "Remove the invalid ARIA attribute or replace it with a valid aria-* attribute.",
                    severity="moderate",
                    confidence=0.8,
                    context={"attribute": name, "value": value},
                ))

        for name, confidence in (("aria-hidden", 0.9), ("aria-expanded", 0.85)):
            value = attrs.get(name)
            if value is not None and value.strip().lower() not in ("true", "false"):
                out.append(self.make_result(
                    element,
                    f'{name} must be "true" or "false".',
                    f'Use {name}="true" or {name}="false".',
                    severity="moderate",
                    confidence=confidence,
                    context={"value": value},
                ))

        if attrs.get("aria-hidden", "").strip().lower() == "true" and is_focusable(element):
            out.append(self.make_result(
                element,
                'Focusable element is hidden from assistive technologies via aria-hidden="true".',
                "Remove aria-hidden from focusable elements, or make the element non-focusable.",
                severity="serious",
                confidence=0.9,
                context={"reason": "aria-hidden-on-focusable"},
            ))

        role = normalize_text(attrs.get("role", "")).lower()
        if role in ABSTRACT_ROLES:
            out.append(self.make_result(
                element,
                f'Abstract ARIA role used directly: "{role}".',
                "Use a concrete ARIA role or prefer a native HTML element.",
                severity="serious",
                confidence=0.85,
                context={"role": role},
            ))

        if role and role == implicit_role(element):
            out.append(self.make_result(
                element,
                f'Redundant role="{role}" on a native <{element.tag_name}> element.',
                "Remove the redundant role attribute.",
                severity="minor",
                confidence=0.75,
                context={"role": role},
            ))

        missing_props = [p for p in ROLE_REQUIRED_PROPS.get(role, ()) if p not in attrs]
        if missing_props:
            out.append(self.make_result(
                element,
                f'Role "{role}" is missing required ARIA attributes: {", ".join(missing_props)}.',
                "Add the required aria-* attributes or use a native element instead.",
                severity="serious",
                confidence=0.8,
                context={"role": role, "missing": missing_props},
            ))

        for key in ("aria-labelledby", "aria-describedby"):
            missing_ids = [ref for ref in attrs.get(key, "").split() if ref not in ids]
            if missing_ids:
                out.append(self.make_result(
                    element,
                    f"{key} references missing ids: {', '.join(missing_ids)}.",
                    "Ensure referenced ids exist on the page, or update the ARIA reference.",
                    severity="moderate",
                    confidence=0.8,
                    context={"key": key, "missing": missing_ids},
                ))
        return out

    async def _evaluate_ai(
            self,
            batch: List[ElementSnapshot],
            context: RuleContext,
            provider: CapabilityProvider,
    ) -> List[RuleResult]:
        prompt = build_prompt(
            instruction=(
                "Evaluate ARIA usage for custom widgets. Prefer native HTML when possible "
                '("first rule of ARIA"). Return ONLY valid JSON matching the output schema.'
            ),
            elements=batch,
            output_schema=ARIA_SCHEMA,
            extra={"page_title": context.extraction.page_title},
        )
        analysis = await provider.analyze(prompt, context)

        by_selector = {e.selector: e for e in batch}
        out = []
        for item in self.parse_items(analysis.raw, "results"):
            element = by_selector.get(item.get("element"))
            if element is None:
                continue
            raw_issues = item.get("issues")
            issues = [i for i in raw_issues if isinstance(i, str)] if isinstance(raw_issues, list) else []
            if not issues:
                continue
            recommendation = item.get("recommendation") if isinstance(item.get("recommendation"), str) else "fix"
            markup = item.get("suggested_markup")
            out.append(self.make_result(
                element,
                "ARIA usage may need adjustment.",
                markup if isinstance(markup, str) and markup else " ".join(issues),
                severity="moderate" if recommendation == "simplify" else "serious",
                confidence=confidence_of(item, 0.55),
                source="ai",
                context={
                    "issues": issues,
                    "recommendation": recommendation,
                    "latency_ms": analysis.latency_ms,
                    "attempts": analysis.attempts,
                },
            ))
        return out
