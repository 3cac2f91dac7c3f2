# src/a11y_rules/builtin/keyboard.py
import re
from typing import Dict, List

from a11y_extraction.model import ElementSnapshot, ExtractionSnapshot
from a11y_extraction.utils import parse_inline_style
from a11y_providers.model import CapabilityProvider

from ..core import Rule, RuleContext, RuleResult
from .aria import tab_index

_NATIVE_INTERACTIVE = ("a", "button", "input", "select", "textarea")
_KEY_HANDLERS = ("onkeydown", "onkeypress", "onkeyup")
_OUTLINE_NONE = re.compile(r"^(none|0)\b")
_SCROLLING = ("auto", "scroll")


def keyboard_candidates(extraction: ExtractionSnapshot) -> List[ElementSnapshot]:
    seen = set()
    out = []
    for element in (
            *extraction.links,
            *extraction.form_fields,
            *extraction.aria_elements,
            *extraction.interactive_elements,
    ):
        if element.selector in seen:
            continue
        seen.add(element.selector)
        out.append(element)
    return out


def outline_removed(style: Dict[str, str]) -> bool:
    return bool(_OUTLINE_NONE.match(style.get("outline", "").strip().lower()))


def is_scrollable(style: Dict[str, str]) -> bool:
    return any(
        style.get(key, "").strip().lower() in _SCROLLING
        for key in ("overflow", "overflow-x", "overflow-y")
    )


class KeyboardRule(Rule):
    id = "ai/keyboard-navigation"
    category = "structure"
    description = "Checks common keyboard navigation issues (tabindex, click handlers, focus styles)."
    estimated_cost = "0 (static)"

    async def evaluate(self, context: RuleContext, provider: CapabilityProvider) -> List[RuleResult]:
        results: List[RuleResult] = []
        for element in keyboard_candidates(context.extraction):
            results.extend(self._check(element))
        return results

    def _check(self, element: ElementSnapshot) -> List[RuleResult]:
        attrs = element.attributes
        # Own declarations only; outline and overflow are not inherited.
        style = parse_inline_style(attrs.get("style"))
        index = tab_index(element)
        native = element.tag_name in _NATIVE_INTERACTIVE
        interactive = native or bool(attrs.get("role", "").strip()) or index is not None
        clickable = "onclick" in attrs
        out = []

        if index is not None and index > 0:
            out.append(self.make_result(
                element,
                "Positive tabindex can disrupt natural tab order.",
                'Avoid tabindex > 0; use DOM order and tabindex="0" only when necessary.',
                severity="moderate",
                confidence=0.8,
                context={"tab_index": index},
            ))

        if interactive and index == -1:
            out.append(self.make_result(
                element,
                'Interactive element is removed from the tab order via tabindex="-1".',
                'Only use tabindex="-1" for managed focus in composite widgets; otherwise keep elements reachable via Tab.',
                severity="moderate",
                confidence=0.75,
                context={"tab_index": index},
            ))

        if clickable and not interactive:
            out.append(self.make_result(
                element,
                "Non-interactive element has a click handler.",
                'Use a native button or link, or add a role, tabindex="0" and keyboard handlers.',
                severity="serious",
                confidence=0.85,
                context={"reason": "onclick-on-noninteractive"},
            ))

        if clickable and not native and not any(h in attrs for h in _KEY_HANDLERS):
            out.append(self.make_result(
                element,
                "Click handler may not be accessible via keyboard.",
                "Ensure Enter/Space key interactions are supported (or use a native button/link).",
                severity="moderate",
                confidence=0.7,
                context={"reason": "onclick-without-keyboard-handler"},
            ))

        if outline_removed(style):
            out.append(self.make_result(
                element,
                "Focus outline is disabled via inline styles.",
                "Avoid removing focus outlines; provide an accessible alternative focus indicator.",
                severity="moderate",
                confidence=0.75,
                context={"reason": "outline-none"},
            ))

        if is_scrollable(style) and index != 0:
            out.append(self.make_result(
                element,
                "Scrollable container may not be keyboard-scrollable.",
                'Consider adding tabindex="0" so keyboard users can focus and scroll the container.',
                severity="minor",
                confidence=0.55,
                context={"reason": "scrollable-without-tabindex0"},
            ))
        return out
