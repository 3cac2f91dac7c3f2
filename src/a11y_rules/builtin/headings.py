# src/a11y_rules/builtin/headings.py
from typing import List

from a11y_extraction.model import ElementSnapshot
from a11y_providers.model import CapabilityProvider

from ..core import Rule, RuleContext, RuleResult


def heading_level(element: ElementSnapshot) -> int:
    return int(element.tag_name[1]) if len(element.tag_name) == 2 and element.tag_name[1].isdigit() else 0


class HeadingStructureRule(Rule):
    """Static outline checks: a single h1, no empty headings, no skipped levels."""

    id = "ai/heading-structure"
    category = "structure"
    description = "Checks the heading outline for a single h1, empty headings and skipped levels."

    async def evaluate(self, context: RuleContext, provider: CapabilityProvider) -> List[RuleResult]:
        headings = list(context.extraction.headings)
        results: List[RuleResult] = []

        h1s = [h for h in headings if h.tag_name == "h1"]
        if not h1s:
            page = ElementSnapshot(selector="html", tag_name="html")
            results.append(self.make_result(
                page,
                "Page is missing an <h1> heading.",
                "Add one <h1> that describes the main content of the page.",
                severity="moderate",
                confidence=0.9,
            ))
        elif len(h1s) > 1:
            for extra in h1s[1:]:
                results.append(self.make_result(
                    extra,
                    "Multiple <h1> headings detected.",
                    "Keep a single <h1> and demote the others.",
                    severity="minor",
                    confidence=0.7,
                ))

        previous = 0
        for heading in headings:
            level = heading_level(heading)
            if not heading.text_content and not heading.attributes.get("aria-label"):
                results.append(self.make_result(
                    heading,
                    "Heading has no text content.",
                    "Give the heading text, or remove it if it is only used for styling.",
                    severity="serious",
                ))
            if previous and level > previous + 1:
                results.append(self.make_result(
                    heading,
                    f"Heading level is skipped (from h{previous} to h{level}).",
                    f"Use h{previous + 1} here, or restructure the outline.",
                    severity="moderate",
                    confidence=0.85,
                    context={"from": previous, "to": level},
                ))
            previous = level
        return results
