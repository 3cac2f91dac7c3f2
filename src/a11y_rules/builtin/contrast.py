# src/a11y_rules/builtin/contrast.py
from typing import Dict, List, Optional

from a11y_extraction.color import (
    BLACK,
    RGBA,
    WHITE,
    alpha_blend,
    contrast_ratio,
    is_large_text,
    parse_color,
    perceived_brightness,
    required_ratio,
    to_hex,
)
from a11y_extraction.model import ElementSnapshot, ExtractionSnapshot
from a11y_providers.model import CapabilityProvider

from ..core import Rule, RuleContext, RuleResult, confidence_of
from ..prompts import build_prompt

CONTRAST_SCHEMA = {
    "type": "object",
    "properties": {
        "results": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "element": {"type": "string"},
                    "passes": {"type": "boolean"},
                    "estimated_ratio": {"type": "number"},
                    "suggestion": {"type": "string"},
                    "confidence": {"type": "number"},
                },
                "required": ["element", "passes"],
            },
        },
    },
    "required": ["results"],
}


def is_invisible(style: Dict[str, str]) -> bool:
    return (
        style.get("display", "").lower() == "none"
        or style.get("visibility", "").lower() == "hidden"
        or style.get("opacity", "").strip() in ("0", "0.0")
    )


def contrast_candidates(extraction: ExtractionSnapshot) -> List[ElementSnapshot]:
    """Text-bearing headings, links and ARIA elements that declare a colour somewhere up the tree."""
    seen = set()
    out = []
    for element in (*extraction.headings, *extraction.links, *extraction.aria_elements):
        if element.selector in seen or not element.text_content:
            continue
        style = element.style
        if "color" not in style and "background-color" not in style:
            continue
        if is_invisible(style):
            continue
        seen.add(element.selector)
        out.append(element)
    return out


class ContrastRule(Rule):
    id = "ai/contrast-analysis"
    category = "contrast"
    description = "Computes text contrast from inline colours; asks the model about colours it cannot resolve."
    requires_ai = True
    estimated_cost = "static; 1 request per ~10 unresolvable elements"

    async def evaluate(self, context: RuleContext, provider: CapabilityProvider) -> List[RuleResult]:
        level = self.rule_config(context).settings.get("standard", "AA")
        results: List[RuleResult] = []
        unresolved: List[ElementSnapshot] = []

        for element in contrast_candidates(context.extraction):
            foreground = parse_color(element.style.get("color", "#000000"))
            background = parse_color(element.style.get("background-color", "#ffffff"))
            if foreground is None or background is None:
                unresolved.append(element)
                continue
            result = self._check(element, foreground, background, level)
            if result is not None:
                results.append(result)

        if not unresolved:
            return results

        if not self.ai_enabled(context):
            for element in unresolved:
                results.append(self.make_result(
                    element,
                    "Unable to compute contrast due to unsupported color format.",
                    "Verify the text contrast manually.",
                    severity="minor",
                    confidence=0.4,
                    context={"color": element.style.get("color"), "background": element.style.get("background-color")},
                ))
            return results

        results.extend(await self.evaluate_in_batches(
            unresolved,
            self.batch_size(context),
            lambda batch: self._evaluate_ai(batch, level, context, provider),
        ))
        return results

    def _check(self, element: ElementSnapshot, foreground: RGBA, background: RGBA, level: str) -> Optional[RuleResult]:
        # Partially transparent backgrounds are assumed to sit on a white page.
        if background[3] < 1:
            background = alpha_blend(background, WHITE)

        ratio = contrast_ratio(foreground, background)
        large = is_large_text(element.style.get("font-size"), element.style.get("font-weight"))
        required = required_ratio(large, level)
        if ratio >= required:
            return None

        suggested = WHITE if perceived_brightness(background) < 128 else BLACK
        return self.make_result(
            element,
            f"Text contrast is too low ({ratio:.2f}:1, requires ≥ {required:g}:1).",
            f"Use a text colour such as {to_hex(suggested)} on {to_hex(background)}, or darken/lighten the background.",
            severity="serious" if ratio < required / 2 else "moderate",
            confidence=0.75,
            context={
                "ratio": round(ratio, 2),
                "required": required,
                "large_text": large,
                "foreground": to_hex(foreground),
                "background": to_hex(background),
                "standard": level,
            },
        )

    async def _evaluate_ai(
            self,
            batch: List[ElementSnapshot],
            level: str,
            context: RuleContext,
            provider: CapabilityProvider,
    ) -> List[RuleResult]:
        prompt = build_prompt(
            instruction=(
                f"Estimate whether each element's text meets WCAG {level} contrast. The colours use CSS the "
                "auditor could not resolve (variables, gradients, images). Return ONLY valid JSON matching "
                "the output schema."
            ),
            elements=batch,
            output_schema=CONTRAST_SCHEMA,
            extra={"styles": {e.selector: e.style for e in batch}},
        )
        analysis = await provider.analyze(prompt, context)

        by_selector = {e.selector: e for e in batch}
        out = []
        for item in self.parse_items(analysis.raw, "results"):
            element = by_selector.get(item.get("element"))
            if element is None or item.get("passes") is not False:
                continue
            ratio = item.get("estimated_ratio")
            message = "Text contrast is likely too low."
            if isinstance(ratio, (int, float)) and not isinstance(ratio, bool):
                message = f"Text contrast is likely too low (estimated {ratio:.2f}:1)."
            suggestion = item.get("suggestion")
            out.append(self.make_result(
                element,
                message,
                suggestion if isinstance(suggestion, str) and suggestion else "Increase the contrast between text and background.",
                severity="moderate",
                confidence=confidence_of(item, 0.5),
                source="ai",
                context={"latency_ms": analysis.latency_ms, "attempts": analysis.attempts},
            ))
        return out
