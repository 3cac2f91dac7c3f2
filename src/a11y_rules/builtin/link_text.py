# src/a11y_rules/builtin/link_text.py
import re
from typing import Dict, List, Set
from urllib.parse import urljoin, urlparse

from a11y_extraction.model import LinkSnapshot
from a11y_extraction.utils import normalize_text
from a11y_providers.model import CapabilityProvider

from ..core import Rule, RuleContext, RuleResult, confidence_of
from ..prompts import build_prompt

GENERIC_LINK_TEXT = {
    "click here", "read more", "learn more", "here", "link", "this", "more", "details", "continue",
}

_URL_TEXT = re.compile(r"^(https?://|www\.)", re.IGNORECASE)
_VALID_TEL = re.compile(r"^tel:\+?[0-9(). -]{3,}$", re.IGNORECASE)
_VALID_MAILTO = re.compile(r"^mailto:[^@]+@[^@]+\.[^@]+", re.IGNORECASE)

LINK_SCHEMA = {
    "type": "object",
    "properties": {
        "results": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "element": {"type": "string"},
                    "quality": {"type": "string", "enum": ["good", "vague", "misleading"]},
                    "issue": {"type": "string"},
                    "suggestedText": {"type": "string"},
                    "confidence": {"type": "number"},
                },
            },
        },
    },
    "required": ["results"],
}


def is_external(page_url: str, href: str) -> bool:
    base = urlparse(page_url)
    if base.scheme not in ("http", "https"):
        return False
    target = urlparse(urljoin(page_url, href))
    return target.scheme in ("http", "https") and target.netloc.lower() != base.netloc.lower()


class LinkTextRule(Rule):
    id = "ai/link-text-quality"
    category = "link-text"
    description = "Checks that link text is meaningful and descriptive."
    default_batch_size = 15
    requires_ai = True
    estimated_cost = "1 request per ~15 links"

    async def evaluate(self, context: RuleContext, provider: CapabilityProvider) -> List[RuleResult]:
        links = list(context.extraction.links)
        duplicates = self._duplicate_texts(links)

        results: List[RuleResult] = []
        for link in links:
            results.extend(self._evaluate_static(link, context, duplicates))

        if not self.ai_enabled(context):
            return results

        flagged = {r.element.selector for r in results}
        candidates = [link for link in links if link.selector not in flagged and link.text_content]
        if candidates:
            results.extend(await self.evaluate_in_batches(
                candidates,
                self.batch_size(context),
                lambda batch: self._evaluate_ai(batch, context, provider),
            ))
        return results

    @staticmethod
    def _duplicate_texts(links: List[LinkSnapshot]) -> Dict[str, Set[str]]:
        hrefs_by_text: Dict[str, Set[str]] = {}
        for link in links:
            text = normalize_text(link.text_content).lower()
            if text and link.href:
                hrefs_by_text.setdefault(text, set()).add(link.href)
        return hrefs_by_text

    def _evaluate_static(
            self,
            link: LinkSnapshot,
            context: RuleContext,
            duplicates: Dict[str, Set[str]],
    ) -> List[RuleResult]:
        href = link.href or ""
        text = normalize_text(link.text_content)
        aria_label = normalize_text(link.attributes.get("aria-label"))
        lowered_href = href.lower()

        if lowered_href.startswith("#skip") or lowered_href in ("#main-content", "#skip-nav"):
            target = href[1:]
            if not re.search(rf"id=[\"']{re.escape(target)}[\"']", context.extraction.raw_html):
                return [self.make_result(
                    link,
                    "Skip link target does not exist on the page.",
                    f'Ensure an element with id="{target}" exists.',
                    severity="moderate",
                    confidence=0.8,
                    context={"href": href},
                )]
            return []

        invalid_tel = lowered_href.startswith("tel:") and not _VALID_TEL.match(href)
        invalid_mailto = lowered_href.startswith("mailto:") and not _VALID_MAILTO.match(href)
        if invalid_tel or invalid_mailto:
            return [self.make_result(
                link,
                "tel/mailto link format looks invalid.",
                "Fix the link format so it can be activated reliably.",
                severity="minor",
                confidence=0.7,
                context={"href": href},
            )]

        if not text and not aria_label and not link.attributes.get("aria-labelledby"):
            return [self.make_result(
                link,
                "Link has no accessible text (empty text and no aria-label).",
                "Add meaningful link text, or provide aria-label/aria-labelledby.",
                severity="serious",
                context={"href": href},
            )]

        effective = text or aria_label
        if effective.lower() in GENERIC_LINK_TEXT:
            return [self.make_result(
                link,
                "Link text is too generic.",
                "Use link text that describes the destination or action.",
                severity="moderate",
                confidence=0.9,
                context={"current_text": effective, "href": href},
            )]

        if _URL_TEXT.match(effective):
            return [self.make_result(
                link,
                "Link text is a raw URL.",
                "Use human-readable link text and keep the URL in the href.",
                severity="minor",
                confidence=0.8,
                context={"current_text": effective, "href": href},
            )]

        distinct = duplicates.get(text.lower()) if text else None
        if distinct and len(distinct) > 1:
            return [self.make_result(
                link,
                "Multiple links share the same text but go to different destinations.",
                "Make link text more specific so each link is distinguishable out of context.",
                severity="moderate",
                confidence=0.75,
                context={"current_text": text, "distinct_hrefs": sorted(distinct)},
            )]

        if href and context.url and is_external(context.url, href) \
                and "external" not in effective.lower() and link.attributes.get("target") == "_blank":
            return [self.make_result(
                link,
                "Link opens an external site in a new window without saying so.",
                "Indicate external navigation or the new window in the link text or label.",
                severity="minor",
                confidence=0.55,
                context={"href": href},
            )]
        return []

    async def _evaluate_ai(
            self,
            batch: List[LinkSnapshot],
            context: RuleContext,
            provider: CapabilityProvider,
    ) -> List[RuleResult]:
        prompt = build_prompt(
            instruction=(
                "For each link, judge whether its text describes the destination when read out of "
                "context (for example in a screen reader's links list). Return ONLY valid JSON."
            ),
            elements=batch,
            output_schema=LINK_SCHEMA,
            extra={"pageTitle": context.extraction.page_title},
        )
        analysis = await provider.analyze(prompt, context)
        by_selector = {link.selector: link for link in batch}

        out = []
        for item in self.parse_items(analysis.raw, "results"):
            link = by_selector.get(item.get("element"))
            quality = item.get("quality", "good")
            if link is None or quality == "good":
                continue
            suggested = item.get("suggestedText") if isinstance(item.get("suggestedText"), str) else ""
            out.append(self.make_result(
                link,
                item.get("issue") if isinstance(item.get("issue"), str) and item.get("issue")
                else f"Link text is {quality} out of context.",
                f'Consider "{suggested}".' if suggested else "Make the link text describe its destination.",
                severity="serious" if quality == "misleading" else "moderate",
                confidence=confidence_of(item),
                source="ai",
                context={"quality": quality, "latency_ms": analysis.latency_ms},
            ))
        return out
