# src/a11y_rules/builtin/language.py
import re
from typing import List, Optional

from bs4 import BeautifulSoup

from a11y_extraction.model import ElementSnapshot
from a11y_extraction.utils import normalize_text
from a11y_providers.model import CapabilityProvider

from ..core import Rule, RuleContext, RuleResult, confidence_of
from ..prompts import build_prompt

_LANG_TAG = re.compile(r"^[a-zA-Z]{2,3}(-[a-zA-Z0-9]{2,8})*$")
_RTL_LANGS = {"ar", "he", "fa", "ur", "yi", "ps", "sd", "ug", "dv"}
_WORD = re.compile(r"[A-Za-z]+")
_SENTENCE_END = re.compile(r"[.!?]+")
_VOWEL_GROUPS = re.compile(r"[aeiouy]+")

DEFAULT_TARGET_GRADE = 9
MIN_WORDS_FOR_READABILITY = 100
MAX_SAMPLE_CHARS = 3000

LANGUAGE_SCHEMA = {
    "type": "object",
    "properties": {
        "issues": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "message": {"type": "string"},
                    "suggestion": {"type": "string"},
                    "severity": {"type": "string"},
                    "confidence": {"type": "number"},
                },
            },
        },
    },
}


def count_syllables(word: str) -> int:
    word = word.lower()
    if len(word) <= 3:
        return 1
    if word.endswith("e") and not word.endswith("le"):
        word = word[:-1]
    return max(1, len(_VOWEL_GROUPS.findall(word)))


def flesch_kincaid_grade(text: str) -> Optional[float]:
    words = _WORD.findall(text)
    if len(words) < MIN_WORDS_FOR_READABILITY:
        return None
    sentences = max(1, len([s for s in _SENTENCE_END.split(text) if s.strip()]))
    syllables = sum(count_syllables(w) for w in words)
    return 0.39 * (len(words) / sentences) + 11.8 * (syllables / len(words)) - 15.59


def visible_text(raw_html: str) -> str:
    return normalize_text(BeautifulSoup(raw_html or "", "html.parser").get_text(" "))


class LanguageRule(Rule):
    id = "ai/language-readability"
    category = "structure"
    description = "Checks the page language declaration and the readability of its text."
    requires_ai = True
    estimated_cost = "1 request per page"

    async def evaluate(self, context: RuleContext, provider: CapabilityProvider) -> List[RuleResult]:
        extraction = context.extraction
        root = ElementSnapshot(selector="html", tag_name="html")
        results: List[RuleResult] = []

        lang = extraction.page_language
        if not lang:
            results.append(self.make_result(
                root,
                "Missing lang attribute on <html>.",
                'Declare the page language, e.g. <html lang="en">.',
                severity="serious",
            ))
        elif not _LANG_TAG.match(lang):
            results.append(self.make_result(
                root,
                "Invalid lang attribute value.",
                "Use a valid BCP 47 language tag.",
                severity="serious",
                confidence=0.9,
                context={"lang": lang},
            ))
        elif lang.split("-")[0].lower() in _RTL_LANGS and 'dir="rtl"' not in extraction.raw_html[:2000].lower():
            results.append(self.make_result(
                root,
                "RTL language detected but dir attribute is missing on <html>.",
                'Add dir="rtl" to the <html> element.',
                severity="moderate",
                confidence=0.7,
                context={"lang": lang},
            ))

        text = visible_text(extraction.raw_html)
        target = self.rule_config(context).settings.get("target_grade_level", DEFAULT_TARGET_GRADE)
        grade = flesch_kincaid_grade(text)
        if grade is not None and grade > target + 3:
            results.append(self.make_result(
                root,
                f"Reading level may be high (estimated grade {grade:.1f}).",
                "Shorten sentences and prefer common words where the audience allows it.",
                severity="minor",
                confidence=0.6,
                context={"flesch_kincaid": round(grade, 1), "target_grade_level": target},
            ))

        if self.ai_enabled(context) and text:
            results.extend(await self._evaluate_ai(text, root, context, provider))
        return results

    async def _evaluate_ai(
            self,
            text: str,
            root: ElementSnapshot,
            context: RuleContext,
            provider: CapabilityProvider,
    ) -> List[RuleResult]:
        prompt = build_prompt(
            instruction=(
                "Review the page text for language problems that hurt accessibility: unexplained jargon "
                "or abbreviations, passages in another language without a lang attribute, and confusing "
                "instructions. Return ONLY valid JSON matching the output schema."
            ),
            elements=[],
            output_schema=LANGUAGE_SCHEMA,
            extra={"lang": context.extraction.page_language, "text": text[:MAX_SAMPLE_CHARS]},
        )
        analysis = await provider.analyze(prompt, context)

        out = []
        for item in self.parse_items(analysis.raw, "issues", "findings"):
            message = item.get("message")
            if not isinstance(message, str) or not message:
                continue
            severity = item.get("severity")
            out.append(self.make_result(
                root,
                message,
                item.get("suggestion") if isinstance(item.get("suggestion"), str) else "Simplify the wording.",
                severity=severity if severity in ("critical", "serious", "moderate", "minor") else "minor",
                confidence=confidence_of(item),
                source="ai",
            ))
        return out
