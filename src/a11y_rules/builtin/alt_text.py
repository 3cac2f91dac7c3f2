# src/a11y_rules/builtin/alt_text.py
import asyncio
import base64
import logging
import re
from typing import List, Optional
from urllib.parse import urljoin

import aiohttp

from a11y_extraction.model import ImageSnapshot
from a11y_providers.errors import ProviderError
from a11y_providers.model import AnalysisResult, CapabilityProvider

from ..core import Rule, RuleContext, RuleResult, confidence_of
from ..prompts import build_prompt

logger = logging.getLogger(__name__)

_FILENAME_ALT = re.compile(r"^[\w-]+\.(png|jpe?g|gif|webp|svg|bmp)$", re.IGNORECASE)
_PLACEHOLDER_ALTS = {"image", "img", "picture", "photo", "graphic", "icon", "logo", "spacer", "untitled", "alt"}
_REDUNDANT_PREFIX = re.compile(r"^(image|picture|photo|graphic) of\b", re.IGNORECASE)
MAX_ALT_LENGTH = 150
MAX_IMAGE_BYTES = 4 * 1024 * 1024

ALT_QUALITY_SCHEMA = {
    "type": "object",
    "properties": {
        "results": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "element": {"type": "string"},
                    "currentAlt": {"type": "string"},
                    "quality": {"type": "string", "enum": ["good", "needs-improvement", "poor"]},
                    "issues": {"type": "array", "items": {"type": "string"}},
                    "suggestedAlt": {"type": "string"},
                    "confidence": {"type": "number"},
                },
            },
        },
    },
    "required": ["results"],
}

VISION_SCHEMA = {
    "type": "object",
    "properties": {
        "imageDescription": {"type": "string"},
        "altTextAccuracy": {"type": "string", "enum": ["accurate", "partial", "inaccurate", "missing-context"]},
        "suggestedAlt": {"type": "string"},
        "confidence": {"type": "number"},
    },
}


def suspicious_alt_reasons(alt: str) -> List[str]:
    reasons = []
    lowered = alt.lower()
    if _FILENAME_ALT.match(alt):
        reasons.append("filename")
    if lowered in _PLACEHOLDER_ALTS:
        reasons.append("placeholder")
    if _REDUNDANT_PREFIX.match(alt):
        reasons.append("redundant-prefix")
    if len(alt) > MAX_ALT_LENGTH:
        reasons.append("too-long")
    return reasons


def is_likely_decorative(image: ImageSnapshot) -> bool:
    attrs = image.attributes
    if attrs.get("aria-hidden", "").lower() == "true":
        return True
    if attrs.get("role", "").lower() in ("presentation", "none"):
        return True
    class_name = attrs.get("class", "").lower()
    if "decorative" in class_name or "sr-only" in class_name:
        return True
    src = image.src.lower()
    return any(hint in src for hint in ("spacer", "sprite", "decor"))


async def fetch_image(src: str, page_url: Optional[str]) -> Optional[str]:
    """Downloads an image and returns it as a data URL, or None when it can't."""
    if not src:
        return None
    if src.startswith("data:"):
        return src

    url = urljoin(page_url, src) if page_url and page_url.startswith("http") else src
    if not url.startswith(("http://", "https://")):
        return None

    try:
        async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=15)) as session:
            async with session.get(url) as response:
                if response.status != 200:
                    return None
                content_type = response.headers.get("Content-Type", "image/png").split(";")[0]
                if not content_type.startswith("image/"):
                    return None
                body = await response.read()
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.debug("Could not fetch image %s: %s", url, e)
        return None

    if len(body) > MAX_IMAGE_BYTES:
        return None
    return f"data:{content_type};base64,{base64.b64encode(body).decode('ascii')}"


class AltTextRule(Rule):
    id = "ai/alt-text-quality"
    category = "alt-text"
    description = "Checks image alt text presence and quality."
    default_batch_size = 10
    requires_ai = True
    supports_vision = True
    estimated_cost = "1 request per ~10 images (+ vision when enabled)"

    async def evaluate(self, context: RuleContext, provider: CapabilityProvider) -> List[RuleResult]:
        images = list(context.extraction.images)
        results: List[RuleResult] = []

        for image in images:
            results.extend(self._evaluate_static(image))

        if self.ai_enabled(context):
            candidates = [img for img in images if img.has_alt and (img.alt or "").strip()]
            if candidates:
                results.extend(await self.evaluate_in_batches(
                    candidates,
                    self.batch_size(context),
                    lambda batch: self._evaluate_quality(batch, context, provider),
                ))

            if self.vision_enabled(context):
                results.extend(await self._evaluate_vision(results, images, context, provider))

        return results

    def _evaluate_static(self, image: ImageSnapshot) -> List[RuleResult]:
        if not image.has_alt:
            return [self.make_result(
                image,
                "Image is missing an alt attribute.",
                'Add an alt attribute that describes the image, or alt="" if it is decorative.',
                severity="serious",
                context={"reason": "missing-alt-attribute"},
            )]

        alt = (image.alt or "").strip()
        if not alt:
            if is_likely_decorative(image):
                return []
            return [self.make_result(
                image,
                "Image has empty alt text but does not look decorative.",
                'Provide meaningful alt text, or mark the image as decorative (role="presentation").',
                severity="serious",
                confidence=0.85,
                context={"reason": "empty-alt-not-decorative"},
            )]

        reasons = suspicious_alt_reasons(alt)
        if reasons:
            return [self.make_result(
                image,
                "Alt text looks suspicious or unhelpful.",
                "Rewrite the alt text to describe the image purpose in context.",
                severity="moderate",
                confidence=0.8,
                context={"reasons": reasons, "current_alt": alt},
            )]
        return []

    async def _evaluate_quality(
            self,
            batch: List[ImageSnapshot],
            context: RuleContext,
            provider: CapabilityProvider,
    ) -> List[RuleResult]:
        prompt = build_prompt(
            system="You are an accessibility auditor. Be practical and concise.",
            instruction=(
                "Evaluate the quality of the provided image alt text. You will not see the pixels; "
                "use page context only where relevant. Return ONLY valid JSON matching the output schema."
            ),
            elements=batch,
            output_schema=ALT_QUALITY_SCHEMA,
            extra={
                "pageTitle": context.extraction.page_title,
                "pageLanguage": context.extraction.page_language,
                "metaDescription": context.extraction.meta_description,
            },
        )
        analysis = await provider.analyze(prompt, context)
        by_selector = {img.selector: img for img in batch}

        out = []
        for item in self.parse_items(analysis.raw, "results"):
            image = by_selector.get(item.get("element"))
            quality = item.get("quality", "good")
            if image is None or quality == "good":
                continue
            suggested = item.get("suggestedAlt") if isinstance(item.get("suggestedAlt"), str) else ""
            out.append(self.make_result(
                image,
                "Alt text is poor quality for this image." if quality == "poor"
                else "Alt text could be improved for this image.",
                suggested or "Revise the alt text to better describe the image purpose.",
                severity="serious" if quality == "poor" else "moderate",
                confidence=confidence_of(item),
                source="ai",
                context={
                    "issues": [i for i in item.get("issues") or [] if isinstance(i, str)],
                    "current_alt": image.alt,
                    "latency_ms": analysis.latency_ms,
                    "attempts": analysis.attempts,
                },
            ))
        return out

    async def _evaluate_vision(
            self,
            existing: List[RuleResult],
            images: List[ImageSnapshot],
            context: RuleContext,
            provider: CapabilityProvider,
    ) -> List[RuleResult]:
        # Only images already flagged by the cheaper passes are worth a vision call.
        flagged = {r.element.selector for r in existing if r.rule_id == self.id}
        candidates = [img for img in images if img.selector in flagged][:context.config.max_vision_images]

        out = []
        for image in candidates:
            data_url = await fetch_image(image.src, context.url)
            if data_url is None:
                continue

            prompt = build_prompt(
                instruction=(
                    "You will receive an image and its current alt text. Describe the image, then judge "
                    "whether the alt text represents its content and purpose. Return ONLY valid JSON."
                ),
                elements=[image],
                output_schema=VISION_SCHEMA,
                extra={"currentAlt": image.alt or "", "pageTitle": context.extraction.page_title},
            )
            try:
                analysis = await provider.analyze_image(data_url, prompt, context)
            except ProviderError as e:
                # A failed vision call only drops this image.
                logger.warning("Vision check skipped for %s: %s", image.selector, e)
                continue

            result = self._vision_result(analysis, image)
            if result is not None:
                out.append(result)
        return out

    def _vision_result(self, analysis: AnalysisResult, image: ImageSnapshot) -> Optional[RuleResult]:
        parsed = self.parse_json(analysis.raw)
        if not isinstance(parsed, dict):
            return None

        accuracy = parsed.get("altTextAccuracy", "accurate")
        if accuracy == "accurate":
            return None

        messages = {
            "inaccurate": "Alt text does not match the image content.",
            "partial": "Alt text only partially describes the image.",
        }
        suggested = parsed.get("suggestedAlt") if isinstance(parsed.get("suggestedAlt"), str) else ""
        return self.make_result(
            image,
            messages.get(accuracy, "Alt text may be missing important context from the image."),
            suggested or "Revise the alt text to accurately describe the image and its purpose.",
            severity="serious" if accuracy == "inaccurate" else "moderate",
            confidence=confidence_of(parsed),
            source="ai",
            context={
                "vision": True,
                "alt_text_accuracy": accuracy,
                "image_description": parsed.get("imageDescription", ""),
            },
        )
