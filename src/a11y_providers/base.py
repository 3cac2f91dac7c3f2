# src/a11y_providers/base.py
import asyncio
import json
import logging
import random
import re
import time
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, List, Optional

from a11y_extraction.model import ElementSnapshot

from .errors import CapabilityParseError, CapabilityUnsupportedError, ProviderError, ProviderTimeoutError
from .model import AIFinding, AnalysisResult, ImageData, ProviderConfig, ProviderContext, SEVERITY_RANK, TokenUsage
from .token_bucket import TokenBucket

logger = logging.getLogger(__name__)

BACKOFF_BASE_MS = 200
BACKOFF_JITTER_MS = 50
RAW_EXCERPT_LENGTH = 500

_JSON_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)


def extract_json_text(text: str) -> str:
    """Unwraps a ```json fenced block when the model added one."""
    trimmed = (text or "").strip()
    match = _JSON_FENCE.search(trimmed)
    if match and match.group(1):
        return match.group(1).strip()
    return trimmed


def parse_json_response(text: str) -> Any:
    try:
        return json.loads(extract_json_text(text))
    except (json.JSONDecodeError, TypeError) as e:
        raise CapabilityParseError(f"Failed to parse AI provider JSON response: {e}", raw=text) from e


def clamp01(value: Any, default: float = 0.5) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number != number:  # NaN
        return 0.0
    return min(1.0, max(0.0, number))


def normalize_findings(parsed: Any, context: ProviderContext) -> List[AIFinding]:
    """
    Turns a parsed `{findings: [...]}` / `{issues: [...]}` payload into AIFindings.
    Anything that is not a dict is dropped; missing fields get safe defaults.
    """
    if not isinstance(parsed, dict):
        return []

    items = parsed.get("findings")
    if not isinstance(items, list):
        items = parsed.get("issues")
    if not isinstance(items, list):
        return []

    findings = []
    for item in items:
        if not isinstance(item, dict):
            continue

        rule_id = item.get("ruleId") or item.get("rule_id") or item.get("rule") or context.rule_id
        severity = item.get("severity")
        element = item.get("element")

        if isinstance(element, dict):
            try:
                element = ElementSnapshot(
                    selector=str(element.get("selector", "")),
                    html=str(element.get("html", "")),
                    tag_name=str(element.get("tagName", element.get("tag_name", ""))),
                    attributes={str(k): str(v) for k, v in (element.get("attributes") or {}).items()},
                )
            except AttributeError:
                element = None
        if not isinstance(element, ElementSnapshot):
            element = context.element or ElementSnapshot()

        findings.append(AIFinding(
            rule_id=str(rule_id),
            severity=severity if severity in SEVERITY_RANK else "moderate",
            element=element,
            message=item["message"] if isinstance(item.get("message"), str) else "Issue detected",
            suggestion=item["suggestion"] if isinstance(item.get("suggestion"), str) else "Review and fix the issue.",
            confidence=clamp01(item.get("confidence", 0.5)),
            context=item["context"] if isinstance(item.get("context"), dict) else None,
        ))
    return findings


def backoff_delay_ms(attempt: int) -> float:
    return BACKOFF_BASE_MS * (2 ** max(0, attempt - 1)) + random.uniform(0, BACKOFF_JITTER_MS)


class BaseAIProvider(ABC):
    """
    Shared retry, timeout and rate-limit behaviour for every provider kind.

    Subclasses implement `_raw_complete` (and optionally `_raw_complete_image`)
    as a single request returning the model's text content. Everything else,
    including JSON parsing and normalization, happens here.
    """

    kind: str = "base"

    def __init__(self, config: ProviderConfig):
        self.config = config
        self.timeout_ms = config.timeout_ms
        self.max_retries = max(1, config.max_retries)
        self.limiter: Optional[TokenBucket] = TokenBucket(config.rpm) if config.rpm and config.rpm > 0 else None
        self._last_usage: Optional[TokenUsage] = None

    @abstractmethod
    async def _raw_complete(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        """Performs one completion request and returns the content string."""

    async def _raw_complete_image(self, image: ImageData, prompt: str, system_prompt: Optional[str] = None) -> str:
        raise CapabilityUnsupportedError(self.kind)

    @property
    def supports_vision(self) -> bool:
        return type(self)._raw_complete_image is not BaseAIProvider._raw_complete_image

    def _set_last_usage(self, usage: Optional[TokenUsage]) -> None:
        self._last_usage = usage

    async def analyze(self, prompt: str, context: ProviderContext) -> AnalysisResult:
        return await self._run_with_retries(
            lambda: self._raw_complete(prompt, self.config.system_prompt),
            context,
        )

    async def analyze_image(self, image: ImageData, prompt: str, context: ProviderContext) -> AnalysisResult:
        if not self.supports_vision:
            raise CapabilityUnsupportedError(self.kind)
        return await self._run_with_retries(
            lambda: self._raw_complete_image(image, prompt, self.config.system_prompt),
            context,
        )

    async def _run_with_retries(
            self,
            request: Callable[[], Awaitable[str]],
            context: ProviderContext,
    ) -> AnalysisResult:
        started = time.perf_counter()
        last_raw = ""
        last_error: Optional[BaseException] = None

        for attempt in range(1, self.max_retries + 1):
            try:
                self._last_usage = None

                if self.limiter:
                    await self.limiter.take(1)

                try:
                    raw = await asyncio.wait_for(request(), timeout=self.timeout_ms / 1000)
                except asyncio.TimeoutError as e:
                    raise ProviderTimeoutError(self.timeout_ms) from e
                last_raw = raw

                findings = normalize_findings(parse_json_response(raw), context)
                return AnalysisResult(
                    findings=findings,
                    raw=raw,
                    latency_ms=int((time.perf_counter() - started) * 1000),
                    attempts=attempt,
                    usage=self._last_usage,
                )
            except CapabilityUnsupportedError:
                raise
            except Exception as e:
                last_error = e
                logger.debug(
                    "[%s] attempt %d/%d for rule %s failed: %s",
                    self.kind, attempt, self.max_retries, context.rule_id, e,
                )
                if attempt >= self.max_retries:
                    break
                await asyncio.sleep(backoff_delay_ms(attempt) / 1000)

        if isinstance(last_error, CapabilityParseError):
            raise CapabilityParseError(
                f"{last_error}. Raw output: {last_raw[:RAW_EXCERPT_LENGTH]}",
                raw=last_raw,
            ) from last_error

        if last_error is None:
            raise ProviderError("AI provider request failed")
        raise last_error
