# tests/core/test_providers.py
import asyncio

import pytest

from a11y_providers.base import (
    BaseAIProvider,
    backoff_delay_ms,
    clamp01,
    normalize_findings,
    parse_json_response,
)
from a11y_providers.errors import (
    CapabilityParseError,
    CapabilityUnsupportedError,
    ProviderError,
    ProviderTimeoutError,
)
from a11y_providers.factory import create_provider
from a11y_providers.model import CustomResponse, ProviderConfig, ProviderContext, ProviderKind, TokenUsage
from a11y_providers.providers.anthropic_provider import AnthropicProvider
from a11y_providers.providers.custom_provider import CustomProvider
from a11y_providers.providers.mock_provider import MockAIProvider, fnv1a32
from a11y_providers.providers.openai_provider import OpenAIProvider

from support import ScriptedProvider

CONTEXT = ProviderContext(rule_id="ai/test-rule")


# --- Parsing & normalisatie ---

def test_parse_json_response_unwraps_fenced_block():
    assert parse_json_response('Here you go:\n```json\n{"findings": []}\n```') == {"findings": []}


def test_parse_json_response_raises_parse_error():
    with pytest.raises(CapabilityParseError) as exc_info:
        parse_json_response("not json at all")
    assert exc_info.value.raw == "not json at all"


def test_normalize_findings_defaults_and_clamping():
    """Onbekende severity wordt 'moderate', confidence wordt begrensd tot [0,1]."""
    parsed = {"issues": [
        {"message": "Too vague", "severity": "blocker", "confidence": 7},
        "not a dict",
        {"severity": "critical", "confidence": "n/a"},
    ]}
    findings = normalize_findings(parsed, CONTEXT)

    assert len(findings) == 2
    assert findings[0].severity == "moderate"
    assert findings[0].confidence == 1.0
    assert findings[0].rule_id == "ai/test-rule"
    assert findings[1].severity == "critical"
    assert findings[1].confidence == 0.5
    assert findings[1].message == "Issue detected"


def test_normalize_findings_ignores_non_object_payload():
    assert normalize_findings([1, 2, 3], CONTEXT) == []
    assert normalize_findings({"findings": "nope"}, CONTEXT) == []


def test_clamp01_handles_nan_and_garbage():
    assert clamp01(float("nan")) == 0.0
    assert clamp01("abc", default=0.3) == 0.3
    assert clamp01(-2) == 0.0


def test_backoff_delay_grows_exponentially_with_bounded_jitter():
    for attempt, base in ((1, 200), (2, 400), (3, 800)):
        delay = backoff_delay_ms(attempt)
        assert base <= delay <= base + 50


# --- Retry, timeout en usage ---

def test_retry_recovers_from_bad_json(no_backoff):
    provider = ScriptedProvider(["garbage", '{"findings": [{"message": "ok"}]}'])
    result = asyncio.run(provider.analyze("prompt", CONTEXT))

    assert result.attempts == 2
    assert provider.calls == 2
    assert result.findings[0].message == "ok"


def test_final_parse_error_includes_raw_excerpt(no_backoff):
    provider = ScriptedProvider(["nope"] * 3, ProviderConfig(max_retries=3))

    with pytest.raises(CapabilityParseError) as exc_info:
        asyncio.run(provider.analyze("prompt", CONTEXT))

    assert provider.calls == 3
    assert "Raw output: nope" in str(exc_info.value)
    assert exc_info.value.raw == "nope"


def test_raw_excerpt_is_capped_at_500_chars(no_backoff):
    raw = "x" * 2000
    provider = ScriptedProvider([raw], ProviderConfig(max_retries=1))

    with pytest.raises(CapabilityParseError) as exc_info:
        asyncio.run(provider.analyze("prompt", CONTEXT))

    message = str(exc_info.value)
    assert message.endswith("Raw output: " + "x" * 500)


def test_attempt_timeout_raises_provider_timeout(no_backoff):
    async def slow():
        await asyncio.sleep(1)
        return "{}"

    provider = ScriptedProvider([slow], ProviderConfig(timeout_ms=10, max_retries=1))

    with pytest.raises(ProviderTimeoutError) as exc_info:
        asyncio.run(provider.analyze("prompt", CONTEXT))
    assert isinstance(exc_info.value, TimeoutError)
    assert exc_info.value.timeout_ms == 10


def test_other_errors_are_retried_then_reraised(no_backoff):
    provider = ScriptedProvider([ProviderError("boom")] * 2, ProviderConfig(max_retries=2))

    with pytest.raises(ProviderError, match="boom"):
        asyncio.run(provider.analyze("prompt", CONTEXT))
    assert provider.calls == 2


class UsageOnFirstAttempt(BaseAIProvider):
    kind = "usage"

    def __init__(self):
        super().__init__(ProviderConfig(max_retries=2))
        self.attempt = 0

    async def _raw_complete(self, prompt, system_prompt=None):
        self.attempt += 1
        if self.attempt == 1:
            self._set_last_usage(TokenUsage(prompt_tokens=10, completion_tokens=5))
            return "garbage"
        return '{"findings": []}'


def test_usage_is_reset_between_attempts(no_backoff):
    """Usage van een mislukte poging mag niet in het eindresultaat lekken."""
    result = asyncio.run(UsageOnFirstAttempt().analyze("prompt", CONTEXT))
    assert result.attempts == 2
    assert result.usage is None


def test_text_only_provider_rejects_images():
    provider = ScriptedProvider()
    assert provider.supports_vision is False

    with pytest.raises(CapabilityUnsupportedError):
        asyncio.run(provider.analyze_image(b"\x89PNG", "describe", CONTEXT))
    assert provider.calls == 0


def test_rate_limited_provider_takes_one_token_per_attempt(no_backoff):
    provider = ScriptedProvider(["garbage", "{}"], ProviderConfig(rpm=5))
    asyncio.run(provider.analyze("prompt", CONTEXT))
    assert provider.limiter.tokens == 3


# --- Provider varianten ---

def test_mock_provider_is_deterministic():
    provider = MockAIProvider(ProviderConfig())

    first = asyncio.run(provider.analyze("same prompt", CONTEXT))
    second = asyncio.run(provider.analyze("same prompt", CONTEXT))

    assert first.raw == second.raw
    assert len(first.findings) == fnv1a32("same prompt") % 3
    assert len(first.findings) <= 2


def test_custom_provider_reports_usage():
    async def handler(prompt):
        return CustomResponse(
            content='{"findings": [{"message": "Custom issue", "severity": "critical"}]}',
            usage=TokenUsage(prompt_tokens=12, completion_tokens=3),
        )

    provider = CustomProvider(ProviderConfig(provider=ProviderKind.CUSTOM, custom_handler=handler))
    result = asyncio.run(provider.analyze("prompt", CONTEXT))

    assert result.usage.prompt_tokens == 12
    assert result.findings[0].severity == "critical"
    assert result.findings[0].rule_id == "ai/test-rule"


def test_custom_provider_requires_handler():
    with pytest.raises(ProviderError):
        CustomProvider(ProviderConfig(provider=ProviderKind.CUSTOM))


def test_factory_switches_on_provider_kind():
    assert isinstance(create_provider(ProviderConfig()), MockAIProvider)
    assert isinstance(create_provider(ProviderConfig(provider="openai", api_key="k")), OpenAIProvider)
    anthropic = create_provider(ProviderConfig(provider=ProviderKind.ANTHROPIC, api_key="k"))
    assert isinstance(anthropic, AnthropicProvider)
    assert anthropic.supports_vision is True
