# tests/core/test_cache.py
import asyncio

import pytest

from a11y_auditor.managers.cache_manager import (
    CachedProvider,
    CountingProvider,
    MemoryCacheAdapter,
    fingerprint,
)
from a11y_extraction.model import ElementSnapshot
from a11y_providers.errors import CapabilityUnsupportedError
from a11y_providers.model import ProviderContext

from support import ScriptedProvider


class VisionProvider(ScriptedProvider):
    kind = "scripted-vision"

    async def _raw_complete_image(self, image, prompt, system_prompt=None):
        self.prompts.append(prompt)
        return '{"findings": []}'


@pytest.fixture
def counters():
    return {"hits": 0, "misses": 0}


@pytest.fixture
def cached(counters):
    upstream = ScriptedProvider(['{"findings": [{"message": "first"}]}', '{"findings": []}'])
    wrapper = CachedProvider(
        upstream,
        MemoryCacheAdapter(),
        ttl_ms=60_000,
        on_cache_hit=lambda: counters.__setitem__("hits", counters["hits"] + 1),
        on_cache_miss=lambda: counters.__setitem__("misses", counters["misses"] + 1),
    )
    return upstream, wrapper


def test_fingerprint_is_stable_and_key_sensitive():
    assert fingerprint("rule", "#a", "prompt") == fingerprint("rule", "#a", "prompt")
    assert fingerprint("rule", "#a", "prompt") != fingerprint("other", "#a", "prompt")
    assert fingerprint("rule", "#a", "prompt") != fingerprint("rule", "#b", "prompt")
    assert len(fingerprint("rule", "", "prompt")) == 64


def test_cache_hit_suppresses_upstream_call(cached, counters):
    """De tweede identieke aanroep mag de provider niet meer bereiken."""
    upstream, wrapper = cached
    context = ProviderContext(rule_id="ai/alt-text-quality")

    async def scenario():
        first = await wrapper.analyze("same prompt", context)
        second = await wrapper.analyze("same prompt", context)
        return first, second

    first, second = asyncio.run(scenario())

    assert upstream.calls == 1
    assert counters == {"hits": 1, "misses": 1}
    assert second.raw == first.raw
    assert second.findings == []
    assert second.attempts == 0
    assert second.latency_ms == 0


def test_selector_is_part_of_the_key(cached, counters):
    upstream, wrapper = cached
    a = ProviderContext(rule_id="r", element=ElementSnapshot(selector="#a"))
    b = ProviderContext(rule_id="r", element=ElementSnapshot(selector="#b"))

    async def scenario():
        await wrapper.analyze("prompt", a)
        await wrapper.analyze("prompt", b)

    asyncio.run(scenario())
    assert upstream.calls == 2
    assert counters["misses"] == 2


def test_memory_cache_expires_lazily():
    clock = {"now": 0.0}
    cache = MemoryCacheAdapter(now=lambda: clock["now"])

    async def scenario():
        await cache.set("key", "value", 1_000)
        clock["now"] = 1_000
        still_there = await cache.get("key")
        clock["now"] = 1_001
        size_before_read = len(cache)
        expired = await cache.get("key")
        return still_there, size_before_read, expired

    still_there, size_before_read, expired = asyncio.run(scenario())

    assert still_there == "value"
    # No sweep: the entry is only dropped by the read that finds it expired.
    assert size_before_read == 1
    assert expired is None
    assert len(cache) == 0


def test_image_payload_is_part_of_the_key():
    upstream = VisionProvider()
    wrapper = CachedProvider(upstream, MemoryCacheAdapter(), ttl_ms=60_000)
    context = ProviderContext(rule_id="ai/alt-text-quality")

    async def scenario():
        await wrapper.analyze_image(b"image-one", "describe", context)
        await wrapper.analyze_image(b"image-two", "describe", context)
        await wrapper.analyze_image(b"image-one", "describe", context)

    asyncio.run(scenario())
    assert upstream.calls == 2


def test_unsupported_vision_is_not_cached():
    wrapper = CachedProvider(ScriptedProvider(), MemoryCacheAdapter(), ttl_ms=60_000)

    with pytest.raises(CapabilityUnsupportedError):
        asyncio.run(wrapper.analyze_image(b"img", "describe", ProviderContext()))
    assert len(wrapper.cache) == 0


def test_counting_provider_counts_every_call():
    calls = []
    upstream = ScriptedProvider()
    wrapper = CountingProvider(upstream, lambda: calls.append(1))

    async def scenario():
        await wrapper.analyze("p", ProviderContext())
        await wrapper.analyze("p", ProviderContext())

    asyncio.run(scenario())
    assert len(calls) == 2
    assert upstream.calls == 2


class TextOnlyProvider:
    """Provider zonder analyze_image."""

    async def analyze(self, prompt, context):
        raise AssertionError("not expected")


def test_counting_provider_rejects_missing_vision_without_counting():
    calls = []
    wrapper = CountingProvider(TextOnlyProvider(), lambda: calls.append(1))

    with pytest.raises(CapabilityUnsupportedError) as excinfo:
        asyncio.run(wrapper.analyze_image(b"img", "describe", ProviderContext()))
    assert "TextOnlyProvider" in str(excinfo.value)
    assert calls == []


def test_counting_provider_forwards_vision_calls():
    calls = []
    upstream = VisionProvider()
    wrapper = CountingProvider(upstream, lambda: calls.append(1))

    asyncio.run(wrapper.analyze_image(b"img", "describe", ProviderContext()))
    assert len(calls) == 1
    assert upstream.calls == 1
