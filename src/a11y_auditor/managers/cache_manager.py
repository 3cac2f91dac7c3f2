# src/a11y_auditor/managers/cache_manager.py
import hashlib
import logging
import time
from typing import Awaitable, Callable, Dict, Optional, Protocol, Tuple

from a11y_providers.errors import CapabilityUnsupportedError
from a11y_providers.model import AnalysisResult, CapabilityProvider, ImageData, ProviderContext

logger = logging.getLogger(__name__)

KEY_SEPARATOR = "\n---\n"


class CacheAdapter(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str, ttl_ms: int) -> None: ...


class MemoryCacheAdapter:
    """
    Process-local cache. Entries expire lazily: an expired entry is dropped
    the next time it is read, there is no background sweep.
    """

    def __init__(self, now: Optional[Callable[[], float]] = None):
        self._store: Dict[str, Tuple[str, float]] = {}
        self._now = now or (lambda: time.time() * 1000)

    async def get(self, key: str) -> Optional[str]:
        entry = self._store.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._now() > expires_at:
            del self._store[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl_ms: int) -> None:
        self._store[key] = (value, self._now() + max(0, ttl_ms))

    def __len__(self) -> int:
        return len(self._store)


def fingerprint(rule_id: str, selector: str, prompt: str) -> str:
    return hashlib.sha256(KEY_SEPARATOR.join((rule_id, selector, prompt)).encode("utf-8")).hexdigest()


def _image_digest(image: ImageData) -> str:
    data = image if isinstance(image, (bytes, bytearray)) else str(image).encode("utf-8")
    return hashlib.sha256(data).hexdigest()


class CachedProvider:
    """
    Caches raw AI responses in front of a provider.

    A hit returns the cached `raw` text with no findings, zero latency and
    zero attempts; callers parse `raw` themselves. Only misses reach the
    wrapped provider.
    """

    def __init__(
            self,
            provider: CapabilityProvider,
            cache: CacheAdapter,
            ttl_ms: int,
            on_cache_hit: Optional[Callable[[], None]] = None,
            on_cache_miss: Optional[Callable[[], None]] = None,
    ):
        self.provider = provider
        self.cache = cache
        self.ttl_ms = ttl_ms
        self.on_cache_hit = on_cache_hit
        self.on_cache_miss = on_cache_miss

    async def analyze(self, prompt: str, context: ProviderContext) -> AnalysisResult:
        key = fingerprint(context.rule_id, self._selector(context), prompt)
        return await self._cached(key, lambda: self.provider.analyze(prompt, context))

    async def analyze_image(self, image: ImageData, prompt: str, context: ProviderContext) -> AnalysisResult:
        analyze_image = getattr(self.provider, "analyze_image", None)
        if analyze_image is None:
            raise CapabilityUnsupportedError(type(self.provider).__name__)
        key = fingerprint(context.rule_id, self._selector(context), prompt + KEY_SEPARATOR + _image_digest(image))
        return await self._cached(key, lambda: analyze_image(image, prompt, context))

    @staticmethod
    def _selector(context: ProviderContext) -> str:
        return context.element.selector if context.element is not None else ""

    async def _cached(self, key: str, call: Callable[[], Awaitable[AnalysisResult]]) -> AnalysisResult:
        cached = await self.cache.get(key)
        if cached is not None:
            if self.on_cache_hit:
                self.on_cache_hit()
            logger.debug("AI response cache hit (%s).", key[:12])
            return AnalysisResult(findings=[], raw=cached, latency_ms=0, attempts=0)

        if self.on_cache_miss:
            self.on_cache_miss()
        result = await call()
        await self.cache.set(key, result.raw, self.ttl_ms)
        return result


class CountingProvider:
    """Pass-through wrapper used when caching is off; counts every call."""

    def __init__(self, provider: CapabilityProvider, on_call: Callable[[], None]):
        self.provider = provider
        self.on_call = on_call

    async def analyze(self, prompt: str, context: ProviderContext) -> AnalysisResult:
        self.on_call()
        return await self.provider.analyze(prompt, context)

    async def analyze_image(self, image: ImageData, prompt: str, context: ProviderContext) -> AnalysisResult:
        analyze_image = getattr(self.provider, "analyze_image", None)
        if analyze_image is None:
            raise CapabilityUnsupportedError(type(self.provider).__name__)
        self.on_call()
        return await analyze_image(image, prompt, context)
