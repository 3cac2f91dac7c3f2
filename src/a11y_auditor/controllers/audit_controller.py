# src/a11y_auditor/controllers/audit_controller.py
import asyncio
import logging
from importlib.metadata import PackageNotFoundError, version
from typing import Any, Awaitable, Callable, List, Optional, Tuple

from a11y_extraction.extractor import DOMExtractor, extract_from_page
from a11y_extraction.model import ExtractionSnapshot
from a11y_providers.factory import create_provider
from a11y_providers.model import CapabilityProvider
from a11y_rules.registry import RuleRegistry, get_default_registry

from ..engine.runner import EngineRunner
from ..errors import AuditTimeoutError, UnsupportedTargetError
from ..managers.cache_manager import CacheAdapter, CachedProvider, CountingProvider, MemoryCacheAdapter
from ..managers.event_manager import AXE_COMPLETE, COMPLETE, START, AuditEventBus
from ..managers.rule_runner_manager import RuleRunner
from ..model import AuditConfig, AuditErrorRecord, AuditMetadata, AuditResult, EngineViolation
from ..services.merge_service import merge_violations
from ..services.scoring_service import AccessibilityScorer
from ..utils.run_timers import AuditTimer

logger = logging.getLogger(__name__)

PageLoader = Callable[[], Awaitable[Tuple[ExtractionSnapshot, str]]]


def _auditor_version() -> str:
    try:
        return version("a11y-auditor")
    except PackageNotFoundError:
        return "0.0.0"


def looks_like_html(target: str) -> bool:
    stripped = target.lstrip()
    return stripped.startswith("<") and ">" in stripped


def is_page_like(target: Any) -> bool:
    """Live browser pages expose an async `content()`; that is all the auditor needs."""
    return callable(getattr(target, "content", None))


def page_url(page: Any) -> Optional[str]:
    url = getattr(page, "url", None)
    return url() if callable(url) else url


class A11yAuditor:
    """
    Single-page audit pipeline.

    Extracts the page once, then runs the deterministic engine check and the
    rules concurrently, merges both streams and scores the result. The whole
    pipeline runs under `overall_timeout_ms`.

    Collaborators are injectable; by default the auditor builds its own
    provider from `config.ai_provider`, an in-memory cache and the default
    rule registry. One auditor can be shared by many concurrent audits: the
    cache and the provider (and with it the rate limit) are shared, the AI
    call counter is per audit.
    """

    def __init__(
            self,
            config: Optional[AuditConfig] = None,
            registry: Optional[RuleRegistry] = None,
            events: Optional[AuditEventBus] = None,
            cache: Optional[CacheAdapter] = None,
            provider: Optional[CapabilityProvider] = None,
            engine: Optional[EngineRunner] = None,
    ):
        self.config = config or AuditConfig()
        self.registry = registry or get_default_registry()
        self.events = events or AuditEventBus()
        self.cache = cache or MemoryCacheAdapter()
        self.provider = provider or create_provider(self.config.ai_provider)
        self.engine = engine or EngineRunner()
        self.scorer = AccessibilityScorer()
        self.version = _auditor_version()

    # -------- Entry Points --------

    async def audit(self, target: Any) -> AuditResult:
        """Audits an HTML string, a URL or a live browser page."""
        if isinstance(target, str):
            if looks_like_html(target):
                return await self.audit_html(target)
            return await self.audit_url(target)
        if is_page_like(target):
            return await self.audit_page(target)
        raise UnsupportedTargetError(f"Cannot audit target of type {type(target).__name__}")

    async def audit_html(self, html: str, url: Optional[str] = None) -> AuditResult:
        extractor = DOMExtractor(html=html, url=url, options=self.config.extraction)

        async def load() -> Tuple[ExtractionSnapshot, str]:
            return extractor.extract_from_html(html, url=url), html

        return await self._audit(url or "about:blank", load)

    async def audit_url(self, url: str) -> AuditResult:
        extractor = DOMExtractor(url=url, options=self.config.extraction)

        async def load() -> Tuple[ExtractionSnapshot, str]:
            html = await extractor.fetch_html(url)
            return extractor.extract_from_html(html, url=url), html

        return await self._audit(url, load)

    async def audit_page(self, page: Any) -> AuditResult:
        async def load() -> Tuple[ExtractionSnapshot, str]:
            snapshot = await extract_from_page(page, self.config.extraction)
            return snapshot, await page.content()

        return await self._audit(page_url(page) or "about:blank", load)

    async def audit_engine_only(self, target: str) -> List[EngineViolation]:
        """Runs only the deterministic checker; no extraction, no rules, no AI cost."""
        if looks_like_html(target):
            html = target
        else:
            html = await DOMExtractor(url=target, options=self.config.extraction).fetch_html(target)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.engine.run, html, self.config.engine)

    # -------- Pipeline --------

    async def _audit(self, url: str, load: PageLoader) -> AuditResult:
        timeout_ms = self.config.overall_timeout_ms
        errors: List[AuditErrorRecord] = []
        try:
            return await asyncio.wait_for(self._pipeline(url, load, errors), timeout=timeout_ms / 1000)
        except asyncio.TimeoutError as e:
            message = f"Audit timed out after {timeout_ms}ms"
            logger.error("%s: %s", message, url)
            errors.append(AuditErrorRecord(stage="audit", message=message, cause=e))
            raise AuditTimeoutError(timeout_ms, errors) from e

    async def _pipeline(self, url: str, load: PageLoader, errors: List[AuditErrorRecord]) -> AuditResult:
        timer = AuditTimer().start()
        self.events.emit(START, {"url": url})

        snapshot, html = await load()
        logger.debug("Extracted %s: %d images, %d links, %d headings.",
                     url, len(snapshot.images), len(snapshot.links), len(snapshot.headings))

        ai_calls = 0

        def count_call() -> None:
            nonlocal ai_calls
            ai_calls += 1

        provider = self._audit_provider(count_call)
        rules = self.registry.enabled_rules(self.config)
        runner = RuleRunner(self.events)

        engine_violations, outcome = await asyncio.gather(
            self._run_engine(html, errors),
            runner.run(rules, snapshot, provider, self.config),
        )

        for failure in outcome.errors:
            errors.append(AuditErrorRecord(stage="rule", message=failure.error))

        merged = merge_violations(engine_violations, outcome.results)
        summary = self.scorer.score(merged, snapshot, ai_calls=ai_calls, started_at=timer.started_epoch)
        timer.stop()

        failed_ids = [failure.rule_id for failure in outcome.errors]
        result = AuditResult(
            url=snapshot.url or url,
            timestamp=timer.completed_at.isoformat(),
            extraction=snapshot,
            engine_violations=engine_violations,
            rule_results=outcome.results,
            merged_violations=merged,
            summary=summary,
            metadata=AuditMetadata(
                started_at=timer.started_at.isoformat(),
                completed_at=timer.completed_at.isoformat(),
                auditor_version=self.version,
                ai_provider=self.config.ai_provider.provider.value,
                model=self.config.ai_provider.model or "",
                duration_ms=timer.duration_ms,
                rules_executed=[rule.id for rule in rules if rule.id not in failed_ids],
                rules_failed=failed_ids,
            ),
            errors=errors,
        )

        logger.info("Audited %s: score %d (%s), %d violations.",
                    result.url, summary.score, summary.grade, summary.total_violations)
        self.events.emit(COMPLETE, result)
        return result

    def _audit_provider(self, count_call: Callable[[], None]) -> CapabilityProvider:
        """
        Wraps the shared provider for one audit. Only calls that actually reach
        the provider count as AI calls; cache hits do not.
        """
        if self.config.cache_enabled:
            return CachedProvider(self.provider, self.cache, self.config.cache_ttl_ms, on_cache_miss=count_call)
        return CountingProvider(self.provider, count_call)

    async def _run_engine(self, html: str, errors: List[AuditErrorRecord]) -> List[EngineViolation]:
        loop = asyncio.get_running_loop()
        try:
            violations = await loop.run_in_executor(None, self.engine.run, html, self.config.engine)
        except Exception as e:
            logger.warning("Engine check failed, continuing without it: %s", e)
            errors.append(AuditErrorRecord(stage="axe", message=f"Engine check failed: {e}", cause=e))
            violations = []

        self.events.emit(AXE_COMPLETE, {"violations": violations})
        return violations
