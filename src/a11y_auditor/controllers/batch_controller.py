# src/a11y_auditor/controllers/batch_controller.py
import logging
import math
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from ..errors import PageAuditError
from ..managers.event_manager import PAGE_COMPLETE, PAGE_ERROR, PAGE_START, PROGRESS, AuditEventBus
from ..managers.worker_pool_manager import run_with_concurrency
from ..model import (
    AuditConfig,
    AuditResult,
    BatchAuditResult,
    BatchAuditSummary,
    BatchPageResult,
    BatchTarget,
    IssueFrequency,
    MergedViolation,
    PageScore,
    ProgressUpdate,
    SitemapFilterOptions,
)
from ..services.browser_session_service import BrowserSession, SessionConstructor, open_shared_session
from ..services.scoring_service import round_half_up
from ..services.sitemap_service import SitemapService
from ..utils.run_timers import AuditTimer
from .audit_controller import A11yAuditor, looks_like_html

logger = logging.getLogger(__name__)

WORST_PAGES = 5
MOST_COMMON_ISSUES = 10

ProgressCallback = Callable[[ProgressUpdate], None]


class BatchAuditor:
    """
    Audits many pages through one shared single-page auditor.

    Targets are scheduled by priority (highest first, input order on ties)
    and drained by a worker pool of `config.concurrency`. A page that fails
    is recorded with its error; the batch itself only raises for setup
    failures such as an unreachable sitemap.
    """

    def __init__(
            self,
            config: Optional[AuditConfig] = None,
            auditor: Optional[A11yAuditor] = None,
            events: Optional[AuditEventBus] = None,
            on_progress: Optional[ProgressCallback] = None,
            session_constructors: Optional[List[SessionConstructor]] = None,
            sitemap_service: Optional[SitemapService] = None,
    ):
        self.config = config or (auditor.config if auditor else AuditConfig())
        self.events = events or (auditor.events if auditor else AuditEventBus())
        self.auditor = auditor or A11yAuditor(self.config, events=self.events)
        self.session_constructors = session_constructors
        self.sitemap_service = sitemap_service or SitemapService()

        if on_progress is not None:
            self.events.subscribe(lambda _event, update: on_progress(update), [PROGRESS])

    async def audit(self, targets: Sequence[Union[str, BatchTarget]]) -> BatchAuditResult:
        started_at = datetime.now(timezone.utc)
        scheduled = schedule_targets(targets)
        pages: List[Optional[BatchPageResult]] = [None] * len(scheduled)
        completed = 0
        total = len(scheduled)

        session = await self._open_session() if scheduled else None

        async def work(item: Tuple[int, BatchTarget]) -> None:
            nonlocal completed
            position, target = item
            self.events.emit(PAGE_START, {"target": target.target, "index": position})

            timer = AuditTimer().start()
            try:
                result = await self._audit_target(target.target, session)
                timer.stop()
                pages[position] = BatchPageResult(
                    target=target.target,
                    url=result.url,
                    duration_ms=timer.duration_ms,
                    result=result,
                )
                self.events.emit(PAGE_COMPLETE, {"target": target.target, "index": position, "result": result})
            except Exception as e:
                timer.stop()
                error = PageAuditError(target.target, f"{type(e).__name__}: {e}")
                logger.warning("%s", error)
                pages[position] = BatchPageResult(
                    target=target.target,
                    duration_ms=timer.duration_ms,
                    error=str(error),
                )
                self.events.emit(PAGE_ERROR, {"target": target.target, "index": position, "error": str(error)})
            finally:
                completed += 1
                self.events.emit(PROGRESS, ProgressUpdate.of(completed, total))

        try:
            await run_with_concurrency(
                list(enumerate(scheduled)),
                self.config.concurrency,
                work,
                name="Page",
            )
        finally:
            if session is not None:
                try:
                    await session.close()
                except Exception as e:
                    logger.warning("Failed to close shared browser session: %s", e)

        finished = [page for page in pages if page is not None]
        summary = summarize_batch(finished)
        logger.info("Batch complete: %d pages, %d succeeded, %d failed, average score %d.",
                    summary.total_pages, summary.succeeded, summary.failed, summary.average_score)

        return BatchAuditResult(
            started_at=started_at.isoformat(),
            completed_at=datetime.now(timezone.utc).isoformat(),
            pages=finished,
            summary=summary,
        )

    async def audit_sitemap(
            self,
            sitemap_url: str,
            filter_options: Optional[SitemapFilterOptions] = None,
    ) -> BatchAuditResult:
        """Discovers page URLs from a sitemap (or sitemap index) and audits them."""
        options = filter_options or SitemapFilterOptions()
        urls = await self.sitemap_service.discover_and_filter(sitemap_url, options)
        logger.info("Sitemap %s yielded %d URLs to audit.", sitemap_url, len(urls))
        return await self.audit(urls)

    async def _open_session(self) -> Optional[BrowserSession]:
        try:
            return await open_shared_session(self.config.extraction, self.session_constructors)
        except Exception as e:
            logger.debug("No shared browser session, extracting per target: %s", e)
            return None

    async def _audit_target(self, target: str, session: Optional[BrowserSession]) -> AuditResult:
        if session is None or looks_like_html(target):
            return await self.auditor.audit(target)

        page = await session.new_page(target)
        try:
            return await self.auditor.audit_page(page)
        finally:
            await session.close_page(page)


def schedule_targets(targets: Sequence[Union[str, BatchTarget]]) -> List[BatchTarget]:
    """Highest priority first; `sorted` is stable so ties keep input order."""
    normalized = [t if isinstance(t, BatchTarget) else BatchTarget(target=t) for t in targets]
    return sorted(normalized, key=lambda t: -t.priority)


def issue_key(violation: MergedViolation) -> str:
    if violation.rule is not None and violation.rule.rule_id:
        return f"ai:{violation.rule.rule_id}"
    if violation.engine is not None and violation.engine.id:
        return f"engine:{violation.engine.id}"
    return f"msg:{violation.message}"


def _issue_stats(results: List[AuditResult]) -> List[IssueFrequency]:
    totals: Dict[str, int] = {}
    page_counts: Dict[str, int] = {}
    examples: Dict[str, MergedViolation] = {}

    for result in results:
        seen_on_page = set()
        for violation in result.merged_violations:
            key = issue_key(violation)
            totals[key] = totals.get(key, 0) + 1
            examples.setdefault(key, violation)
            if key not in seen_on_page:
                page_counts[key] = page_counts.get(key, 0) + 1
                seen_on_page.add(key)

    stats = [
        IssueFrequency(key=key, count_pages=page_counts[key], count_total=total, example=examples[key])
        for key, total in totals.items()
    ]
    stats.sort(key=lambda s: (-s.count_pages, -s.count_total))
    return stats


def summarize_batch(pages: Sequence[BatchPageResult]) -> BatchAuditSummary:
    successful = [page for page in pages if page.ok]
    scores = [page.result.summary.score for page in successful]

    average_score = round_half_up(sum(scores) / len(scores)) if scores else 0

    worst_pages = sorted(
        (PageScore(target=page.target, score=page.result.summary.score) for page in successful),
        key=lambda p: p.score,
    )[:WORST_PAGES]

    stats = _issue_stats([page.result for page in successful])
    threshold = math.ceil(len(successful) / 2)
    site_wide = [s for s in stats if successful and s.count_pages >= threshold]

    return BatchAuditSummary(
        total_pages=len(pages),
        succeeded=len(successful),
        failed=len(pages) - len(successful),
        average_score=average_score,
        worst_pages=worst_pages,
        most_common_issues=stats[:MOST_COMMON_ISSUES],
        site_wide_issues=site_wide,
    )
