# tests/core/test_batch.py
import asyncio

from a11y_auditor.controllers.audit_controller import A11yAuditor
from a11y_auditor.controllers.batch_controller import BatchAuditor, issue_key, schedule_targets, summarize_batch
from a11y_auditor.managers.event_manager import PAGE_COMPLETE, PAGE_ERROR, PAGE_START, AuditEventBus
from a11y_auditor.model import AuditConfig, BatchPageResult, BatchTarget, SitemapFilterOptions
from a11y_auditor.services.browser_session_service import BrowserAvailability, BrowserSession
from a11y_extraction.model import ExtractionOptions
from a11y_rules.registry import RuleRegistry

from support import CLEAN_HTML, SAMPLE_HTML, ScriptedProvider

NO_BROWSER = AuditConfig(extraction=ExtractionOptions(browser="none"))


class FlakyAuditor(A11yAuditor):
    """Faalt voor het target 'boom' en houdt de volgorde en gelijktijdigheid bij."""

    def __init__(self, config, delay=0.0):
        super().__init__(config=config, registry=RuleRegistry(), provider=ScriptedProvider())
        self.delay = delay
        self.order = []
        self.active = 0
        self.peak = 0

    async def audit(self, target):
        self.order.append(target)
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if target == "boom":
                raise RuntimeError("kaboom")
            return await super().audit(target)
        finally:
            self.active -= 1


class FakePage:
    def __init__(self, url):
        self.url = url
        self.closed = False

    async def content(self):
        return CLEAN_HTML


class FakeSession(BrowserSession):
    def __init__(self):
        self.pages = []
        self.closed = False

    async def new_page(self, url):
        page = FakePage(url)
        self.pages.append(page)
        return page

    async def close_page(self, page):
        page.closed = True

    async def close(self):
        self.closed = True


def batch_for(auditor, **kwargs):
    return BatchAuditor(auditor.config, auditor=auditor, **kwargs)


# --- Scheduling ---

def test_schedule_targets_by_priority_with_stable_ties():
    scheduled = schedule_targets([
        "a",
        BatchTarget(target="b", priority=5),
        BatchTarget(target="c", priority=1),
        BatchTarget(target="d", priority=5),
    ])
    assert [t.target for t in scheduled] == ["b", "d", "c", "a"]


def test_higher_priority_targets_are_audited_first():
    auditor = FlakyAuditor(NO_BROWSER.model_copy(update={"concurrency": 1}))
    low = CLEAN_HTML + "<!-- low -->"
    high = CLEAN_HTML + "<!-- high -->"

    result = asyncio.run(batch_for(auditor).audit([
        BatchTarget(target=low, priority=0),
        BatchTarget(target=high, priority=10),
    ]))

    assert auditor.order == [high, low]
    assert [p.target for p in result.pages] == [high, low]


# --- Execution ---

def test_failed_page_is_recorded_and_batch_completes():
    auditor = FlakyAuditor(NO_BROWSER.model_copy(update={"concurrency": 2}))
    events = []
    auditor.events.subscribe(lambda name, _payload: events.append(name), [PAGE_START, PAGE_COMPLETE, PAGE_ERROR])

    result = asyncio.run(batch_for(auditor).audit([SAMPLE_HTML, "boom", CLEAN_HTML]))

    summary = result.summary
    assert (summary.total_pages, summary.succeeded, summary.failed) == (3, 2, 1)
    assert [p.ok for p in result.pages] == [True, False, True]
    assert "kaboom" in result.pages[1].error
    assert [p.target for p in summary.worst_pages] == [SAMPLE_HTML, CLEAN_HTML]
    assert events.count(PAGE_START) == 3
    assert events.count(PAGE_COMPLETE) == 2
    assert events.count(PAGE_ERROR) == 1


def test_concurrency_limits_pages_in_flight():
    auditor = FlakyAuditor(NO_BROWSER.model_copy(update={"concurrency": 2}), delay=0.01)

    asyncio.run(batch_for(auditor).audit([CLEAN_HTML] * 5))

    assert auditor.peak == 2
    assert auditor.active == 0


def test_progress_callback_is_called_per_page():
    updates = []
    auditor = FlakyAuditor(NO_BROWSER)

    asyncio.run(batch_for(auditor, on_progress=updates.append).audit([CLEAN_HTML, "boom", CLEAN_HTML]))

    assert [u.completed for u in updates] == [1, 2, 3]
    assert updates[-1].total == 3
    assert updates[-1].percent == 100.0


def test_empty_batch():
    result = asyncio.run(batch_for(FlakyAuditor(NO_BROWSER)).audit([]))

    assert result.pages == []
    assert result.summary.total_pages == 0
    assert result.summary.average_score == 0


# --- Shared browser session ---

def test_shared_session_is_used_for_urls_and_closed():
    session = FakeSession()

    async def construct(options):
        return BrowserAvailability(name="fake", available=True, session=session)

    auditor = FlakyAuditor(AuditConfig())
    batch = batch_for(auditor, session_constructors=[construct])

    result = asyncio.run(batch.audit(["https://example.com/a", "https://example.com/b"]))

    assert result.summary.succeeded == 2
    assert [p.url for p in session.pages] == ["https://example.com/a", "https://example.com/b"]
    assert all(p.closed for p in session.pages)
    assert session.closed is True
    # Pagina's gaan via audit_page, niet via audit(url).
    assert auditor.order == []
    assert [p.url for p in result.pages] == ["https://example.com/a", "https://example.com/b"]


def test_unavailable_browser_falls_back_to_per_target_audits():
    attempts = []

    async def unavailable(options):
        attempts.append(options.browser)
        return BrowserAvailability(name="fake", available=False, reason="not installed")

    async def broken(options):
        raise RuntimeError("launch failed")

    auditor = FlakyAuditor(AuditConfig())
    result = asyncio.run(batch_for(auditor, session_constructors=[unavailable, broken]).audit([CLEAN_HTML]))

    assert attempts == ["auto"]
    assert result.summary.succeeded == 1
    assert auditor.order == [CLEAN_HTML]


# --- Summary ---

def test_summary_site_wide_and_common_issues():
    auditor = FlakyAuditor(NO_BROWSER)

    result = asyncio.run(batch_for(auditor).audit([SAMPLE_HTML, SAMPLE_HTML, CLEAN_HTML]))
    summary = result.summary

    keys = [issue.key for issue in summary.most_common_issues]
    assert set(keys) == {"engine:image-alt", "engine:link-name", "engine:label", "engine:heading-order"}
    assert all(issue.count_pages == 2 for issue in summary.most_common_issues)
    # Drempel is ceil(3 / 2) = 2 pagina's.
    assert [issue.key for issue in summary.site_wide_issues] == keys

    sample_score = result.pages[0].result.summary.score
    assert summary.average_score == int((2 * sample_score + 100) / 3 + 0.5)
    assert summary.worst_pages[0].score == sample_score


def test_summary_without_successes():
    pages = [BatchPageResult(target="a", error="boom"), BatchPageResult(target="b", error="boom")]
    summary = summarize_batch(pages)

    assert (summary.total_pages, summary.succeeded, summary.failed) == (2, 0, 2)
    assert summary.average_score == 0
    assert summary.worst_pages == []
    assert summary.site_wide_issues == []


def test_issue_key_for_engine_only_violation():
    auditor = FlakyAuditor(NO_BROWSER)
    result = asyncio.run(auditor.audit(SAMPLE_HTML))

    assert issue_key(result.merged_violations[0]).startswith("engine:")


# --- Sitemap ---

class FakeSitemapService:
    def __init__(self, urls):
        self.urls = urls
        self.calls = []

    async def discover_and_filter(self, sitemap_url, options):
        self.calls.append((sitemap_url, options.max_pages))
        return self.urls


def test_audit_sitemap_audits_discovered_targets():
    service = FakeSitemapService([CLEAN_HTML, SAMPLE_HTML])
    auditor = FlakyAuditor(NO_BROWSER)

    result = asyncio.run(batch_for(auditor, sitemap_service=service).audit_sitemap(
        "https://example.com/sitemap.xml",
        SitemapFilterOptions(max_pages=2),
    ))

    assert service.calls == [("https://example.com/sitemap.xml", 2)]
    assert result.summary.total_pages == 2
    assert auditor.order == [CLEAN_HTML, SAMPLE_HTML]


def test_shared_event_bus_between_batch_and_auditor():
    events = AuditEventBus()
    auditor = A11yAuditor(NO_BROWSER, registry=RuleRegistry(), events=events, provider=ScriptedProvider())
    assert BatchAuditor(auditor=auditor).events is events
