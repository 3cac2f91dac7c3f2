# src/a11y_shell/app.py
import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from a11y_auditor.controllers.audit_controller import A11yAuditor
from a11y_auditor.controllers.batch_controller import BatchAuditor
from a11y_auditor.errors import AuditError
from a11y_auditor.managers.event_manager import PAGE_ERROR, AuditEventBus
from a11y_auditor.managers.progress_manager import ProgressManager
from a11y_auditor.model import AuditConfig, AuditResult, BatchAuditResult, SitemapFilterOptions
from a11y_extraction.extractor import ExtractionError
from a11y_providers.errors import ProviderError
from a11y_providers.model import ProviderKind

from .config_manager import build_audit_config, config_manager
from .configure_logging import configure_logger

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_BELOW_THRESHOLD = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="a11y-audit",
        description="Audit web pages for accessibility with deterministic checks and AI-backed rules.",
    )
    parser.add_argument("--preset", choices=["quick", "standard", "thorough", "custom"], default=None,
                        help="Rule preset (default from settings.json).")
    parser.add_argument("--provider", choices=[kind.value for kind in ProviderKind], default=None,
                        help="AI provider kind.")
    parser.add_argument("--model", default=None, help="Model name passed to the provider.")
    parser.add_argument("--api-key", default=None, help="API key (defaults to the configured environment variable).")
    parser.add_argument("--concurrency", type=int, default=None, help="Pages audited in parallel.")
    parser.add_argument("--browser", choices=["auto", "none"], default=None,
                        help="Use a shared headless browser for batches when available.")
    parser.add_argument("--json", action="store_true", help="Print the full result as JSON.")
    parser.add_argument("--fail-under", type=int, default=None,
                        help="Exit with code 2 when the (average) score is below this value.")
    parser.add_argument("--log-level", default=None, help="Override debug.level from settings.json.")

    subparsers = parser.add_subparsers(dest="command", required=True)

    page_parser = subparsers.add_parser("page", help="Audit a single URL or HTML file.")
    page_parser.add_argument("target", help="URL, or path to an .html file.")

    batch_parser = subparsers.add_parser("batch", help="Audit several URLs or HTML files.")
    batch_parser.add_argument("targets", nargs="+", help="URLs or paths to .html files.")

    sitemap_parser = subparsers.add_parser("sitemap", help="Audit the pages listed in a sitemap.")
    sitemap_parser.add_argument("url", help="Sitemap or sitemap index URL.")
    sitemap_parser.add_argument("--include", action="append", default=[], help="Glob of URLs to keep.")
    sitemap_parser.add_argument("--exclude", action="append", default=[], help="Glob of URLs to drop.")
    sitemap_parser.add_argument("--max-pages", type=int, default=None, help="Maximum pages to audit.")

    return parser


def read_target(target: str) -> str:
    """Local .html/.htm files are audited by content; anything else is passed on as a URL."""
    if target.lower().endswith((".html", ".htm")) and not target.lower().startswith(("http://", "https://")):
        with open(target, "r", encoding="utf-8") as f:
            return f.read()
    return target


# --- Output ---

def print_page_summary(result: AuditResult) -> None:
    summary = result.summary
    print(f"\n{result.url}")
    print(f"  Score: {summary.score} ({summary.grade})  Violations: {summary.total_violations}  "
          f"AI calls: {summary.ai_calls}  Duration: {summary.audit_duration_ms}ms")
    for category, score in sorted(summary.categories.items()):
        print(f"  - {category:<22} {score.score:>3} ({score.grade})  {score.violation_count} issue(s)")
    for violation in result.merged_violations[:10]:
        print(f"    [{violation.severity}] {violation.selector}: {violation.message}")
    for error in result.errors:
        print(f"  ! {error.stage}: {error.message}")


def print_batch_summary(result: BatchAuditResult) -> None:
    summary = result.summary
    print(f"\nPages: {summary.total_pages}  Succeeded: {summary.succeeded}  Failed: {summary.failed}  "
          f"Average score: {summary.average_score}")
    if summary.worst_pages:
        print("Worst pages:")
        for page in summary.worst_pages:
            print(f"  {page.score:>3}  {page.target}")
    if summary.site_wide_issues:
        print("Site-wide issues:")
        for issue in summary.site_wide_issues:
            print(f"  {issue.key} on {issue.count_pages} page(s)")
    for page in result.pages:
        if page.error:
            print(f"  ❌ {page.error}")


# --- Commands ---

async def run_page(args: argparse.Namespace, config: AuditConfig) -> int:
    auditor = A11yAuditor(config)
    result = await auditor.audit(read_target(args.target))

    if args.json:
        print(result.model_dump_json(indent=2))
    else:
        print_page_summary(result)

    if args.fail_under is not None and result.summary.score < args.fail_under:
        return EXIT_BELOW_THRESHOLD
    return EXIT_OK


async def run_batch(args: argparse.Namespace, config: AuditConfig) -> int:
    events = AuditEventBus()
    show_progress = not args.json and bool(config_manager.get_nested("batch.progress", True))

    if args.command == "sitemap":
        options = SitemapFilterOptions(
            max_pages=args.max_pages or config_manager.get_nested("batch.max_pages", 50),
            include=args.include,
            exclude=args.exclude,
        )
        targets: List[str] = []
        total = options.max_pages
    else:
        options = None
        targets = [read_target(t) for t in args.targets]
        total = len(targets)

    progress = ProgressManager(total=total, disable=not show_progress)
    events.subscribe(lambda _event, _payload: progress.record_failure(), [PAGE_ERROR])
    batch = BatchAuditor(config, events=events, on_progress=progress.on_progress)

    try:
        if options is not None:
            result = await batch.audit_sitemap(args.url, options)
        else:
            result = await batch.audit(targets)
    finally:
        progress.close()

    if args.json:
        print(result.model_dump_json(indent=2))
    else:
        print_batch_summary(result)

    if result.summary.succeeded == 0 and result.summary.total_pages > 0:
        return EXIT_ERROR
    if args.fail_under is not None and result.summary.average_score < args.fail_under:
        return EXIT_BELOW_THRESHOLD
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logger(
        args.log_level or config_manager.get_nested("debug.level", "WARNING"),
        config_manager.get_nested("debug.modules", {}),
        config_manager.get_nested("debug.silenced", {}),
    )

    try:
        config = build_audit_config({
            "preset": args.preset,
            "provider": args.provider,
            "model": args.model,
            "api_key": args.api_key,
            "concurrency": args.concurrency,
            "browser": args.browser,
        })
        if args.command == "page":
            return asyncio.run(run_page(args, config))
        return asyncio.run(run_batch(args, config))
    except (AuditError, ExtractionError, ProviderError, OSError, ValueError) as e:
        logger.debug("Audit failed.", exc_info=True)
        print(f"❌ {e}", file=sys.stderr)
        return EXIT_ERROR
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
