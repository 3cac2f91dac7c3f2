# src/a11y_auditor/errors.py
from typing import List, Optional

from .model import AuditErrorRecord


class AuditError(Exception):
    """Base class for auditor failures."""


class AuditTimeoutError(AuditError, TimeoutError):
    """The whole single-page pipeline exceeded its overall budget."""

    def __init__(self, timeout_ms: int, errors: Optional[List[AuditErrorRecord]] = None):
        super().__init__(f"Audit timed out after {timeout_ms}ms")
        self.timeout_ms = timeout_ms
        self.errors: List[AuditErrorRecord] = errors or []


class RuleExecutionError(AuditError):
    """A rule raised (or timed out) while evaluating."""

    def __init__(self, rule_id: str, message: str):
        super().__init__(f"Rule failed: {rule_id}: {message}")
        self.rule_id = rule_id


class PageAuditError(AuditError):
    """A batch target failed end-to-end."""

    def __init__(self, url: str, message: str):
        super().__init__(f"Audit of {url} failed: {message}")
        self.url = url


class SitemapError(AuditError):
    """A sitemap could not be fetched or parsed."""


class UnsupportedTargetError(AuditError, TypeError):
    """`audit()` was called with something that is neither HTML, a URL nor a page."""
