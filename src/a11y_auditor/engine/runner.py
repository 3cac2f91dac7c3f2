# src/a11y_auditor/engine/runner.py
import logging
from typing import List, Optional

from bs4 import BeautifulSoup

from a11y_extraction.utils import build_selector, truncate

from ..model import EngineConfig, EngineViolation
from .core import EngineRuleFunc
from .registry import EngineRegistry

logger = logging.getLogger(__name__)

MAX_HTML_SNIPPET = 500


class EngineRunner:
    """
    Deterministic accessibility checker.

    Parses the HTML with BeautifulSoup, applies the registered checks to every
    matching element, then runs the document-level checks once. Synchronous
    and CPU-bound; the auditor runs it in an executor.
    """

    def __init__(self):
        EngineRegistry.discover()

    @staticmethod
    def _enabled(rule: EngineRuleFunc, config: EngineConfig) -> bool:
        """A check runs when at least one of its ids is neither filtered out nor disabled."""
        for engine_id in getattr(rule, "defined_ids", []):
            if engine_id in config.disabled:
                continue
            if config.run_only is None or engine_id in config.run_only:
                return True
        return False

    def run(self, html: str, config: Optional[EngineConfig] = None) -> List[EngineViolation]:
        config = config or EngineConfig()
        doc = BeautifulSoup(html or "", "html.parser")
        violations: List[EngineViolation] = []

        def report(rule: EngineRuleFunc, tag, findings) -> None:
            for engine_id, severity, help_text, summary in findings:
                if engine_id in config.disabled:
                    continue
                if config.run_only is not None and engine_id not in config.run_only:
                    continue
                violations.append(EngineViolation(
                    id=engine_id,
                    severity=severity,
                    selector=build_selector(tag) if tag is not doc else "html",
                    help=help_text,
                    html=truncate(str(tag), MAX_HTML_SNIPPET) if tag is not doc else "",
                    failure_summary=summary,
                    category=getattr(rule, "category", None),
                ))

        for tag in doc.find_all(EngineRegistry.tag_names()):
            for rule in EngineRegistry.rules_for(tag.name):
                if self._enabled(rule, config):
                    report(rule, tag, rule(tag, doc))

        for rule in EngineRegistry.document_rules():
            if not self._enabled(rule, config):
                continue
            # Document checks return the offending tag alongside each finding.
            for tag, finding in rule(doc, doc):
                report(rule, tag if tag is not None else doc, [finding])

        logger.debug("Engine check found %d violations.", len(violations))
        return violations
