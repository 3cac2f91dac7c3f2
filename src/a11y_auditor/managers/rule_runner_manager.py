# src/a11y_auditor/managers/rule_runner_manager.py
import asyncio
import logging
from typing import List, Optional, Sequence

from a11y_extraction.model import ExtractionSnapshot
from a11y_providers.model import CapabilityProvider
from a11y_rules.core import Rule, RuleContext, RuleResult
from a11y_rules.model import RulesConfig

from ..errors import RuleExecutionError
from ..model import RuleFailure, RuleRunResult
from .event_manager import RULE_COMPLETE, RULE_START, AuditEventBus, rule_payload
from .worker_pool_manager import run_with_concurrency

logger = logging.getLogger(__name__)


class RuleRunner:
    """
    Evaluates rules on a shared worker pool, each under its own timeout.

    A rule that raises or times out is recorded in `errors` and contributes
    no results; every other rule keeps running.
    """

    def __init__(self, events: Optional[AuditEventBus] = None):
        self.events = events or AuditEventBus()

    async def run(
            self,
            rules: Sequence[Rule],
            extraction: ExtractionSnapshot,
            provider: CapabilityProvider,
            config: RulesConfig,
    ) -> RuleRunResult:
        outcome = RuleRunResult()
        if not rules:
            return outcome

        timeout_ms = max(1, config.rule_timeout_ms)
        url = extraction.url or "about:blank"

        async def evaluate(rule: Rule) -> None:
            self.events.emit(RULE_START, rule_payload(rule.id))
            context = RuleContext(url=url, rule_id=rule.id, extraction=extraction, config=config)

            try:
                results: List[RuleResult] = await asyncio.wait_for(
                    rule.evaluate(context, provider),
                    timeout=timeout_ms / 1000,
                )
                if not isinstance(results, list) or not all(isinstance(r, RuleResult) for r in results):
                    raise TypeError(f"evaluate() must return a list of RuleResult, got {type(results).__name__}")
            except asyncio.TimeoutError:
                error = RuleExecutionError(rule.id, f"timed out after {timeout_ms}ms")
                logger.warning("%s", error)
                outcome.errors.append(RuleFailure(rule_id=rule.id, error=str(error)))
                self.events.emit(RULE_COMPLETE, rule_payload(rule.id, []))
                return
            except Exception as e:
                error = RuleExecutionError(rule.id, f"{type(e).__name__}: {e}")
                logger.warning("%s", error, exc_info=logger.isEnabledFor(logging.DEBUG))
                outcome.errors.append(RuleFailure(rule_id=rule.id, error=str(error)))
                self.events.emit(RULE_COMPLETE, rule_payload(rule.id, []))
                return

            outcome.results.extend(results)
            self.events.emit(RULE_COMPLETE, rule_payload(rule.id, results))

        parallelism = max(1, config.parallelism)
        logger.debug("Running %d rules with parallelism %d.", len(rules), min(parallelism, len(rules)))
        await run_with_concurrency(rules, parallelism, evaluate, name="Rule")
        return outcome
