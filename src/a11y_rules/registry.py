# src/a11y_rules/registry.py
import logging
from typing import Dict, List, Optional

from .core import Rule, RuleInfo
from .model import RulesConfig

logger = logging.getLogger(__name__)


class DuplicateRuleError(ValueError):
    """A rule with the same id is already registered."""

    def __init__(self, rule_id: str):
        super().__init__(f"Rule already registered: {rule_id}")
        self.rule_id = rule_id


class RuleRegistry:
    """
    Holds rules keyed by id, in registration order.

    Registries are plain instances; build one per test or per embedding
    application. `get_default_registry()` exposes a shared instance for the
    CLI.
    """

    def __init__(self):
        self._rules: Dict[str, Rule] = {}

    def register(self, rule: Rule) -> None:
        if rule.id in self._rules:
            raise DuplicateRuleError(rule.id)
        self._rules[rule.id] = rule
        logger.debug("Registered rule %s (%s).", rule.id, rule.category)

    def get(self, rule_id: str) -> Optional[Rule]:
        return self._rules.get(rule_id)

    def get_all(self) -> List[Rule]:
        return list(self._rules.values())

    def get_by_category(self, category: str) -> List[Rule]:
        return [rule for rule in self._rules.values() if rule.category == category]

    def enabled_rules(self, config: RulesConfig) -> List[Rule]:
        """Rules are on unless the config explicitly sets `enabled: false`."""
        return [
            rule for rule in self._rules.values()
            if config.rule_config(rule.id).enabled is not False
        ]

    def metadata(self) -> List[RuleInfo]:
        return [rule.info() for rule in self._rules.values()]

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, rule_id: str) -> bool:
        return rule_id in self._rules


_default_registry: Optional[RuleRegistry] = None


def get_default_registry() -> RuleRegistry:
    """
    Returns the process-wide registry.

    The first call registers the built-in rules on it; later calls return
    the same instance untouched.
    """
    global _default_registry
    if _default_registry is None:
        from .builtin.register import register_builtin_rules

        registry = RuleRegistry()
        register_builtin_rules(registry)
        _default_registry = registry
    return _default_registry
