# src/a11y_auditor/engine/registry.py
import importlib
import logging
import pkgutil
from typing import Dict, List

from .core import DOCUMENT, ElementDefinition, EngineRuleFunc

logger = logging.getLogger(__name__)

ELEMENTS_PACKAGE = "a11y_auditor.engine.elements"


class EngineRegistry:
    """
    Central registry of deterministic checks.

    Discovers ElementDefinition modules in the 'a11y_auditor.engine.elements'
    package and indexes their checks by tag name.
    """

    _rules_by_tag: Dict[str, List[EngineRuleFunc]] = {}
    _all_ids: set = set()
    _loaded: bool = False

    @classmethod
    def discover(cls) -> None:
        """Imports every module in the elements package that exposes a DEFINITION."""
        if cls._loaded:
            return

        elements_pkg = importlib.import_module(ELEMENTS_PACKAGE)
        for _, name, _ in pkgutil.iter_modules(elements_pkg.__path__):
            full_name = f"{ELEMENTS_PACKAGE}.{name}"
            module = importlib.import_module(full_name)
            definition = getattr(module, "DEFINITION", None)
            if not isinstance(definition, ElementDefinition):
                continue

            for tag_name in definition.tag_names:
                cls._rules_by_tag.setdefault(tag_name, []).extend(definition.rules)
            cls._all_ids.update(definition.ids)
            logger.debug("Engine checks loaded: %s", name)

        cls._loaded = True

    @classmethod
    def rules_for(cls, tag_name: str) -> List[EngineRuleFunc]:
        return cls._rules_by_tag.get(tag_name, [])

    @classmethod
    def document_rules(cls) -> List[EngineRuleFunc]:
        return cls._rules_by_tag.get(DOCUMENT, [])

    @classmethod
    def tag_names(cls) -> List[str]:
        return [name for name in cls._rules_by_tag if name != DOCUMENT]

    @classmethod
    def get_all_ids(cls) -> List[str]:
        """Every engine id any check can report."""
        return sorted(cls._all_ids)
