# src/a11y_rules/builtin/register.py
from ..registry import RuleRegistry
from .alt_text import AltTextRule
from .aria import AriaRule
from .contrast import ContrastRule
from .form_labels import FormLabelRule
from .headings import HeadingStructureRule
from .keyboard import KeyboardRule
from .language import LanguageRule
from .link_text import LinkTextRule
from .media import MediaRule

BUILTIN_RULES = (
    AltTextRule,
    LinkTextRule,
    FormLabelRule,
    ContrastRule,
    AriaRule,
    HeadingStructureRule,
    KeyboardRule,
    LanguageRule,
    MediaRule,
)


def register_builtin_rules(registry: RuleRegistry) -> RuleRegistry:
    for rule_cls in BUILTIN_RULES:
        registry.register(rule_cls())
    return registry
