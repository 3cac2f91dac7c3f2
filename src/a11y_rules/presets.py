# src/a11y_rules/presets.py
from typing import Dict, Literal, TypeVar

from .model import RuleConfig, RulesConfig

Preset = Literal["quick", "standard", "thorough", "custom"]

ALT_TEXT = "ai/alt-text-quality"
LINK_TEXT = "ai/link-text-quality"
FORM_LABELS = "ai/form-label-relevance"
HEADINGS = "ai/heading-structure"
LANGUAGE = "ai/language-readability"
CONTRAST = "ai/contrast-analysis"
ARIA = "ai/aria-validation"
KEYBOARD = "ai/keyboard-navigation"
MEDIA = "ai/media-accessibility"

# Rules whose static half is still worth running when AI is switched off.
STATIC_CAPABLE = (ALT_TEXT, LINK_TEXT, FORM_LABELS)
ALL_BUILTIN = (ALT_TEXT, LINK_TEXT, FORM_LABELS, CONTRAST, ARIA, HEADINGS, KEYBOARD, LANGUAGE, MEDIA)

THOROUGH_BATCH_SIZE = 20

C = TypeVar("C", bound=RulesConfig)


def preset_rules(preset: Preset) -> Dict[str, RuleConfig]:
    """The per-rule map a preset implies; 'custom' implies nothing."""
    if preset == "quick":
        rules = {rule_id: RuleConfig(enabled=False) for rule_id in ALL_BUILTIN}
        for rule_id in STATIC_CAPABLE:
            rules[rule_id] = RuleConfig(enabled=True, settings={"ai_enabled": False})
        return rules

    if preset == "standard":
        return {rule_id: RuleConfig(enabled=True) for rule_id in ALL_BUILTIN}

    if preset == "thorough":
        return {
            rule_id: RuleConfig(enabled=True, vision=True, batch_size=THOROUGH_BATCH_SIZE)
            for rule_id in ALL_BUILTIN
        }

    if preset == "custom":
        return {}

    raise ValueError(f"Unknown preset: {preset}")


def apply_preset(config: C, preset: Preset) -> C:
    """
    Returns a copy of `config` with the preset's rule map laid underneath the
    explicit per-rule entries. Explicit fields always win over the preset.
    """
    merged: Dict[str, RuleConfig] = dict(preset_rules(preset))
    for rule_id, explicit in config.rules.items():
        base = merged.get(rule_id)
        if base is None:
            merged[rule_id] = explicit
            continue
        overrides = explicit.model_dump(exclude_unset=True)
        settings = {**base.settings, **overrides.pop("settings", {})}
        merged[rule_id] = base.model_copy(update={**overrides, "settings": settings})

    update = {"rules": merged}
    if preset == "thorough":
        update["vision"] = True
    return config.model_copy(update=update)
