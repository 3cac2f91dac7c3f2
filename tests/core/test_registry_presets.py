# tests/core/test_registry_presets.py
import pytest

from a11y_rules.builtin.register import register_builtin_rules
from a11y_rules.model import RuleConfig, RulesConfig
from a11y_rules.presets import ALL_BUILTIN, apply_preset, preset_rules
from a11y_rules.registry import DuplicateRuleError, RuleRegistry, get_default_registry

from support import StaticRule


@pytest.fixture
def registry():
    """Een verse registry met de ingebouwde regels."""
    return register_builtin_rules(RuleRegistry())


def test_builtin_rules_are_registered(registry):
    assert len(registry) == 9
    for rule_id in ALL_BUILTIN:
        assert rule_id in registry
    assert [r.id for r in registry.get_by_category("structure")] == [
        "ai/heading-structure",
        "ai/keyboard-navigation",
        "ai/language-readability",
        "ai/media-accessibility",
    ]


def test_duplicate_registration_raises(registry):
    with pytest.raises(DuplicateRuleError) as exc_info:
        registry.register(StaticRule("ai/alt-text-quality"))
    assert exc_info.value.rule_id == "ai/alt-text-quality"


def test_enabled_rules_only_excludes_explicit_false(registry):
    config = RulesConfig(rules={
        "ai/link-text-quality": RuleConfig(enabled=False),
        "ai/alt-text-quality": RuleConfig(enabled=None),
    })
    ids = [rule.id for rule in registry.enabled_rules(config)]
    assert "ai/link-text-quality" not in ids
    assert "ai/alt-text-quality" in ids
    assert len(ids) == 8


def test_metadata_lists_every_rule(registry):
    info = {item.id: item for item in registry.metadata()}
    assert info["ai/alt-text-quality"].supports_vision is True
    assert info["ai/heading-structure"].requires_ai is False


def test_default_registry_is_a_singleton():
    assert get_default_registry() is get_default_registry()
    assert len(get_default_registry()) == 9


def test_quick_preset_keeps_static_halves_only(registry):
    config = apply_preset(RulesConfig(), "quick")
    enabled = [rule.id for rule in registry.enabled_rules(config)]

    assert enabled == ["ai/alt-text-quality", "ai/link-text-quality", "ai/form-label-relevance"]
    for rule_id in enabled:
        assert config.rule_config(rule_id).settings["ai_enabled"] is False


def test_thorough_preset_enables_vision_and_bigger_batches():
    config = apply_preset(RulesConfig(), "thorough")
    assert config.vision is True
    assert config.rule_config("ai/alt-text-quality").batch_size == 20


def test_explicit_rule_config_wins_over_preset():
    config = RulesConfig(rules={
        "ai/alt-text-quality": RuleConfig(settings={"ai_enabled": True}),
        "ai/heading-structure": RuleConfig(enabled=True),
    })
    merged = apply_preset(config, "quick")

    assert merged.rule_config("ai/alt-text-quality").settings["ai_enabled"] is True
    assert merged.rule_config("ai/alt-text-quality").enabled is True
    assert merged.rule_config("ai/heading-structure").enabled is True
    # The input is left untouched.
    assert config.rule_config("ai/link-text-quality").enabled is None


def test_custom_preset_adds_nothing():
    assert preset_rules("custom") == {}
    with pytest.raises(ValueError):
        preset_rules("extreme")
