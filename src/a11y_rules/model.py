# src/a11y_rules/model.py
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class RuleConfig(BaseModel):
    """Per-rule overrides. `None` means: fall back to the rule or audit default."""
    enabled: Optional[bool] = None
    batch_size: Optional[int] = None
    vision: Optional[bool] = None
    settings: Dict[str, Any] = Field(default_factory=dict)


class RulesConfig(BaseModel):
    """The part of the audit configuration the rules engine reads."""
    parallelism: int = 3
    rule_timeout_ms: int = 60_000

    # Vision calls cost real money, so they are opt-in.
    vision: bool = False
    max_vision_images: int = 20

    rules: Dict[str, RuleConfig] = Field(default_factory=dict)

    def rule_config(self, rule_id: str) -> RuleConfig:
        return self.rules.get(rule_id) or RuleConfig()
