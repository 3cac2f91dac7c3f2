# src/a11y_rules/core.py
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Literal, Optional, Sequence, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from a11y_extraction.model import ElementSnapshot, ExtractionSnapshot
from a11y_providers.base import clamp01, extract_json_text
from a11y_providers.model import CapabilityProvider, ProviderContext, Severity

from .model import RuleConfig, RulesConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class RuleContext(ProviderContext):
    """What a rule sees: the page snapshot plus the active configuration."""
    extraction: ExtractionSnapshot
    config: RulesConfig = Field(default_factory=RulesConfig)


class RuleResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    rule_id: str
    category: str
    severity: Severity
    element: ElementSnapshot
    message: str
    suggestion: str
    confidence: float = Field(ge=0.0, le=1.0)
    source: Literal["static", "ai"]
    context: Optional[Dict[str, Any]] = None


class RuleInfo(BaseModel):
    id: str
    category: str
    description: str
    requires_ai: bool = False
    supports_vision: bool = False
    estimated_cost: Optional[str] = None


class Rule(ABC):
    """
    Base class for static and AI-backed checks.

    Subclasses set the class attributes and implement `evaluate`. The helpers
    cover per-rule config lookup, batching and permissive JSON parsing.
    """

    id: str = ""
    category: str = ""
    description: str = ""
    severity: Severity = "moderate"
    default_batch_size: int = 10
    requires_ai: bool = False
    supports_vision: bool = False
    estimated_cost: Optional[str] = None

    @abstractmethod
    async def evaluate(self, context: RuleContext, provider: CapabilityProvider) -> List[RuleResult]:
        ...

    def info(self) -> RuleInfo:
        return RuleInfo(
            id=self.id,
            category=self.category,
            description=self.description,
            requires_ai=self.requires_ai,
            supports_vision=self.supports_vision,
            estimated_cost=self.estimated_cost,
        )

    # -------- Config Helpers --------

    def rule_config(self, context: RuleContext) -> RuleConfig:
        return context.config.rule_config(self.id)

    def batch_size(self, context: RuleContext) -> int:
        return max(1, self.rule_config(context).batch_size or self.default_batch_size)

    def ai_enabled(self, context: RuleContext) -> bool:
        return self.rule_config(context).settings.get("ai_enabled", True) is not False

    def vision_enabled(self, context: RuleContext) -> bool:
        rule_vision = self.rule_config(context).vision
        return context.config.vision if rule_vision is None else rule_vision

    # -------- Result Helpers --------

    def make_result(
            self,
            element: ElementSnapshot,
            message: str,
            suggestion: str,
            severity: Optional[Severity] = None,
            confidence: float = 1.0,
            source: str = "static",
            context: Optional[Dict[str, Any]] = None,
    ) -> RuleResult:
        return RuleResult(
            rule_id=self.id,
            category=self.category,
            severity=severity or self.severity,
            element=element,
            message=message,
            suggestion=suggestion,
            confidence=clamp01(confidence),
            source=source,
            context=context,
        )

    @staticmethod
    async def evaluate_in_batches(
            items: Sequence[T],
            batch_size: int,
            fn: Callable[[List[T]], Awaitable[List[R]]],
    ) -> List[R]:
        """Runs `fn` over consecutive slices of `items`, one slice at a time."""
        out: List[R] = []
        size = max(1, batch_size)
        for i in range(0, len(items), size):
            out.extend(await fn(list(items[i:i + size])))
        return out

    @staticmethod
    def parse_json(raw: str) -> Any:
        """Lenient parse; returns None instead of raising."""
        try:
            return json.loads(extract_json_text(raw))
        except (json.JSONDecodeError, TypeError):
            return None

    @classmethod
    def parse_items(cls, raw: str, *keys: str) -> List[Dict[str, Any]]:
        """
        Pulls a list of dicts out of a model response. Accepts a bare list or
        an object holding the list under one of `keys`.
        """
        parsed = cls.parse_json(raw)
        items: Any = []
        if isinstance(parsed, list):
            items = parsed
        elif isinstance(parsed, dict):
            for key in keys:
                if isinstance(parsed.get(key), list):
                    items = parsed[key]
                    break
        return [item for item in items if isinstance(item, dict)]


def confidence_of(item: Dict[str, Any], default: float = 0.6) -> float:
    value = item.get("confidence")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return clamp01(value)
    return default
