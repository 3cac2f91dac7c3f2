# src/a11y_providers/providers/mock_provider.py
import json
from typing import Optional, Sequence

from ..base import BaseAIProvider

_SEVERITIES = ("minor", "moderate", "serious")
_RULES = ("alt-text-quality", "link-text-quality", "contrast-analysis", "form-label-relevance")


def fnv1a32(text: str) -> int:
    value = 0x811C9DC5
    for char in text:
        value ^= ord(char)
        value = (value * 0x01000193) & 0xFFFFFFFF
    return value


def _pick(items: Sequence[str], n: int) -> str:
    return items[n % len(items)]


class MockAIProvider(BaseAIProvider):
    """
    Offline provider for tests and demos. The same prompt always yields the
    same zero to two findings.
    """

    kind = "mock"

    async def _raw_complete(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        value = fnv1a32(prompt)
        findings = []
        for i in range(value % 3):
            mock_id = f"mock-{(value + i) % 100}"
            findings.append({
                "ruleId": _pick(_RULES, value + i),
                "severity": _pick(_SEVERITIES, value + i * 7),
                "element": {
                    "selector": f"#{mock_id}",
                    "html": f'<div id="{mock_id}"></div>',
                    "tagName": "div",
                    "attributes": {"id": mock_id},
                },
                "message": f"Mock finding {(value + i) % 1000}",
                "suggestion": "This is a deterministic mock suggestion.",
                "confidence": ((value % 100) / 100) * 0.9 + 0.05,
                "context": {"mockHash": value},
            })
        return json.dumps({"findings": findings})
