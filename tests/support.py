# tests/support.py
import asyncio
from typing import List, Optional

from a11y_providers.base import BaseAIProvider
from a11y_providers.model import ProviderConfig
from a11y_rules.core import Rule, RuleContext, RuleResult

SAMPLE_HTML = """<!DOCTYPE html>
<html lang="en">
<head><title>Sample shop</title><meta name="description" content="A sample page"></head>
<body>
  <header><nav><a href="/">Home</a><a href="/about">About us</a></nav></header>
  <main>
    <h1>Products</h1>
    <img src="/img/shoe.png" alt="Red running shoe">
    <img src="/img/hero.jpg">
    <h3>Skipped level</h3>
    <a href="/more"></a>
    <form>
      <label for="email">Email</label>
      <input id="email" type="email" name="email">
      <input type="text" name="nickname">
      <button type="submit">Send</button>
    </form>
  </main>
  <footer><p>Footer</p></footer>
</body>
</html>
"""

CLEAN_HTML = """<!DOCTYPE html>
<html lang="en">
<head><title>Clean page</title></head>
<body>
  <main>
    <h1>Welcome</h1>
    <p>Short text.</p>
  </main>
</body>
</html>
"""


class ScriptedProvider(BaseAIProvider):
    """
    Test provider: returns (or raises) the scripted responses in order.
    Callables are awaited, so a response can also be a slow coroutine.
    """

    kind = "scripted"

    def __init__(self, responses: Optional[List] = None, config: Optional[ProviderConfig] = None):
        super().__init__(config or ProviderConfig())
        self.responses = list(responses or [])
        self.prompts: List[str] = []

    @property
    def calls(self) -> int:
        return len(self.prompts)

    async def _raw_complete(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        self.prompts.append(prompt)
        item = self.responses.pop(0) if self.responses else '{"findings": []}'
        if isinstance(item, BaseException):
            raise item
        if callable(item):
            return await item()
        return item


class StaticRule(Rule):
    """Rule stub returning fixed results, optionally after a delay."""

    def __init__(self, rule_id: str, results: Optional[List[RuleResult]] = None, delay: float = 0.0,
                 error: Optional[BaseException] = None, category: str = "test"):
        self.id = rule_id
        self.category = category
        self.results = results or []
        self.delay = delay
        self.error = error

    async def evaluate(self, context: RuleContext, provider) -> List[RuleResult]:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.results)
