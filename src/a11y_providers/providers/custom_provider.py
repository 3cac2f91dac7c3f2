# src/a11y_providers/providers/custom_provider.py
from typing import Optional

from ..base import BaseAIProvider
from ..errors import ProviderError
from ..model import ProviderConfig


class CustomProvider(BaseAIProvider):
    """
    Wraps a user supplied `async handler(prompt) -> CustomResponse`.
    The handler's content goes through the same retry and parse path as the
    built-in providers.
    """

    kind = "custom"

    def __init__(self, config: ProviderConfig):
        if config.custom_handler is None:
            raise ProviderError("custom_handler is required when provider is 'custom'")
        super().__init__(config)
        self.handler = config.custom_handler

    async def _raw_complete(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        response = await self.handler(prompt)
        self._set_last_usage(response.usage)
        return response.content
