# src/a11y_providers/providers/anthropic_provider.py
import logging
from typing import Any, Optional

from ..base import BaseAIProvider
from ..errors import ProviderError
from ..model import ImageData, TokenUsage
from .http_client import image_media_type, post_json, split_image

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"
DEFAULT_BASE_URL = "https://api.anthropic.com/v1"
API_VERSION = "2023-06-01"
MAX_TOKENS = 1024


class AnthropicProvider(BaseAIProvider):
    """Messages API over aiohttp. Supports vision via image content blocks."""

    kind = "anthropic"

    async def _messages(self, content: Any, system_prompt: Optional[str]) -> str:
        if not self.config.api_key:
            raise ProviderError("Anthropic api_key is required")

        payload = {
            "model": self.config.model or DEFAULT_MODEL,
            "max_tokens": MAX_TOKENS,
            "messages": [{"role": "user", "content": content}],
        }
        if system_prompt:
            payload["system"] = system_prompt

        base_url = (self.config.base_url or DEFAULT_BASE_URL).rstrip("/")
        data = await post_json(
            f"{base_url}/messages",
            payload,
            headers={"x-api-key": self.config.api_key, "anthropic-version": API_VERSION},
        )

        usage = data.get("usage") or {}
        self._set_last_usage(TokenUsage(
            prompt_tokens=usage.get("input_tokens", 0) or 0,
            completion_tokens=usage.get("output_tokens", 0) or 0,
        ))

        blocks = data.get("content")
        text = ""
        if isinstance(blocks, list):
            text = "".join(b.get("text", "") for b in blocks if isinstance(b, dict) and isinstance(b.get("text"), str))
        if not text.strip():
            raise ProviderError("Anthropic returned an empty response")
        return text

    async def _raw_complete(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        return await self._messages(prompt, system_prompt)

    async def _raw_complete_image(self, image: ImageData, prompt: str, system_prompt: Optional[str] = None) -> str:
        kind, value = split_image(image)
        if kind == "url":
            source = {"type": "url", "url": value}
        else:
            source = {"type": "base64", "media_type": image_media_type(image), "data": value}
        content = [
            {"type": "image", "source": source},
            {"type": "text", "text": prompt},
        ]
        return await self._messages(content, system_prompt)
