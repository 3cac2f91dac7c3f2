# src/a11y_providers/providers/openai_provider.py
import logging
from typing import Any, Dict, List, Optional

from ..base import BaseAIProvider
from ..errors import ProviderError
from ..model import ImageData, TokenUsage
from .http_client import image_media_type, post_json, split_image

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_BASE_URL = "https://api.openai.com/v1"


class OpenAIProvider(BaseAIProvider):
    """Chat Completions API over aiohttp. Supports vision via image_url parts."""

    kind = "openai"

    def _messages(self, content: Any, system_prompt: Optional[str]) -> List[Dict[str, Any]]:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": content})
        return messages

    async def _chat(self, content: Any, system_prompt: Optional[str]) -> str:
        if not self.config.api_key:
            raise ProviderError("OpenAI api_key is required")

        base_url = (self.config.base_url or DEFAULT_BASE_URL).rstrip("/")
        data = await post_json(
            f"{base_url}/chat/completions",
            {
                "model": self.config.model or DEFAULT_MODEL,
                "messages": self._messages(content, system_prompt),
                "temperature": 0.2,
                # Best effort; some models still wrap the JSON in fences.
                "response_format": {"type": "json_object"},
            },
            headers={"Authorization": f"Bearer {self.config.api_key}"},
        )

        usage = data.get("usage") or {}
        self._set_last_usage(TokenUsage(
            prompt_tokens=usage.get("prompt_tokens", 0) or 0,
            completion_tokens=usage.get("completion_tokens", 0) or 0,
        ))

        try:
            text = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            text = None
        if not isinstance(text, str) or not text.strip():
            raise ProviderError("OpenAI returned an empty response")
        return text

    async def _raw_complete(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        return await self._chat(prompt, system_prompt)

    async def _raw_complete_image(self, image: ImageData, prompt: str, system_prompt: Optional[str] = None) -> str:
        kind, value = split_image(image)
        url = value if kind == "url" else f"data:{image_media_type(image)};base64,{value}"
        content = [
            {"type": "text", "text": prompt},
            {"type": "image_url", "image_url": {"url": url}},
        ]
        return await self._chat(content, system_prompt)
