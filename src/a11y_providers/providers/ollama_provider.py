# src/a11y_providers/providers/ollama_provider.py
from typing import Optional

from ..base import BaseAIProvider
from ..errors import ProviderError
from ..model import TokenUsage
from .http_client import post_json

DEFAULT_MODEL = "llama3.1"
DEFAULT_BASE_URL = "http://localhost:11434"


class OllamaProvider(BaseAIProvider):
    """Local Ollama chat endpoint. Text only."""

    kind = "ollama"

    async def _raw_complete(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        base_url = (self.config.base_url or DEFAULT_BASE_URL).rstrip("/")
        data = await post_json(
            f"{base_url}/api/chat",
            {"model": self.config.model or DEFAULT_MODEL, "stream": False, "messages": messages},
        )

        self._set_last_usage(TokenUsage(
            prompt_tokens=data.get("prompt_eval_count", 0) or 0,
            completion_tokens=data.get("eval_count", 0) or 0,
        ))

        content = (data.get("message") or {}).get("content")
        if not isinstance(content, str) or not content.strip():
            raise ProviderError("Ollama returned an empty response")
        return content
