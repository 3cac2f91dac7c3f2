# src/a11y_providers/factory.py
import logging

from .base import BaseAIProvider
from .model import ProviderConfig, ProviderKind
from .providers.anthropic_provider import AnthropicProvider
from .providers.custom_provider import CustomProvider
from .providers.mock_provider import MockAIProvider
from .providers.ollama_provider import OllamaProvider
from .providers.openai_provider import OpenAIProvider

logger = logging.getLogger(__name__)


def create_provider(config: ProviderConfig) -> BaseAIProvider:
    """Builds the provider variant selected by `config.provider`."""
    kind = ProviderKind(config.provider)

    if kind is ProviderKind.OPENAI:
        provider = OpenAIProvider(config)
    elif kind is ProviderKind.ANTHROPIC:
        provider = AnthropicProvider(config)
    elif kind is ProviderKind.OLLAMA:
        provider = OllamaProvider(config)
    elif kind is ProviderKind.CUSTOM:
        provider = CustomProvider(config)
    else:
        provider = MockAIProvider(config)

    logger.debug("Created %s provider (model=%s, rpm=%s).", provider.kind, config.model, config.rpm)
    return provider
