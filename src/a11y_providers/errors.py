# src/a11y_providers/errors.py
from typing import Optional


class ProviderError(Exception):
    """Base class for every failure raised by a capability provider."""


class ProviderTimeoutError(ProviderError, TimeoutError):
    """A single provider attempt exceeded its time budget."""

    def __init__(self, timeout_ms: int):
        super().__init__(f"AI provider request timed out after {timeout_ms}ms")
        self.timeout_ms = timeout_ms


class CapabilityParseError(ProviderError):
    """The provider answered, but not with the JSON shape we expect."""

    def __init__(self, message: str, raw: Optional[str] = None):
        super().__init__(message)
        self.raw = raw


class CapabilityUnsupportedError(ProviderError):
    """Raised when vision analysis is requested from a text-only provider."""

    def __init__(self, provider_kind: str):
        super().__init__(f"Vision analysis is not supported by provider '{provider_kind}'")
        self.provider_kind = provider_kind
