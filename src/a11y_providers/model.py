# src/a11y_providers/model.py
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Literal, Optional, Protocol, Union

from pydantic import BaseModel, ConfigDict, Field

from a11y_extraction.model import ElementSnapshot

Severity = Literal["critical", "serious", "moderate", "minor"]

SEVERITY_RANK: Dict[str, int] = {
    "critical": 4,
    "serious": 3,
    "moderate": 2,
    "minor": 1,
}


class ProviderKind(str, Enum):
    """Closed set of provider variants; `create_provider` switches on it."""
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    OLLAMA = "ollama"
    CUSTOM = "custom"
    MOCK = "mock"


class TokenUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0


class CustomResponse(BaseModel):
    """What a user supplied handler returns for the `custom` provider."""
    content: str
    usage: Optional[TokenUsage] = None


CustomHandler = Callable[[str], Awaitable[CustomResponse]]


class ProviderConfig(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    provider: ProviderKind = ProviderKind.MOCK
    api_key: Optional[str] = None
    model: Optional[str] = None
    base_url: Optional[str] = None
    system_prompt: Optional[str] = None
    timeout_ms: int = 30_000
    max_retries: int = 3
    # Requests per minute; None or 0 disables the token bucket.
    rpm: Optional[int] = None
    custom_handler: Optional[CustomHandler] = None


class ProviderContext(BaseModel):
    """
    The minimum a provider needs to know about the call it is serving.
    Rule contexts extend this with the extraction and audit config.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    url: str = "about:blank"
    rule_id: str = ""
    element: Optional[ElementSnapshot] = None


class AIFinding(BaseModel):
    rule_id: str
    severity: Severity = "moderate"
    element: ElementSnapshot = Field(default_factory=ElementSnapshot)
    message: str = "Issue detected"
    suggestion: str = "Review and fix the issue."
    confidence: float = 0.5
    context: Optional[Dict[str, Any]] = None


class AnalysisResult(BaseModel):
    findings: List[AIFinding] = Field(default_factory=list)
    raw: str = ""
    latency_ms: int = 0
    attempts: int = 0
    usage: Optional[TokenUsage] = None


ImageData = Union[bytes, str]


class CapabilityProvider(Protocol):
    """Anything rules can call: a provider, or a cache wrapping one."""

    async def analyze(self, prompt: str, context: ProviderContext) -> AnalysisResult: ...

    async def analyze_image(self, image: ImageData, prompt: str, context: ProviderContext) -> AnalysisResult: ...

