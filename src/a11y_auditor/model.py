# src/a11y_auditor/model.py
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from a11y_extraction.model import ExtractionOptions, ExtractionSnapshot
from a11y_providers.model import ProviderConfig, Severity
from a11y_rules.core import RuleResult
from a11y_rules.model import RulesConfig

SCHEMA_VERSION = "1.0"

AuditStage = Literal["audit", "axe", "rule", "extraction"]


class EngineViolation(BaseModel):
    """One finding from the deterministic checker."""
    model_config = ConfigDict(frozen=True)

    id: str
    severity: Severity
    selector: str
    help: str
    html: str = ""
    failure_summary: str = ""
    category: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


class MergedViolation(BaseModel):
    model_config = ConfigDict(frozen=True)

    category: str
    selector: str
    severity: Severity
    source: Literal["engine", "ai", "both"]
    message: str
    suggestion: str = ""
    confidence: float = 1.0
    engine: Optional[EngineViolation] = None
    rule: Optional[RuleResult] = None


class CategoryScore(BaseModel):
    score: int
    grade: str
    violation_count: int
    top_issue: str = ""


class AuditSummary(BaseModel):
    score: int
    grade: str
    categories: Dict[str, CategoryScore] = Field(default_factory=dict)
    total_violations: int = 0
    by_severity: Dict[str, int] = Field(default_factory=dict)
    elements_analyzed: int = 0
    ai_calls: int = 0
    estimated_tokens: int = 0
    audit_duration_ms: int = 0


class AuditErrorRecord(BaseModel):
    """A failure that was recovered from and recorded next to the results."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    stage: AuditStage
    message: str
    cause: Optional[BaseException] = None

    @field_serializer("cause")
    def _serialize_cause(self, cause: Optional[BaseException]) -> Optional[str]:
        if cause is None:
            return None
        return f"{type(cause).__name__}: {cause}"


class RuleFailure(BaseModel):
    rule_id: str
    error: str


class RuleRunResult(BaseModel):
    results: List[RuleResult] = Field(default_factory=list)
    errors: List[RuleFailure] = Field(default_factory=list)


class AuditMetadata(BaseModel):
    schema_version: str = SCHEMA_VERSION
    started_at: str
    completed_at: str
    auditor_version: str = ""
    ai_provider: str = ""
    model: str = ""
    duration_ms: int = 0
    rules_executed: List[str] = Field(default_factory=list)
    rules_failed: List[str] = Field(default_factory=list)


class AuditResult(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    url: str
    timestamp: str
    extraction: ExtractionSnapshot
    engine_violations: List[EngineViolation] = Field(default_factory=list)
    rule_results: List[RuleResult] = Field(default_factory=list)
    merged_violations: List[MergedViolation] = Field(default_factory=list)
    summary: AuditSummary
    metadata: AuditMetadata
    errors: List[AuditErrorRecord] = Field(default_factory=list)


class EngineConfig(BaseModel):
    """Deterministic checker options: restrict to or exclude engine rule ids."""
    run_only: Optional[List[str]] = None
    disabled: List[str] = Field(default_factory=list)


class AuditConfig(RulesConfig):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    ai_provider: ProviderConfig = Field(default_factory=ProviderConfig)
    extraction: ExtractionOptions = Field(default_factory=ExtractionOptions)
    engine: EngineConfig = Field(default_factory=EngineConfig)

    overall_timeout_ms: int = 300_000
    concurrency: int = 3
    cache_enabled: bool = True
    cache_ttl_ms: int = 3_600_000


# -------- Batch --------

class BatchTarget(BaseModel):
    """A URL or an HTML string, plus a scheduling priority (higher runs first)."""
    target: str
    priority: int = 0


class BatchPageResult(BaseModel):
    target: str
    url: Optional[str] = None
    duration_ms: int = 0
    result: Optional[AuditResult] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.result is not None and self.error is None


class PageScore(BaseModel):
    target: str
    score: int


class IssueFrequency(BaseModel):
    key: str
    count_pages: int
    count_total: int
    example: Optional[MergedViolation] = None


class BatchAuditSummary(BaseModel):
    total_pages: int
    succeeded: int
    failed: int
    average_score: int
    worst_pages: List[PageScore] = Field(default_factory=list)
    most_common_issues: List[IssueFrequency] = Field(default_factory=list)
    site_wide_issues: List[IssueFrequency] = Field(default_factory=list)


class BatchAuditResult(BaseModel):
    started_at: str
    completed_at: str
    pages: List[BatchPageResult]
    summary: BatchAuditSummary


class SitemapFilterOptions(BaseModel):
    max_pages: int = 50
    include: List[str] = Field(default_factory=list)
    exclude: List[str] = Field(default_factory=list)


class ProgressUpdate(BaseModel):
    completed: int
    total: int
    percent: float

    @classmethod
    def of(cls, completed: int, total: int) -> "ProgressUpdate":
        percent = round(completed / total * 100, 1) if total else 100.0
        return cls(completed=completed, total=total, percent=percent)

