"""Pydantic models for repository snapshots and analysis reports."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model that reads and writes the camelCase wire shape."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class IssueType(str, Enum):
    """Issue categories."""

    SECURITY = "security"
    PERFORMANCE = "performance"
    MAINTAINABILITY = "maintainability"
    RELIABILITY = "reliability"


class Severity(str, Enum):
    """Issue severity, most severe first."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Effort(str, Enum):
    """Estimated remediation effort."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RecommendationType(str, Enum):
    """Recommendation time horizon."""

    IMMEDIATE = "immediate"
    SHORT_TERM = "short-term"
    LONG_TERM = "long-term"


class FileType(str, Enum):
    """Repository tree entry kinds."""

    FILE = "file"
    DIR = "dir"


# --- Snapshot Models ---


class RepoFile(CamelModel):
    """A file or directory entry from the repository tree."""

    name: str
    path: str
    type: FileType = FileType.FILE
    size: int = 0
    content: str | None = None  # Absent for binary, large or undownloaded files


class RepoCommit(CamelModel):
    """A single commit from the repository history."""

    sha: str
    message: str = ""
    author: str | None = None
    date: str | None = None


class RepoStats(CamelModel):
    """Aggregate repository statistics."""

    lines_of_code: int = Field(ge=0)
    files_count: int = Field(ge=0)
    languages: dict[str, int] = Field(default_factory=dict)  # language -> bytes
    contributors: int = Field(ge=0)
    commit_frequency: int = Field(ge=0)
    last_commit: str | None = None


class RepositorySnapshot(CamelModel):
    """Point-in-time bundle of files, commits and stats for one repository."""

    name: str = ""
    stars: int | None = None
    files: list[RepoFile] = Field(default_factory=list)
    commits: list[RepoCommit] = Field(default_factory=list)
    stats: RepoStats | None = None


# --- Analysis Models ---


class RepositoryMetrics(CamelModel):
    """Aggregate metrics derived from repository stats."""

    model_config = ConfigDict(frozen=True)

    lines_of_code: int
    files_count: int
    complexity: int = Field(ge=0, le=100)
    test_coverage: int = Field(ge=0, le=100)
    duplication: int = Field(ge=0, le=100)
    # Read-only; compute_metrics hands each instance its own copy
    language_breakdown: dict[str, int] = Field(default_factory=dict)
    commit_frequency: int
    contributor_count: int


class AnalysisIssue(CamelModel):
    """A single finding, from either the rule-based or the AI path."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: IssueType
    severity: Severity
    title: str
    description: str
    file: str | None = None
    line: int | None = None
    code: str | None = None
    impact: str = Field(min_length=1)
    fix: str = Field(min_length=1)
    effort: Effort
    tags: tuple[str, ...] = ()


class Recommendation(CamelModel):
    """A prioritized remediation step. Higher priority is more urgent."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: RecommendationType
    title: str
    description: str
    priority: int
    impact: str
    effort: str


class CategoryScores(BaseModel):
    """Rounded category scores produced by the scorer."""

    overall: int = Field(ge=0, le=100)
    security: int = Field(ge=0, le=100)
    performance: int = Field(ge=0, le=100)
    maintainability: int = Field(ge=0, le=100)
    tech_debt: int = Field(ge=0, le=100)


class AnalysisResult(CamelModel):
    """Complete analysis report for a repository."""

    model_config = ConfigDict(frozen=True)

    overall_score: int = Field(ge=0, le=100)
    tech_debt_score: int = Field(ge=0, le=100)
    security_score: int = Field(ge=0, le=100)
    performance_score: int = Field(ge=0, le=100)
    maintainability_score: int = Field(ge=0, le=100)
    issues: tuple[AnalysisIssue, ...] = ()
    recommendations: tuple[Recommendation, ...] = ()
    metrics: RepositoryMetrics
    is_ai_powered: bool = Field(default=False, alias="isAIPowered")

    def to_record(self) -> dict[str, Any]:
        """Return the plain JSON-compatible record handed to consumers."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# --- LLM Models ---


class RepoContext(BaseModel):
    """Repository facts included in the LLM prompt."""

    name: str
    language: str | None = None
    stars: int | None = None
    contributors: int = 0
    lines_of_code: int = 0
    files_count: int = 0


class AIIssue(CamelModel):
    """One issue as reported by the LLM, before normalization."""

    severity: Severity
    title: str = "Untitled issue"
    description: str = ""
    file: str | None = None
    line: int | None = None
    code_snippet: str | None = None
    recommendation: str = ""
    impact: str = ""

    @field_validator("severity", mode="before")
    @classmethod
    def _lowercase_severity(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("line", mode="before")
    @classmethod
    def _coerce_line(cls, value: Any) -> int | None:
        # Models sometimes answer "n/a" or "45-50" here
        if isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value
        if isinstance(value, str) and value.strip().isdigit():
            return int(value.strip())
        return None

    @field_validator("title", "description", "recommendation", "impact", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value)


class AIAnalysisResponse(CamelModel):
    """Validated shape of the LLM analysis payload."""

    security_issues: list[AIIssue] = Field(default_factory=list)
    performance_issues: list[AIIssue] = Field(default_factory=list)
    quality_issues: list[AIIssue] = Field(default_factory=list)
    architecture_issues: list[AIIssue] = Field(default_factory=list)
    overall_assessment: str = "Analysis completed"
    top_recommendations: list[str] = Field(default_factory=list)
