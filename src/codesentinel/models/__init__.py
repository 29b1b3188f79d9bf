"""Data models and schemas."""

from codesentinel.models.schemas import (
    AnalysisIssue,
    AnalysisResult,
    IssueType,
    Recommendation,
    RepositoryMetrics,
    RepositorySnapshot,
    RepoStats,
    Severity,
)

__all__ = [
    "AnalysisIssue",
    "AnalysisResult",
    "IssueType",
    "Recommendation",
    "RepositoryMetrics",
    "RepositorySnapshot",
    "RepoStats",
    "Severity",
]
