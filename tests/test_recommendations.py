"""Tests for recommendation generation."""

from codesentinel.analyzers.recommendations import generate_recommendations
from codesentinel.models.schemas import (
    AnalysisIssue,
    Effort,
    IssueType,
    RecommendationType,
    Severity,
)


def _make_issue(issue_id, issue_type=IssueType.MAINTAINABILITY, severity=Severity.LOW):
    return AnalysisIssue(
        id=issue_id,
        type=issue_type,
        severity=severity,
        title=issue_id,
        description="d",
        impact="i",
        fix="f",
        effort=Effort.LOW,
    )


class TestGenerateRecommendations:
    def test_unconditional_recommendations(self):
        recs = generate_recommendations([])
        assert [(r.id, r.priority) for r in recs] == [("testing", 7), ("documentation", 4)]
        assert recs[1].type == RecommendationType.LONG_TERM

    def test_critical_security_issue(self):
        recs = generate_recommendations([_make_issue("s", IssueType.SECURITY, Severity.CRITICAL)])
        assert [r.id for r in recs] == ["immediate-security", "security-audit", "testing", "documentation"]
        assert recs[0].type == RecommendationType.IMMEDIATE
        assert "1 critical" in recs[0].description

    def test_critical_non_security_issue(self):
        recs = generate_recommendations([_make_issue("m", severity=Severity.CRITICAL)])
        assert [r.id for r in recs] == ["immediate-security", "testing", "documentation"]

    def test_refactoring_needs_more_than_ten_issues(self):
        ten = [_make_issue(f"m{i}") for i in range(10)]
        assert "refactoring" not in [r.id for r in generate_recommendations(ten)]

        eleven = ten + [_make_issue("m10")]
        recs = generate_recommendations(eleven)
        assert [r.id for r in recs] == ["testing", "refactoring", "documentation"]

    def test_sorted_by_priority(self):
        issues = [_make_issue("s", IssueType.SECURITY, Severity.CRITICAL)]
        issues += [_make_issue(f"m{i}") for i in range(12)]
        priorities = [r.priority for r in generate_recommendations(issues)]
        assert priorities == [10, 8, 7, 6, 4]
        assert priorities == sorted(priorities, reverse=True)
