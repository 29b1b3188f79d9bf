"""Recommendation generation from rule-based findings."""

from codesentinel.models.schemas import (
    AnalysisIssue,
    IssueType,
    Recommendation,
    RecommendationType,
    Severity,
)

# More maintainability issues than this call for a refactoring plan
REFACTORING_ISSUE_THRESHOLD = 10


def generate_recommendations(issues: list[AnalysisIssue]) -> list[Recommendation]:
    """Derive remediation recommendations from a list of issues.

    Testing and documentation recommendations are always present. The
    result is sorted by descending priority; ties keep insertion order.
    """
    recommendations: list[Recommendation] = []

    critical = [i for i in issues if i.severity == Severity.CRITICAL]
    security = [i for i in issues if i.type == IssueType.SECURITY]
    maintainability = [i for i in issues if i.type == IssueType.MAINTAINABILITY]

    if critical:
        recommendations.append(
            Recommendation(
                id="immediate-security",
                type=RecommendationType.IMMEDIATE,
                title="Address critical security issues immediately",
                description=f"Fix {len(critical)} critical issues before the next deployment",
                priority=10,
                impact="Prevent security breaches and data loss",
                effort="high",
            )
        )

    if security:
        recommendations.append(
            Recommendation(
                id="security-audit",
                type=RecommendationType.SHORT_TERM,
                title="Implement security audit process",
                description="Set up automated security scanning and regular security reviews",
                priority=8,
                impact="Reduce security vulnerabilities over time",
                effort="medium",
            )
        )

    if len(maintainability) > REFACTORING_ISSUE_THRESHOLD:
        recommendations.append(
            Recommendation(
                id="refactoring",
                type=RecommendationType.SHORT_TERM,
                title="Plan comprehensive refactoring",
                description="Address technical debt through systematic code improvements",
                priority=6,
                impact="Improve code quality and developer productivity",
                effort="high",
            )
        )

    recommendations.append(
        Recommendation(
            id="testing",
            type=RecommendationType.SHORT_TERM,
            title="Improve test coverage",
            description="Add comprehensive unit and integration tests",
            priority=7,
            impact="Reduce bugs and improve code reliability",
            effort="high",
        )
    )

    recommendations.append(
        Recommendation(
            id="documentation",
            type=RecommendationType.LONG_TERM,
            title="Enhance documentation",
            description="Create comprehensive README, API docs, and code documentation",
            priority=4,
            impact="Improve onboarding and knowledge sharing",
            effort="medium",
        )
    )

    # sorted() is stable
    return sorted(recommendations, key=lambda r: r.priority, reverse=True)
