"""Score calculator for repository health."""

from codesentinel.analyzers.metrics import round_half_up
from codesentinel.models.schemas import (
    AnalysisIssue,
    CategoryScores,
    IssueType,
    RepositoryMetrics,
    Severity,
)


class Scorer:
    """Calculates category and overall scores from a list of issues.

    Scoring weights (total 100%):
    - Security: 40%
    - Performance: 30%
    - Maintainability: 30%

    Each category starts at 100 and loses a severity-graded penalty per
    issue of that category. Rule-based and AI-sourced issues share the same
    penalty table. Reliability issues are reported but not scored.
    """

    BASE_SCORE = 100.0

    # Score weights
    WEIGHTS = {
        "security": 40,
        "performance": 30,
        "maintainability": 30,
    }

    # Per-issue penalties by category and severity
    SEVERITY_PENALTIES = {
        IssueType.SECURITY: {
            Severity.CRITICAL: 20,
            Severity.HIGH: 10,
            Severity.MEDIUM: 5,
            Severity.LOW: 2,
        },
        IssueType.PERFORMANCE: {
            Severity.CRITICAL: 15,
            Severity.HIGH: 8,
            Severity.MEDIUM: 4,
            Severity.LOW: 2,
        },
        IssueType.MAINTAINABILITY: {
            Severity.CRITICAL: 12,
            Severity.HIGH: 6,
            Severity.MEDIUM: 3,
            Severity.LOW: 1,
        },
    }

    # Maintainability loses this many points per complexity point
    COMPLEXITY_PENALTY_FACTOR = 0.1

    def calculate_scores(
        self,
        issues: list[AnalysisIssue],
        metrics: RepositoryMetrics,
    ) -> CategoryScores:
        """Calculate all category scores and the weighted overall score.

        Args:
            issues: Issues from either analysis strategy.
            metrics: Repository metrics (complexity feeds maintainability).

        Returns:
            CategoryScores with integers in [0, 100].
        """
        security = self._category_score(IssueType.SECURITY, issues)
        performance = self._category_score(IssueType.PERFORMANCE, issues)
        maintainability = self._category_score(
            IssueType.MAINTAINABILITY,
            issues,
            extra_penalty=metrics.complexity * self.COMPLEXITY_PENALTY_FACTOR,
        )

        # Combine unrounded values; round only on return
        overall = (
            security * self.WEIGHTS["security"]
            + performance * self.WEIGHTS["performance"]
            + maintainability * self.WEIGHTS["maintainability"]
        ) / 100

        maintainability_rounded = round_half_up(maintainability)

        return CategoryScores(
            overall=round_half_up(overall),
            security=round_half_up(security),
            performance=round_half_up(performance),
            maintainability=maintainability_rounded,
            tech_debt=100 - maintainability_rounded,
        )

    def _category_score(
        self,
        category: IssueType,
        issues: list[AnalysisIssue],
        extra_penalty: float = 0.0,
    ) -> float:
        """Score one category, clamped at zero."""
        penalties = self.SEVERITY_PENALTIES[category]
        penalty = sum(penalties[issue.severity] for issue in issues if issue.type == category)
        return max(0.0, self.BASE_SCORE - penalty - extra_penalty)

    @staticmethod
    def score_to_grade(score: float) -> str:
        """Convert numeric score to letter grade."""
        if score >= 90:
            return "A"
        elif score >= 80:
            return "B"
        elif score >= 70:
            return "C"
        elif score >= 60:
            return "D"
        else:
            return "F"
