"""Prompt construction and response normalization for AI-assisted analysis.

The LLM sees a bounded sample of the repository and answers with a JSON
document. Its output is untrusted: this module strips markdown wrappers,
locates the JSON object, validates each issue individually and maps the
survivors onto the same AnalysisIssue/Recommendation schema the rule-based
detectors produce.
"""

import json
import logging
import re

from pydantic import ValidationError

from codesentinel.analyzers.scorer import Scorer
from codesentinel.exceptions import MalformedAIResponse
from codesentinel.models.schemas import (
    AIAnalysisResponse,
    AIIssue,
    AnalysisIssue,
    AnalysisResult,
    Effort,
    IssueType,
    Recommendation,
    RecommendationType,
    RepoContext,
    RepoFile,
    RepositoryMetrics,
    Severity,
)

logger = logging.getLogger(__name__)

MAX_PROMPT_FILES = 15
MAX_FILE_CHARS = 2000
TRUNCATION_MARKER = "\n... (truncated)"

PROVENANCE_TAG = "ai-detected"

# File selection tiers, lower is more important. Tier 1 matches the file
# name; the rest match the full path with a leading slash.
PRIORITY_PATTERNS = [
    (re.compile(r"^(index|main|app|server|entry)\.(ts|tsx|js|jsx|mjs|py)$", re.IGNORECASE), 1, "name"),
    (re.compile(r"(package\.json|tsconfig|pyproject|\.env|config|settings)", re.IGNORECASE), 2, "path"),
    (re.compile(r"/(api|routes?|endpoints?)/", re.IGNORECASE), 3, "path"),
    (re.compile(r"/(components?|src|lib)/", re.IGNORECASE), 4, "path"),
    (re.compile(r"\.(ts|tsx|js|jsx|mjs|py|go|rb|java|rs|php)$", re.IGNORECASE), 5, "path"),
]
UNRANKED_PRIORITY = 999

# (bucket, response attribute, issue type)
AI_BUCKETS = [
    ("security", "security_issues", IssueType.SECURITY),
    ("performance", "performance_issues", IssueType.PERFORMANCE),
    ("quality", "quality_issues", IssueType.MAINTAINABILITY),
    ("architecture", "architecture_issues", IssueType.MAINTAINABILITY),
]

# Wire names of the buckets in the model's JSON
BUCKET_KEYS = {
    "security_issues": "securityIssues",
    "performance_issues": "performanceIssues",
    "quality_issues": "qualityIssues",
    "architecture_issues": "architectureIssues",
}

EFFORT_BY_SEVERITY = {
    Severity.CRITICAL: Effort.HIGH,
    Severity.HIGH: Effort.HIGH,
    Severity.MEDIUM: Effort.MEDIUM,
    Severity.LOW: Effort.LOW,
}

DEFAULT_IMPACT = "May reduce code quality, reliability or security if left unaddressed"
DEFAULT_FIX = "Review the flagged code and apply the appropriate correction"
DEFAULT_RECOMMENDATION_IMPACT = "Improve code quality and maintainability"

ANALYSIS_INSTRUCTIONS = """Analyze for:
1. SECURITY issues (hardcoded secrets, SQL injection risks, XSS vulnerabilities, insecure dependencies, authentication flaws, authorization issues)
2. PERFORMANCE issues (inefficient algorithms, memory leaks, N+1 queries, large bundle sizes, missing caching, blocking operations)
3. CODE QUALITY issues (code smells, duplication, complexity, lack of tests, poor naming, magic numbers, long functions)
4. ARCHITECTURE issues (tight coupling, missing error handling, poor separation of concerns, anti-patterns, technical debt)

Respond ONLY in valid JSON format (no markdown, no code blocks):
{
  "securityIssues": [{
    "severity": "critical|high|medium|low",
    "title": "Issue title",
    "description": "Detailed description",
    "file": "path/to/file.ts",
    "line": 45,
    "codeSnippet": "problematic code",
    "recommendation": "How to fix",
    "impact": "What could happen"
  }],
  "performanceIssues": [...],
  "qualityIssues": [...],
  "architectureIssues": [...],
  "overallAssessment": "Brief summary",
  "topRecommendations": ["rec1", "rec2", "rec3"]
}

Be specific with file paths and line numbers where possible.
Prioritize real issues over nitpicks.
Focus on actionable, high-impact findings."""


# === Prompt Construction ===


def _file_priority(file: RepoFile) -> int:
    for pattern, priority, target in PRIORITY_PATTERNS:
        subject = file.name if target == "name" else f"/{file.path}"
        if pattern.search(subject):
            return priority
    return UNRANKED_PRIORITY


def rank_files(files: list[RepoFile]) -> list[RepoFile]:
    """Sort file entries by analysis importance. The sort is stable."""
    return sorted((f for f in files if f.type == "file"), key=_file_priority)


def select_important_files(files: list[RepoFile], limit: int = MAX_PROMPT_FILES) -> list[RepoFile]:
    """Pick the most informative files with content, most important first.

    Order within a tier follows the snapshot order.
    """
    return [f for f in rank_files(files) if f.content][:limit]


def prepare_code_snippets(files: list[RepoFile], max_chars: int = MAX_FILE_CHARS) -> str:
    """Format the selected files as `=== path ===` blocks with truncated content."""
    blocks = []
    for file in select_important_files(files):
        content = file.content or ""
        if len(content) > max_chars:
            content = content[:max_chars] + TRUNCATION_MARKER
        blocks.append(f"=== {file.path} ===\n{content}\n")
    return "\n\n".join(blocks)


def build_analysis_prompt(code: str, context: RepoContext) -> str:
    """Build the analysis prompt for a repository sample."""
    stars = context.stars if context.stars is not None else "Unknown"
    return f"""You are a senior software engineer reviewing this codebase.

Repository: {context.name}
Language: {context.language or "Unknown"}
Stars: {stars}
Contributors: {context.contributors}
Lines of Code: {context.lines_of_code:,}
Files: {context.files_count}

Code samples to analyze:
{code}

{ANALYSIS_INSTRUCTIONS}"""


# === Response Parsing ===


def _first_balanced_object(text: str) -> str | None:
    """Return the first balanced {...} span, ignoring braces inside strings."""
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
    return None


def extract_json(text: str) -> dict:
    """Extract a JSON object from LLM response text.

    Args:
        text: Response text, possibly wrapped in a code fence or prose.

    Returns:
        Parsed JSON dict.

    Raises:
        MalformedAIResponse: If no JSON object can be parsed.
    """
    if not isinstance(text, str):
        raise MalformedAIResponse(f"AI response is not text: {type(text).__name__}")

    cleaned = text.strip()

    # Try to find a fenced block
    fence_match = re.search(r"```(?:json)?\s*\n?(.*?)\n?```", cleaned, re.DOTALL)
    if fence_match:
        cleaned = fence_match.group(1).strip()

    candidates = []
    if cleaned.startswith("{"):
        candidates.append(cleaned)
    span = _first_balanced_object(cleaned)
    if span is not None and span not in candidates:
        candidates.append(span)

    if not candidates:
        raise MalformedAIResponse("No JSON object found in AI response", preview=cleaned[:200])

    last_error: Exception | None = None
    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except (json.JSONDecodeError, RecursionError) as e:
            # Deeply nested input exhausts the decoder stack
            last_error = e
            continue
        if isinstance(data, dict):
            return data
        last_error = ValueError("top-level JSON value is not an object")

    raise MalformedAIResponse(
        f"Invalid AI response format: {last_error}", preview=cleaned[:200]
    )


def _validate_bucket(data: dict, attribute: str) -> list[AIIssue]:
    raw = data.get(BUCKET_KEYS[attribute])
    if not isinstance(raw, list):
        return []

    issues = []
    for index, entry in enumerate(raw):
        if not isinstance(entry, dict):
            logger.debug(f"Dropping non-object entry {index} in {attribute}")
            continue
        try:
            issues.append(AIIssue.model_validate(entry))
        except ValidationError as e:
            logger.debug(f"Dropping invalid entry {index} in {attribute}: {e.error_count()} errors")
    return issues


def parse_ai_response(text: str) -> AIAnalysisResponse:
    """Parse raw LLM text into a validated AIAnalysisResponse.

    Missing or malformed buckets become empty lists and individual entries
    that fail validation are dropped.

    Raises:
        MalformedAIResponse: If the text holds no parseable JSON object.
    """
    data = extract_json(text)

    assessment = data.get("overallAssessment")
    if not isinstance(assessment, str) or not assessment.strip():
        assessment = "Analysis completed"

    raw_recommendations = data.get("topRecommendations")
    if not isinstance(raw_recommendations, list):
        raw_recommendations = []

    response = AIAnalysisResponse(
        security_issues=_validate_bucket(data, "security_issues"),
        performance_issues=_validate_bucket(data, "performance_issues"),
        quality_issues=_validate_bucket(data, "quality_issues"),
        architecture_issues=_validate_bucket(data, "architecture_issues"),
        overall_assessment=assessment,
        top_recommendations=[
            rec.strip() for rec in raw_recommendations if isinstance(rec, str) and rec.strip()
        ],
    )

    logger.info(
        "AI response parsed: "
        f"{len(response.security_issues)} security, "
        f"{len(response.performance_issues)} performance, "
        f"{len(response.quality_issues)} quality, "
        f"{len(response.architecture_issues)} architecture issues"
    )
    return response


# === Normalization ===


def _recommendation_type(index: int) -> RecommendationType:
    if index < 2:
        return RecommendationType.IMMEDIATE
    if index < 4:
        return RecommendationType.SHORT_TERM
    return RecommendationType.LONG_TERM


def normalize_ai_response(
    response: AIAnalysisResponse,
    metrics: RepositoryMetrics,
    scorer: Scorer | None = None,
) -> AnalysisResult:
    """Convert a validated AI response into an AnalysisResult.

    Args:
        response: Parsed LLM output.
        metrics: Metrics computed from the snapshot.
        scorer: Scorer to use. Defaults to a new Scorer.

    Returns:
        AnalysisResult with is_ai_powered set.
    """
    scorer = scorer or Scorer()
    issues: list[AnalysisIssue] = []

    for bucket, attribute, issue_type in AI_BUCKETS:
        for index, ai_issue in enumerate(getattr(response, attribute)):
            title = ai_issue.title.strip() or "Untitled issue"
            issues.append(
                AnalysisIssue(
                    id=f"ai-{bucket}-{index}",
                    type=issue_type,
                    severity=ai_issue.severity,
                    title=title,
                    description=ai_issue.description.strip() or title,
                    file=ai_issue.file or None,
                    line=ai_issue.line,
                    code=ai_issue.code_snippet or None,
                    impact=ai_issue.impact.strip() or DEFAULT_IMPACT,
                    fix=ai_issue.recommendation.strip() or DEFAULT_FIX,
                    effort=EFFORT_BY_SEVERITY[ai_issue.severity],
                    tags=[PROVENANCE_TAG, bucket],
                )
            )

    recommendations = [
        Recommendation(
            id=f"ai-rec-{index}",
            type=_recommendation_type(index),
            title=text,
            description=text,
            priority=max(0, 10 - index),
            impact=DEFAULT_RECOMMENDATION_IMPACT,
            effort="medium",
        )
        for index, text in enumerate(response.top_recommendations)
    ]
    recommendations.sort(key=lambda r: r.priority, reverse=True)

    scores = scorer.calculate_scores(issues, metrics)

    return AnalysisResult(
        overall_score=scores.overall,
        tech_debt_score=scores.tech_debt,
        security_score=scores.security,
        performance_score=scores.performance,
        maintainability_score=scores.maintainability,
        issues=issues,
        recommendations=recommendations,
        metrics=metrics,
        is_ai_powered=True,
    )
