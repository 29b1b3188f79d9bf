"""End-to-end analysis pipeline for repository snapshots."""

import asyncio
import logging
from dataclasses import dataclass

from codesentinel.analyzers.ai import (
    build_analysis_prompt,
    normalize_ai_response,
    parse_ai_response,
    prepare_code_snippets,
)
from codesentinel.analyzers.detectors import run_detectors
from codesentinel.analyzers.llm import LLMAdapter
from codesentinel.analyzers.metrics import compute_metrics
from codesentinel.analyzers.recommendations import generate_recommendations
from codesentinel.analyzers.scorer import Scorer
from codesentinel.exceptions import AIAdapterFailure, MalformedAIResponse
from codesentinel.models.schemas import (
    AnalysisResult,
    RepoContext,
    RepositoryMetrics,
    RepositorySnapshot,
)

logger = logging.getLogger(__name__)

DEFAULT_LLM_TIMEOUT = 120.0


@dataclass
class AIAttempt:
    """Outcome of one AI analysis attempt. Exactly one field is set."""

    result: AnalysisResult | None = None
    error: Exception | None = None

    @property
    def succeeded(self) -> bool:
        return self.result is not None


class AnalysisPipeline:
    """Orchestrates analysis of a single repository snapshot.

    Pipeline stages:
    1. Compute metrics from repository stats
    2. Run AI analysis (if an LLM adapter is enabled and available)
    3. Fall back to rule-based detectors when AI is unavailable or fails
    4. Calculate scores and recommendations

    A result always comes entirely from one strategy; AI and rule-based
    findings are never merged.
    """

    def __init__(
        self,
        llm: LLMAdapter | None = None,
        ai_enabled: bool = True,
        llm_timeout: float = DEFAULT_LLM_TIMEOUT,
    ) -> None:
        """Initialize the pipeline.

        Args:
            llm: LLM adapter for AI analysis. Without one, only rule-based
                analysis runs.
            ai_enabled: Set False to skip AI analysis entirely.
            llm_timeout: Seconds to wait for the LLM before giving up.
        """
        self.llm = llm
        self.ai_enabled = ai_enabled
        self.llm_timeout = llm_timeout
        self.scorer = Scorer()

    async def analyze(self, snapshot: RepositorySnapshot) -> AnalysisResult:
        """Analyze a repository snapshot.

        Args:
            snapshot: Repository files, commits and stats.

        Returns:
            Complete AnalysisResult.

        Raises:
            InvalidSnapshotInput: If the snapshot has no usable stats.
        """
        # Stage 1: Metrics (invalid input is fatal)
        metrics = compute_metrics(snapshot.stats)

        # Stage 2: AI analysis
        if await self._ai_available():
            attempt = await self._attempt_ai(snapshot, metrics)
            if attempt.succeeded:
                logger.info(
                    f"AI analysis of {snapshot.name or 'repository'} completed "
                    f"with {len(attempt.result.issues)} issues"
                )
                return attempt.result
            logger.warning(
                f"AI analysis failed, falling back to rule-based analysis: {attempt.error}"
            )

        # Stage 3: Rule-based fallback
        return self.analyze_rule_based(snapshot, metrics)

    async def _ai_available(self) -> bool:
        """Check whether AI analysis should be attempted."""
        if not self.ai_enabled or self.llm is None:
            return False
        try:
            available = await self.llm.is_available()
        except Exception as e:
            logger.warning(f"LLM availability check failed: {e}")
            return False
        if not available:
            logger.info(f"LLM provider '{self.llm.name}' is not available")
        return available

    async def _attempt_ai(
        self,
        snapshot: RepositorySnapshot,
        metrics: RepositoryMetrics,
    ) -> AIAttempt:
        """Run the AI strategy, capturing any failure in the returned value."""
        prompt = build_analysis_prompt(
            prepare_code_snippets(snapshot.files),
            self._build_context(snapshot),
        )
        logger.debug(f"Sending {len(prompt)} char prompt to {self.llm.name}")

        try:
            text = await asyncio.wait_for(self.llm.generate(prompt), timeout=self.llm_timeout)
        except asyncio.TimeoutError:
            return AIAttempt(
                error=AIAdapterFailure(f"LLM did not respond within {self.llm_timeout}s")
            )
        except AIAdapterFailure as e:
            return AIAttempt(error=e)
        except Exception as e:
            # Third-party adapters may raise anything; CancelledError is not an Exception
            return AIAttempt(error=AIAdapterFailure(f"LLM adapter error: {e}"))

        try:
            response = parse_ai_response(text)
            result = normalize_ai_response(response, metrics, self.scorer)
        except MalformedAIResponse as e:
            return AIAttempt(error=e)
        except Exception as e:
            return AIAttempt(error=MalformedAIResponse(f"AI result could not be normalized: {e}"))

        return AIAttempt(result=result)

    def analyze_rule_based(
        self,
        snapshot: RepositorySnapshot,
        metrics: RepositoryMetrics,
    ) -> AnalysisResult:
        """Run deterministic rule-based analysis.

        Args:
            snapshot: Repository snapshot.
            metrics: Metrics computed from the snapshot's stats.

        Returns:
            AnalysisResult with is_ai_powered False.
        """
        issues = run_detectors(snapshot)
        recommendations = generate_recommendations(issues)
        scores = self.scorer.calculate_scores(issues, metrics)

        logger.info(
            f"Rule-based analysis found {len(issues)} issues, "
            f"overall score {scores.overall} ({Scorer.score_to_grade(scores.overall)})"
        )

        return AnalysisResult(
            overall_score=scores.overall,
            tech_debt_score=scores.tech_debt,
            security_score=scores.security,
            performance_score=scores.performance,
            maintainability_score=scores.maintainability,
            issues=issues,
            recommendations=recommendations,
            metrics=metrics,
            is_ai_powered=False,
        )

    def _build_context(self, snapshot: RepositorySnapshot) -> RepoContext:
        """Build the repository facts shown to the LLM."""
        stats = snapshot.stats
        language = None
        if stats and stats.languages:
            language = max(stats.languages.items(), key=lambda item: item[1])[0]

        return RepoContext(
            name=snapshot.name or "repository",
            language=language,
            stars=snapshot.stars,
            contributors=stats.contributors if stats else 0,
            lines_of_code=stats.lines_of_code if stats else 0,
            files_count=stats.files_count if stats else 0,
        )
