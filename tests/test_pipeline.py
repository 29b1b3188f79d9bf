"""Tests for the analysis pipeline and its AI fallback behavior."""

import asyncio
import json

import pytest
from pydantic import ValidationError

from codesentinel.analyzers.ai import PROVENANCE_TAG
from codesentinel.analyzers.llm import LLMAdapter
from codesentinel.analyzers.metrics import compute_metrics
from codesentinel.analyzers.pipeline import AnalysisPipeline
from codesentinel.exceptions import AIAdapterFailure, InvalidSnapshotInput, MalformedAIResponse
from codesentinel.models.schemas import (
    IssueType,
    RepoCommit,
    RepoFile,
    RepositorySnapshot,
    RepoStats,
    Severity,
)

VALID_AI_TEXT = json.dumps(
    {
        "securityIssues": [{"severity": "high", "title": "Open redirect", "file": "src/auth.js"}],
        "qualityIssues": [{"severity": "low", "title": "Long function"}],
        "overallAssessment": "Mostly fine",
        "topRecommendations": ["Validate redirect targets"],
    }
)


class FakeLLM(LLMAdapter):
    """Scripted adapter that records prompts."""

    name = "fake"

    def __init__(self, text=None, error=None, available=True, delay=0.0):
        self.text = text
        self.error = error
        self.available = available
        self.delay = delay
        self.prompts = []

    async def generate(self, prompt):
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.text

    async def is_available(self):
        if isinstance(self.available, Exception):
            raise self.available
        return self.available


def _make_snapshot():
    files = [
        RepoFile(
            name="package.json",
            path="package.json",
            size=80,
            content=json.dumps({"dependencies": {"request": "2.88.0"}, "scripts": {"test": "jest"}}),
        ),
        RepoFile(name="config.js", path="src/config.js", size=40, content="module.exports = { apiKey: 'abc' };"),
        RepoFile(name="index.js", path="src/index.js", size=30, content="// TODO: wire routes\n"),
        RepoFile(name="src", path="src", type="dir"),
    ]
    commits = [
        RepoCommit(sha="a1", message="Merge branch 'feature'"),
        RepoCommit(sha="a2", message="Fix login"),
    ]
    stats = RepoStats(
        lines_of_code=4200,
        files_count=3,
        contributors=4,
        commit_frequency=3,
        languages={"JavaScript": 210000},
    )
    return RepositorySnapshot(name="acme/shop", stars=12, files=files, commits=commits, stats=stats)


def _rule_based_record(snapshot):
    pipeline = AnalysisPipeline()
    return pipeline.analyze_rule_based(snapshot, compute_metrics(snapshot.stats)).to_record()


class TestRuleBasedAnalysis:
    def test_deterministic(self):
        snapshot = _make_snapshot()
        first = asyncio.run(AnalysisPipeline().analyze(snapshot))
        second = asyncio.run(AnalysisPipeline().analyze(snapshot))
        assert first.to_record() == second.to_record()
        assert first.is_ai_powered is False

    def test_issues_and_scores(self):
        result = asyncio.run(AnalysisPipeline().analyze(_make_snapshot()))
        ids = [i.id for i in result.issues]
        assert ids == [
            "dep-request",
            "missing-scripts",
            "secret-src/config.js",
            "todo-src/index.js",
            "low-commit-frequency",
            "large-commits",
        ]
        # critical secret (20) + medium dependency (5)
        assert result.security_score == 100 - 20 - 5
        assert 0 <= result.overall_score <= 100
        assert result.tech_debt_score == 100 - result.maintainability_score

    def test_recommendations_sorted(self):
        result = asyncio.run(AnalysisPipeline().analyze(_make_snapshot()))
        priorities = [r.priority for r in result.recommendations]
        assert priorities == sorted(priorities, reverse=True)
        assert [r.id for r in result.recommendations][:2] == ["immediate-security", "security-audit"]

    def test_empty_repository(self, empty_snapshot):
        result = asyncio.run(AnalysisPipeline().analyze(empty_snapshot))
        assert result.overall_score == 100
        rec_ids = [r.id for r in result.recommendations]
        assert "testing" in rec_ids
        assert "documentation" in rec_ids

    def test_large_repository_findings(self, large_repo_snapshot):
        result = asyncio.run(AnalysisPipeline().analyze(large_repo_snapshot))
        found = {(i.id, i.type, i.severity) for i in result.issues}
        assert ("large-codebase", IssueType.MAINTAINABILITY, Severity.MEDIUM) in found
        assert ("many-files", IssueType.MAINTAINABILITY, Severity.LOW) in found
        assert ("few-contributors", IssueType.RELIABILITY, Severity.MEDIUM) in found
        assert ("low-commit-frequency", IssueType.MAINTAINABILITY, Severity.LOW) in found
        assert len(result.issues) >= 4
        assert result.maintainability_score < 100

    def test_missing_stats_raise(self):
        snapshot = RepositorySnapshot(name="broken", files=[], commits=[])
        with pytest.raises(InvalidSnapshotInput):
            asyncio.run(AnalysisPipeline().analyze(snapshot))

    def test_missing_stats_raise_before_ai(self):
        llm = FakeLLM(text=VALID_AI_TEXT)
        snapshot = RepositorySnapshot(name="broken")
        with pytest.raises(InvalidSnapshotInput):
            asyncio.run(AnalysisPipeline(llm=llm).analyze(snapshot))
        assert llm.prompts == []

    def test_result_record_shape(self):
        record = asyncio.run(AnalysisPipeline().analyze(_make_snapshot())).to_record()
        assert record["isAIPowered"] is False
        assert "overallScore" in record
        assert "techDebtScore" in record
        assert record["metrics"]["testCoverage"] == 65
        assert "file" not in record["issues"][-1]  # large-commits has no file

    def test_result_is_immutable(self):
        result = asyncio.run(AnalysisPipeline().analyze(_make_snapshot()))
        assert isinstance(result.issues, tuple)
        assert isinstance(result.recommendations, tuple)
        with pytest.raises(AttributeError):
            result.issues.append(result.issues[0])
        with pytest.raises(ValidationError):
            result.issues[0].severity = Severity.LOW
        with pytest.raises(ValidationError):
            result.recommendations[0].priority = 0


class TestAIAnalysis:
    def test_ai_success(self):
        llm = FakeLLM(text=VALID_AI_TEXT)
        result = asyncio.run(AnalysisPipeline(llm=llm).analyze(_make_snapshot()))
        assert result.is_ai_powered is True
        assert [i.id for i in result.issues] == ["ai-security-0", "ai-quality-0"]
        assert all(PROVENANCE_TAG in i.tags for i in result.issues)
        assert result.security_score == 90
        assert [r.title for r in result.recommendations] == ["Validate redirect targets"]

    def test_prompt_contains_snapshot(self):
        llm = FakeLLM(text=VALID_AI_TEXT)
        asyncio.run(AnalysisPipeline(llm=llm).analyze(_make_snapshot()))
        prompt = llm.prompts[0]
        assert "Repository: acme/shop" in prompt
        assert "Language: JavaScript" in prompt
        assert "Stars: 12" in prompt
        assert "=== src/index.js ===" in prompt

    def test_ai_disabled(self):
        llm = FakeLLM(text=VALID_AI_TEXT)
        snapshot = _make_snapshot()
        result = asyncio.run(AnalysisPipeline(llm=llm, ai_enabled=False).analyze(snapshot))
        assert result.is_ai_powered is False
        assert llm.prompts == []
        assert result.to_record() == _rule_based_record(snapshot)


class TestFallback:
    @pytest.mark.parametrize(
        "llm",
        [
            FakeLLM(error=AIAdapterFailure("provider down")),
            FakeLLM(error=RuntimeError("unexpected adapter bug")),
            FakeLLM(text="I'm sorry, I cannot analyze this repository."),
            FakeLLM(text='{"securityIssues": [{"severity": "high"'),
            FakeLLM(text=VALID_AI_TEXT, available=False),
            FakeLLM(text=VALID_AI_TEXT, available=ConnectionError("availability check failed")),
            FakeLLM(text='{"securityIssues": ' + "[" * 100000 + "]" * 100000 + "}"),
            FakeLLM(text=None),
        ],
        ids=[
            "adapter-failure",
            "adapter-bug",
            "prose",
            "truncated-json",
            "unavailable",
            "availability-error",
            "deeply-nested-json",
            "non-text-response",
        ],
    )
    def test_failure_falls_back_to_rule_based(self, llm):
        snapshot = _make_snapshot()
        result = asyncio.run(AnalysisPipeline(llm=llm).analyze(snapshot))
        assert result.is_ai_powered is False
        assert result.to_record() == _rule_based_record(snapshot)
        assert not any(PROVENANCE_TAG in i.tags for i in result.issues)

    def test_timeout_falls_back(self):
        llm = FakeLLM(text=VALID_AI_TEXT, delay=1.0)
        snapshot = _make_snapshot()
        result = asyncio.run(AnalysisPipeline(llm=llm, llm_timeout=0.01).analyze(snapshot))
        assert result.is_ai_powered is False
        assert result.to_record() == _rule_based_record(snapshot)

    def test_attempt_reports_error(self):
        llm = FakeLLM(error=AIAdapterFailure("boom"))
        pipeline = AnalysisPipeline(llm=llm)
        snapshot = _make_snapshot()
        attempt = asyncio.run(pipeline._attempt_ai(snapshot, compute_metrics(snapshot.stats)))
        assert not attempt.succeeded
        assert isinstance(attempt.error, AIAdapterFailure)
        assert attempt.result is None

    def test_timeout_attempt_reports_adapter_failure(self):
        llm = FakeLLM(text=VALID_AI_TEXT, delay=1.0)
        pipeline = AnalysisPipeline(llm=llm, llm_timeout=0.01)
        snapshot = _make_snapshot()
        attempt = asyncio.run(pipeline._attempt_ai(snapshot, compute_metrics(snapshot.stats)))
        assert isinstance(attempt.error, AIAdapterFailure)

    def test_normalization_error_is_captured(self, monkeypatch):
        def broken_normalize(response, metrics, scorer=None):
            raise KeyError("severity")

        monkeypatch.setattr("codesentinel.analyzers.pipeline.normalize_ai_response", broken_normalize)
        snapshot = _make_snapshot()
        pipeline = AnalysisPipeline(llm=FakeLLM(text=VALID_AI_TEXT))
        attempt = asyncio.run(pipeline._attempt_ai(snapshot, compute_metrics(snapshot.stats)))
        assert isinstance(attempt.error, MalformedAIResponse)

        result = asyncio.run(pipeline.analyze(snapshot))
        assert result.is_ai_powered is False

    def test_cancellation_propagates(self):
        llm = FakeLLM(error=asyncio.CancelledError())
        with pytest.raises(asyncio.CancelledError):
            asyncio.run(AnalysisPipeline(llm=llm).analyze(_make_snapshot()))
