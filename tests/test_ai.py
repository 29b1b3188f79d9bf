"""Tests for prompt construction and AI response normalization."""

import json

import pytest

from codesentinel.analyzers.ai import (
    PROVENANCE_TAG,
    build_analysis_prompt,
    extract_json,
    normalize_ai_response,
    parse_ai_response,
    prepare_code_snippets,
    select_important_files,
)
from codesentinel.exceptions import MalformedAIResponse
from codesentinel.models.schemas import (
    AIAnalysisResponse,
    AIIssue,
    Effort,
    FileType,
    IssueType,
    RecommendationType,
    RepoContext,
    RepoFile,
    RepositoryMetrics,
    Severity,
)


def _make_file(path, content="x = 1\n", file_type=FileType.FILE):
    return RepoFile(name=path.rsplit("/", 1)[-1], path=path, type=file_type, content=content)


def _make_metrics(complexity=0):
    return RepositoryMetrics(
        lines_of_code=1000,
        files_count=10,
        complexity=complexity,
        test_coverage=65,
        duplication=1,
        commit_frequency=5,
        contributor_count=3,
    )


SAMPLE_RESPONSE = {
    "securityIssues": [
        {
            "severity": "critical",
            "title": "SQL injection",
            "description": "User input concatenated into query",
            "file": "src/db.js",
            "line": 45,
            "codeSnippet": "db.query('SELECT * FROM users WHERE id=' + id)",
            "recommendation": "Use parameterized queries",
            "impact": "Database compromise",
        }
    ],
    "performanceIssues": [],
    "qualityIssues": [
        {"severity": "low", "title": "Magic numbers", "description": "", "recommendation": "", "impact": ""}
    ],
    "architectureIssues": [
        {"severity": "medium", "title": "Tight coupling", "description": "Services import each other"}
    ],
    "overallAssessment": "Reasonable codebase with one serious flaw",
    "topRecommendations": ["Fix SQL injection", "Add tests", "Extract constants"],
}


class TestSelectImportantFiles:
    def test_priority_tiers(self):
        files = [
            _make_file("README.md"),
            _make_file("scripts/run.py"),
            _make_file("src/utils/helper.ts"),
            _make_file("api/users.ts"),
            _make_file("package.json"),
            _make_file("index.ts"),
        ]
        selected = [f.path for f in select_important_files(files)]
        assert selected == [
            "index.ts",
            "package.json",
            "api/users.ts",
            "src/utils/helper.ts",
            "scripts/run.py",
            "README.md",
        ]

    def test_order_within_tier_is_stable(self):
        files = [_make_file(f"lib/mod{i}.py") for i in range(5)]
        assert select_important_files(files) == files

    def test_skips_directories_and_empty_files(self):
        files = [
            _make_file("src", content=None, file_type=FileType.DIR),
            _make_file("src/empty.ts", content=""),
            _make_file("src/app.ts"),
        ]
        assert [f.path for f in select_important_files(files)] == ["src/app.ts"]

    def test_capped_at_fifteen(self):
        files = [_make_file(f"src/mod{i}.ts") for i in range(40)]
        assert len(select_important_files(files)) == 15


class TestPrepareCodeSnippets:
    def test_format(self):
        snippets = prepare_code_snippets([_make_file("main.py", "print(1)"), _make_file("lib/a.py", "a = 1")])
        assert snippets == "=== main.py ===\nprint(1)\n\n\n=== lib/a.py ===\na = 1\n"

    def test_truncation(self):
        snippets = prepare_code_snippets([_make_file("big.py", "a" * 2500)])
        assert snippets == "=== big.py ===\n" + "a" * 2000 + "\n... (truncated)\n"

    def test_no_files(self):
        assert prepare_code_snippets([]) == ""


class TestBuildAnalysisPrompt:
    def test_includes_context_and_code(self):
        context = RepoContext(
            name="acme/widget",
            language="TypeScript",
            stars=1200,
            contributors=4,
            lines_of_code=12345,
            files_count=87,
        )
        prompt = build_analysis_prompt("=== a.ts ===\nconst a = 1;\n", context)
        assert "Repository: acme/widget" in prompt
        assert "Language: TypeScript" in prompt
        assert "Stars: 1200" in prompt
        assert "Lines of Code: 12,345" in prompt
        assert "Files: 87" in prompt
        assert "const a = 1;" in prompt
        assert '"securityIssues"' in prompt

    def test_unknown_stars_and_language(self):
        prompt = build_analysis_prompt("", RepoContext(name="r"))
        assert "Stars: Unknown" in prompt
        assert "Language: Unknown" in prompt


class TestExtractJson:
    def test_plain_json(self):
        assert extract_json('{"a": 1}') == {"a": 1}

    def test_fenced_json(self):
        assert extract_json('```json\n{"a": 1}\n```') == {"a": 1}

    def test_fence_without_language(self):
        assert extract_json('Here:\n```\n{"a": [1, 2]}\n```\nDone.') == {"a": [1, 2]}

    def test_prose_around_object(self):
        text = 'Sure! Here is my analysis: {"x": {"y": 1}} Let me know {if} you need more.'
        assert extract_json(text) == {"x": {"y": 1}}

    def test_braces_inside_strings(self):
        text = 'Result: {"title": "Unclosed } brace", "note": "escaped \\" quote {"} trailing'
        assert extract_json(text) == {"title": "Unclosed } brace", "note": 'escaped " quote {'}

    def test_trailing_text_after_object(self):
        assert extract_json('{"a": 1}\nThanks!') == {"a": 1}

    def test_no_object(self):
        with pytest.raises(MalformedAIResponse):
            extract_json("I'm unable to analyze this repository.")

    def test_top_level_array(self):
        with pytest.raises(MalformedAIResponse):
            extract_json("[1, 2, 3]")

    def test_unbalanced_object(self):
        with pytest.raises(MalformedAIResponse):
            extract_json('{"a": 1')

    def test_invalid_json_in_braces(self):
        with pytest.raises(MalformedAIResponse):
            extract_json("{not: valid}")

    def test_deeply_nested_json(self):
        text = '{"securityIssues": ' + "[" * 100000 + "]" * 100000 + "}"
        with pytest.raises(MalformedAIResponse):
            extract_json(text)

    def test_non_text_input(self):
        with pytest.raises(MalformedAIResponse, match="not text"):
            extract_json(None)


class TestParseAIResponse:
    def test_full_response(self):
        response = parse_ai_response(json.dumps(SAMPLE_RESPONSE))
        assert len(response.security_issues) == 1
        assert response.security_issues[0].code_snippet.startswith("db.query")
        assert response.security_issues[0].line == 45
        assert len(response.quality_issues) == 1
        assert len(response.architecture_issues) == 1
        assert response.overall_assessment == "Reasonable codebase with one serious flaw"
        assert response.top_recommendations == ["Fix SQL injection", "Add tests", "Extract constants"]

    def test_missing_buckets_default_to_empty(self):
        response = parse_ai_response('{"securityIssues": [{"severity": "high", "title": "x"}]}')
        assert len(response.security_issues) == 1
        assert response.performance_issues == []
        assert response.quality_issues == []
        assert response.architecture_issues == []
        assert response.overall_assessment == "Analysis completed"
        assert response.top_recommendations == []

    def test_non_list_bucket_is_empty(self):
        response = parse_ai_response('{"qualityIssues": "none found"}')
        assert response.quality_issues == []

    def test_invalid_entries_are_dropped(self):
        payload = {
            "securityIssues": [
                {"severity": "catastrophic", "title": "bad severity"},
                {"title": "missing severity"},
                "not an object",
                {"severity": "HIGH", "title": "kept"},
            ]
        }
        response = parse_ai_response(json.dumps(payload))
        assert [i.title for i in response.security_issues] == ["kept"]
        assert response.security_issues[0].severity == Severity.HIGH

    def test_line_coercion(self):
        payload = {
            "qualityIssues": [
                {"severity": "low", "title": "a", "line": "12"},
                {"severity": "low", "title": "b", "line": "n/a"},
                {"severity": "low", "title": "c", "line": "40-50"},
            ]
        }
        lines = [i.line for i in parse_ai_response(json.dumps(payload)).quality_issues]
        assert lines == [12, None, None]

    def test_recommendations_filtered(self):
        payload = {"topRecommendations": ["Add tests", "", "   ", 42, None, " Pin dependencies "]}
        response = parse_ai_response(json.dumps(payload))
        assert response.top_recommendations == ["Add tests", "Pin dependencies"]

    def test_blank_assessment_uses_default(self):
        assert parse_ai_response('{"overallAssessment": "  "}').overall_assessment == "Analysis completed"

    def test_garbage_raises(self):
        with pytest.raises(MalformedAIResponse):
            parse_ai_response("Sorry, I can't help with that.")


class TestNormalizeAIResponse:
    def test_issue_mapping(self):
        result = normalize_ai_response(parse_ai_response(json.dumps(SAMPLE_RESPONSE)), _make_metrics())
        ids = [i.id for i in result.issues]
        assert ids == ["ai-security-0", "ai-quality-0", "ai-architecture-0"]

        security, quality, architecture = result.issues
        assert security.type == IssueType.SECURITY
        assert security.effort == Effort.HIGH
        assert security.file == "src/db.js"
        assert security.line == 45
        assert security.fix == "Use parameterized queries"
        assert security.tags == (PROVENANCE_TAG, "security")

        assert quality.type == IssueType.MAINTAINABILITY
        assert quality.effort == Effort.LOW
        assert quality.description == "Magic numbers"
        assert quality.impact
        assert quality.fix

        assert architecture.type == IssueType.MAINTAINABILITY
        assert architecture.effort == Effort.MEDIUM
        assert architecture.tags == (PROVENANCE_TAG, "architecture")

    def test_every_issue_carries_provenance(self):
        result = normalize_ai_response(parse_ai_response(json.dumps(SAMPLE_RESPONSE)), _make_metrics())
        assert all(PROVENANCE_TAG in issue.tags for issue in result.issues)
        assert result.is_ai_powered is True

    def test_scores_use_shared_penalties(self):
        result = normalize_ai_response(parse_ai_response(json.dumps(SAMPLE_RESPONSE)), _make_metrics())
        assert result.security_score == 80
        assert result.performance_score == 100
        # low (1) + medium (3)
        assert result.maintainability_score == 96
        assert result.tech_debt_score == 4

    def test_recommendations(self):
        result = normalize_ai_response(parse_ai_response(json.dumps(SAMPLE_RESPONSE)), _make_metrics())
        recs = result.recommendations
        assert [r.priority for r in recs] == [10, 9, 8]
        assert [r.title for r in recs] == ["Fix SQL injection", "Add tests", "Extract constants"]
        assert recs[0].type == RecommendationType.IMMEDIATE
        assert recs[2].type == RecommendationType.SHORT_TERM

    def test_priority_floor(self):
        response = AIAnalysisResponse(top_recommendations=[f"rec {i}" for i in range(12)])
        priorities = [r.priority for r in normalize_ai_response(response, _make_metrics()).recommendations]
        assert priorities[-1] == 0
        assert min(priorities) >= 0

    def test_blank_title(self):
        response = AIAnalysisResponse(security_issues=[AIIssue(severity=Severity.LOW, title="  ")])
        issue = normalize_ai_response(response, _make_metrics()).issues[0]
        assert issue.title == "Untitled issue"
        assert issue.description == "Untitled issue"

    def test_empty_response(self):
        result = normalize_ai_response(AIAnalysisResponse(), _make_metrics())
        assert result.issues == ()
        assert result.recommendations == ()
        assert result.overall_score == 100
        assert result.is_ai_powered is True
