"""Rule-based detectors that scan a repository snapshot for issues.

Each detector is a pure function over one slice of the snapshot:
- package manifest (package.json)
- configuration files (hardcoded secrets, debug flags)
- source files (debug output, TODOs, complexity, import counts)
- aggregate stats (size, file count, bus factor)
- commit history (frequency, merge-heavy history)

Detectors work on raw text with regex heuristics. They never parse syntax
trees or execute code.
"""

from __future__ import annotations

import json
import logging
import re
from collections import Counter
from collections.abc import Callable, Iterable

from codesentinel.exceptions import MalformedManifest
from codesentinel.models.schemas import (
    AnalysisIssue,
    Effort,
    IssueType,
    RepoCommit,
    RepoFile,
    RepositorySnapshot,
    RepoStats,
    Severity,
)

logger = logging.getLogger(__name__)


# === Pattern Definitions ===

MANIFEST_FILENAME = "package.json"

# Substrings of dependency names that are deprecated or carry known advisories
LEGACY_DEPENDENCIES = ["lodash", "moment", "request"]

REQUIRED_SCRIPTS = ["test", "build", "lint"]

# A file is treated as configuration if its name contains any of these
CONFIG_NAME_MARKERS = ("config", ".env", "settings")

# Key/value secrets with a quoted literal value. The optional quote after the
# key covers JSON ("password": "...") as well as YAML/INI/JS styles.
SECRET_PATTERNS = [
    (re.compile(r"password['\"]?\s*[:=]\s*['\"]([^'\"]+)['\"]", re.IGNORECASE), "password"),
    (re.compile(r"secret['\"]?\s*[:=]\s*['\"]([^'\"]+)['\"]", re.IGNORECASE), "secret"),
    (re.compile(r"token['\"]?\s*[:=]\s*['\"]([^'\"]+)['\"]", re.IGNORECASE), "token"),
    (re.compile(r"api[_-]?key['\"]?\s*[:=]\s*['\"]([^'\"]+)['\"]", re.IGNORECASE), "api_key"),
]

DEBUG_FLAG_LITERALS = ("debug: true", '"debug": true')

SOURCE_EXTENSIONS = {
    ".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs",
    ".py", ".rb", ".go", ".java", ".kt", ".rs", ".php",
    ".cs", ".c", ".cpp", ".h", ".swift",
}

DEBUG_PRINT_PATTERN = re.compile(
    r"console\.log|\bprint\(|fmt\.Println|System\.out\.println"
)
DEBUG_PRINT_THRESHOLD = 5

TODO_PATTERN = re.compile(r"//\s*TODO|/\*\s*TODO|#\s*TODO", re.IGNORECASE)

FUNCTION_PATTERN = re.compile(
    r"function\s+\w+"
    r"|const\s+\w+\s*=\s*\([^)]*\)\s*=>"
    r"|\bdef\s+\w+\s*\("
    r"|\bfunc\s+\w+"
)
COMPLEX_FILE_MIN_CHARS = 2000

IMPORT_PATTERN = re.compile(
    r"^\s*(?:"
    r"import\s+\S"
    r"|from\s+\S+\s+import\s"
    r"|#include\s*[<\"]"
    r"|(?:const|let|var)\s+.+?=\s*require\("
    r"|using\s+[\w.]+\s*;"
    r")",
    re.MULTILINE,
)
IMPORT_THRESHOLD = 10

# Aggregate stats thresholds
LARGE_CODEBASE_LOC = 50_000
MANY_FILES = 1000
MIN_CONTRIBUTORS = 3

# Commit history thresholds
MIN_COMMIT_FREQUENCY = 5
LARGE_COMMIT_MESSAGE_CHARS = 100
LARGE_COMMIT_RATIO = 0.3


# === Manifest ===


def _parse_manifest(manifest: RepoFile) -> dict:
    """Parse a manifest file into a dict, raising MalformedManifest otherwise."""
    try:
        data = json.loads(manifest.content or "")
    except json.JSONDecodeError as e:
        raise MalformedManifest(manifest.path, str(e)) from e
    if not isinstance(data, dict):
        raise MalformedManifest(manifest.path, "top-level value is not an object")
    return data


def detect_manifest_issues(files: Iterable[RepoFile]) -> list[AnalysisIssue]:
    """Check the package manifest for legacy dependencies and missing scripts."""
    manifest = next((f for f in files if f.name == MANIFEST_FILENAME), None)
    if manifest is None or not manifest.content:
        return []

    try:
        package_data = _parse_manifest(manifest)
    except MalformedManifest as e:
        logger.debug(f"Manifest parse failed: {e}")
        return [
            AnalysisIssue(
                id="invalid-package-json",
                type=IssueType.RELIABILITY,
                severity=Severity.HIGH,
                title="Invalid package.json",
                description="package.json contains invalid JSON syntax",
                file=manifest.path,
                impact="Package installation and build failures",
                fix="Fix JSON syntax errors in package.json",
                effort=Effort.LOW,
                tags=["configuration", "syntax"],
            )
        ]

    issues: list[AnalysisIssue] = []

    declared: list[str] = []
    for section in ("dependencies", "devDependencies"):
        deps = package_data.get(section)
        if isinstance(deps, dict):
            declared.extend(name for name in deps if name not in declared)

    for dep in declared:
        if any(legacy in dep for legacy in LEGACY_DEPENDENCIES):
            issues.append(
                AnalysisIssue(
                    id=f"dep-{dep}",
                    type=IssueType.SECURITY,
                    severity=Severity.MEDIUM,
                    title=f"Outdated dependency: {dep}",
                    description=f"{dep} has known security vulnerabilities or is deprecated",
                    file=manifest.path,
                    impact="Potential security risks and compatibility issues",
                    fix=f"Update {dep} to the latest stable version or find a modern alternative",
                    effort=Effort.MEDIUM,
                    tags=["dependency", "security", "maintenance"],
                )
            )

    scripts = package_data.get("scripts")
    if not isinstance(scripts, dict):
        scripts = {}
    missing = [name for name in REQUIRED_SCRIPTS if not scripts.get(name)]
    if missing:
        issues.append(
            AnalysisIssue(
                id="missing-scripts",
                type=IssueType.MAINTAINABILITY,
                severity=Severity.LOW,
                title="Missing standard npm scripts",
                description=f"Missing scripts: {', '.join(missing)}",
                file=manifest.path,
                impact="Inconsistent development workflow",
                fix="Add the missing npm scripts to package.json",
                effort=Effort.LOW,
                tags=["workflow", "standards"],
            )
        )

    return issues


# === Configuration Files ===


def is_config_file(file: RepoFile) -> bool:
    """Whether a file name marks it as configuration."""
    return any(marker in file.name for marker in CONFIG_NAME_MARKERS)


def detect_config_issues(files: Iterable[RepoFile]) -> list[AnalysisIssue]:
    """Flag hardcoded secrets and enabled debug flags in configuration files.

    A file with any number of secret matches yields a single critical issue.
    """
    issues: list[AnalysisIssue] = []

    for file in files:
        if not is_config_file(file) or not file.content:
            continue
        content = file.content

        matched_kinds = [kind for pattern, kind in SECRET_PATTERNS if pattern.search(content)]
        if matched_kinds:
            issues.append(
                AnalysisIssue(
                    id=f"secret-{file.path}",
                    type=IssueType.SECURITY,
                    severity=Severity.CRITICAL,
                    title="Hardcoded secrets detected",
                    description=(
                        "Configuration file contains hardcoded sensitive information "
                        f"({', '.join(matched_kinds)})"
                    ),
                    file=file.path,
                    impact="Severe security risk - credentials exposed in repository",
                    fix="Move secrets to environment variables or secure credential storage",
                    effort=Effort.HIGH,
                    tags=["security", "credentials", "configuration"],
                )
            )

        if any(literal in content for literal in DEBUG_FLAG_LITERALS):
            issues.append(
                AnalysisIssue(
                    id=f"debug-{file.path}",
                    type=IssueType.SECURITY,
                    severity=Severity.MEDIUM,
                    title="Debug mode enabled",
                    description="Debug logging is enabled which may expose sensitive information",
                    file=file.path,
                    impact="Potential information disclosure in production",
                    fix="Disable debug mode in production configuration",
                    effort=Effort.LOW,
                    tags=["security", "logging", "production"],
                )
            )

    return issues


# === Source Files ===


def is_source_file(file: RepoFile) -> bool:
    """Whether a file has a recognized source-code extension."""
    dot = file.name.rfind(".")
    return dot != -1 and file.name[dot:].lower() in SOURCE_EXTENSIONS


def detect_source_issues(files: Iterable[RepoFile]) -> list[AnalysisIssue]:
    """Scan source files for debug output, TODOs, complexity and import sprawl."""
    issues: list[AnalysisIssue] = []

    for file in files:
        if not is_source_file(file) or not file.content:
            continue
        content = file.content

        debug_prints = len(DEBUG_PRINT_PATTERN.findall(content))
        if debug_prints > DEBUG_PRINT_THRESHOLD:
            issues.append(
                AnalysisIssue(
                    id=f"console-{file.path}",
                    type=IssueType.MAINTAINABILITY,
                    severity=Severity.LOW,
                    title="Excessive console logging",
                    description=f"Found {debug_prints} debug print statements",
                    file=file.path,
                    impact="Cluttered console output and potential performance impact",
                    fix="Remove debug output or replace it with a proper logging framework",
                    effort=Effort.MEDIUM,
                    tags=["logging", "debug", "performance"],
                )
            )

        todos = len(TODO_PATTERN.findall(content))
        if todos:
            issues.append(
                AnalysisIssue(
                    id=f"todo-{file.path}",
                    type=IssueType.MAINTAINABILITY,
                    severity=Severity.LOW,
                    title="TODO comments found",
                    description=f"Found {todos} unresolved TODO comments",
                    file=file.path,
                    impact="Incomplete features or technical debt",
                    fix="Address or remove TODO comments",
                    effort=Effort.MEDIUM,
                    tags=["todo", "debt", "incomplete"],
                )
            )

        if FUNCTION_PATTERN.search(content) and len(content) > COMPLEX_FILE_MIN_CHARS:
            issues.append(
                AnalysisIssue(
                    id=f"complex-{file.path}",
                    type=IssueType.MAINTAINABILITY,
                    severity=Severity.MEDIUM,
                    title="Potentially complex file",
                    description="File may contain overly complex functions or logic",
                    file=file.path,
                    impact="Difficult to maintain and test",
                    fix="Consider breaking down into smaller, focused functions",
                    effort=Effort.HIGH,
                    tags=["complexity", "maintainability", "refactoring"],
                )
            )

        imports = len(IMPORT_PATTERN.findall(content))
        if imports > IMPORT_THRESHOLD:
            issues.append(
                AnalysisIssue(
                    id=f"imports-{file.path}",
                    type=IssueType.MAINTAINABILITY,
                    severity=Severity.LOW,
                    title="Many imports detected",
                    description=f"File has {imports} import statements",
                    file=file.path,
                    impact="Potential for unused imports and bundle bloat",
                    fix="Review and remove unused imports",
                    effort=Effort.LOW,
                    tags=["imports", "bundle", "optimization"],
                )
            )

    return issues


# === Aggregate Stats ===


def detect_stats_issues(stats: RepoStats) -> list[AnalysisIssue]:
    """Flag size and bus-factor risks from aggregate repository stats."""
    issues: list[AnalysisIssue] = []

    if stats.lines_of_code > LARGE_CODEBASE_LOC:
        issues.append(
            AnalysisIssue(
                id="large-codebase",
                type=IssueType.MAINTAINABILITY,
                severity=Severity.MEDIUM,
                title="Large codebase detected",
                description=f"{stats.lines_of_code:,} lines of code may be difficult to maintain",
                impact="Increased complexity and maintenance overhead",
                fix="Consider modularizing the codebase or breaking it into smaller services",
                effort=Effort.HIGH,
                tags=["size", "complexity", "architecture"],
            )
        )

    if stats.files_count > MANY_FILES:
        issues.append(
            AnalysisIssue(
                id="many-files",
                type=IssueType.MAINTAINABILITY,
                severity=Severity.LOW,
                title="Large number of files",
                description=f"{stats.files_count} files detected",
                impact="Navigation and organization challenges",
                fix="Implement better file organization and documentation",
                effort=Effort.MEDIUM,
                tags=["organization", "structure", "navigation"],
            )
        )

    if stats.contributors < MIN_CONTRIBUTORS:
        issues.append(
            AnalysisIssue(
                id="few-contributors",
                type=IssueType.RELIABILITY,
                severity=Severity.MEDIUM,
                title="Limited contributor diversity",
                description=f"Only {stats.contributors} contributors",
                impact="Single point of failure and knowledge silos",
                fix="Encourage more team members to contribute and review code",
                effort=Effort.MEDIUM,
                tags=["team", "diversity", "bus-factor"],
            )
        )

    return issues


# === Commit History ===


def _is_large_commit(commit: RepoCommit) -> bool:
    message = commit.message or ""
    return "merge" in message.lower() or len(message) > LARGE_COMMIT_MESSAGE_CHARS


def detect_commit_issues(stats: RepoStats, commits: list[RepoCommit]) -> list[AnalysisIssue]:
    """Flag low commit frequency and merge-heavy commit history."""
    issues: list[AnalysisIssue] = []

    if stats.commit_frequency < MIN_COMMIT_FREQUENCY:
        issues.append(
            AnalysisIssue(
                id="low-commit-frequency",
                type=IssueType.MAINTAINABILITY,
                severity=Severity.LOW,
                title="Low commit frequency",
                description=f"Only {stats.commit_frequency} commits per period",
                impact="Slow development velocity and large changes",
                fix="Implement more frequent, smaller commits",
                effort=Effort.MEDIUM,
                tags=["workflow", "velocity", "commits"],
            )
        )

    large_commits = sum(1 for commit in commits if _is_large_commit(commit))
    if commits and large_commits > len(commits) * LARGE_COMMIT_RATIO:
        issues.append(
            AnalysisIssue(
                id="large-commits",
                type=IssueType.MAINTAINABILITY,
                severity=Severity.MEDIUM,
                title="Large merge commits detected",
                description=(
                    f"{large_commits} of {len(commits)} sampled commits appear to be "
                    "large merges"
                ),
                impact="Difficult code reviews and potential conflicts",
                fix="Use smaller, focused commits and regular rebasing",
                effort=Effort.MEDIUM,
                tags=["commits", "workflow", "reviews"],
            )
        )

    return issues


# === Runner ===

Detector = Callable[[RepositorySnapshot], list[AnalysisIssue]]

DETECTORS: list[tuple[str, Detector]] = [
    ("manifest", lambda snapshot: detect_manifest_issues(snapshot.files)),
    ("config", lambda snapshot: detect_config_issues(snapshot.files)),
    ("source", lambda snapshot: detect_source_issues(snapshot.files)),
    ("stats", lambda snapshot: detect_stats_issues(snapshot.stats)),
    ("commits", lambda snapshot: detect_commit_issues(snapshot.stats, snapshot.commits)),
]


def ensure_unique_ids(issues: list[AnalysisIssue]) -> list[AnalysisIssue]:
    """Suffix repeated issue ids with -2, -3, ... in list order."""
    seen: Counter[str] = Counter()
    taken = {issue.id for issue in issues}
    unique: list[AnalysisIssue] = []

    for issue in issues:
        seen[issue.id] += 1
        if seen[issue.id] == 1:
            unique.append(issue)
            continue
        n = seen[issue.id]
        candidate = f"{issue.id}-{n}"
        while candidate in taken:
            n += 1
            candidate = f"{issue.id}-{n}"
        taken.add(candidate)
        unique.append(issue.model_copy(update={"id": candidate}))

    return unique


def run_detectors(snapshot: RepositorySnapshot) -> list[AnalysisIssue]:
    """Run every detector over the snapshot and concatenate their issues.

    The snapshot must carry stats; the pipeline validates this when it
    computes metrics.

    Returns:
        All issues with ids unique within the list.
    """
    issues: list[AnalysisIssue] = []
    for name, detector in DETECTORS:
        found = detector(snapshot)
        if found:
            logger.debug(f"Detector {name} found {len(found)} issues")
        issues.extend(found)
    return ensure_unique_ids(issues)
