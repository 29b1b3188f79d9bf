"""Aggregate metric calculation from repository stats."""

import math

from codesentinel.exceptions import InvalidSnapshotInput
from codesentinel.models.schemas import RepositoryMetrics, RepoStats

# No coverage tool runs against the snapshot, so coverage is reported as a
# fixed placeholder rather than a measured value.
TEST_COVERAGE_PLACEHOLDER = 65

# Size-based proxies: lines of code per complexity/duplication point
LOC_PER_COMPLEXITY_POINT = 500
LOC_PER_DUPLICATION_POINT = 2000


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return math.floor(value + 0.5)


def compute_metrics(stats: RepoStats | None) -> RepositoryMetrics:
    """Derive repository metrics from aggregate stats.

    Args:
        stats: Aggregate stats from the snapshot.

    Returns:
        RepositoryMetrics with pass-through counts and size-based proxies.

    Raises:
        InvalidSnapshotInput: If stats are missing or hold negative counts.
    """
    if stats is None:
        raise InvalidSnapshotInput("Snapshot has no aggregate stats; cannot compute metrics")

    for field_name in ("lines_of_code", "files_count", "contributors", "commit_frequency"):
        value = getattr(stats, field_name)
        if value is None or value < 0:
            raise InvalidSnapshotInput(f"Invalid stats value for {field_name}: {value!r}")

    loc = stats.lines_of_code
    return RepositoryMetrics(
        lines_of_code=loc,
        files_count=stats.files_count,
        complexity=min(100, round_half_up(loc / LOC_PER_COMPLEXITY_POINT)),
        test_coverage=TEST_COVERAGE_PLACEHOLDER,
        duplication=min(100, round_half_up(loc / LOC_PER_DUPLICATION_POINT)),
        language_breakdown=dict(stats.languages),
        commit_frequency=stats.commit_frequency,
        contributor_count=stats.contributors,
    )
