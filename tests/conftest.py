"""Shared fixtures for codesentinel tests."""

import pytest

from codesentinel.models.schemas import RepositorySnapshot, RepoStats


@pytest.fixture
def empty_snapshot():
    """A repository with no files, no commits and zero lines of code."""
    return RepositorySnapshot(
        name="acme/empty",
        stats=RepoStats(lines_of_code=0, files_count=0, contributors=0, commit_frequency=0),
    )


@pytest.fixture
def large_repo_snapshot():
    """Stats-only snapshot of a large repository with a small team."""
    return RepositorySnapshot(
        name="acme/monolith",
        stats=RepoStats(
            lines_of_code=60000,
            files_count=1200,
            contributors=2,
            commit_frequency=2,
            languages={"TypeScript": 2_400_000},
        ),
    )
