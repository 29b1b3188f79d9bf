"""Abstract base class for repository snapshot sources."""

import re
from abc import ABC, abstractmethod

from codesentinel.models.schemas import RepositorySnapshot


class SnapshotSource(ABC):
    """Base class for snapshot sources.

    Each source collects files, commits and aggregate stats from a code host
    and normalizes them into a RepositorySnapshot for analysis.
    """

    @abstractmethod
    async def fetch_snapshot(self, owner: str, repo: str) -> RepositorySnapshot:
        """Fetch a snapshot of a single repository.

        Args:
            owner: Repository owner.
            repo: Repository name.

        Returns:
            RepositorySnapshot with files, commits and stats.

        Raises:
            SnapshotNotFoundError: If the repository doesn't exist.
        """
        ...


def parse_repo_slug(value: str) -> tuple[str, str] | None:
    """Parse an `owner/repo` slug or GitHub URL into (owner, repo).

    Supports:
        owner/repo
        https://github.com/owner/repo
        https://github.com/owner/repo.git
        https://github.com/owner/repo/tree/main/subpath
        git@github.com:owner/repo.git

    Args:
        value: Slug or URL to parse.

    Returns:
        (owner, repo) if the value can be parsed, None otherwise.
    """
    if not value:
        return None
    value = value.strip()

    patterns = [
        r"^(?:https?://)?(?:www\.)?github\.com/([^/\s]+)/([^/\s]+?)(?:\.git)?(?:/.*)?$",
        r"^git@github\.com:([^/\s]+)/([^/\s]+?)(?:\.git)?$",
        r"^([A-Za-z0-9_.-]+)/([A-Za-z0-9_.-]+?)(?:\.git)?$",
    ]

    for pattern in patterns:
        match = re.match(pattern, value)
        if match:
            return match.group(1), match.group(2)

    return None
