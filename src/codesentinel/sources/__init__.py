"""Repository snapshot sources."""

from codesentinel.sources.base import SnapshotSource, parse_repo_slug
from codesentinel.sources.files import load_snapshot, snapshot_from_dict
from codesentinel.sources.github import GitHubSnapshotSource

__all__ = [
    "GitHubSnapshotSource",
    "SnapshotSource",
    "load_snapshot",
    "parse_repo_slug",
    "snapshot_from_dict",
]
