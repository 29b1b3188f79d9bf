"""GitHub snapshot source."""

import base64
import binascii
import logging
from urllib.parse import quote

import httpx

from codesentinel.analyzers.ai import rank_files
from codesentinel.analyzers.metrics import round_half_up
from codesentinel.exceptions import SnapshotNotFoundError
from codesentinel.models.schemas import (
    FileType,
    RepoCommit,
    RepoFile,
    RepositorySnapshot,
    RepoStats,
)
from codesentinel.sources.base import SnapshotSource

logger = logging.getLogger(__name__)


class GitHubSnapshotSource(SnapshotSource):
    """Builds repository snapshots from the GitHub REST API.

    A token is optional but unauthenticated requests are limited to
    60 per hour, which a single snapshot with blob downloads can exhaust.
    """

    BASE_URL = "https://api.github.com"

    # Number of recent commits included in the snapshot
    COMMIT_LIMIT = 30

    # Estimated bytes per line when deriving lines of code from file sizes
    BYTES_PER_LINE = 50

    # Files above this size are listed but their content isn't downloaded
    MAX_BLOB_BYTES = 50000

    BINARY_EXTENSIONS = (
        ".png", ".jpg", ".jpeg", ".gif", ".ico", ".svg", ".webp", ".bmp",
        ".pdf", ".zip", ".gz", ".tar", ".jar", ".woff", ".woff2", ".ttf",
        ".eot", ".mp3", ".mp4", ".mov", ".exe", ".dll", ".so", ".pyc", ".lock",
    )

    def __init__(
        self,
        token: str | None = None,
        max_files: int = 40,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the source.

        Args:
            token: GitHub personal access token.
            max_files: Maximum number of file contents to download.
            client: Optional httpx client. If not provided, a new client is created per request.
        """
        self._token = token
        self.max_files = max_files
        self._client = client

    def _headers(self) -> dict[str, str]:
        """Get headers for GitHub API requests."""
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "codesentinel",
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create an HTTP client."""
        if self._client is not None:
            return self._client
        return httpx.AsyncClient(timeout=30.0, headers=self._headers())

    async def _fetch(self, path: str, params: dict | None = None) -> dict | list | None:
        """Fetch from GitHub API.

        Returns None if 404, raises on other errors.
        """
        client = await self._get_client()
        url = f"{self.BASE_URL}{path}"

        try:
            response = await client.get(url, params=params, headers=self._headers())
            if response.status_code == 404:
                return None
            response.raise_for_status()
            return response.json()
        finally:
            if self._client is None:
                await client.aclose()

    async def fetch_snapshot(self, owner: str, repo: str) -> RepositorySnapshot:
        """Fetch files, recent commits and stats for a GitHub repository.

        Args:
            owner: Repository owner.
            repo: Repository name.

        Returns:
            RepositorySnapshot ready for analysis.

        Raises:
            SnapshotNotFoundError: If the repository is missing or private.
            httpx.HTTPStatusError: On other API errors.
        """
        info = await self._fetch(f"/repos/{owner}/{repo}")
        if not isinstance(info, dict):
            raise SnapshotNotFoundError(owner, repo)

        default_branch = info.get("default_branch") or "main"

        files = await self._fetch_tree(owner, repo, default_branch)
        files = await self._fetch_contents(owner, repo, files)
        commits = await self._fetch_commits(owner, repo)
        languages = await self._fetch(f"/repos/{owner}/{repo}/languages") or {}
        contributors = await self._fetch(
            f"/repos/{owner}/{repo}/contributors", params={"per_page": 100}
        ) or []

        stats = self._build_stats(files, commits, languages, len(contributors))
        logger.info(
            f"Fetched {owner}/{repo}: {stats.files_count} files, "
            f"{len(commits)} commits, {stats.contributors} contributors"
        )

        return RepositorySnapshot(
            name=info.get("full_name") or f"{owner}/{repo}",
            stars=info.get("stargazers_count"),
            files=files,
            commits=commits,
            stats=stats,
        )

    async def _fetch_tree(self, owner: str, repo: str, branch: str) -> list[RepoFile]:
        """Fetch the recursive file tree of a branch."""
        tree_data = await self._fetch(
            f"/repos/{owner}/{repo}/git/trees/{branch}",
            params={"recursive": "1"},
        )
        if not isinstance(tree_data, dict) or "tree" not in tree_data:
            return []
        if tree_data.get("truncated"):
            logger.warning(f"Tree for {owner}/{repo} is truncated; snapshot is partial")

        files = []
        for item in tree_data["tree"]:
            kind = item.get("type")
            if kind not in ("blob", "tree"):
                continue  # Submodules
            path = item.get("path", "")
            files.append(
                RepoFile(
                    name=path.rsplit("/", 1)[-1],
                    path=path,
                    type=FileType.FILE if kind == "blob" else FileType.DIR,
                    size=item.get("size", 0),
                )
            )
        return files

    async def _fetch_contents(
        self,
        owner: str,
        repo: str,
        files: list[RepoFile],
    ) -> list[RepoFile]:
        """Download content for the most important small text files."""
        candidates = [
            f
            for f in rank_files(files)
            if 0 < f.size <= self.MAX_BLOB_BYTES
            and not f.path.lower().endswith(self.BINARY_EXTENSIONS)
        ][: self.max_files]

        contents: dict[str, str] = {}
        for file in candidates:
            data = await self._fetch(
                f"/repos/{owner}/{repo}/contents/{quote(file.path, safe='/')}"
            )
            if not isinstance(data, dict) or "content" not in data:
                continue
            try:
                contents[file.path] = base64.b64decode(data["content"]).decode("utf-8")
            except (binascii.Error, UnicodeDecodeError):
                logger.debug(f"Skipping non-text file {file.path}")

        return [
            f.model_copy(update={"content": contents[f.path]}) if f.path in contents else f
            for f in files
        ]

    async def _fetch_commits(self, owner: str, repo: str) -> list[RepoCommit]:
        """Fetch the most recent commits, newest first."""
        data = await self._fetch(
            f"/repos/{owner}/{repo}/commits",
            params={"per_page": self.COMMIT_LIMIT},
        )
        if not isinstance(data, list):
            return []

        commits = []
        for item in data:
            commit = item.get("commit") or {}
            author = commit.get("author") or {}
            login = (item.get("author") or {}).get("login")
            commits.append(
                RepoCommit(
                    sha=item.get("sha", ""),
                    message=commit.get("message", ""),
                    author=login or author.get("name"),
                    date=author.get("date"),
                )
            )
        return commits

    def _build_stats(
        self,
        files: list[RepoFile],
        commits: list[RepoCommit],
        languages: dict,
        contributor_count: int,
    ) -> RepoStats:
        """Derive aggregate stats from the fetched data."""
        blobs = [f for f in files if f.type == FileType.FILE]
        total_bytes = sum(f.size for f in blobs if f.size > 0)

        return RepoStats(
            lines_of_code=round_half_up(total_bytes / self.BYTES_PER_LINE),
            files_count=len(blobs),
            languages={k: v for k, v in languages.items() if isinstance(v, int)},
            contributors=contributor_count,
            # Assumes the fetched commits span about four weeks
            commit_frequency=round_half_up(len(commits) / 4 * 7) if commits else 0,
            last_commit=commits[0].date if commits else None,
        )
