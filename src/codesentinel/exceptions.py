"""Error taxonomy for repository analysis."""


class CodeSentinelError(Exception):
    """Base class for all codesentinel errors."""


class InvalidSnapshotInput(CodeSentinelError):
    """Raised when a snapshot lacks the aggregate stats needed for metrics.

    This is the only error the analysis pipeline lets through to callers.
    """


class MalformedManifest(CodeSentinelError):
    """Raised when a package manifest cannot be parsed as a JSON object."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid manifest {path}: {reason}")


class MalformedAIResponse(CodeSentinelError):
    """Raised when LLM output cannot be turned into an analysis response."""

    def __init__(self, message: str, preview: str = "") -> None:
        self.preview = preview
        super().__init__(message)


class AIAdapterFailure(CodeSentinelError):
    """Raised when the LLM provider call fails, times out or returns nothing."""


class SnapshotNotFoundError(CodeSentinelError):
    """Raised when a snapshot source cannot find the requested repository."""

    def __init__(self, owner: str, repo: str) -> None:
        self.owner = owner
        self.repo = repo
        super().__init__(f"Repository '{owner}/{repo}' not found or not accessible")
