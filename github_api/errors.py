from enum import Enum


class Step(str, Enum):
    RESOLVE_REF = "resolve_ref"
    READ_COMMIT = "read_commit"
    CREATE_BLOBS = "create_blobs"
    CREATE_TREE = "create_tree"
    CREATE_COMMIT = "create_commit"
    UPDATE_REF = "update_ref"


class CommitValidationError(ValueError):
    """Bad batch-commit input; raised before any upstream call."""


class GitHubError(RuntimeError):
    """An upstream GitHub call failed.

    `step` and `partial` are filled in by the batch-commit workflow so a caller
    can tell where it stopped and which objects were already created.
    """

    def __init__(self, message: str, status_code: int | None = None,
                 step: Step | None = None, partial: dict | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.step = step
        self.partial = dict(partial or {})

    @property
    def ref_unchanged(self) -> bool:
        if self.step is None or self.step != Step.UPDATE_REF:
            return True
        # a rejected update is known not to have moved the branch
        return isinstance(self, (RefConflictError, RefNotFoundError))


class UpstreamUnavailableError(GitHubError):
    """Network failure or 5xx from the hosting API."""


class RefNotFoundError(GitHubError):
    pass


class CommitReadError(GitHubError):
    pass


class BlobCreateError(GitHubError):
    pass


class TreeCreateError(GitHubError):
    pass


class CommitCreateError(GitHubError):
    pass


class RefConflictError(GitHubError):
    """The branch moved since it was read; the non-force update was rejected."""
