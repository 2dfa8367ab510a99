"""Persistence errors raised by ChangeStore / ProjectStore implementations."""

from .base import CodeEchoError


class StoreError(CodeEchoError):
    """Raised when the backing store fails to read or write."""

    transient = True


class ProjectNotFound(StoreError):
    """Raised when a project id or name does not exist."""

    transient = False

    def __init__(self, key: object):
        super().__init__(f"Project not found: {key}", details={"project": str(key)})
        self.key = key


class DuplicateCommitError(StoreError):
    """Raised when a commit hash is already stored for the project."""

    transient = False

    def __init__(self, project_id: int, commit_hash: str):
        super().__init__(
            "Commit already stored for project",
            details={"project_id": str(project_id), "hash": commit_hash},
        )
        self.project_id = project_id
        self.commit_hash = commit_hash
