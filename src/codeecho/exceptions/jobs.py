"""Ingestion job admission errors."""

from .base import CodeEchoError


class JobError(CodeEchoError):
    """Base class for job registry errors."""

    pass


class AlreadyRunning(JobError):
    """Raised when ingestion is requested for a project that already has a job."""

    def __init__(self, project_id: int):
        super().__init__(
            f"An ingestion job is already running for project {project_id}",
            details={"project_id": str(project_id)},
        )
        self.project_id = project_id


class NotRunning(JobError):
    """Raised when cancelling a project that has no admitted job."""

    def __init__(self, project_id: int):
        super().__init__(
            f"No active ingestion job for project {project_id}",
            details={"project_id": str(project_id)},
        )
        self.project_id = project_id
