from dataclasses import dataclass

from quiz_archiver.archiving.types import TaskStatus, WorkerStatus


@dataclass(frozen=True)
class WorkerStatusInfo:
    """Current state of the remote archive worker as reported by ``/status``."""

    status: WorkerStatus
    queue_len: int


@dataclass(frozen=True)
class EnqueuedJob:
    """Job accepted by the remote archive worker."""

    uuid: str
    status: TaskStatus
