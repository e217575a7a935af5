from enum import Enum

from quiz_archiver.archiving.exceptions import ArchivingError, WorkerNetworkError
from quiz_archiver.archiving.fingerprint import fingerprint
from quiz_archiver.archiving.job_settings import JobSettings
from quiz_archiver.archiving.quiz_manager import QuizManager
from quiz_archiver.archiving.types import TaskStatus
from quiz_archiver.config.settings import Settings
from quiz_archiver.database.models import TaskRecord
from quiz_archiver.database.repositories.file_repository import FileRepository
from quiz_archiver.database.repositories.quiz_repository import QuizRepository
from quiz_archiver.database.repositories.task_repository import TaskRepository
from quiz_archiver.driver.state_machine import TaskEvent, next_status
from quiz_archiver.logging.logger import Log
from quiz_archiver.worker_client.remote_archive_worker import RemoteArchiveWorker


class DriverOutcome(str, Enum):
    """Result of a single driver invocation."""

    ADVANCED = "advanced"
    DEFERRED = "deferred"
    FAILED = "failed"
    IDLE = "idle"


class TaskDriver:
    """Advances an archiving task by at most one phase per invocation.

    The new status is persisted before ``execute`` returns. Statuses beyond
    CREATED are advanced by the worker through the webservice functions, so the
    driver has nothing to do for them.
    """

    def __init__(
        self,
        task_repo: TaskRepository,
        quiz_repo: QuizRepository,
        file_repo: FileRepository,
        worker: RemoteArchiveWorker,
    ) -> None:
        self._task_repo = task_repo
        self._quiz_repo = quiz_repo
        self._file_repo = file_repo
        self._worker = worker

    def execute(self, task: TaskRecord) -> DriverOutcome:
        if task.status is TaskStatus.UNINITIALIZED:
            status = next_status(task.status, TaskEvent.INITIALIZE)
            self._task_repo.set_status(task.id, status)
            Log.info(f"Task {task.id} initialized", status=status.name)
            return DriverOutcome.ADVANCED

        if task.status is TaskStatus.CREATED:
            return self._dispatch(task)

        Log.debug(f"Task {task.id} has no local work", status=task.status.name)
        return DriverOutcome.IDLE

    def force_timeout(self, task: TaskRecord) -> TaskStatus:
        """Move a task that is not completed yet to TIMEOUT.

        Raises:
            InvalidTransitionError: if the task is already completed.
        """
        status = next_status(task.status, TaskEvent.TIMEOUT)
        self._task_repo.set_status(task.id, status)
        Log.warning(f"Task {task.id} timed out", previous_status=task.status.name)
        return status

    def _dispatch(self, task: TaskRecord) -> DriverOutcome:
        """Enumerate attempts, mint a token and hand the task over to the worker."""
        try:
            JobSettings.from_mapping(task.job_settings)
            quiz = QuizManager.for_course_module(task.cmid, self._quiz_repo, self._file_repo)
            attempt_ids = [attempt_id for attempt_id, _userid in quiz.list_attempts()]
            num_attachments = quiz.count_attachments(attempt_ids)
            digest = fingerprint(self._quiz_repo, quiz.quiz.id)

            token = self._task_repo.create_webservice_token(task.id)
            job = self._worker.enqueue_archive_job(token, task, attempt_ids)
        except WorkerNetworkError as exc:
            Log.warning(f"Task {task.id} deferred, archive worker unreachable: {exc}")
            return DriverOutcome.DEFERRED
        except ArchivingError as exc:
            status = next_status(task.status, TaskEvent.ENQUEUE_FAILED)
            self._task_repo.set_status(task.id, status)
            Log.error(f"Task {task.id} failed to enqueue: {exc}")
            return DriverOutcome.FAILED

        status = next_status(task.status, TaskEvent.ENQUEUE_SUCCEEDED)
        self._task_repo.set_status(
            task.id,
            status,
            metadata={
                "num_attempts": len(attempt_ids),
                "num_attachments": num_attachments,
                "quiz_fingerprint": digest,
                "worker_job_uuid": job.uuid,
                "worker_job_status": job.status.name,
            },
        )
        Log.info(f"Task {task.id} handed over to archive worker", job_uuid=job.uuid, attempts=len(attempt_ids))
        return DriverOutcome.ADVANCED


def build_driver(settings: Settings, worker: RemoteArchiveWorker | None = None) -> TaskDriver:
    """Assemble a task driver with its repositories and worker client from settings."""
    return TaskDriver(
        task_repo=TaskRepository(settings.webservice_token_lifetime_seconds),
        quiz_repo=QuizRepository(),
        file_repo=FileRepository(),
        worker=worker or RemoteArchiveWorker.from_settings(settings),
    )
