from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any, ClassVar, Generic, Protocol, TypeVar

from quiz_archiver.archiving.exceptions import (
    CourseModuleNotFoundError,
    CourseNotFoundError,
    QuizNotFoundError,
    TaskNotFoundError,
)
from quiz_archiver.archiving.types import WebserviceStatus
from quiz_archiver.database.models import TaskRecord
from quiz_archiver.database.repositories.task_repository import TaskRepository
from quiz_archiver.logging.logger import Log


class TaskScopedParams(Protocol):
    @property
    def taskid(self) -> int: ...


ParamsT = TypeVar("ParamsT", bound=TaskScopedParams)

QUIZ_LOOKUP_ERRORS: dict[type[Exception], WebserviceStatus] = {
    CourseModuleNotFoundError: WebserviceStatus.E_CM_NOT_FOUND,
    CourseNotFoundError: WebserviceStatus.E_COURSE_NOT_FOUND,
    QuizNotFoundError: WebserviceStatus.E_QUIZ_NOT_FOUND,
}


def status_response(status: WebserviceStatus, **fields: Any) -> dict[str, Any]:
    return {"status": status.value, **fields}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WebserviceFunction(ABC, Generic[ParamsT]):
    """Inbound function called by the archive worker.

    Every call is validated in the same order: structural parameters (raises
    InvalidParameterError), task existence, then the task's webservice token.
    Only then ``handle`` runs.
    """

    name: ClassVar[str]

    def __init__(
        self,
        task_repo: TaskRepository,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._task_repo = task_repo
        self._clock = clock or _utcnow

    def execute(self, raw_params: dict[str, Any], wstoken: str | None) -> dict[str, Any]:
        params = self.parse(raw_params)
        taskid = params.taskid

        try:
            task = self._task_repo.find_by_id(taskid)
        except TaskNotFoundError:
            Log.warning(f"{self.name}: task {taskid} not found")
            return status_response(WebserviceStatus.E_TASK_NOT_FOUND)

        if not task.has_valid_token(wstoken, self._clock()):
            Log.warning(f"{self.name}: access denied for task {taskid}")
            return status_response(WebserviceStatus.E_ACCESS_DENIED)

        return self.handle(task, params)

    @abstractmethod
    def parse(self, raw_params: dict[str, Any]) -> ParamsT:
        """Validate raw parameters structurally.

        Raises:
            InvalidParameterError: on any structural violation.
        """

    @abstractmethod
    def handle(self, task: TaskRecord, params: ParamsT) -> dict[str, Any]:
        """Run the function for an existing, authorized task."""
