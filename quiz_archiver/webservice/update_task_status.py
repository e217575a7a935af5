from typing import Any

import psycopg

from quiz_archiver.archiving.types import TaskStatus, WebserviceStatus
from quiz_archiver.database.models import TaskRecord
from quiz_archiver.logging.logger import Log
from quiz_archiver.webservice.base import WebserviceFunction, status_response
from quiz_archiver.webservice.models import UpdateTaskStatusParams
from quiz_archiver.webservice.validation import parse_update_task_status


class UpdateTaskStatus(WebserviceFunction[UpdateTaskStatusParams]):
    """Applies status and progress reported by the worker to a task that is still running."""

    name = "archivingmod_quiz_update_task_status"

    def parse(self, raw_params: dict[str, Any]) -> UpdateTaskStatusParams:
        return parse_update_task_status(raw_params)

    def handle(self, task: TaskRecord, params: UpdateTaskStatusParams) -> dict[str, Any]:
        try:
            status = TaskStatus.from_code(params.status)
        except ValueError:
            return status_response(WebserviceStatus.E_INVALID_STATUS)

        if params.progress is not None and not 0 <= params.progress <= 100:
            return status_response(WebserviceStatus.E_INVALID_PROGRESS)

        if task.status.is_completed():
            return status_response(WebserviceStatus.E_ALREADY_COMPLETED)

        if not task.status.can_move_to(status):
            Log.warning(
                f"Rejected backward status change of task {task.id}",
                current=task.status.name,
                requested=status.name,
            )
            return status_response(WebserviceStatus.E_INVALID_STATUS)

        try:
            self._task_repo.set_status(task.id, status, progress=params.progress)
        except psycopg.Error as exc:
            Log.error(f"Updating status of task {task.id} failed: {exc}")
            return status_response(WebserviceStatus.E_UPDATE_FAILED)

        Log.info(
            f"Task {task.id} status updated by worker",
            status=status.name,
            progress=params.progress,
        )
        return status_response(WebserviceStatus.OK)
