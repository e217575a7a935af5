from collections.abc import Callable
from datetime import datetime
from typing import Any

from quiz_archiver.archiving.exceptions import StorageError
from quiz_archiver.archiving.types import TaskStatus, WebserviceStatus
from quiz_archiver.database.models import StoredFile, TaskRecord
from quiz_archiver.database.repositories.file_repository import FileRepository
from quiz_archiver.database.repositories.task_repository import TaskRepository
from quiz_archiver.logging.logger import Log
from quiz_archiver.storage.file_store import FileStore
from quiz_archiver.webservice.base import WebserviceFunction, status_response
from quiz_archiver.webservice.models import ProcessUploadedArtifactParams
from quiz_archiver.webservice.validation import parse_process_uploaded_artifact

DRAFT_COMPONENT = "user"
DRAFT_FILEAREA = "draft"


class ProcessUploadedArtifact(WebserviceFunction[ProcessUploadedArtifactParams]):
    """Verifies an artifact uploaded by the worker and stores it as the task's result.

    The draft file is checked against the declared SHA-256 checksum. Any failure
    after the draft was located deletes the draft and fails the task.
    """

    name = "archivingmod_quiz_process_uploaded_artifact"

    def __init__(
        self,
        task_repo: TaskRepository,
        file_repo: FileRepository,
        file_store: FileStore,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        super().__init__(task_repo, clock)
        self._file_repo = file_repo
        self._file_store = file_store

    def parse(self, raw_params: dict[str, Any]) -> ProcessUploadedArtifactParams:
        return parse_process_uploaded_artifact(raw_params)

    def handle(self, task: TaskRecord, params: ProcessUploadedArtifactParams) -> dict[str, Any]:
        if task.status.is_completed():
            return status_response(WebserviceStatus.E_NO_UPLOAD_EXPECTED)

        draft = self._file_repo.get_file(
            contextid=params.artifact_contextid,
            component=DRAFT_COMPONENT,
            filearea=DRAFT_FILEAREA,
            itemid=params.artifact_itemid,
            filepath=params.artifact_filepath,
            filename=params.artifact_filename,
        )
        if draft is None:
            self._task_repo.set_status(task.id, TaskStatus.FAILED)
            Log.error(f"Uploaded artifact of task {task.id} not found", filename=params.artifact_filename)
            return status_response(WebserviceStatus.E_FILE_NOT_FOUND)

        if not self._checksum_matches(draft, params.artifact_sha256sum):
            self._reject(task, draft)
            Log.error(f"Checksum mismatch for uploaded artifact of task {task.id}", file_id=draft.id)
            return status_response(WebserviceStatus.E_CHECKSUM_MISMATCH)

        try:
            self._task_repo.link_artifact(task, draft, params.artifact_sha256sum)
        except StorageError as exc:
            self._reject(task, draft)
            Log.error(f"Storing artifact of task {task.id} failed: {exc}")
            return status_response(WebserviceStatus.E_STORING_FAILED)

        self._task_repo.set_status(task.id, TaskStatus.FINISHED, progress=100)
        Log.info(f"Task {task.id} finished, artifact stored", file_id=draft.id)
        return status_response(WebserviceStatus.OK)

    def _checksum_matches(self, draft: StoredFile, expected: str) -> bool:
        try:
            actual = self._file_store.sha256(draft)
        except FileNotFoundError:
            return False
        return actual == expected.strip().lower()

    def _reject(self, task: TaskRecord, draft: StoredFile) -> None:
        self._file_repo.delete(draft.id)
        self._task_repo.set_status(task.id, TaskStatus.FAILED)
