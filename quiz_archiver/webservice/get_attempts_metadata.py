from collections.abc import Callable
from dataclasses import asdict
from datetime import datetime
from typing import Any

from quiz_archiver.archiving.quiz_manager import QuizManager
from quiz_archiver.archiving.types import WebserviceStatus
from quiz_archiver.database.models import TaskRecord
from quiz_archiver.database.repositories.file_repository import FileRepository
from quiz_archiver.database.repositories.quiz_repository import QuizRepository
from quiz_archiver.database.repositories.task_repository import TaskRepository
from quiz_archiver.webservice.base import QUIZ_LOOKUP_ERRORS, WebserviceFunction, status_response
from quiz_archiver.webservice.models import GetAttemptsMetadataParams
from quiz_archiver.webservice.validation import parse_get_attempts_metadata


class GetAttemptsMetadata(WebserviceFunction[GetAttemptsMetadataParams]):
    """Returns user and timing metadata for the requested attempts of the task's quiz."""

    name = "archivingmod_quiz_get_attempts_metadata"

    def __init__(
        self,
        task_repo: TaskRepository,
        quiz_repo: QuizRepository,
        file_repo: FileRepository,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        super().__init__(task_repo, clock)
        self._quiz_repo = quiz_repo
        self._file_repo = file_repo

    def parse(self, raw_params: dict[str, Any]) -> GetAttemptsMetadataParams:
        return parse_get_attempts_metadata(raw_params)

    def handle(self, task: TaskRecord, params: GetAttemptsMetadataParams) -> dict[str, Any]:
        if not params.attemptids:
            return status_response(WebserviceStatus.E_INVALID_PARAM)

        try:
            quiz = QuizManager.for_course_module(task.cmid, self._quiz_repo, self._file_repo)
        except tuple(QUIZ_LOOKUP_ERRORS) as exc:
            return status_response(QUIZ_LOOKUP_ERRORS[type(exc)])

        attempts = quiz.list_attempts_metadata(params.attemptids)
        return status_response(
            WebserviceStatus.OK,
            attempts=[asdict(attempt) for attempt in attempts],
        )
