from functools import partial
from pathlib import Path
from typing import Any

import httpx

from quiz_archiver.config.settings import Settings
from quiz_archiver.database.repositories.file_repository import FileRepository
from quiz_archiver.database.repositories.quiz_repository import QuizRepository
from quiz_archiver.database.repositories.task_repository import TaskRepository
from quiz_archiver.report.factory import build_attempt_report, build_filename_generator
from quiz_archiver.storage.file_store import FileStore
from quiz_archiver.webservice.base import WebserviceFunction
from quiz_archiver.webservice.exceptions import InvalidParameterError
from quiz_archiver.webservice.generate_attempt_report import GenerateAttemptReport
from quiz_archiver.webservice.get_attempts_metadata import GetAttemptsMetadata
from quiz_archiver.webservice.process_uploaded_artifact import ProcessUploadedArtifact
from quiz_archiver.webservice.update_task_status import UpdateTaskStatus


class WebserviceRegistry:
    """Maps webservice function names to their implementations."""

    def __init__(self, functions: list[WebserviceFunction[Any]]) -> None:
        self._functions = {function.name: function for function in functions}

    @classmethod
    def create(cls, settings: Settings, image_client: httpx.Client) -> "WebserviceRegistry":
        task_repo = TaskRepository(settings.webservice_token_lifetime_seconds)
        quiz_repo = QuizRepository()
        file_repo = FileRepository()
        file_store = FileStore(Path(settings.dataroot))

        return cls([
            GenerateAttemptReport(
                task_repo,
                quiz_repo,
                file_repo,
                report_builder=partial(
                    build_attempt_report,
                    settings,
                    file_repo=file_repo,
                    http_client=image_client,
                ),
                filename_generator_builder=partial(build_filename_generator, settings),
                download_base_url=settings.callback_wwwroot,
            ),
            GetAttemptsMetadata(task_repo, quiz_repo, file_repo),
            UpdateTaskStatus(task_repo),
            ProcessUploadedArtifact(task_repo, file_repo, file_store),
        ])

    @property
    def names(self) -> list[str]:
        return sorted(self._functions)

    def dispatch(self, wsfunction: str, params: dict[str, Any], wstoken: str | None) -> dict[str, Any]:
        """Run a webservice function by name.

        Raises:
            InvalidParameterError: if the function is unknown or its parameters are malformed.
        """
        function = self._functions.get(wsfunction)
        if function is None:
            raise InvalidParameterError(f"Unknown webservice function: {wsfunction}")
        return function.execute(params, wstoken)
