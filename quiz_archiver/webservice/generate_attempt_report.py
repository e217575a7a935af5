from collections.abc import Callable
from datetime import datetime
from typing import Any

from quiz_archiver.archiving.quiz_manager import QuizManager
from quiz_archiver.archiving.types import AttemptFilenameVariable, WebserviceStatus
from quiz_archiver.database.models import AttemptAttachment, TaskRecord
from quiz_archiver.database.repositories.file_repository import FileRepository
from quiz_archiver.database.repositories.quiz_repository import QuizRepository
from quiz_archiver.database.repositories.task_repository import TaskRepository
from quiz_archiver.logging.logger import Log
from quiz_archiver.report.attempt_report import AttemptReport
from quiz_archiver.report.filenames import AttemptFilenameGenerator
from quiz_archiver.storage.filename_pattern import (
    FILENAME_FORBIDDEN_CHARACTERS,
    FOLDERNAME_FORBIDDEN_CHARACTERS,
    is_valid_filename_pattern,
)
from quiz_archiver.webservice.base import QUIZ_LOOKUP_ERRORS, WebserviceFunction, status_response
from quiz_archiver.webservice.models import GenerateAttemptReportParams
from quiz_archiver.webservice.validation import parse_generate_attempt_report

ReportBuilder = Callable[[QuizManager], AttemptReport]
FilenameGeneratorBuilder = Callable[[QuizManager], AttemptFilenameGenerator]


class GenerateAttemptReport(WebserviceFunction[GenerateAttemptReportParams]):
    """Renders the full-page report of one attempt of the task's quiz.

    Besides the HTML, the response carries the folder and file name the report
    should be stored under and, if requested, metadata of all attempt attachments.
    """

    name = "archivingmod_quiz_generate_attempt_report"

    def __init__(
        self,
        task_repo: TaskRepository,
        quiz_repo: QuizRepository,
        file_repo: FileRepository,
        report_builder: ReportBuilder,
        filename_generator_builder: FilenameGeneratorBuilder,
        download_base_url: str,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        super().__init__(task_repo, clock)
        self._quiz_repo = quiz_repo
        self._file_repo = file_repo
        self._report_builder = report_builder
        self._filename_generator_builder = filename_generator_builder
        self._download_base_url = download_base_url.rstrip("/")

    def parse(self, raw_params: dict[str, Any]) -> GenerateAttemptReportParams:
        return parse_generate_attempt_report(raw_params)

    def handle(self, task: TaskRecord, params: GenerateAttemptReportParams) -> dict[str, Any]:
        try:
            quiz = QuizManager.for_course_module(task.cmid, self._quiz_repo, self._file_repo)
        except tuple(QUIZ_LOOKUP_ERRORS) as exc:
            return status_response(QUIZ_LOOKUP_ERRORS[type(exc)])

        variables = AttemptFilenameVariable.values()
        if not is_valid_filename_pattern(params.foldernamepattern, variables, FOLDERNAME_FORBIDDEN_CHARACTERS):
            return status_response(WebserviceStatus.E_INVALID_FOLDERNAME_PATTERN)
        if not is_valid_filename_pattern(params.filenamepattern, variables, FILENAME_FORBIDDEN_CHARACTERS):
            return status_response(WebserviceStatus.E_INVALID_FILENAME_PATTERN)

        if not quiz.attempt_exists(params.attemptid):
            return status_response(WebserviceStatus.E_ATTEMPT_NOT_FOUND)

        report = self._report_builder(quiz).generate_full_page(params.attemptid, params.sections)
        names = self._filename_generator_builder(quiz)

        attachments = []
        if params.attachments:
            attachments = [
                self._attachment_metadata(attachment)
                for attachment in quiz.list_attachments(params.attemptid)
            ]

        Log.info(
            f"Generated report for attempt {params.attemptid} of task {task.id}",
            attachments=len(attachments),
        )
        return status_response(
            WebserviceStatus.OK,
            attemptid=params.attemptid,
            foldername=names.foldername(params.attemptid, params.foldernamepattern),
            filename=names.filename(params.attemptid, params.filenamepattern),
            report=report,
            attachments=attachments,
        )

    def _attachment_metadata(self, attachment: AttemptAttachment) -> dict[str, Any]:
        file = attachment.file
        return {
            "slot": attachment.slot,
            "filename": file.filename,
            "filesize": file.filesize,
            "mimetype": file.mimetype,
            "contenthash": file.contenthash,
            "downloadurl": (
                f"{self._download_base_url}/webservice/pluginfile.php/{file.contextid}"
                f"/{file.component}/{file.filearea}/{attachment.usageid}/{attachment.slot}"
                f"/{file.itemid}{file.filepath}{file.filename}"
            ),
        }
