from collections.abc import Callable
from datetime import datetime
from typing import Any
from unittest.mock import MagicMock

import pytest

from quiz_archiver.archiving.exceptions import CourseModuleNotFoundError
from quiz_archiver.archiving.types import AttemptState, ReportSection
from quiz_archiver.database.models import (
    AttemptAttachment,
    AttemptRecord,
    CourseModuleRecord,
    CourseRecord,
    QuizRecord,
    StoredFile,
    TaskRecord,
)
from quiz_archiver.webservice.generate_attempt_report import GenerateAttemptReport


def _params(**overrides: Any) -> dict[str, Any]:
    params: dict[str, Any] = {
        "taskid": 1,
        "attemptid": 3,
        "foldernamepattern": "${username}",
        "filenamepattern": "attempt-${attemptid}",
        "sections": {section.value: True for section in ReportSection},
        "attachments": True,
    }
    params.update(overrides)
    return params


@pytest.fixture()
def task(make_task: Callable[..., TaskRecord]) -> TaskRecord:
    return make_task()


@pytest.fixture()
def task_repo(task: TaskRecord) -> MagicMock:
    repo = MagicMock()
    repo.find_by_id.return_value = task
    return repo


@pytest.fixture()
def quiz_repo() -> MagicMock:
    repo = MagicMock()
    repo.find_course_module.return_value = CourseModuleRecord(id=5, course=3, instance=11, contextid=42)
    repo.find_course.return_value = CourseRecord(id=3, fullname="Chemistry", shortname="CHEM")
    repo.find_quiz.return_value = QuizRecord(id=11, course=3, name="Final exam")
    repo.attempt_exists.return_value = True
    repo.find_attempt.return_value = AttemptRecord(
        id=3, quiz=11, userid=2, attempt=1, uniqueid=77, state=AttemptState.FINISHED, timestart=100
    )
    return repo


@pytest.fixture()
def file_repo() -> MagicMock:
    repo = MagicMock()
    repo.list_attempt_attachments.return_value = [
        AttemptAttachment(
            usageid=77,
            slot=2,
            file=StoredFile(
                id=10,
                contenthash="0a" * 20,
                contextid=42,
                component="question",
                filearea="response_attachments",
                itemid=300,
                filepath="/",
                filename="essay.pdf",
                filesize=2048,
                mimetype="application/pdf",
            ),
        )
    ]
    return repo


@pytest.fixture()
def report() -> MagicMock:
    report = MagicMock()
    report.generate_full_page.return_value = "<!DOCTYPE html><html></html>"
    return report


@pytest.fixture()
def names() -> MagicMock:
    names = MagicMock()
    names.foldername.return_value = "student"
    names.filename.return_value = "attempt-3"
    return names


@pytest.fixture()
def function(
    task_repo: MagicMock,
    quiz_repo: MagicMock,
    file_repo: MagicMock,
    report: MagicMock,
    names: MagicMock,
    clock: Callable[[], datetime],
) -> GenerateAttemptReport:
    return GenerateAttemptReport(
        task_repo,
        quiz_repo,
        file_repo,
        report_builder=lambda quiz: report,
        filename_generator_builder=lambda quiz: names,
        download_base_url="https://moodle.example.com/",
        clock=clock,
    )


class TestSuccess:
    def test_returns_report_and_names(
        self, function: GenerateAttemptReport, task: TaskRecord, report: MagicMock
    ) -> None:
        result = function.execute(_params(), task.wstoken)

        assert result["status"] == "OK"
        assert result["attemptid"] == 3
        assert result["foldername"] == "student"
        assert result["filename"] == "attempt-3"
        assert result["report"] == "<!DOCTYPE html><html></html>"
        attempt_id, sections = report.generate_full_page.call_args[0]
        assert attempt_id == 3
        assert all(sections.values())

    def test_attachment_metadata(self, function: GenerateAttemptReport, task: TaskRecord) -> None:
        result = function.execute(_params(), task.wstoken)

        assert result["attachments"] == [
            {
                "slot": 2,
                "filename": "essay.pdf",
                "filesize": 2048,
                "mimetype": "application/pdf",
                "contenthash": "0a" * 20,
                "downloadurl": (
                    "https://moodle.example.com/webservice/pluginfile.php/42"
                    "/question/response_attachments/77/2/300/essay.pdf"
                ),
            }
        ]

    def test_attachments_can_be_skipped(
        self, function: GenerateAttemptReport, task: TaskRecord, file_repo: MagicMock
    ) -> None:
        result = function.execute(_params(attachments=False), task.wstoken)

        assert result["attachments"] == []
        file_repo.list_attempt_attachments.assert_not_called()


class TestFailures:
    def test_missing_course_module(
        self, function: GenerateAttemptReport, task: TaskRecord, quiz_repo: MagicMock
    ) -> None:
        quiz_repo.find_course_module.side_effect = CourseModuleNotFoundError("Course module 5 not found")

        assert function.execute(_params(), task.wstoken) == {"status": "E_CM_NOT_FOUND"}

    def test_invalid_foldername_pattern(
        self, function: GenerateAttemptReport, task: TaskRecord, report: MagicMock
    ) -> None:
        result = function.execute(_params(foldernamepattern="${password}"), task.wstoken)

        assert result == {"status": "E_INVALID_FOLDERNAME_PATTERN"}
        report.generate_full_page.assert_not_called()

    def test_invalid_filename_pattern(self, function: GenerateAttemptReport, task: TaskRecord) -> None:
        result = function.execute(_params(filenamepattern="a/${attemptid}"), task.wstoken)
        assert result == {"status": "E_INVALID_FILENAME_PATTERN"}

    def test_unknown_attempt(
        self, function: GenerateAttemptReport, task: TaskRecord, quiz_repo: MagicMock, report: MagicMock
    ) -> None:
        quiz_repo.attempt_exists.return_value = False

        assert function.execute(_params(), task.wstoken) == {"status": "E_ATTEMPT_NOT_FOUND"}
        report.generate_full_page.assert_not_called()

    def test_wrong_token_is_denied(self, function: GenerateAttemptReport, quiz_repo: MagicMock) -> None:
        assert function.execute(_params(), "nope") == {"status": "E_ACCESS_DENIED"}
        quiz_repo.find_course_module.assert_not_called()
