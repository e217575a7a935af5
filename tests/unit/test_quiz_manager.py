from unittest.mock import MagicMock

import pytest

from quiz_archiver.archiving.exceptions import AttemptNotFoundError, QuizNotFoundError
from quiz_archiver.archiving.quiz_manager import QuizManager
from quiz_archiver.archiving.types import AttemptState
from quiz_archiver.database.models import (
    AttemptRecord,
    CourseModuleRecord,
    CourseRecord,
    QuizRecord,
)


def _attempt(attempt_id: int, quiz: int = 11) -> AttemptRecord:
    return AttemptRecord(
        id=attempt_id,
        quiz=quiz,
        userid=2,
        attempt=1,
        uniqueid=attempt_id + 1000,
        state=AttemptState.FINISHED,
        timestart=100,
    )


@pytest.fixture()
def quiz_repo() -> MagicMock:
    repo = MagicMock()
    repo.find_course_module.return_value = CourseModuleRecord(id=5, course=3, instance=11, contextid=42)
    repo.find_course.return_value = CourseRecord(id=3, fullname="Chemistry", shortname="CHEM")
    repo.find_quiz.return_value = QuizRecord(id=11, course=3, name="Final exam")
    repo.find_attempt.side_effect = _attempt
    return repo


class TestForCourseModule:
    def test_loads_course_and_quiz(self, quiz_repo: MagicMock) -> None:
        manager = QuizManager.for_course_module(5, quiz_repo, MagicMock())

        assert manager.course.shortname == "CHEM"
        assert manager.quiz.id == 11
        quiz_repo.find_course.assert_called_once_with(3)
        quiz_repo.find_quiz.assert_called_once_with(11)

    def test_missing_quiz_propagates(self, quiz_repo: MagicMock) -> None:
        quiz_repo.find_quiz.side_effect = QuizNotFoundError("Quiz 11 not found")

        with pytest.raises(QuizNotFoundError):
            QuizManager.for_course_module(5, quiz_repo, MagicMock())


class TestAttempts:
    def test_attempt_of_other_quiz_is_not_found(self, quiz_repo: MagicMock) -> None:
        quiz_repo.find_attempt.side_effect = lambda attempt_id: _attempt(attempt_id, quiz=99)
        manager = QuizManager.for_course_module(5, quiz_repo, MagicMock())

        with pytest.raises(AttemptNotFoundError):
            manager.get_attempt(1)

    def test_list_attachments_uses_usage_id(self, quiz_repo: MagicMock) -> None:
        file_repo = MagicMock()
        file_repo.list_attempt_attachments.return_value = []
        manager = QuizManager.for_course_module(5, quiz_repo, file_repo)

        manager.list_attachments(7)

        file_repo.list_attempt_attachments.assert_called_once_with(1007)

    def test_count_attachments_sums_attempts(self, quiz_repo: MagicMock) -> None:
        file_repo = MagicMock()
        file_repo.list_attempt_attachments.side_effect = [["a", "b"], [], ["c"]]
        manager = QuizManager.for_course_module(5, quiz_repo, file_repo)

        assert manager.count_attachments([1, 2, 3]) == 3

    def test_user_groups_are_scoped_to_course(self, quiz_repo: MagicMock) -> None:
        manager = QuizManager.for_course_module(5, quiz_repo, MagicMock())

        manager.list_user_groups(2)

        quiz_repo.list_user_groups.assert_called_once_with(3, 2)


class TestCanBeArchived:
    def test_requires_slots(self, quiz_repo: MagicMock) -> None:
        quiz_repo.count_slots.return_value = 0
        quiz_repo.list_attempts.return_value = [(1, 2)]

        assert not QuizManager.for_course_module(5, quiz_repo, MagicMock()).can_be_archived()

    def test_requires_attempts(self, quiz_repo: MagicMock) -> None:
        quiz_repo.count_slots.return_value = 4
        quiz_repo.list_attempts.return_value = []

        assert not QuizManager.for_course_module(5, quiz_repo, MagicMock()).can_be_archived()

    def test_archivable_with_slots_and_attempts(self, quiz_repo: MagicMock) -> None:
        quiz_repo.count_slots.return_value = 4
        quiz_repo.list_attempts.return_value = [(1, 2)]

        assert QuizManager.for_course_module(5, quiz_repo, MagicMock()).can_be_archived()
