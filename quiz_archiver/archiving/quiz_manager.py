from quiz_archiver.archiving.exceptions import AttemptNotFoundError
from quiz_archiver.database.models import (
    AttemptAttachment,
    AttemptMetadata,
    AttemptRecord,
    CourseModuleRecord,
    CourseRecord,
    FeedbackBand,
    GroupRecord,
    QuestionAttemptRecord,
    QuizRecord,
    UserRecord,
)
from quiz_archiver.database.repositories.file_repository import FileRepository
from quiz_archiver.database.repositories.quiz_repository import QuizRepository


class QuizManager:
    """High-level access to one quiz and its attempts during archiving.

    Construct via ``for_course_module``; lookups of a missing course, course
    module or quiz fail with the corresponding NotFoundError.
    """

    def __init__(
        self,
        course: CourseRecord,
        cm: CourseModuleRecord,
        quiz: QuizRecord,
        quiz_repo: QuizRepository,
        file_repo: FileRepository,
    ) -> None:
        self.course = course
        self.cm = cm
        self.quiz = quiz
        self._quiz_repo = quiz_repo
        self._file_repo = file_repo

    @classmethod
    def for_course_module(
        cls,
        cmid: int,
        quiz_repo: QuizRepository,
        file_repo: FileRepository,
    ) -> "QuizManager":
        cm = quiz_repo.find_course_module(cmid)
        course = quiz_repo.find_course(cm.course)
        quiz = quiz_repo.find_quiz(cm.instance)
        return cls(course, cm, quiz, quiz_repo, file_repo)

    def list_attempts(self) -> list[tuple[int, int]]:
        """All non-preview attempts as (attemptid, userid), sorted by attempt ID."""
        return self._quiz_repo.list_attempts(self.quiz.id)

    def list_attempts_metadata(
        self,
        filter_attempt_ids: list[int] | None = None,
    ) -> list[AttemptMetadata]:
        return self._quiz_repo.list_attempts_metadata(self.quiz.id, filter_attempt_ids)

    def attempt_exists(self, attempt_id: int) -> bool:
        return self._quiz_repo.attempt_exists(self.quiz.id, attempt_id)

    def get_attempt(self, attempt_id: int) -> AttemptRecord:
        """Load an attempt of this quiz.

        Raises:
            AttemptNotFoundError: if the attempt does not exist, is a preview or
                belongs to another quiz.
        """
        attempt = self._quiz_repo.find_attempt(attempt_id)
        if attempt.quiz != self.quiz.id:
            raise AttemptNotFoundError(f"Attempt {attempt_id} not found in quiz {self.quiz.id}")
        return attempt

    def list_attachments(self, attempt_id: int) -> list[AttemptAttachment]:
        """Files attached to the questions of an attempt, ordered by slot."""
        attempt = self.get_attempt(attempt_id)
        return self._file_repo.list_attempt_attachments(attempt.uniqueid)

    def count_attachments(self, attempt_ids: list[int]) -> int:
        return sum(len(self.list_attachments(attempt_id)) for attempt_id in attempt_ids)

    def get_user(self, user_id: int) -> UserRecord:
        return self._quiz_repo.find_user(user_id)

    def list_user_groups(self, user_id: int) -> list[GroupRecord]:
        return self._quiz_repo.list_user_groups(self.course.id, user_id)

    def list_feedback_bands(self) -> list[FeedbackBand]:
        return self._quiz_repo.list_feedback_bands(self.quiz.id)

    def list_question_attempts(self, attempt: AttemptRecord) -> list[QuestionAttemptRecord]:
        return self._quiz_repo.list_question_attempts(attempt.uniqueid)

    def can_be_archived(self) -> bool:
        """A quiz is archivable once it has questions and at least one real attempt."""
        if self._quiz_repo.count_slots(self.quiz.id) == 0:
            return False
        return len(self.list_attempts()) > 0
