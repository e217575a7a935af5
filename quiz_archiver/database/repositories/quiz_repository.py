from collections.abc import Iterable
from typing import Any

from psycopg.rows import dict_row

from quiz_archiver.archiving.exceptions import (
    AttemptNotFoundError,
    CourseModuleNotFoundError,
    CourseNotFoundError,
    NotFoundError,
    QuizNotFoundError,
)
from quiz_archiver.archiving.types import AttemptState
from quiz_archiver.database.connection import get_connection
from quiz_archiver.database.models import (
    AttemptMetadata,
    AttemptRecord,
    CourseModuleRecord,
    CourseRecord,
    FeedbackBand,
    GroupRecord,
    QuestionAttemptRecord,
    QuestionStepRecord,
    QuizRecord,
    UserRecord,
)

CONTEXT_MODULE = 70


class QuizRepository:
    """Read-only queries against the quiz, course and question engine tables."""

    def find_course_module(self, cmid: int) -> CourseModuleRecord:
        """Find a quiz course module together with its module context.

        Raises:
            CourseModuleNotFoundError: if no quiz course module with this ID exists.
        """
        row = self._fetch_one(
            """
            SELECT cm.id, cm.course, cm.instance, ctx.id AS contextid
            FROM mdl_course_modules cm
            JOIN mdl_modules m ON m.id = cm.module AND m.name = 'quiz'
            JOIN mdl_context ctx ON ctx.instanceid = cm.id AND ctx.contextlevel = %s
            WHERE cm.id = %s
            """,
            (CONTEXT_MODULE, cmid),
        )
        if row is None:
            raise CourseModuleNotFoundError(f"Course module {cmid} not found")
        return CourseModuleRecord(
            id=row["id"],
            course=row["course"],
            instance=row["instance"],
            contextid=row["contextid"],
        )

    def find_course(self, course_id: int) -> CourseRecord:
        """Raises CourseNotFoundError if the course does not exist."""
        row = self._fetch_one(
            "SELECT id, fullname, shortname FROM mdl_course WHERE id = %s",
            (course_id,),
        )
        if row is None:
            raise CourseNotFoundError(f"Course {course_id} not found")
        return CourseRecord(id=row["id"], fullname=row["fullname"], shortname=row["shortname"])

    def find_quiz(self, quiz_id: int) -> QuizRecord:
        """Raises QuizNotFoundError if the quiz does not exist."""
        row = self._fetch_one(
            """
            SELECT id, course, name, timelimit, grade, sumgrades, decimalpoints, timemodified
            FROM mdl_quiz
            WHERE id = %s
            """,
            (quiz_id,),
        )
        if row is None:
            raise QuizNotFoundError(f"Quiz {quiz_id} not found")
        return QuizRecord(
            id=row["id"],
            course=row["course"],
            name=row["name"],
            timelimit=row["timelimit"] or 0,
            grade=float(row["grade"] or 0),
            sumgrades=float(row["sumgrades"] or 0),
            decimalpoints=row["decimalpoints"],
            timemodified=row["timemodified"] or 0,
        )

    def list_attempts(self, quiz_id: int) -> list[tuple[int, int]]:
        """Return (attemptid, userid) of all non-preview attempts, ordered by attempt ID."""
        rows = self._fetch_all(
            """
            SELECT id AS attemptid, userid
            FROM mdl_quiz_attempts
            WHERE preview = 0 AND quiz = %s
            ORDER BY id
            """,
            (quiz_id,),
        )
        return [(row["attemptid"], row["userid"]) for row in rows]

    def list_attempts_metadata(
        self,
        quiz_id: int,
        filter_attempt_ids: Iterable[int] | None = None,
    ) -> list[AttemptMetadata]:
        """Return attempt rows joined with user identity fields, ordered by attempt ID.

        If ``filter_attempt_ids`` is given, only attempts with these IDs are returned.
        """
        query = """
            SELECT qa.id AS attemptid, qa.userid, qa.attempt, qa.state,
                   qa.timestart, qa.timefinish,
                   u.username, u.firstname, u.lastname, u.idnumber
            FROM mdl_quiz_attempts qa
            LEFT JOIN mdl_user u ON qa.userid = u.id
            WHERE qa.preview = 0 AND qa.quiz = %s
        """
        params: list[Any] = [quiz_id]
        if filter_attempt_ids is not None:
            query += " AND qa.id = ANY(%s)"
            params.append([int(v) for v in filter_attempt_ids])
        query += " ORDER BY qa.id"

        return [
            AttemptMetadata(
                attemptid=row["attemptid"],
                userid=row["userid"],
                attempt=row["attempt"],
                state=row["state"],
                timestart=row["timestart"],
                timefinish=row["timefinish"],
                username=row["username"],
                firstname=row["firstname"],
                lastname=row["lastname"],
                idnumber=row["idnumber"],
            )
            for row in self._fetch_all(query, tuple(params))
        ]

    def attempt_exists(self, quiz_id: int, attempt_id: int) -> bool:
        row = self._fetch_one(
            """
            SELECT 1 AS found FROM mdl_quiz_attempts
            WHERE id = %s AND quiz = %s AND preview = 0
            """,
            (attempt_id, quiz_id),
        )
        return row is not None

    def find_attempt(self, attempt_id: int) -> AttemptRecord:
        """Raises AttemptNotFoundError if the attempt does not exist or is a preview."""
        row = self._fetch_one(
            """
            SELECT id, quiz, userid, attempt, uniqueid, state, timestart, timefinish,
                   timemodified, sumgrades
            FROM mdl_quiz_attempts
            WHERE id = %s AND preview = 0
            """,
            (attempt_id,),
        )
        if row is None:
            raise AttemptNotFoundError(f"Attempt {attempt_id} not found")
        return AttemptRecord(
            id=row["id"],
            quiz=row["quiz"],
            userid=row["userid"],
            attempt=row["attempt"],
            uniqueid=row["uniqueid"],
            state=AttemptState(row["state"]),
            timestart=row["timestart"] or 0,
            timefinish=row["timefinish"] or 0,
            timemodified=row["timemodified"] or 0,
            sumgrades=None if row["sumgrades"] is None else float(row["sumgrades"]),
        )

    def find_user(self, user_id: int) -> UserRecord:
        """Raises NotFoundError if the user does not exist."""
        row = self._fetch_one(
            "SELECT id, username, firstname, lastname, idnumber FROM mdl_user WHERE id = %s",
            (user_id,),
        )
        if row is None:
            raise NotFoundError(f"User {user_id} not found")
        return UserRecord(
            id=row["id"],
            username=row["username"],
            firstname=row["firstname"],
            lastname=row["lastname"],
            idnumber=row["idnumber"] or "",
        )

    def list_user_groups(self, course_id: int, user_id: int) -> list[GroupRecord]:
        rows = self._fetch_all(
            """
            SELECT g.id, g.name, g.idnumber
            FROM mdl_groups g
            JOIN mdl_groups_members gm ON gm.groupid = g.id
            WHERE g.courseid = %s AND gm.userid = %s
            ORDER BY g.id
            """,
            (course_id, user_id),
        )
        return [
            GroupRecord(id=row["id"], name=row["name"], idnumber=row["idnumber"] or "")
            for row in rows
        ]

    def count_slots(self, quiz_id: int) -> int:
        row = self._fetch_one(
            "SELECT COUNT(*) AS n FROM mdl_quiz_slots WHERE quizid = %s",
            (quiz_id,),
        )
        return int(row["n"]) if row else 0

    def list_feedback_bands(self, quiz_id: int) -> list[FeedbackBand]:
        rows = self._fetch_all(
            """
            SELECT feedbacktext, mingrade, maxgrade
            FROM mdl_quiz_feedback
            WHERE quizid = %s
            ORDER BY mingrade
            """,
            (quiz_id,),
        )
        return [
            FeedbackBand(
                feedbacktext=row["feedbacktext"] or "",
                mingrade=float(row["mingrade"]),
                maxgrade=float(row["maxgrade"]),
            )
            for row in rows
        ]

    def list_question_attempts(self, usage_id: int) -> list[QuestionAttemptRecord]:
        """Return all question attempts of a usage with their steps, ordered by slot."""
        qa_rows = self._fetch_all(
            """
            SELECT qa.id, qa.questionusageid, qa.slot, qa.questionid, qa.maxmark,
                   qa.questionsummary, qa.rightanswer, qa.responsesummary,
                   q.name, q.questiontext, q.generalfeedback
            FROM mdl_question_attempts qa
            JOIN mdl_question q ON q.id = qa.questionid
            WHERE qa.questionusageid = %s
            ORDER BY qa.slot
            """,
            (usage_id,),
        )
        step_rows = self._fetch_all(
            """
            SELECT s.id, s.questionattemptid, s.sequencenumber, s.state, s.fraction,
                   s.timecreated, s.userid
            FROM mdl_question_attempt_steps s
            JOIN mdl_question_attempts qa ON qa.id = s.questionattemptid
            WHERE qa.questionusageid = %s
            ORDER BY s.questionattemptid, s.sequencenumber
            """,
            (usage_id,),
        )
        steps: dict[int, list[QuestionStepRecord]] = {}
        for row in step_rows:
            steps.setdefault(row["questionattemptid"], []).append(
                QuestionStepRecord(
                    id=row["id"],
                    sequencenumber=row["sequencenumber"],
                    state=row["state"],
                    fraction=None if row["fraction"] is None else float(row["fraction"]),
                    timecreated=row["timecreated"],
                    userid=row["userid"],
                )
            )
        return [
            QuestionAttemptRecord(
                id=row["id"],
                questionusageid=row["questionusageid"],
                slot=row["slot"],
                questionid=row["questionid"],
                maxmark=float(row["maxmark"]),
                name=row["name"],
                questiontext=row["questiontext"] or "",
                generalfeedback=row["generalfeedback"] or "",
                questionsummary=row["questionsummary"],
                rightanswer=row["rightanswer"],
                responsesummary=row["responsesummary"],
                steps=steps.get(row["id"], []),
            )
            for row in qa_rows
        ]

    def get_last_modified(self, quiz_id: int) -> tuple[int, int | None]:
        """Return the quiz timemodified and the latest timemodified across its attempts.

        The second value is None if the quiz has no attempts.

        Raises:
            QuizNotFoundError: if the quiz does not exist.
        """
        row = self._fetch_one(
            """
            SELECT q.timemodified AS quiz_modified,
                   (SELECT MAX(qa.timemodified) FROM mdl_quiz_attempts qa
                    WHERE qa.quiz = q.id AND qa.preview = 0) AS attempts_modified
            FROM mdl_quiz q
            WHERE q.id = %s
            """,
            (quiz_id,),
        )
        if row is None:
            raise QuizNotFoundError(f"Quiz {quiz_id} not found")
        return int(row["quiz_modified"] or 0), row["attempts_modified"]

    @staticmethod
    def _fetch_one(query: str, params: tuple[Any, ...]) -> dict[str, Any] | None:
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(query, params)
                return cur.fetchone()

    @staticmethod
    def _fetch_all(query: str, params: tuple[Any, ...]) -> list[dict[str, Any]]:
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(query, params)
                return cur.fetchall()
