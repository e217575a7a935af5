"""Generation of attempt report folder and file names from user defined patterns."""

import time
from collections.abc import Callable
from datetime import datetime, tzinfo

from quiz_archiver.archiving.exceptions import InvalidFilenamePatternError
from quiz_archiver.archiving.quiz_manager import QuizManager
from quiz_archiver.archiving.types import AttemptFilenameVariable as Var
from quiz_archiver.storage.filename_pattern import (
    FILENAME_FORBIDDEN_CHARACTERS,
    FOLDERNAME_FORBIDDEN_CHARACTERS,
    VARIABLE_PATTERN,
    is_valid_filename_pattern,
)

FILENAME_MAX_LENGTH = 240
NO_GROUP_PLACEHOLDER = "nogroup"


def render_pattern(pattern: str, variables: dict[str, str], is_folder: bool) -> str:
    """Substitute all variables of a pattern and sanitize the result for the file system.

    Folder names keep ``/`` as path separator; empty and dot-only segments are
    dropped. The result is truncated to FILENAME_MAX_LENGTH characters.

    Raises:
        InvalidFilenamePatternError: if the pattern is invalid.
    """
    forbidden = FOLDERNAME_FORBIDDEN_CHARACTERS if is_folder else FILENAME_FORBIDDEN_CHARACTERS
    if not is_valid_filename_pattern(pattern, Var.values(), forbidden):
        kind = "folder name" if is_folder else "file name"
        raise InvalidFilenamePatternError(f"Invalid {kind} pattern: {pattern}")

    substituted = VARIABLE_PATTERN.sub(lambda m: variables.get(m.group("name"), ""), pattern)

    if is_folder:
        segments = [_strip_chars(segment, FOLDERNAME_FORBIDDEN_CHARACTERS) for segment in substituted.split("/")]
        name = "/".join(s for s in (seg.strip() for seg in segments) if s.strip("."))
    else:
        name = _strip_chars(substituted, FILENAME_FORBIDDEN_CHARACTERS).strip()

    return name[:FILENAME_MAX_LENGTH]


def _strip_chars(value: str, characters: tuple[str, ...]) -> str:
    return "".join(char for char in value if char not in characters)


class AttemptFilenameGenerator:
    """Builds the folder and file names an attempt report is stored under."""

    def __init__(
        self,
        quiz_manager: QuizManager,
        tz: tzinfo,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self._quiz_manager = quiz_manager
        self._tz = tz
        self._clock = clock or (lambda: int(time.time()))

    def foldername(self, attempt_id: int, pattern: str) -> str:
        return render_pattern(pattern, self.variables(attempt_id), is_folder=True)

    def filename(self, attempt_id: int, pattern: str) -> str:
        return render_pattern(pattern, self.variables(attempt_id), is_folder=False)

    def variables(self, attempt_id: int) -> dict[str, str]:
        """Values of all pattern variables for an attempt.

        Raises:
            AttemptNotFoundError: if the attempt does not belong to the quiz.
        """
        manager = self._quiz_manager
        attempt = manager.get_attempt(attempt_id)
        user = manager.get_user(attempt.userid)
        groups = manager.list_user_groups(attempt.userid)
        now = datetime.fromtimestamp(self._clock(), tz=self._tz)

        def joined(values: list[str]) -> str:
            return "-".join(values) if values else NO_GROUP_PLACEHOLDER

        return {
            Var.COURSEID.value: str(manager.course.id),
            Var.COURSENAME.value: manager.course.fullname,
            Var.COURSESHORTNAME.value: manager.course.shortname,
            Var.CMID.value: str(manager.cm.id),
            Var.GROUPIDS.value: joined([str(g.id) for g in groups]),
            Var.GROUPIDNUMBERS.value: joined([g.idnumber for g in groups if g.idnumber]),
            Var.GROUPNAMES.value: joined([g.name for g in groups]),
            Var.QUIZID.value: str(manager.quiz.id),
            Var.QUIZNAME.value: manager.quiz.name,
            Var.ATTEMPTID.value: str(attempt.id),
            Var.USERNAME.value: user.username,
            Var.FIRSTNAME.value: user.firstname,
            Var.LASTNAME.value: user.lastname,
            Var.IDNUMBER.value: user.idnumber,
            Var.TIMESTART.value: str(attempt.timestart),
            Var.TIMEFINISH.value: str(attempt.timefinish),
            Var.DATE.value: now.strftime("%Y-%m-%d"),
            Var.TIME.value: now.strftime("%H-%M-%S"),
            Var.TIMESTAMP.value: str(int(now.timestamp())),
        }
