import hmac
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from quiz_archiver.archiving.types import AttemptState, TaskStatus


@dataclass
class TaskRecord:
    """Represents a row from the mdl_local_archiving_task table joined with its job."""

    id: int
    jobid: int
    contextid: int
    cmid: int
    userid: int
    status: TaskStatus
    progress: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    wstoken: str | None = None
    wstoken_validuntil: datetime | None = None
    job_settings: dict[str, Any] = field(default_factory=dict)
    timecreated: datetime | None = None
    timemodified: datetime | None = None

    def has_valid_token(self, token: str | None, now: datetime) -> bool:
        """Whether ``token`` matches the issued webservice token and has not expired."""
        if not token or not self.wstoken:
            return False
        if not hmac.compare_digest(token.encode(), self.wstoken.encode()):
            return False
        return self.wstoken_validuntil is None or now < self.wstoken_validuntil


@dataclass(frozen=True)
class CourseRecord:
    """Represents a row from the mdl_course table."""

    id: int
    fullname: str
    shortname: str


@dataclass(frozen=True)
class CourseModuleRecord:
    """Represents a quiz row from mdl_course_modules together with its module context."""

    id: int
    course: int
    instance: int
    contextid: int


@dataclass(frozen=True)
class QuizRecord:
    """Represents a row from the mdl_quiz table."""

    id: int
    course: int
    name: str
    timelimit: int = 0
    grade: float = 0.0
    sumgrades: float = 0.0
    decimalpoints: int = 2
    timemodified: int = 0


@dataclass(frozen=True)
class AttemptRecord:
    """Represents a non-preview row from the mdl_quiz_attempts table."""

    id: int
    quiz: int
    userid: int
    attempt: int
    uniqueid: int
    state: AttemptState
    timestart: int
    timefinish: int = 0
    timemodified: int = 0
    sumgrades: float | None = None

    @property
    def is_finished(self) -> bool:
        return self.state is AttemptState.FINISHED


@dataclass(frozen=True)
class AttemptMetadata:
    """Attempt row joined with the identity fields of its user."""

    attemptid: int
    userid: int
    attempt: int
    state: str
    timestart: int
    timefinish: int
    username: str | None
    firstname: str | None
    lastname: str | None
    idnumber: str | None


@dataclass(frozen=True)
class UserRecord:
    """Represents a row from the mdl_user table."""

    id: int
    username: str
    firstname: str
    lastname: str
    idnumber: str = ""

    @property
    def fullname(self) -> str:
        return f"{self.firstname} {self.lastname}".strip()


@dataclass(frozen=True)
class GroupRecord:
    """A course group the attempt user is a member of."""

    id: int
    name: str
    idnumber: str = ""


@dataclass(frozen=True)
class FeedbackBand:
    """Represents a row from the mdl_quiz_feedback table. Lower bound inclusive."""

    feedbacktext: str
    mingrade: float
    maxgrade: float


@dataclass(frozen=True)
class QuestionStepRecord:
    """Represents a row from the mdl_question_attempt_steps table."""

    id: int
    sequencenumber: int
    state: str
    fraction: float | None
    timecreated: int
    userid: int | None = None


@dataclass(frozen=True)
class QuestionAttemptRecord:
    """A question attempt of one slot joined with its question definition."""

    id: int
    questionusageid: int
    slot: int
    questionid: int
    maxmark: float
    name: str
    questiontext: str
    generalfeedback: str = ""
    questionsummary: str | None = None
    rightanswer: str | None = None
    responsesummary: str | None = None
    steps: list[QuestionStepRecord] = field(default_factory=list)

    @property
    def last_step(self) -> QuestionStepRecord | None:
        return self.steps[-1] if self.steps else None


@dataclass(frozen=True)
class StoredFile:
    """Represents a row from the mdl_files table."""

    id: int
    contenthash: str
    contextid: int
    component: str
    filearea: str
    itemid: int
    filepath: str
    filename: str
    filesize: int
    mimetype: str | None = None
    userid: int | None = None


@dataclass(frozen=True)
class AttemptAttachment:
    """A file attached to a question slot of an attempt."""

    usageid: int
    slot: int
    file: StoredFile
