"""Enumerations shared by the driver, the worker client and the webservice layer."""

from enum import Enum, IntEnum


class TaskStatus(IntEnum):
    """Lifecycle status of an activity archiving task.

    The integer values are the wire codes exchanged with the remote worker.
    """

    UNINITIALIZED = 0
    CREATED = 10
    AWAITING_PROCESSING = 20
    RUNNING = 30
    FINALIZING = 40
    FINISHED = 100
    CANCELED = 200
    FAILED = 210
    TIMEOUT = 220
    UNKNOWN = 255

    def is_completed(self) -> bool:
        """Whether the task reached a final state and must not change anymore."""
        return self in _COMPLETED_STATUSES

    def can_move_to(self, target: "TaskStatus") -> bool:
        """Whether ``target`` does not lie behind this status in the linear lifecycle.

        Statuses outside the linear lifecycle (canceled, failed, timeout and
        unknown) can be reached from anywhere. Once a task left the linear
        lifecycle it cannot re-enter it.
        """
        if target not in _LINEAR_LIFECYCLE:
            return True
        if self not in _LINEAR_LIFECYCLE:
            return False
        return _LINEAR_LIFECYCLE.index(target) >= _LINEAR_LIFECYCLE.index(self)

    @classmethod
    def from_code(cls, code: int) -> "TaskStatus":
        """Map a numeric wire code to a status.

        Raises:
            ValueError: if the code is not a known status.
        """
        return cls(int(code))


_COMPLETED_STATUSES = frozenset(
    {TaskStatus.FINISHED, TaskStatus.CANCELED, TaskStatus.FAILED, TaskStatus.TIMEOUT}
)

_LINEAR_LIFECYCLE = (
    TaskStatus.UNINITIALIZED,
    TaskStatus.CREATED,
    TaskStatus.AWAITING_PROCESSING,
    TaskStatus.RUNNING,
    TaskStatus.FINALIZING,
    TaskStatus.FINISHED,
)


class WorkerStatus(str, Enum):
    """Status values the remote worker service can report."""

    IDLE = "IDLE"
    ACTIVE = "ACTIVE"
    BUSY = "BUSY"
    UNKNOWN = "UNKNOWN"


class WebserviceStatus(str, Enum):
    """Closed vocabulary of status codes returned by the inbound webservice functions."""

    OK = "OK"
    E_TASK_NOT_FOUND = "E_TASK_NOT_FOUND"
    E_ACCESS_DENIED = "E_ACCESS_DENIED"
    E_INVALID_PARAM = "E_INVALID_PARAM"
    E_UPDATE_FAILED = "E_UPDATE_FAILED"
    E_COURSE_NOT_FOUND = "E_COURSE_NOT_FOUND"
    E_CM_NOT_FOUND = "E_CM_NOT_FOUND"
    E_QUIZ_NOT_FOUND = "E_QUIZ_NOT_FOUND"
    E_ATTEMPT_NOT_FOUND = "E_ATTEMPT_NOT_FOUND"
    E_INVALID_FOLDERNAME_PATTERN = "E_INVALID_FOLDERNAME_PATTERN"
    E_INVALID_FILENAME_PATTERN = "E_INVALID_FILENAME_PATTERN"
    E_INVALID_STATUS = "E_INVALID_STATUS"
    E_INVALID_PROGRESS = "E_INVALID_PROGRESS"
    E_ALREADY_COMPLETED = "E_ALREADY_COMPLETED"
    E_NO_UPLOAD_EXPECTED = "E_NO_UPLOAD_EXPECTED"
    E_FILE_NOT_FOUND = "E_FILE_NOT_FOUND"
    E_CHECKSUM_MISMATCH = "E_CHECKSUM_MISMATCH"
    E_STORING_FAILED = "E_STORING_FAILED"


class ReportSection(str, Enum):
    """Sections that can be included in an attempt report."""

    HEADER = "header"
    OVERALL_FEEDBACK = "quiz_feedback"
    QUESTION = "question"
    QUESTION_FEEDBACK = "question_feedback"
    GENERAL_FEEDBACK = "general_feedback"
    CORRECT_ANSWER = "rightanswer"
    ANSWER_HISTORY = "history"
    ATTACHMENTS = "attachments"

    def dependencies(self) -> tuple["ReportSection", ...]:
        """Sections that must be active for this section to be active."""
        return _SECTION_DEPENDENCIES.get(self, ())

    @classmethod
    def resolve(cls, flags: dict["ReportSection", bool]) -> dict["ReportSection", bool]:
        """Return a complete flag map where no section is active without its dependencies.

        Sections missing from ``flags`` are treated as inactive.
        """
        resolved = {section: bool(flags.get(section, False)) for section in cls}
        for section in cls:
            if resolved[section] and not all(resolved[dep] for dep in section.dependencies()):
                resolved[section] = False
        return resolved


_SECTION_DEPENDENCIES: dict[ReportSection, tuple[ReportSection, ...]] = {
    ReportSection.OVERALL_FEEDBACK: (ReportSection.HEADER,),
    ReportSection.QUESTION_FEEDBACK: (ReportSection.QUESTION,),
    ReportSection.GENERAL_FEEDBACK: (ReportSection.QUESTION,),
    ReportSection.CORRECT_ANSWER: (ReportSection.QUESTION,),
    ReportSection.ANSWER_HISTORY: (ReportSection.QUESTION,),
    ReportSection.ATTACHMENTS: (ReportSection.QUESTION,),
}


class AttemptFilenameVariable(str, Enum):
    """Variables that may appear as ``${name}`` in attempt folder and file name patterns."""

    COURSEID = "courseid"
    COURSENAME = "coursename"
    COURSESHORTNAME = "courseshortname"
    CMID = "cmid"
    GROUPIDS = "groupids"
    GROUPIDNUMBERS = "groupidnumbers"
    GROUPNAMES = "groupnames"
    QUIZID = "quizid"
    QUIZNAME = "quizname"
    ATTEMPTID = "attemptid"
    USERNAME = "username"
    FIRSTNAME = "firstname"
    LASTNAME = "lastname"
    IDNUMBER = "idnumber"
    TIMESTART = "timestart"
    TIMEFINISH = "timefinish"
    DATE = "date"
    TIME = "time"
    TIMESTAMP = "timestamp"

    @classmethod
    def values(cls) -> list[str]:
        return [variable.value for variable in cls]


class PaperFormat(str, Enum):
    """Paper formats the worker can render attempt reports in."""

    A0 = "A0"
    A1 = "A1"
    A2 = "A2"
    A3 = "A3"
    A4 = "A4"
    A5 = "A5"
    A6 = "A6"
    LETTER = "Letter"
    LEGAL = "Legal"
    TABLOID = "Tabloid"
    LEDGER = "Ledger"


class AttemptState(str, Enum):
    """State of a quiz attempt as stored by the host platform.

    Values the host may add later map to UNKNOWN instead of failing.
    """

    NOT_STARTED = "notstarted"
    IN_PROGRESS = "inprogress"
    OVERDUE = "overdue"
    SUBMITTED = "submitted"
    FINISHED = "finished"
    ABANDONED = "abandoned"
    UNKNOWN = "unknown"

    @classmethod
    def _missing_(cls, value: object) -> "AttemptState":
        return cls.UNKNOWN

    @property
    def display_name(self) -> str:
        return _ATTEMPT_STATE_NAMES[self]


_ATTEMPT_STATE_NAMES = {
    AttemptState.NOT_STARTED: "Not yet started",
    AttemptState.IN_PROGRESS: "In progress",
    AttemptState.OVERDUE: "Overdue",
    AttemptState.SUBMITTED: "Submitted",
    AttemptState.FINISHED: "Finished",
    AttemptState.ABANDONED: "Never submitted",
    AttemptState.UNKNOWN: "Unknown",
}
