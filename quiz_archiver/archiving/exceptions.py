class ArchivingError(Exception):
    """Base exception for all archiving-related errors."""


class PreconditionError(ArchivingError):
    """Raised when a caller violates a contract before any I/O took place."""


class NotFoundError(ArchivingError):
    """Raised when a referenced entity does not exist."""


class TaskNotFoundError(NotFoundError):
    """Raised when an archiving task cannot be found in the database."""


class CourseNotFoundError(NotFoundError):
    """Raised when a course cannot be found in the database."""


class CourseModuleNotFoundError(NotFoundError):
    """Raised when a course module cannot be found in the database."""


class QuizNotFoundError(NotFoundError):
    """Raised when a quiz cannot be found in the database."""


class AttemptNotFoundError(NotFoundError):
    """Raised when a quiz attempt cannot be found or is a preview."""


class StoredFileNotFoundError(NotFoundError):
    """Raised when a file record cannot be found in the file store."""


class WorkerError(ArchivingError):
    """Base exception for failed interactions with the remote archive worker."""


class WorkerNetworkError(WorkerError):
    """Raised when the worker could not be reached or did not answer in time."""


class WorkerRequestError(WorkerError):
    """Raised when the worker answered with a non-200 HTTP status."""


class WorkerProtocolError(WorkerError):
    """Raised when the worker response is malformed or incomplete."""


class InvalidTransitionError(ArchivingError):
    """Raised when a state machine event is not allowed in the current task status."""


class InvalidFilenamePatternError(ArchivingError):
    """Raised when a folder or file name pattern is invalid."""


class StorageError(ArchivingError):
    """Raised when an uploaded artifact could not be stored."""
