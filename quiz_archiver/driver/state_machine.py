"""Pure status transition function of an archiving task."""

from enum import Enum

from quiz_archiver.archiving.exceptions import InvalidTransitionError
from quiz_archiver.archiving.types import TaskStatus


class TaskEvent(str, Enum):
    """Events that advance a task on the driver side."""

    INITIALIZE = "initialize"
    ENQUEUE_SUCCEEDED = "enqueue_succeeded"
    ENQUEUE_FAILED = "enqueue_failed"
    TIMEOUT = "timeout"


_TRANSITIONS: dict[tuple[TaskStatus, TaskEvent], TaskStatus] = {
    (TaskStatus.UNINITIALIZED, TaskEvent.INITIALIZE): TaskStatus.CREATED,
    (TaskStatus.CREATED, TaskEvent.ENQUEUE_SUCCEEDED): TaskStatus.AWAITING_PROCESSING,
    (TaskStatus.CREATED, TaskEvent.ENQUEUE_FAILED): TaskStatus.FAILED,
}


def next_status(status: TaskStatus, event: TaskEvent) -> TaskStatus:
    """Return the status a task moves to when ``event`` occurs in ``status``.

    Any task that is not completed can be timed out.

    Raises:
        InvalidTransitionError: if the event is not allowed in the given status.
    """
    if event is TaskEvent.TIMEOUT and not status.is_completed():
        return TaskStatus.TIMEOUT

    target = _TRANSITIONS.get((status, event))
    if target is None:
        raise InvalidTransitionError(f"Event {event.value} not allowed in status {status.name}")
    return target
