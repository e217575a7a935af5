import secrets
from datetime import datetime, timedelta, timezone
from typing import Any

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from quiz_archiver.archiving.exceptions import StorageError, TaskNotFoundError
from quiz_archiver.archiving.types import TaskStatus
from quiz_archiver.database.connection import get_connection, transaction
from quiz_archiver.database.models import StoredFile, TaskRecord

_TASK_COLUMNS = """
    t.id, t.jobid, t.contextid, t.cmid, t.userid, t.status, t.progress,
    t.metadata, t.wstoken, t.wstoken_validuntil, t.timecreated, t.timemodified,
    j.settings AS job_settings
"""


class TaskRepository:
    """Database operations for the mdl_local_archiving_task table."""

    DRIVABLE_STATUSES = (TaskStatus.UNINITIALIZED, TaskStatus.CREATED)

    def __init__(self, token_lifetime_seconds: int) -> None:
        self._token_lifetime = timedelta(seconds=token_lifetime_seconds)

    def find_by_id(self, task_id: int) -> TaskRecord:
        """Find a task by ID.

        Raises:
            TaskNotFoundError: if no task with this ID exists.
        """
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    SELECT {_TASK_COLUMNS}
                    FROM mdl_local_archiving_task t
                    JOIN mdl_local_archiving_job j ON j.id = t.jobid
                    WHERE t.id = %s
                    """,
                    (task_id,),
                )
                row = cur.fetchone()

        if row is None:
            raise TaskNotFoundError(f"Task {task_id} not found")
        return self._to_record(row)

    def list_drivable(self, limit: int) -> list[TaskRecord]:
        """List tasks that still have local work to do, oldest first."""
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    SELECT {_TASK_COLUMNS}
                    FROM mdl_local_archiving_task t
                    JOIN mdl_local_archiving_job j ON j.id = t.jobid
                    WHERE t.status = ANY(%s)
                    ORDER BY t.timemodified, t.id
                    LIMIT %s
                    """,
                    ([int(s) for s in self.DRIVABLE_STATUSES], limit),
                )
                rows = cur.fetchall()
        return [self._to_record(row) for row in rows]

    def set_status(
        self,
        task_id: int,
        status: TaskStatus,
        progress: int | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Persist a new status, optionally together with progress and metadata entries.

        Metadata entries are merged into the existing map.

        Raises:
            TaskNotFoundError: if no task with this ID exists.
        """
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE mdl_local_archiving_task
                    SET status = %s,
                        progress = COALESCE(%s, progress),
                        metadata = COALESCE(metadata, '{}'::jsonb) || %s,
                        timemodified = NOW()
                    WHERE id = %s
                    """,
                    (int(status), progress, Jsonb(metadata or {}), task_id),
                )
                if cur.rowcount == 0:
                    raise TaskNotFoundError(f"Task {task_id} not found")
            conn.commit()

    def create_webservice_token(self, task_id: int) -> str:
        """Mint a fresh time-limited webservice token scoped to the task.

        Any previously issued token of the task is replaced.
        """
        token = secrets.token_hex(16)
        validuntil = datetime.now(timezone.utc) + self._token_lifetime
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE mdl_local_archiving_task
                    SET wstoken = %s, wstoken_validuntil = %s, timemodified = NOW()
                    WHERE id = %s
                    """,
                    (token, validuntil, task_id),
                )
                if cur.rowcount == 0:
                    raise TaskNotFoundError(f"Task {task_id} not found")
            conn.commit()
        return token

    def link_artifact(self, task: TaskRecord, file: StoredFile, sha256sum: str) -> None:
        """Take ownership of an uploaded file as the permanent artifact of the task.

        The file record is moved out of the draft area and registered as artifact
        in one transaction.

        Raises:
            StorageError: if the ownership transfer failed.
        """
        try:
            with transaction() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        """
                        UPDATE mdl_files
                        SET contextid = %s, component = 'local_archiving',
                            filearea = 'artifact', itemid = %s, filepath = '/'
                        WHERE id = %s
                        """,
                        (task.contextid, task.id, file.id),
                    )
                    if cur.rowcount == 0:
                        raise StorageError(f"File {file.id} vanished during ownership transfer")
                    cur.execute(
                        """
                        INSERT INTO mdl_local_archiving_artifact
                            (taskid, fileid, sha256sum, timecreated)
                        VALUES (%s, %s, %s, NOW())
                        """,
                        (task.id, file.id, sha256sum),
                    )
        except psycopg.Error as exc:
            raise StorageError(f"Storing artifact for task {task.id} failed: {exc}") from exc

    @staticmethod
    def _to_record(row: dict[str, Any]) -> TaskRecord:
        return TaskRecord(
            id=row["id"],
            jobid=row["jobid"],
            contextid=row["contextid"],
            cmid=row["cmid"],
            userid=row["userid"],
            status=TaskStatus.from_code(row["status"]),
            progress=row["progress"],
            metadata=row["metadata"] or {},
            wstoken=row["wstoken"],
            wstoken_validuntil=row["wstoken_validuntil"],
            job_settings=row["job_settings"] or {},
            timecreated=row["timecreated"],
            timemodified=row["timemodified"],
        )
