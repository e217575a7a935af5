from typing import Any

from psycopg.rows import dict_row

from quiz_archiver.database.connection import get_connection
from quiz_archiver.database.models import AttemptAttachment, StoredFile

_FILE_COLUMNS = """
    f.id, f.contenthash, f.contextid, f.component, f.filearea, f.itemid,
    f.filepath, f.filename, f.filesize, f.mimetype, f.userid
"""

ATTACHMENT_COMPONENT = "question"
ATTACHMENT_FILEAREA = "response_attachments"


class FileRepository:
    """Database operations for the mdl_files table."""

    def get_file(
        self,
        contextid: int,
        component: str,
        filearea: str,
        itemid: int,
        filepath: str,
        filename: str,
    ) -> StoredFile | None:
        """Look up a file by its full descriptor. Directory entries are never returned."""
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    SELECT {_FILE_COLUMNS}
                    FROM mdl_files f
                    WHERE f.contextid = %s AND f.component = %s AND f.filearea = %s
                      AND f.itemid = %s AND f.filepath = %s AND f.filename = %s
                      AND f.filename <> '.'
                    """,
                    (contextid, component, filearea, itemid, filepath, filename),
                )
                row = cur.fetchone()
        return self._to_file(row) if row is not None else None

    def list_attempt_attachments(self, usage_id: int) -> list[AttemptAttachment]:
        """List files attached to the latest attachment-bearing step of every slot.

        Ordered by slot, then by insertion order within the slot.
        """
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    WITH latest AS (
                        SELECT qa.slot, MAX(s.id) AS stepid
                        FROM mdl_question_attempts qa
                        JOIN mdl_question_attempt_steps s ON s.questionattemptid = qa.id
                        JOIN mdl_files fx ON fx.itemid = s.id
                            AND fx.component = %s AND fx.filearea = %s
                            AND fx.filename <> '.'
                        WHERE qa.questionusageid = %s
                        GROUP BY qa.slot
                    )
                    SELECT latest.slot, {_FILE_COLUMNS}
                    FROM latest
                    JOIN mdl_files f ON f.itemid = latest.stepid
                        AND f.component = %s AND f.filearea = %s AND f.filename <> '.'
                    ORDER BY latest.slot, f.id
                    """,
                    (
                        ATTACHMENT_COMPONENT,
                        ATTACHMENT_FILEAREA,
                        usage_id,
                        ATTACHMENT_COMPONENT,
                        ATTACHMENT_FILEAREA,
                    ),
                )
                rows = cur.fetchall()
        return [
            AttemptAttachment(usageid=usage_id, slot=row["slot"], file=self._to_file(row))
            for row in rows
        ]

    def delete(self, file_id: int) -> None:
        """Delete a file record. Content blobs are garbage collected by the host."""
        with get_connection() as conn:
            conn.execute("DELETE FROM mdl_files WHERE id = %s", (file_id,))
            conn.commit()

    @staticmethod
    def _to_file(row: dict[str, Any]) -> StoredFile:
        return StoredFile(
            id=row["id"],
            contenthash=row["contenthash"],
            contextid=row["contextid"],
            component=row["component"],
            filearea=row["filearea"],
            itemid=row["itemid"],
            filepath=row["filepath"],
            filename=row["filename"],
            filesize=row["filesize"],
            mimetype=row["mimetype"],
            userid=row["userid"],
        )
