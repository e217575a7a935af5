import os
from collections.abc import Generator
from typing import Any

import psycopg
import pytest
from psycopg.types.json import Jsonb

from quiz_archiver.archiving.types import TaskStatus
from quiz_archiver.config.settings import Settings
from quiz_archiver.database.connection import close_pool, get_connection, init_pool


def _test_settings() -> Settings:
    os.environ.setdefault("DB_DATABASE", "moodle_test")
    return Settings()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    return _test_settings()


@pytest.fixture(scope="session")
def integration_pool(test_settings: Settings) -> Generator[None, None, None]:
    try:
        init_pool(test_settings)
        with get_connection() as conn:
            conn.execute("SELECT 1 FROM mdl_local_archiving_task LIMIT 1")
    except Exception as e:
        close_pool()
        pytest.skip(f"PostgreSQL test DB with archiving tables not available: {e}. Set DB_* env")
    try:
        yield
    finally:
        close_pool()


@pytest.fixture
def db_conn(integration_pool: None) -> Generator[psycopg.Connection[Any], None, None]:
    with get_connection() as conn:
        yield conn


@pytest.fixture
def integration_cleanup() -> Generator[list[tuple[str, int]], None, None]:
    cleanup: list[tuple[str, int]] = []
    yield cleanup
    if not cleanup:
        return
    with get_connection() as conn:
        with conn.cursor() as cur:
            for table, row_id in cleanup:
                if table == "mdl_local_archiving_task":
                    cur.execute("DELETE FROM mdl_local_archiving_task WHERE id = %s", (row_id,))
            for table, row_id in cleanup:
                if table == "mdl_local_archiving_job":
                    cur.execute("DELETE FROM mdl_local_archiving_job WHERE id = %s", (row_id,))
        conn.commit()


@pytest.fixture
def seed_job(
    db_conn: psycopg.Connection[Any],
    integration_cleanup: list[tuple[str, int]],
) -> int:
    with db_conn.cursor() as cur:
        cur.execute(
            "INSERT INTO mdl_local_archiving_job (settings) VALUES (%s) RETURNING id",
            (Jsonb({"paper_format": "A4"}),),
        )
        row = cur.fetchone()
        assert row is not None
        job_id = row[0]
    db_conn.commit()
    integration_cleanup.append(("mdl_local_archiving_job", job_id))
    return job_id


@pytest.fixture
def seed_task(
    db_conn: psycopg.Connection[Any],
    integration_cleanup: list[tuple[str, int]],
    seed_job: int,
) -> int:
    with db_conn.cursor() as cur:
        cur.execute(
            """
            INSERT INTO mdl_local_archiving_task
                (jobid, contextid, cmid, userid, status, timecreated, timemodified)
            VALUES (%s, %s, %s, %s, %s, NOW(), NOW())
            RETURNING id
            """,
            (seed_job, 42, 5, 2, int(TaskStatus.UNINITIALIZED)),
        )
        row = cur.fetchone()
        assert row is not None
        task_id = row[0]
    db_conn.commit()
    integration_cleanup.append(("mdl_local_archiving_task", task_id))
    return task_id
