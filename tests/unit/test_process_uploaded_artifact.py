from collections.abc import Callable
from datetime import datetime
from typing import Any
from unittest.mock import MagicMock

import pytest

from quiz_archiver.archiving.exceptions import StorageError
from quiz_archiver.archiving.types import TaskStatus
from quiz_archiver.database.models import StoredFile, TaskRecord
from quiz_archiver.webservice.process_uploaded_artifact import ProcessUploadedArtifact

CHECKSUM = "c0ffee" + "0" * 58

DRAFT = StoredFile(
    id=99,
    contenthash="ab" * 20,
    contextid=5,
    component="user",
    filearea="draft",
    itemid=123,
    filepath="/",
    filename="quiz-archive.tar.gz",
    filesize=4096,
)


def _params(**overrides: Any) -> dict[str, Any]:
    params: dict[str, Any] = {
        "taskid": 1,
        "artifact_component": "user",
        "artifact_contextid": 5,
        "artifact_userid": 2,
        "artifact_filearea": "draft",
        "artifact_filename": "quiz-archive.tar.gz",
        "artifact_filepath": "/",
        "artifact_itemid": 123,
        "artifact_sha256sum": CHECKSUM,
    }
    params.update(overrides)
    return params


@pytest.fixture()
def task(make_task: Callable[..., TaskRecord]) -> TaskRecord:
    return make_task(status=TaskStatus.FINALIZING)


@pytest.fixture()
def task_repo(task: TaskRecord) -> MagicMock:
    repo = MagicMock()
    repo.find_by_id.return_value = task
    return repo


@pytest.fixture()
def file_repo() -> MagicMock:
    repo = MagicMock()
    repo.get_file.return_value = DRAFT
    return repo


@pytest.fixture()
def file_store() -> MagicMock:
    store = MagicMock()
    store.sha256.return_value = CHECKSUM
    return store


@pytest.fixture()
def function(
    task_repo: MagicMock,
    file_repo: MagicMock,
    file_store: MagicMock,
    clock: Callable[[], datetime],
) -> ProcessUploadedArtifact:
    return ProcessUploadedArtifact(task_repo, file_repo, file_store, clock=clock)


class TestSuccess:
    def test_links_artifact_and_finishes_task(
        self,
        function: ProcessUploadedArtifact,
        task: TaskRecord,
        task_repo: MagicMock,
        file_repo: MagicMock,
    ) -> None:
        result = function.execute(_params(), task.wstoken)

        assert result == {"status": "OK"}
        file_repo.get_file.assert_called_once_with(
            contextid=5,
            component="user",
            filearea="draft",
            itemid=123,
            filepath="/",
            filename="quiz-archive.tar.gz",
        )
        task_repo.link_artifact.assert_called_once_with(task, DRAFT, CHECKSUM)
        task_repo.set_status.assert_called_once_with(1, TaskStatus.FINISHED, progress=100)
        file_repo.delete.assert_not_called()

    def test_checksum_comparison_ignores_case(
        self, function: ProcessUploadedArtifact, task: TaskRecord
    ) -> None:
        assert function.execute(_params(artifact_sha256sum=CHECKSUM.upper()), task.wstoken) == {"status": "OK"}


class TestChecksumGating:
    def test_mismatch_deletes_draft_and_fails_task(
        self,
        function: ProcessUploadedArtifact,
        task: TaskRecord,
        task_repo: MagicMock,
        file_repo: MagicMock,
        file_store: MagicMock,
    ) -> None:
        file_store.sha256.return_value = "f" * 64

        result = function.execute(_params(), task.wstoken)

        assert result == {"status": "E_CHECKSUM_MISMATCH"}
        file_repo.delete.assert_called_once_with(99)
        task_repo.set_status.assert_called_once_with(1, TaskStatus.FAILED)
        task_repo.link_artifact.assert_not_called()

    def test_missing_content_counts_as_mismatch(
        self,
        function: ProcessUploadedArtifact,
        task: TaskRecord,
        file_repo: MagicMock,
        file_store: MagicMock,
    ) -> None:
        file_store.sha256.side_effect = FileNotFoundError("gone")

        assert function.execute(_params(), task.wstoken) == {"status": "E_CHECKSUM_MISMATCH"}
        file_repo.delete.assert_called_once_with(99)


class TestFailures:
    def test_missing_draft_fails_task(
        self,
        function: ProcessUploadedArtifact,
        task: TaskRecord,
        task_repo: MagicMock,
        file_repo: MagicMock,
    ) -> None:
        file_repo.get_file.return_value = None

        result = function.execute(_params(), task.wstoken)

        assert result == {"status": "E_FILE_NOT_FOUND"}
        task_repo.set_status.assert_called_once_with(1, TaskStatus.FAILED)
        file_repo.delete.assert_not_called()

    def test_storing_failure_deletes_draft(
        self,
        function: ProcessUploadedArtifact,
        task: TaskRecord,
        task_repo: MagicMock,
        file_repo: MagicMock,
    ) -> None:
        task_repo.link_artifact.side_effect = StorageError("disk full")

        result = function.execute(_params(), task.wstoken)

        assert result == {"status": "E_STORING_FAILED"}
        file_repo.delete.assert_called_once_with(99)
        task_repo.set_status.assert_called_once_with(1, TaskStatus.FAILED)

    @pytest.mark.parametrize("status", [TaskStatus.FINISHED, TaskStatus.FAILED, TaskStatus.CANCELED])
    def test_completed_task_expects_no_upload(
        self,
        status: TaskStatus,
        make_task: Callable[..., TaskRecord],
        task_repo: MagicMock,
        file_repo: MagicMock,
        function: ProcessUploadedArtifact,
    ) -> None:
        completed = make_task(status=status)
        task_repo.find_by_id.return_value = completed

        assert function.execute(_params(), completed.wstoken) == {"status": "E_NO_UPLOAD_EXPECTED"}
        file_repo.get_file.assert_not_called()
        task_repo.set_status.assert_not_called()

    def test_wrong_token_touches_nothing(
        self,
        function: ProcessUploadedArtifact,
        task_repo: MagicMock,
        file_repo: MagicMock,
    ) -> None:
        assert function.execute(_params(), "b" * 32) == {"status": "E_ACCESS_DENIED"}
        file_repo.get_file.assert_not_called()
        task_repo.set_status.assert_not_called()
