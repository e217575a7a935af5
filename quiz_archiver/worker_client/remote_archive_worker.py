"""HTTP client for the remote archive worker service.

The worker address is an administrator supplied setting. Requests go straight
to it with httpx and are not subject to any outbound URL filtering.
"""

from typing import Any

import httpx

from quiz_archiver.archiving.exceptions import (
    PreconditionError,
    WorkerNetworkError,
    WorkerProtocolError,
    WorkerRequestError,
)
from quiz_archiver.archiving.job_settings import JobSettings
from quiz_archiver.archiving.types import ReportSection, TaskStatus, WorkerStatus
from quiz_archiver.config.settings import Settings
from quiz_archiver.database.models import TaskRecord
from quiz_archiver.logging.logger import Log
from quiz_archiver.worker_client.models import EnqueuedJob, WorkerStatusInfo

API_VERSION = 1
DEFAULT_DRIVER_NAME = "archivingmod_quiz"


class RemoteArchiveWorker:
    """Client for the status and job creation endpoints of the archive worker."""

    def __init__(
        self,
        server_url: str,
        base_url: str,
        connection_timeout: float = 5,
        request_timeout: float = 20,
        driver_name: str = DEFAULT_DRIVER_NAME,
        client: httpx.Client | None = None,
    ) -> None:
        self._server_url = server_url.rstrip("/")
        self._base_url = base_url.rstrip("/")
        self._driver_name = driver_name
        self._owns_client = client is None
        self._client = client or httpx.Client()
        self._timeout = httpx.Timeout(request_timeout, connect=connection_timeout)

    @classmethod
    def from_settings(cls, settings: Settings, client: httpx.Client | None = None) -> "RemoteArchiveWorker":
        return cls(
            server_url=settings.worker_url,
            base_url=settings.callback_wwwroot,
            connection_timeout=settings.worker_connection_timeout_seconds,
            request_timeout=settings.worker_request_timeout_seconds,
            driver_name=settings.driver_name,
            client=client,
        )

    def get_status(self) -> WorkerStatusInfo:
        """Query the worker for its current status.

        Raises:
            WorkerNetworkError: if the worker could not be reached in time.
            WorkerRequestError: if the worker answered with a non-200 status.
            WorkerProtocolError: if the response lacks ``status`` or ``queue_len``.
        """
        data = self._request("GET", f"{self._server_url}/status")
        missing = [key for key in ("status", "queue_len") if data.get(key) is None]
        if missing:
            raise WorkerProtocolError(f"Worker status response is missing field: {missing[0]}")

        try:
            return WorkerStatusInfo(
                status=WorkerStatus(data["status"]),
                queue_len=int(data["queue_len"]),
            )
        except (TypeError, ValueError) as exc:
            raise WorkerProtocolError(f"Malformed worker status response: {data}") from exc

    def enqueue_archive_job(self, wstoken: str, task: TaskRecord, attempt_ids: list[int]) -> EnqueuedJob:
        """Create a new archive job at the worker.

        Raises:
            PreconditionError: if ``attempt_ids`` is empty or the job settings are
                incomplete. No request is sent in this case.
            WorkerNetworkError: if the worker could not be reached in time.
            WorkerRequestError: if the worker answered with a non-200 status.
            WorkerProtocolError: if the response lacks ``jobid`` or ``status``.
        """
        payload = self.build_job_payload(wstoken, task, attempt_ids)
        Log.debug(
            "Enqueuing archive job",
            task_id=task.id,
            num_attempts=len(attempt_ids),
            driver=self._driver_name,
        )

        data = self._request("POST", f"{self._server_url}/archive/{self._driver_name}", json=payload)
        missing = [key for key in ("jobid", "status") if data.get(key) is None]
        if missing:
            raise WorkerProtocolError(f"Worker enqueue response is missing field: {missing[0]}")

        try:
            status = TaskStatus.from_code(data["status"])
        except (TypeError, ValueError) as exc:
            raise WorkerProtocolError(f"Worker returned unknown job status: {data['status']}") from exc
        return EnqueuedJob(uuid=str(data["jobid"]), status=status)

    def build_job_payload(self, wstoken: str, task: TaskRecord, attempt_ids: list[int]) -> dict[str, Any]:
        """Build the job creation request body.

        Raises:
            PreconditionError: if ``attempt_ids`` is empty or the job settings are incomplete.
        """
        if not attempt_ids:
            raise PreconditionError("No attempt IDs provided for job creation")
        settings = JobSettings.from_mapping(task.job_settings)

        sections = ReportSection.resolve(settings.sections)
        image_optimize: dict[str, int] | bool = False
        if settings.image_optimization is not None:
            image_optimize = {
                "width": settings.image_optimization.width,
                "height": settings.image_optimization.height,
                "quality": settings.image_optimization.quality,
            }

        return {
            "api_version": API_VERSION,
            "taskid": task.id,
            "moodle_api": {
                "wstoken": wstoken,
                "base_url": self._base_url,
                "webservice_url": f"{self._base_url}/webservice/rest/server.php",
                "upload_url": f"{self._base_url}/webservice/upload.php",
            },
            "job": {
                "attemptids": list(attempt_ids),
                "report_sections": {section.value: enabled for section, enabled in sections.items()},
                "paper_format": settings.paper_format.value,
                "foldername_pattern": settings.attempt_foldername_pattern,
                "filename_pattern": settings.attempt_filename_pattern,
                "image_optimize": image_optimize,
                "fetch_metadata": True,
                "fetch_attachments": sections[ReportSection.ATTACHMENTS],
                "keep_html_files": settings.keep_html_files,
            },
        }

    def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            self._client.close()

    def _request(self, method: str, url: str, json: dict[str, Any] | None = None) -> dict[str, Any]:
        try:
            response = self._client.request(method, url, json=json, timeout=self._timeout)
        except (httpx.ConnectError, httpx.TimeoutException) as exc:
            raise WorkerNetworkError(f"Archive worker unreachable at {url}: {exc}") from exc
        except httpx.HTTPError as exc:
            raise WorkerRequestError(f"Archive worker request to {url} failed: {exc}") from exc

        try:
            data = response.json()
        except ValueError:
            data = None

        if response.status_code != 200:
            detail = data.get("error") if isinstance(data, dict) else response.text
            raise WorkerRequestError(
                f"Archive worker answered HTTP {response.status_code} for {url}: {detail}"
            )
        if not isinstance(data, dict):
            raise WorkerProtocolError(f"Archive worker returned an unparsable response for {url}")
        return data
