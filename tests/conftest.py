from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from quiz_archiver.archiving.types import ReportSection, TaskStatus
from quiz_archiver.database.models import TaskRecord

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
VALID_TOKEN = "a" * 32


@pytest.fixture()
def job_settings_map() -> dict[str, Any]:
    """Complete settings map of an archive job with all report sections enabled."""
    settings: dict[str, Any] = {
        "paper_format": "A4",
        "attempt_foldername_pattern": "${username}/${attemptid}",
        "attempt_filename_pattern": "attempt-${attemptid}-${date}",
        "image_optimize": False,
        "image_optimize_width": 1280,
        "image_optimize_height": 1280,
        "image_optimize_quality": 85,
        "keep_html_files": False,
    }
    for section in ReportSection:
        settings[f"report_section_{section.value}"] = True
    return settings


@pytest.fixture()
def clock() -> Callable[[], datetime]:
    """Fixed wall clock at NOW, before every token issued by ``make_task`` expires."""
    return lambda: NOW


@pytest.fixture()
def make_task(job_settings_map: dict[str, Any]) -> Callable[..., TaskRecord]:
    """Factory for task records holding a valid token and job settings."""

    def _make(**overrides: Any) -> TaskRecord:
        values: dict[str, Any] = {
            "id": 1,
            "jobid": 7,
            "contextid": 42,
            "cmid": 5,
            "userid": 2,
            "status": TaskStatus.CREATED,
            "wstoken": VALID_TOKEN,
            "wstoken_validuntil": NOW + timedelta(days=1),
            "job_settings": dict(job_settings_map),
        }
        values.update(overrides)
        return TaskRecord(**values)

    return _make
