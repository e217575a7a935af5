"""Structural validation of raw webservice parameters.

Only types and presence are checked here. Domain rules such as valid status
codes or progress bounds are answered with a status code by the functions
themselves.
"""

import re
from typing import Any

from quiz_archiver.archiving.types import ReportSection
from quiz_archiver.webservice.exceptions import InvalidParameterError
from quiz_archiver.webservice.models import (
    GenerateAttemptReportParams,
    GetAttemptsMetadataParams,
    ProcessUploadedArtifactParams,
    UpdateTaskStatusParams,
)

_INTEGER = re.compile(r"^-?\d+$")
_TRUE_STRINGS = frozenset({"1", "true"})
_FALSE_STRINGS = frozenset({"0", "false", ""})


def parse_generate_attempt_report(raw: dict[str, Any]) -> GenerateAttemptReportParams:
    return GenerateAttemptReportParams(
        taskid=_require_int(raw, "taskid"),
        attemptid=_require_int(raw, "attemptid"),
        foldernamepattern=_require_str(raw, "foldernamepattern"),
        filenamepattern=_require_str(raw, "filenamepattern"),
        sections=_require_sections(raw, "sections"),
        attachments=_require_bool(raw, "attachments"),
    )


def parse_get_attempts_metadata(raw: dict[str, Any]) -> GetAttemptsMetadataParams:
    return GetAttemptsMetadataParams(
        taskid=_require_int(raw, "taskid"),
        attemptids=_require_int_list(raw, "attemptids"),
    )


def parse_update_task_status(raw: dict[str, Any]) -> UpdateTaskStatusParams:
    progress = raw.get("progress")
    return UpdateTaskStatusParams(
        taskid=_require_int(raw, "taskid"),
        status=_require_int(raw, "status"),
        progress=None if progress is None else _require_int(raw, "progress"),
    )


def parse_process_uploaded_artifact(raw: dict[str, Any]) -> ProcessUploadedArtifactParams:
    return ProcessUploadedArtifactParams(
        taskid=_require_int(raw, "taskid"),
        artifact_component=_require_str(raw, "artifact_component"),
        artifact_contextid=_require_int(raw, "artifact_contextid"),
        artifact_userid=_require_int(raw, "artifact_userid"),
        artifact_filearea=_require_str(raw, "artifact_filearea"),
        artifact_filename=_require_str(raw, "artifact_filename"),
        artifact_filepath=_require_str(raw, "artifact_filepath"),
        artifact_itemid=_require_int(raw, "artifact_itemid"),
        artifact_sha256sum=_require_str(raw, "artifact_sha256sum"),
    )


def _require(raw: dict[str, Any], name: str) -> Any:
    if name not in raw or raw[name] is None:
        raise InvalidParameterError(f"Missing required parameter: {name}")
    return raw[name]


def _require_int(raw: dict[str, Any], name: str) -> int:
    value = _require(raw, name)
    if isinstance(value, bool):
        raise InvalidParameterError(f"'{name}' must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and _INTEGER.match(value.strip()):
        return int(value)
    raise InvalidParameterError(f"'{name}' must be an integer")


def _require_str(raw: dict[str, Any], name: str) -> str:
    value = _require(raw, name)
    if not isinstance(value, str):
        raise InvalidParameterError(f"'{name}' must be a string")
    return value


def _require_bool(raw: dict[str, Any], name: str) -> bool:
    return _to_bool(_require(raw, name), name)


def _to_bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str) and value.strip().lower() in _TRUE_STRINGS | _FALSE_STRINGS:
        return value.strip().lower() in _TRUE_STRINGS
    raise InvalidParameterError(f"'{name}' must be a boolean")


def _require_int_list(raw: dict[str, Any], name: str) -> list[int]:
    value = _require(raw, name)
    if not isinstance(value, list):
        raise InvalidParameterError(f"'{name}' must be a list")
    return [_require_int({f"{name}[{i}]": item}, f"{name}[{i}]") for i, item in enumerate(value)]


def _require_sections(raw: dict[str, Any], name: str) -> dict[ReportSection, bool]:
    value = _require(raw, name)
    if not isinstance(value, dict):
        raise InvalidParameterError(f"'{name}' must be an object")
    sections = {}
    for section in ReportSection:
        if section.value not in value:
            raise InvalidParameterError(f"Missing required parameter: {name}.{section.value}")
        sections[section] = _to_bool(value[section.value], f"{name}.{section.value}")
    return sections
