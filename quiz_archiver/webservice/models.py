from dataclasses import dataclass

from quiz_archiver.archiving.types import ReportSection


@dataclass(frozen=True)
class GenerateAttemptReportParams:
    taskid: int
    attemptid: int
    foldernamepattern: str
    filenamepattern: str
    sections: dict[ReportSection, bool]
    attachments: bool


@dataclass(frozen=True)
class GetAttemptsMetadataParams:
    taskid: int
    attemptids: list[int]


@dataclass(frozen=True)
class UpdateTaskStatusParams:
    taskid: int
    status: int
    progress: int | None = None


@dataclass(frozen=True)
class ProcessUploadedArtifactParams:
    """Descriptor of an uploaded draft file together with its declared checksum."""

    taskid: int
    artifact_component: str
    artifact_contextid: int
    artifact_userid: int
    artifact_filearea: str
    artifact_filename: str
    artifact_filepath: str
    artifact_itemid: int
    artifact_sha256sum: str
