"""Typed, validated view on the settings map of an archive job."""

from dataclasses import dataclass
from typing import Any

from quiz_archiver.archiving.exceptions import PreconditionError
from quiz_archiver.archiving.types import PaperFormat, ReportSection

BASE_SETTING_KEYS = (
    "paper_format",
    "attempt_foldername_pattern",
    "attempt_filename_pattern",
    "image_optimize",
    "image_optimize_width",
    "image_optimize_height",
    "image_optimize_quality",
    "keep_html_files",
)


def section_setting_key(section: ReportSection) -> str:
    return f"report_section_{section.value}"


def expected_setting_keys() -> list[str]:
    """All keys an archive job settings map must contain."""
    return [*BASE_SETTING_KEYS, *(section_setting_key(s) for s in ReportSection)]


@dataclass(frozen=True)
class ImageOptimization:
    width: int
    height: int
    quality: int


@dataclass(frozen=True)
class JobSettings:
    """Archive job settings, validated once on construction."""

    sections: dict[ReportSection, bool]
    paper_format: PaperFormat
    attempt_foldername_pattern: str
    attempt_filename_pattern: str
    image_optimization: ImageOptimization | None
    keep_html_files: bool

    @classmethod
    def from_mapping(cls, raw: dict[str, Any]) -> "JobSettings":
        """Build job settings from the flat map produced by the job creation form.

        Raises:
            PreconditionError: if a key is missing or a value is malformed.
        """
        missing = [key for key in expected_setting_keys() if raw.get(key) is None]
        if missing:
            raise PreconditionError(f"Missing required job setting: {missing[0]}")

        try:
            paper_format = PaperFormat(raw["paper_format"])
        except ValueError as exc:
            raise PreconditionError(f"Invalid paper format: {raw['paper_format']}") from exc

        image_optimization = None
        if _as_bool(raw["image_optimize"]):
            image_optimization = ImageOptimization(
                width=_as_positive_int(raw, "image_optimize_width"),
                height=_as_positive_int(raw, "image_optimize_height"),
                quality=_as_positive_int(raw, "image_optimize_quality"),
            )

        return cls(
            sections={s: _as_bool(raw[section_setting_key(s)]) for s in ReportSection},
            paper_format=paper_format,
            attempt_foldername_pattern=str(raw["attempt_foldername_pattern"]),
            attempt_filename_pattern=str(raw["attempt_filename_pattern"]),
            image_optimization=image_optimization,
            keep_html_files=_as_bool(raw["keep_html_files"]),
        )

    def is_section_enabled(self, section: ReportSection) -> bool:
        return self.sections.get(section, False)


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _as_positive_int(raw: dict[str, Any], key: str) -> int:
    try:
        value = int(raw[key])
    except (TypeError, ValueError) as exc:
        raise PreconditionError(f"Job setting {key} must be an integer") from exc
    if value <= 0:
        raise PreconditionError(f"Job setting {key} must be positive")
    return value
