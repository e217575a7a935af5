from pathlib import Path
from zoneinfo import ZoneInfo

import httpx

from quiz_archiver.archiving.quiz_manager import QuizManager
from quiz_archiver.config.settings import Settings
from quiz_archiver.database.repositories.file_repository import FileRepository
from quiz_archiver.report.attempt_report import AttemptReport
from quiz_archiver.report.filenames import AttemptFilenameGenerator
from quiz_archiver.report.image_inliner import ImageInliner
from quiz_archiver.report.page import DefaultPageChrome
from quiz_archiver.report.question_renderer import DefaultQuestionRenderer
from quiz_archiver.storage.file_store import FileStore


def build_image_client(settings: Settings) -> httpx.Client:
    """HTTP client used to download images that are not available in the file store."""
    return httpx.Client(timeout=settings.image_fetch_timeout_seconds, follow_redirects=True)


def build_attempt_report(
    settings: Settings,
    quiz_manager: QuizManager,
    file_repo: FileRepository,
    http_client: httpx.Client,
) -> AttemptReport:
    """Assemble an attempt report renderer for one quiz from settings."""
    tz = ZoneInfo(settings.timezone)
    inliner = ImageInliner(
        wwwroot=settings.wwwroot,
        internal_wwwroot=settings.internal_wwwroot,
        file_repo=file_repo,
        file_store=FileStore(Path(settings.dataroot)),
        http_client=http_client,
    )
    return AttemptReport(
        quiz_manager=quiz_manager,
        question_renderer=DefaultQuestionRenderer(
            wwwroot=settings.wwwroot,
            tz=tz,
            decimalpoints=quiz_manager.quiz.decimalpoints,
        ),
        page_chrome=DefaultPageChrome(),
        wwwroot=settings.wwwroot,
        tz=tz,
        image_handler=inliner,
    )


def build_filename_generator(settings: Settings, quiz_manager: QuizManager) -> AttemptFilenameGenerator:
    return AttemptFilenameGenerator(quiz_manager, ZoneInfo(settings.timezone))
