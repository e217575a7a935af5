from quiz_archiver.config.settings import Settings
from quiz_archiver.database.connection import close_pool, init_pool
from quiz_archiver.database.repositories.task_repository import TaskRepository
from quiz_archiver.driver.poller import TaskPoller
from quiz_archiver.driver.task_driver import build_driver
from quiz_archiver.logging.logger import Log
from quiz_archiver.worker_client.remote_archive_worker import RemoteArchiveWorker


def main() -> None:
    """Entry point: initialize pool -> build driver -> start task poll loop."""
    settings = Settings()
    Log.configure(settings.log_level)
    init_pool(settings)

    worker = RemoteArchiveWorker.from_settings(settings)
    try:
        driver = build_driver(settings, worker)
        task_repo = TaskRepository(settings.webservice_token_lifetime_seconds)
        poller = TaskPoller(task_repo, driver, settings)
        poller.run()
    finally:
        worker.close()
        close_pool()


if __name__ == "__main__":
    main()
