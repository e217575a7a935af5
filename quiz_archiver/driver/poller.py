import time

import psycopg

from quiz_archiver.config.settings import Settings
from quiz_archiver.database.models import TaskRecord
from quiz_archiver.database.repositories.task_repository import TaskRepository
from quiz_archiver.driver.readiness import missing_requirements
from quiz_archiver.driver.task_driver import DriverOutcome, TaskDriver
from quiz_archiver.logging.logger import Log


class TaskPoller:
    """Poll loop: check readiness -> list drivable tasks -> drive each once -> sleep."""

    def __init__(
        self,
        task_repo: TaskRepository,
        driver: TaskDriver,
        settings: Settings,
    ) -> None:
        self._task_repo = task_repo
        self._driver = driver
        self._settings = settings

    def run(self, max_cycles: int | None = None) -> None:
        """Main poll loop. Runs forever until interrupted.

        If max_cycles is set, stop after that many cycles (for testing).
        """
        Log.info("Task poller started")
        cycles = 0
        try:
            while max_cycles is None or cycles < max_cycles:
                self.run_cycle()
                cycles += 1
                if max_cycles is not None and cycles >= max_cycles:
                    break
                time.sleep(self._settings.task_poll_interval_seconds)
        except KeyboardInterrupt:
            Log.info("Task poller shutting down gracefully")

    def run_cycle(self) -> dict[DriverOutcome, int]:
        """Drive every drivable task once and count the outcomes."""
        outcomes = {outcome: 0 for outcome in DriverOutcome}

        missing = missing_requirements(self._settings)
        if missing:
            Log.warning(f"Archiving is not ready, skipping cycle: {'; '.join(missing)}")
            return outcomes

        for task in self._list_tasks():
            outcome = self._drive(task)
            if outcome is not None:
                outcomes[outcome] += 1

        if any(outcomes.values()):
            Log.info("Poll cycle finished", **{o.value: n for o, n in outcomes.items()})
        else:
            Log.debug("No drivable tasks")
        return outcomes

    def _list_tasks(self) -> list[TaskRecord]:
        """Fetch the next batch of drivable tasks. Gracefully handle DB errors."""
        try:
            return self._task_repo.list_drivable(self._settings.task_poll_batch_size)
        except psycopg.Error as exc:
            Log.warning(f"Database error, will retry: {exc}")
            return []

    def _drive(self, task: TaskRecord) -> DriverOutcome | None:
        """Drive one task. A failure is logged and never stops the other tasks."""
        try:
            return self._driver.execute(task)
        except psycopg.Error as exc:
            Log.warning(f"Database error while driving task {task.id}, will retry: {exc}")
            return None
        except Exception:
            Log.exception(f"Unexpected error while driving task {task.id}, will retry")
            return None
