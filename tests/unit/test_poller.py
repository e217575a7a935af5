from collections.abc import Callable
from unittest.mock import MagicMock, patch

import psycopg
import pytest

from quiz_archiver.config.settings import Settings
from quiz_archiver.database.models import TaskRecord
from quiz_archiver.driver.poller import TaskPoller
from quiz_archiver.driver.task_driver import DriverOutcome


@pytest.fixture()
def settings(monkeypatch: pytest.MonkeyPatch) -> Settings:
    monkeypatch.setenv("WORKER_URL", "http://worker:8080")
    monkeypatch.setenv("ENABLE_WEBSERVICES", "true")
    monkeypatch.setenv("WEBSERVICE_PROTOCOLS", "rest")
    monkeypatch.setenv("TASK_POLL_BATCH_SIZE", "7")
    return Settings()


class TestRunCycle:
    def test_drives_each_task_once(self, settings: Settings, make_task: Callable[..., TaskRecord]) -> None:
        task_repo = MagicMock()
        task_repo.list_drivable.return_value = [make_task(id=1), make_task(id=2)]
        driver = MagicMock()
        driver.execute.side_effect = [DriverOutcome.ADVANCED, DriverOutcome.DEFERRED]

        outcomes = TaskPoller(task_repo, driver, settings).run_cycle()

        task_repo.list_drivable.assert_called_once_with(7)
        assert driver.execute.call_count == 2
        assert outcomes[DriverOutcome.ADVANCED] == 1
        assert outcomes[DriverOutcome.DEFERRED] == 1
        assert outcomes[DriverOutcome.FAILED] == 0

    def test_skips_cycle_when_not_ready(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("WORKER_URL", "")
        task_repo = MagicMock()
        driver = MagicMock()

        outcomes = TaskPoller(task_repo, driver, Settings()).run_cycle()

        task_repo.list_drivable.assert_not_called()
        assert not any(outcomes.values())

    def test_database_error_while_listing_is_survived(self, settings: Settings) -> None:
        task_repo = MagicMock()
        task_repo.list_drivable.side_effect = psycopg.OperationalError("connection lost")
        driver = MagicMock()

        outcomes = TaskPoller(task_repo, driver, settings).run_cycle()

        driver.execute.assert_not_called()
        assert not any(outcomes.values())

    def test_database_error_on_one_task_does_not_stop_others(
        self, settings: Settings, make_task: Callable[..., TaskRecord]
    ) -> None:
        task_repo = MagicMock()
        task_repo.list_drivable.return_value = [make_task(id=1), make_task(id=2)]
        driver = MagicMock()
        driver.execute.side_effect = [psycopg.OperationalError("deadlock"), DriverOutcome.ADVANCED]

        outcomes = TaskPoller(task_repo, driver, settings).run_cycle()

        assert driver.execute.call_count == 2
        assert outcomes[DriverOutcome.ADVANCED] == 1

    def test_unexpected_error_on_one_task_is_logged_and_isolated(
        self,
        settings: Settings,
        make_task: Callable[..., TaskRecord],
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        task_repo = MagicMock()
        task_repo.list_drivable.return_value = [make_task(id=1), make_task(id=2)]
        driver = MagicMock()
        driver.execute.side_effect = [ValueError("unexpected row"), DriverOutcome.ADVANCED]

        with caplog.at_level("ERROR", logger="quiz_archiver"):
            outcomes = TaskPoller(task_repo, driver, settings).run_cycle()

        assert driver.execute.call_count == 2
        assert outcomes[DriverOutcome.ADVANCED] == 1
        assert "Unexpected error while driving task 1" in caplog.text
        assert "ValueError: unexpected row" in caplog.text


class TestRun:
    @patch("quiz_archiver.driver.poller.time.sleep")
    def test_survives_unexpected_driver_error(
        self, _mock_sleep: MagicMock, settings: Settings, make_task: Callable[..., TaskRecord]
    ) -> None:
        task_repo = MagicMock()
        task_repo.list_drivable.return_value = [make_task(id=1)]
        driver = MagicMock()
        driver.execute.side_effect = RuntimeError("boom")

        TaskPoller(task_repo, driver, settings).run(max_cycles=2)

        assert driver.execute.call_count == 2

    @patch("quiz_archiver.driver.poller.time.sleep")
    def test_stops_after_max_cycles(self, mock_sleep: MagicMock, settings: Settings) -> None:
        task_repo = MagicMock()
        task_repo.list_drivable.return_value = []

        TaskPoller(task_repo, MagicMock(), settings).run(max_cycles=3)

        assert task_repo.list_drivable.call_count == 3
        assert mock_sleep.call_count == 2

    @patch("quiz_archiver.driver.poller.time.sleep")
    def test_keyboard_interrupt_stops_gracefully(self, mock_sleep: MagicMock, settings: Settings) -> None:
        task_repo = MagicMock()
        task_repo.list_drivable.return_value = []
        mock_sleep.side_effect = KeyboardInterrupt

        TaskPoller(task_repo, MagicMock(), settings).run()

        assert task_repo.list_drivable.call_count == 1
