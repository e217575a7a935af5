from unittest.mock import MagicMock, patch

import pytest

from quiz_archiver import main as main_module

MODULE = "quiz_archiver.main"


class TestMain:
    @patch(f"{MODULE}.close_pool")
    @patch(f"{MODULE}.TaskPoller")
    @patch(f"{MODULE}.build_driver")
    @patch(f"{MODULE}.RemoteArchiveWorker")
    @patch(f"{MODULE}.init_pool")
    def test_runs_poller_and_releases_resources(
        self,
        mock_init_pool: MagicMock,
        mock_worker_cls: MagicMock,
        mock_build_driver: MagicMock,
        mock_poller_cls: MagicMock,
        mock_close_pool: MagicMock,
    ) -> None:
        worker = mock_worker_cls.from_settings.return_value

        main_module.main()

        mock_init_pool.assert_called_once()
        mock_build_driver.assert_called_once()
        assert mock_build_driver.call_args[0][1] is worker
        mock_poller_cls.return_value.run.assert_called_once_with()
        worker.close.assert_called_once()
        mock_close_pool.assert_called_once()

    @patch(f"{MODULE}.close_pool")
    @patch(f"{MODULE}.TaskPoller")
    @patch(f"{MODULE}.build_driver")
    @patch(f"{MODULE}.RemoteArchiveWorker")
    @patch(f"{MODULE}.init_pool")
    def test_releases_resources_when_poller_crashes(
        self,
        _mock_init_pool: MagicMock,
        mock_worker_cls: MagicMock,
        _mock_build_driver: MagicMock,
        mock_poller_cls: MagicMock,
        mock_close_pool: MagicMock,
    ) -> None:
        mock_poller_cls.return_value.run.side_effect = RuntimeError("boom")

        with pytest.raises(RuntimeError):
            main_module.main()

        mock_worker_cls.from_settings.return_value.close.assert_called_once()
        mock_close_pool.assert_called_once()
