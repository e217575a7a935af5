from collections.abc import Callable
from datetime import datetime, timedelta
from unittest.mock import patch

import pytest

from quiz_archiver.database.models import TaskRecord


class TestTaskRecordToken:
    def test_matching_token_is_valid(
        self, make_task: Callable[..., TaskRecord], clock: Callable[[], datetime]
    ) -> None:
        task = make_task()
        assert task.has_valid_token(task.wstoken, clock())

    @pytest.mark.parametrize("token", [None, "", "b" * 32, "ä" * 32])
    def test_other_tokens_are_invalid(
        self, token: str | None, make_task: Callable[..., TaskRecord], clock: Callable[[], datetime]
    ) -> None:
        assert not make_task().has_valid_token(token, clock())

    def test_expired_token_is_invalid(
        self, make_task: Callable[..., TaskRecord], clock: Callable[[], datetime]
    ) -> None:
        task = make_task(wstoken_validuntil=clock() - timedelta(seconds=1))
        assert not task.has_valid_token(task.wstoken, clock())

    def test_comparison_is_constant_time(
        self, make_task: Callable[..., TaskRecord], clock: Callable[[], datetime]
    ) -> None:
        task = make_task()
        with patch("quiz_archiver.database.models.hmac.compare_digest", return_value=True) as mock_compare:
            assert task.has_valid_token("b" * 32, clock())

        mock_compare.assert_called_once_with(b"b" * 32, task.wstoken.encode())
