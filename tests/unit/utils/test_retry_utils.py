"""Tests for retry utilities."""

from unittest.mock import Mock

import pytest

from rotation_core.exceptions import RemoteStateUnavailableError
from rotation_core.utils.retry_utils import calculate_exponential_backoff, retry_read


class TestCalculateExponentialBackoff:
    def test_progression_without_jitter(self):
        delays = [
            calculate_exponential_backoff(i, base_delay=1, max_delay=100, jitter=False)
            for i in range(4)
        ]
        assert delays == [1, 2, 4, 8]

    def test_capped(self):
        assert calculate_exponential_backoff(10, base_delay=1, max_delay=5, jitter=False) == 5

    def test_negative_retry_count(self):
        assert calculate_exponential_backoff(-3, base_delay=2, jitter=False) == 2

    def test_jitter_stays_within_bounds(self):
        for _ in range(50):
            delay = calculate_exponential_backoff(2, base_delay=1, max_delay=100)
            assert 1 <= delay <= 5


class TestRetryRead:
    def test_returns_first_success(self):
        func = Mock(return_value="state")
        sleep = Mock()

        assert retry_read(func, (RemoteStateUnavailableError,), 3, sleep=sleep) == "state"
        func.assert_called_once()
        sleep.assert_not_called()

    def test_retries_then_succeeds(self):
        func = Mock(side_effect=[RemoteStateUnavailableError(), "state"])
        sleep = Mock()

        result = retry_read(
            func, (RemoteStateUnavailableError,), 3, base_delay=0.01, max_delay=0.05, sleep=sleep
        )

        assert result == "state"
        assert func.call_count == 2
        sleep.assert_called_once()
        assert 0.01 <= sleep.call_args[0][0] <= 0.05

    def test_reraises_after_max_attempts(self):
        error = RemoteStateUnavailableError("api down")
        func = Mock(side_effect=error)
        sleep = Mock()

        with pytest.raises(RemoteStateUnavailableError) as exc_info:
            retry_read(func, (RemoteStateUnavailableError,), 3, sleep=sleep)

        assert exc_info.value is error
        assert func.call_count == 3
        assert sleep.call_count == 2

    def test_other_errors_not_retried(self):
        func = Mock(side_effect=KeyError("bad"))
        sleep = Mock()

        with pytest.raises(KeyError):
            retry_read(func, (RemoteStateUnavailableError,), 3, sleep=sleep)

        func.assert_called_once()
        sleep.assert_not_called()
