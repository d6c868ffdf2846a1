"""
Unit tests for the retry controller
"""

import pytest
from unittest.mock import AsyncMock

from core.exceptions import RecordRejectedError, RetryExhaustedError, UpstreamError
from ingestion.retry import RetryPolicy


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


class TestRetryPolicy:
    def test_linear_delays(self):
        policy = RetryPolicy(base_delay=2.0)
        assert [policy.delay_for(n) for n in (1, 2, 3)] == [2.0, 4.0, 6.0]

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)

    @pytest.mark.asyncio
    async def test_success_first_try(self):
        sleep = RecordingSleep()
        func = AsyncMock(return_value=["feature"])

        result = await RetryPolicy(sleep=sleep).run(func, "1=1", 0, 300)

        assert result == ["feature"]
        func.assert_awaited_once_with("1=1", 0, 300)
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failure(self):
        sleep = RecordingSleep()
        func = AsyncMock(side_effect=[UpstreamError("timeout"), ["feature"]])

        result = await RetryPolicy(sleep=sleep).run(func)

        assert result == ["feature"]
        assert func.await_count == 2
        assert sleep.delays == [2.0]

    @pytest.mark.asyncio
    async def test_exactly_three_attempts_then_exhausted(self):
        sleep = RecordingSleep()
        func = AsyncMock(side_effect=UpstreamError("connection reset"))
        policy = RetryPolicy(max_attempts=3, base_delay=2.0, sleep=sleep)

        with pytest.raises(RetryExhaustedError) as exc_info:
            await policy.run(func, description="WRIS page fetch")

        assert func.await_count == 3
        assert sleep.delays == [2.0, 4.0, 6.0]
        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.original_exception, UpstreamError)

    @pytest.mark.asyncio
    async def test_non_retryable_propagates_immediately(self):
        sleep = RecordingSleep()
        func = AsyncMock(side_effect=RecordRejectedError("bad record"))

        with pytest.raises(RecordRejectedError):
            await RetryPolicy(sleep=sleep).run(func)

        assert func.await_count == 1
        assert sleep.delays == []
