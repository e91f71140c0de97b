"""
Unit tests for the retry wrapper
"""

import pytest
from unittest.mock import AsyncMock
from core.exceptions import InvalidQueryError, RetriesExhaustedError, TransientFetchError
from core.retry import backoff_delay, with_retries


class TestBackoffDelay:
    """Test backoff schedule"""

    def test_delay_doubles_per_attempt(self):
        assert backoff_delay(1, 1.0) == 1.0
        assert backoff_delay(2, 1.0) == 2.0
        assert backoff_delay(3, 1.0) == 4.0

    def test_delay_scales_with_base(self):
        assert backoff_delay(2, 0.25) == 0.5


class TestWithRetries:
    """Test bounded retries around async operations"""

    @pytest.mark.asyncio
    async def test_always_failing_operation_is_called_max_attempts_times(self, sleep_recorder):
        """Three transient failures exhaust the budget"""
        operation = AsyncMock(side_effect=TransientFetchError("Connection refused"))

        with pytest.raises(RetriesExhaustedError) as exc_info:
            await with_retries(operation, max_attempts=3, base_delay=1.0, sleep=sleep_recorder)

        assert operation.await_count == 3
        assert exc_info.value.attempts == 3
        assert exc_info.value.context["attempts"] == 3
        assert isinstance(exc_info.value.original_exception, TransientFetchError)
        assert exc_info.value.__cause__ is exc_info.value.original_exception

    @pytest.mark.asyncio
    async def test_no_sleep_after_last_attempt(self, sleep_recorder):
        operation = AsyncMock(side_effect=TransientFetchError("Connection refused"))

        with pytest.raises(RetriesExhaustedError):
            await with_retries(operation, max_attempts=3, base_delay=1.0, sleep=sleep_recorder)

        assert sleep_recorder.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_succeeds_on_third_attempt(self, sleep_recorder):
        """fail, fail, succeed returns the result after two backoffs"""
        operation = AsyncMock(side_effect=[
            TransientFetchError("timeout"),
            TransientFetchError("timeout"),
            "rows",
        ])

        result = await with_retries(operation, max_attempts=3, base_delay=1.0, sleep=sleep_recorder)

        assert result == "rows"
        assert operation.await_count == 3
        assert sleep_recorder.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_first_success_does_not_sleep(self, sleep_recorder):
        operation = AsyncMock(return_value=42)

        result = await with_retries(operation, max_attempts=3, base_delay=1.0, sleep=sleep_recorder)

        assert result == 42
        assert operation.await_count == 1
        assert sleep_recorder.delays == []

    @pytest.mark.asyncio
    async def test_invalid_query_is_not_retried(self, sleep_recorder):
        """Validation errors surface on the first attempt"""
        operation = AsyncMock(side_effect=InvalidQueryError("Unknown sort_by"))

        with pytest.raises(InvalidQueryError):
            await with_retries(operation, max_attempts=3, base_delay=1.0, sleep=sleep_recorder)

        assert operation.await_count == 1
        assert sleep_recorder.delays == []

    @pytest.mark.asyncio
    async def test_unexpected_error_propagates_unchanged(self, sleep_recorder):
        error = KeyError("missing")
        operation = AsyncMock(side_effect=error)

        with pytest.raises(KeyError) as exc_info:
            await with_retries(operation, max_attempts=3, sleep=sleep_recorder)

        assert exc_info.value is error
        assert operation.await_count == 1

    @pytest.mark.asyncio
    async def test_custom_retry_on(self, sleep_recorder):
        operation = AsyncMock(side_effect=[ConnectionResetError("reset"), "ok"])

        result = await with_retries(
            operation,
            max_attempts=2,
            base_delay=0.5,
            sleep=sleep_recorder,
            retry_on=(ConnectionError,)
        )

        assert result == "ok"
        assert sleep_recorder.delays == [0.5]

    @pytest.mark.asyncio
    async def test_single_attempt_budget(self, sleep_recorder):
        operation = AsyncMock(side_effect=TransientFetchError("down"))

        with pytest.raises(RetriesExhaustedError) as exc_info:
            await with_retries(operation, max_attempts=1, sleep=sleep_recorder)

        assert exc_info.value.attempts == 1
        assert sleep_recorder.delays == []

    @pytest.mark.asyncio
    async def test_operation_name_in_error_context(self, sleep_recorder):
        operation = AsyncMock(side_effect=TransientFetchError("down"))

        with pytest.raises(RetriesExhaustedError) as exc_info:
            await with_retries(operation, max_attempts=2, sleep=sleep_recorder, operation_name="fetch_page")

        assert exc_info.value.context["operation"] == "fetch_page"
        assert "fetch_page failed after 2 attempts" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_rejects_empty_budget(self):
        with pytest.raises(ValueError):
            await with_retries(AsyncMock(), max_attempts=0)
