"""Tests for bounded timeout and retry of external calls."""

import asyncio
import logging

import pytest
from unittest.mock import AsyncMock, Mock


class TestRetryPolicy:
    def test_exponential_backoff_is_capped(self):
        from formateur.common.retry import RetryPolicy
        wait = RetryPolicy(base_delay=0.5, max_delay=3.0).backoff()
        delays = [wait(Mock(attempt_number=n)) for n in (1, 2, 3, 4, 11)]
        assert delays == [0.5, 1.0, 2.0, 3.0, 3.0]

    def test_zero_base_delay_never_waits(self):
        from formateur.common.retry import RetryPolicy
        wait = RetryPolicy(base_delay=0).backoff()
        assert wait(Mock(attempt_number=3)) == 0

    def test_no_retry_policy(self):
        from formateur.common.retry import NO_RETRY
        assert NO_RETRY.max_retries == 0


class TestCallWithRetries:
    @pytest.mark.asyncio
    async def test_returns_first_success(self):
        from formateur.common.retry import RetryPolicy, call_with_retries
        factory = AsyncMock(return_value="ok")
        result = await call_with_retries(factory, RetryPolicy(base_delay=0), service="llm")
        assert result == "ok"
        assert factory.await_count == 1

    @pytest.mark.asyncio
    async def test_retries_transient_then_succeeds(self):
        from formateur.common.errors import TransientServiceError
        from formateur.common.retry import RetryPolicy, call_with_retries
        factory = AsyncMock(side_effect=[TransientServiceError("llm", "503"), "ok"])
        result = await call_with_retries(factory, RetryPolicy(max_retries=2, base_delay=0), service="llm")
        assert result == "ok"
        assert factory.await_count == 2

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise_last_error(self):
        from formateur.common.errors import TransientServiceError
        from formateur.common.retry import RetryPolicy, call_with_retries
        factory = AsyncMock(side_effect=TransientServiceError("vector_index", "unreachable"))
        with pytest.raises(TransientServiceError, match="unreachable"):
            await call_with_retries(factory, RetryPolicy(max_retries=2, base_delay=0), service="vector_index")
        assert factory.await_count == 3

    @pytest.mark.asyncio
    async def test_non_transient_error_not_retried(self):
        from formateur.common.retry import RetryPolicy, call_with_retries
        factory = AsyncMock(side_effect=ValueError("bad request"))
        with pytest.raises(ValueError):
            await call_with_retries(factory, RetryPolicy(max_retries=3, base_delay=0), service="llm")
        assert factory.await_count == 1

    @pytest.mark.asyncio
    async def test_timeout_becomes_transient_error(self):
        from formateur.common.errors import TransientServiceError
        from formateur.common.retry import RetryPolicy, call_with_retries

        calls = []

        def factory():
            calls.append(1)
            return asyncio.sleep(5)

        policy = RetryPolicy(timeout=0.01, max_retries=1, base_delay=0)
        with pytest.raises(TransientServiceError) as exc_info:
            await call_with_retries(factory, policy, service="embedding")
        assert exc_info.value.service == "embedding"
        assert "timed out" in exc_info.value.message
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_each_retry_and_final_failure_are_logged(self, caplog):
        from formateur.common.errors import TransientServiceError
        from formateur.common.retry import RetryPolicy, call_with_retries
        factory = AsyncMock(side_effect=TransientServiceError("llm:openai", "503"))

        with caplog.at_level(logging.WARNING, logger="formateur.common.retry"):
            with pytest.raises(TransientServiceError):
                await call_with_retries(factory, RetryPolicy(max_retries=1, base_delay=0), service="llm:openai")

        assert "llm:openai call failed (attempt 1/2)" in caplog.text
        assert "llm:openai call failed after 2 attempt(s)" in caplog.text
