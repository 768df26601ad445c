"""
Tests for per-tool deadlines and bounded retry.
"""

import asyncio

import pytest

from apps.services.proof_service.services.tool_policy import ToolPolicy
from libs.core.exceptions import ToolInvocationError, ToolTimeoutError


def _flaky(failures: int):
    state = {"calls": 0}

    async def call():
        state["calls"] += 1
        if state["calls"] <= failures:
            raise ToolInvocationError("prove failed with exit code 1", "prove", exit_code=1)
        return "ok"

    return call, state


class TestToolPolicy:
    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            ToolPolicy("prove", timeout=1.0, max_attempts=0)

    def test_backoff_delays(self):
        policy = ToolPolicy("prove", timeout=1.0, max_attempts=4, backoff_factor=2.0, base_delay=1.5)
        assert [policy.retry_delay(n) for n in (1, 2, 3)] == [1.5, 3.0, 6.0]

    @pytest.mark.asyncio
    async def test_success_first_try(self):
        call, state = _flaky(0)
        policy = ToolPolicy("prove", timeout=1.0, max_attempts=3, base_delay=0)
        assert await policy.execute(call) == "ok"
        assert state["calls"] == 1
        assert policy.get_stats()["retries"] == 0

    @pytest.mark.asyncio
    async def test_retries_until_success(self):
        call, state = _flaky(2)
        policy = ToolPolicy("prove", timeout=1.0, max_attempts=3, base_delay=0)
        assert await policy.execute(call) == "ok"
        assert state["calls"] == 3
        assert policy.retries == 2

    @pytest.mark.asyncio
    async def test_attempts_are_bounded(self):
        call, state = _flaky(10)
        policy = ToolPolicy("prove", timeout=1.0, max_attempts=2, base_delay=0)
        with pytest.raises(ToolInvocationError) as exc_info:
            await policy.execute(call)
        assert state["calls"] == 2
        assert exc_info.value.exit_code == 1

    @pytest.mark.asyncio
    async def test_deadline_raises_timeout(self):
        async def hang():
            await asyncio.sleep(10)

        policy = ToolPolicy("verify", timeout=0.05, max_attempts=1)
        with pytest.raises(ToolTimeoutError) as exc_info:
            await policy.execute(hang)
        assert exc_info.value.tool == "verify"
        assert policy.timeouts == 1

    @pytest.mark.asyncio
    async def test_other_errors_not_retried(self):
        calls = []

        async def broken():
            calls.append(1)
            raise RuntimeError("bug")

        policy = ToolPolicy("witness", timeout=1.0, max_attempts=3, base_delay=0)
        with pytest.raises(RuntimeError):
            await policy.execute(broken)
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self):
        started = asyncio.Event()

        async def hang():
            started.set()
            await asyncio.sleep(10)

        policy = ToolPolicy("prove", timeout=5.0, max_attempts=3, base_delay=0)
        task = asyncio.create_task(policy.execute(hang))
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
