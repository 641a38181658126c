"""
Unit tests for clocks and the timeout helper.
"""

import asyncio

import pytest

from valpipe import ManualClock, ValidationTimeoutError, execute_with_timeout


class TestManualClock:
    """Tests for ManualClock."""

    def test_advance(self):
        clock = ManualClock(start_ms=100)
        start = clock.utcnow()
        clock.advance(250)
        assert clock.now_ms() == 350
        assert (clock.utcnow() - start).total_seconds() == pytest.approx(0.25)

    def test_cannot_go_backwards(self):
        with pytest.raises(ValueError):
            ManualClock().advance(-1)


class TestExecuteWithTimeout:
    """Tests for execute_with_timeout."""

    @pytest.mark.asyncio
    async def test_plain_value_passes_through(self):
        assert await execute_with_timeout(lambda: 42, 10, "slow") == 42

    @pytest.mark.asyncio
    async def test_fast_operation(self):
        async def quick():
            return "done"

        assert await execute_with_timeout(quick, 1000, "slow") == "done"

    @pytest.mark.asyncio
    async def test_timeout_raises(self):
        async def slow():
            await asyncio.sleep(1)

        loop = asyncio.get_running_loop()
        started = loop.time()
        with pytest.raises(ValidationTimeoutError) as exc_info:
            await execute_with_timeout(slow, 50, "too slow", code="X_TIMEOUT")

        assert loop.time() - started >= 0.04
        assert exc_info.value.code == "X_TIMEOUT"
        assert exc_info.value.timeout_ms == 50
        assert exc_info.value.message == "too slow"

    @pytest.mark.asyncio
    async def test_operation_timeout_error_not_confused(self):
        async def raises_own_timeout():
            raise TimeoutError("upstream")

        with pytest.raises(TimeoutError) as exc_info:
            await execute_with_timeout(raises_own_timeout, 1000, "slow")
        assert not isinstance(exc_info.value, ValidationTimeoutError)

    @pytest.mark.asyncio
    async def test_no_timeout_waits(self):
        async def op():
            await asyncio.sleep(0.01)
            return 1

        assert await execute_with_timeout(op, None, "slow") == 1
        assert await execute_with_timeout(op, 0, "slow") == 1
