"""Tests for the retry controller and error classification"""

import asyncio
import random

import pytest

from services.gemini_service import InsightGenerationError, InsightResponseError
from services.retry import RetryController, is_retryable


class SleepRecorder:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


def make_controller(sleep, **options):
    defaults = dict(max_attempts=3, base_delay=1.0, backoff_factor=2.0, jitter=False, sleep=sleep)
    defaults.update(options)
    return RetryController(**defaults)


class TestErrorClassification:

    @pytest.mark.parametrize("status_code", [400, 401, 403, 404, 422])
    def test_client_errors_are_permanent(self, status_code):
        assert not is_retryable(InsightGenerationError("nope", status_code=status_code))

    @pytest.mark.parametrize("status_code", [408, 429, 500, 502, 503, None])
    def test_transient_errors_are_retryable(self, status_code):
        assert is_retryable(InsightGenerationError("try again", status_code=status_code))

    def test_malformed_response_is_retryable(self):
        assert is_retryable(InsightResponseError("not json"))

    def test_plain_exceptions_are_retryable(self):
        assert is_retryable(ConnectionError("reset"))
        assert is_retryable(ValueError("bad parse"))

    def test_cancellation_is_never_retried(self):
        assert not is_retryable(asyncio.CancelledError())


class TestRetryController:

    @pytest.mark.asyncio
    async def test_always_failing_operation_runs_max_attempts_then_raises_last_error(self):
        sleep = SleepRecorder()
        controller = make_controller(sleep, max_attempts=4)
        attempts = []

        async def operation():
            attempts.append(len(attempts) + 1)
            raise InsightGenerationError(f"failure {len(attempts)}", status_code=503)

        with pytest.raises(InsightGenerationError, match="failure 4"):
            await controller.run(operation)

        assert attempts == [1, 2, 3, 4]
        assert sleep.delays == [1.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_permanent_error_is_not_retried(self):
        sleep = SleepRecorder()
        controller = make_controller(sleep)
        calls = 0

        async def operation():
            nonlocal calls
            calls += 1
            raise InsightGenerationError("forbidden", status_code=403)

        with pytest.raises(InsightGenerationError, match="forbidden"):
            await controller.run(operation)

        assert calls == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_rate_limit_is_retried_until_success(self):
        sleep = SleepRecorder()
        controller = make_controller(sleep)
        outcomes = [
            InsightGenerationError("slow down", status_code=429),
            InsightResponseError("truncated JSON"),
            {"ok": True},
        ]

        async def operation():
            outcome = outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        assert await controller.run(operation) == {"ok": True}
        assert sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_single_attempt_never_sleeps(self):
        sleep = SleepRecorder()
        controller = make_controller(sleep, max_attempts=1)

        async def operation():
            raise InsightResponseError("bad")

        with pytest.raises(InsightResponseError):
            await controller.run(operation)
        assert sleep.delays == []

    def test_delay_grows_exponentially_without_jitter(self):
        controller = make_controller(SleepRecorder(), base_delay=0.5, backoff_factor=3.0)
        assert [controller.compute_delay(n) for n in (1, 2, 3)] == [0.5, 1.5, 4.5]

    def test_jitter_stays_within_fifteen_percent(self):
        controller = make_controller(SleepRecorder(), jitter=True, rng=random.Random(7))
        for attempt in (1, 2, 3, 4):
            nominal = 2.0 ** (attempt - 1)
            for _ in range(200):
                delay = controller.compute_delay(attempt)
                assert nominal * 0.85 <= delay <= nominal * 1.15

    def test_jittered_delays_increase_on_average(self):
        controller = make_controller(SleepRecorder(), jitter=True, rng=random.Random(11))
        averages = [
            sum(controller.compute_delay(attempt) for _ in range(500)) / 500
            for attempt in (1, 2, 3)
        ]
        assert averages[0] < averages[1] < averages[2]

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            RetryController(max_attempts=0)
