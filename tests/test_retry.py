"""
Tests for retry logic.
"""

import pytest

from shared.errors import StoreError, TransientStoreError
from shared.retry import RetryPolicy, retry_call

NO_JITTER = RetryPolicy(attempts=3, base_delay=0.5, max_delay=2.0, jitter=0.0)


class Flaky:
    """Fails a set number of times before succeeding."""

    def __init__(self, failures, exc=None):
        self.failures = failures
        self.exc = exc or TransientStoreError("get_user", 503, "unavailable")
        self.calls = 0

    def __call__(self, *args, **kwargs):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc
        return ("success", args, kwargs)


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.now += seconds


class TestBackoff:
    def test_doubles_per_failure(self):
        assert NO_JITTER.backoff(1) == pytest.approx(0.5)
        assert NO_JITTER.backoff(2) == pytest.approx(1.0)
        assert NO_JITTER.backoff(3) == pytest.approx(2.0)

    def test_capped_at_max_delay(self):
        assert NO_JITTER.backoff(10) == pytest.approx(2.0)

    def test_jitter_is_bounded(self):
        policy = RetryPolicy(base_delay=1.0, jitter=0.2)

        delays = [policy.backoff(1) for _ in range(100)]

        assert len(set(delays)) > 1
        assert all(1.0 <= d <= 1.2 for d in delays)

    def test_retry_after_is_a_floor(self):
        assert NO_JITTER.backoff(1, retry_after=3.0) == pytest.approx(3.0)
        assert NO_JITTER.backoff(3, retry_after=0.1) == pytest.approx(2.0)


class TestRetryCall:
    def test_returns_first_success(self):
        func = Flaky(0)

        result = retry_call(func, 1, policy=NO_JITTER, sleep=lambda _: None, key="v")

        assert result == ("success", (1,), {"key": "v"})
        assert func.calls == 1

    def test_retries_until_success(self):
        func = Flaky(2)
        sleeps = []

        result = retry_call(func, policy=NO_JITTER, sleep=sleeps.append)

        assert result[0] == "success"
        assert func.calls == 3
        assert sleeps == [pytest.approx(0.5), pytest.approx(1.0)]

    def test_raises_after_attempts_exhausted(self):
        func = Flaky(10)

        with pytest.raises(TransientStoreError):
            retry_call(func, policy=NO_JITTER, sleep=lambda _: None)

        assert func.calls == 3

    def test_permanent_store_errors_are_not_retried(self):
        func = Flaky(1, exc=StoreError("patch_user", 400, "bad column"))

        with pytest.raises(StoreError):
            retry_call(func, policy=NO_JITTER, sleep=lambda _: None)

        assert func.calls == 1

    def test_honors_retry_after(self):
        func = Flaky(1, exc=TransientStoreError("get_user", 429, "slow down", retry_after=1.5))
        sleeps = []

        retry_call(func, policy=NO_JITTER, sleep=sleeps.append)

        assert sleeps == [pytest.approx(1.5)]

    def test_gives_up_when_wait_would_pass_deadline(self):
        func = Flaky(5, exc=TransientStoreError("get_user", 429, "slow down", retry_after=30.0))
        clock = FakeClock()

        with pytest.raises(TransientStoreError):
            retry_call(func, policy=NO_JITTER, sleep=clock.sleep, clock=clock)

        assert func.calls == 1
        assert clock.now == 0.0

    def test_deadline_counts_elapsed_time(self):
        policy = RetryPolicy(attempts=10, base_delay=1.0, max_delay=1.0, jitter=0.0, deadline=2.5)
        func = Flaky(10)
        clock = FakeClock()

        with pytest.raises(TransientStoreError):
            retry_call(func, policy=policy, sleep=clock.sleep, clock=clock)

        # Waits at t=0 and t=1; a third wait would end at 3.0 > 2.5
        assert func.calls == 3
        assert clock.now == pytest.approx(2.0)
