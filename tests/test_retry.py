import os, sys
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import logging

import pytest

from utils.error_handler import ConfigurationError, TransientFetchError, error_reporter
from utils.retry import RetryPolicy, run_batch, run_with_retry


class SleepRecorder:
    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)


class Flaky:
    """Fails the first `failures` calls, then returns `value`"""

    def __init__(self, failures, value="ok"):
        self.failures = failures
        self.value = value
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise TransientFetchError(f"timeout #{self.calls}")
        return self.value


@pytest.fixture(autouse=True)
def clear_error_reporter():
    error_reporter.clear()
    yield
    error_reporter.clear()


def test_policy_validation():
    with pytest.raises(ConfigurationError):
        RetryPolicy(max_attempts=0)
    with pytest.raises(ConfigurationError):
        RetryPolicy(base_delay=-1)
    with pytest.raises(ConfigurationError):
        RetryPolicy(backoff="quadratic")
    with pytest.raises(ConfigurationError):
        RetryPolicy(backoff="exponential", multiplier=0.5)


def test_linear_and_exponential_delays():
    linear = RetryPolicy(base_delay=1.5)
    assert [linear.delay_for(a) for a in (1, 2, 3)] == [1.5, 3.0, 4.5]

    exponential = RetryPolicy(base_delay=1.0, backoff="exponential", multiplier=2.0)
    assert [exponential.delay_for(a) for a in (1, 2, 3)] == [1.0, 2.0, 4.0]


def test_recovers_after_two_failures_with_two_waits():
    sleep = SleepRecorder()
    operation = Flaky(failures=2, value="problem")

    result = run_with_retry(operation, RetryPolicy(max_attempts=3, base_delay=1.0), "fallback",
                            item_id="two-sum", sleep=sleep)

    assert result.value == "problem"
    assert not result.is_fallback
    assert result.attempts == 3
    assert result.recovered
    assert operation.calls == 3
    assert sleep.calls == [1.0, 2.0]


def test_first_try_success_does_not_wait():
    sleep = SleepRecorder()
    result = run_with_retry(Flaky(failures=0), RetryPolicy(), "fallback", sleep=sleep)
    assert result.attempts == 1
    assert not result.recovered
    assert sleep.calls == []


def test_exhaustion_returns_fallback_without_raising():
    sleep = SleepRecorder()
    operation = Flaky(failures=10)

    result = run_with_retry(operation, RetryPolicy(max_attempts=2, base_delay=0.5), "fallback",
                            item_id="3sum", sleep=sleep)

    assert result.value == "fallback"
    assert result.is_fallback
    assert result.attempts == 2
    assert "timeout #2" in result.error
    assert operation.calls == 2
    assert sleep.calls == [0.5]
    assert error_reporter.get_error_summary()["total_errors"] == 2


def test_unexpected_exceptions_are_retried_too():
    def broken():
        raise KeyError("selector")

    result = run_with_retry(broken, RetryPolicy(max_attempts=2, base_delay=0), None, sleep=SleepRecorder())
    assert result.is_fallback
    assert result.value is None


def test_configuration_error_propagates_immediately():
    sleep = SleepRecorder()
    calls = []

    def misconfigured():
        calls.append(1)
        raise ConfigurationError("bad selector table")

    with pytest.raises(ConfigurationError):
        run_with_retry(misconfigured, RetryPolicy(max_attempts=3), "fallback", sleep=sleep)
    assert len(calls) == 1
    assert sleep.calls == []


def test_batch_with_failing_middle_item():
    sleep = SleepRecorder()
    seen = []

    def operation(item):
        if item == "b":
            raise TransientFetchError("page did not load")
        return item.upper()

    results = run_batch(["a", "b", "c"], operation, lambda item: f"fallback-{item}",
                        RetryPolicy(max_attempts=2, base_delay=0.5),
                        inter_item_delay=2.0, sleep=sleep, on_result=seen.append)

    assert [r.value for r in results] == ["A", "fallback-b", "C"]
    assert [r.is_fallback for r in results] == [False, True, False]
    assert [r.item_id for r in results] == ["a", "b", "c"]
    assert seen == results
    # inter-item delays between the three items, one backoff inside item b
    assert sleep.calls == [2.0, 0.5, 2.0]


def test_batch_without_inter_item_delay():
    sleep = SleepRecorder()
    results = run_batch([1, 2], lambda item: item * 10, lambda item: 0, RetryPolicy(), sleep=sleep)
    assert [r.value for r in results] == [10, 20]
    assert [r.item_id for r in results] == ["1", "2"]
    assert sleep.calls == []


def fallback_records(caplog):
    return [r for r in caplog.records if r.name == "utils.retry" and "using static fallback" in r.getMessage()]


def test_fallback_is_logged_once_as_error_on_exhaustion(caplog):
    caplog.set_level(logging.INFO, logger="utils.retry")

    run_with_retry(Flaky(failures=10), RetryPolicy(max_attempts=3, base_delay=0), "fallback",
                   item_id="3sum", sleep=SleepRecorder())

    records = fallback_records(caplog)
    assert len(records) == 1
    assert records[0].levelno == logging.ERROR
    assert "3sum" in records[0].getMessage()
    # the intermediate failures are warnings that name the attempt
    retries = [r for r in caplog.records if r.name == "utils.retry" and r.levelno == logging.WARNING]
    assert len(retries) == 2
    assert "Attempt 1/3 failed for 3sum" in retries[0].getMessage()
    assert "Attempt 2/3 failed for 3sum" in retries[1].getMessage()


def test_recovered_run_does_not_log_fallback(caplog):
    caplog.set_level(logging.INFO, logger="utils.retry")

    run_with_retry(Flaky(failures=2), RetryPolicy(max_attempts=3, base_delay=0), "fallback",
                   item_id="two-sum", sleep=SleepRecorder())

    assert fallback_records(caplog) == []
    assert not any(r.levelno >= logging.ERROR for r in caplog.records if r.name == "utils.retry")
    assert any("Recovered two-sum on attempt 3/3" in r.getMessage() for r in caplog.records)
