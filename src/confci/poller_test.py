import pytest

from confci.errors import PollTimeoutError, PublishError, TransientPollError
from confci.poller import Observation, poll_until


class FakeClock:
    """Monotonic clock that only moves when the poller sleeps."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def _poll(predicate, clock, interval=1.0, timeout=10.0, **kw):
    return poll_until(predicate, interval, timeout, clock=clock, sleep=clock.sleep, **kw)


def test_returns_after_exactly_n_evaluations():
    clock = FakeClock()
    calls = []

    def predicate():
        calls.append(clock.now)
        return len(calls) == 4

    assert _poll(predicate, clock) is True
    assert len(calls) == 4
    assert clock.sleeps == [1.0, 1.0, 1.0]


def test_returns_first_truthy_observation():
    clock = FakeClock()
    states = iter(["Queued", "Running", "Completed"])

    def predicate():
        s = next(states)
        return Observation(s == "Completed", s)

    result = _poll(predicate, clock)
    assert result.state == "Completed"


def test_times_out_at_deadline_and_not_before():
    clock = FakeClock()
    calls = []

    def predicate():
        calls.append(clock.now)
        return Observation(False, "Running")

    with pytest.raises(PollTimeoutError) as exc:
        _poll(predicate, clock, interval=2.0, timeout=5.0, description="compilation")

    # evaluated at 0, 2, 4 and once more at the 5s deadline
    assert calls == [0.0, 2.0, 4.0, 5.0]
    assert exc.value.elapsed == 5.0
    assert exc.value.last_state == "Running"
    assert "compilation" in str(exc.value)


def test_transient_errors_are_retried():
    clock = FakeClock()
    outcomes = [TransientPollError("connection reset"), TransientPollError("503"), True]

    def predicate():
        o = outcomes.pop(0)
        if isinstance(o, Exception):
            raise o
        return o

    assert _poll(predicate, clock) is True
    assert outcomes == []


def test_timeout_carries_last_transient_error():
    clock = FakeClock()

    def predicate():
        raise TransientPollError("still unreachable")

    with pytest.raises(PollTimeoutError) as exc:
        _poll(predicate, clock, timeout=3.0)
    assert isinstance(exc.value.last_state, TransientPollError)


def test_fatal_errors_propagate_immediately():
    clock = FakeClock()
    calls = []

    def predicate():
        calls.append(1)
        raise PublishError("compilation suspended")

    with pytest.raises(PublishError):
        _poll(predicate, clock)
    assert calls == [1]
    assert clock.sleeps == []


def test_rejects_non_positive_interval():
    with pytest.raises(ValueError):
        poll_until(lambda: True, 0, 1)
