"""Wait for an external condition to become true.

Every long-running remote operation in the pipeline (module extraction,
configuration compilation, instance deployment, node convergence) goes
through `poll_until`. The loop is synchronous and blocks the calling
thread; there is no cancellation other than the timeout.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Tuple, Type

from .errors import PollTimeoutError, TransientPollError


@dataclass(frozen=True)
class Observation:
    """
    A predicate result that also carries the observed remote state.

    Truthiness follows `done`, so predicates may return either a plain bool
    or an Observation.
    """
    done: bool
    state: Any = None

    def __bool__(self) -> bool:
        return self.done


def poll_until(
    predicate: Callable[[], Any],
    interval: float,
    timeout: float,
    *,
    description: str = "",
    transient: Tuple[Type[BaseException], ...] = (TransientPollError,),
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> Any:
    """
    Evaluate `predicate` every `interval` seconds until it is truthy.

    Args:
        predicate: Side-effecting check against external state. May raise
            one of `transient` to mean "not yet"; any other exception is
            fatal and propagates immediately.
        interval: Seconds between evaluations.
        timeout: Seconds after which PollTimeoutError is raised.
        description: Human-readable name used in the timeout message.

    Returns:
        The first truthy value returned by the predicate.

    Raises:
        PollTimeoutError: carrying the last observed state (or the last
            transient error) once the deadline has elapsed.
    """
    if interval <= 0:
        raise ValueError("interval must be > 0")
    if timeout < 0:
        raise ValueError("timeout must be >= 0")

    start = clock()
    deadline = start + timeout
    last_state: Any = None

    while True:
        try:
            result = predicate()
        except transient as e:
            last_state = e
        else:
            if result:
                return result
            last_state = result.state if isinstance(result, Observation) else result

        now = clock()
        if now >= deadline:
            raise PollTimeoutError(last_state, now - start, description)

        sleep(min(interval, deadline - now))
