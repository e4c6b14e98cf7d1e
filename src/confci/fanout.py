# fanout.py
from __future__ import annotations

from typing import Any, Callable, Iterable, List, Optional, Tuple

from .errors import MissingEnvironmentError, ProvisioningFailedError
from .jobs import JobRunner
from .model import Configuration, JobOutput, JobResult
from .ui.console import Console, get_console

# provision(session, configuration, environment, output)
ProvisionFn = Callable[[Any, Configuration, str, JobOutput], Any]


def leg_name(configuration: Configuration, environment: str) -> str:
    return f"{configuration.name}-{environment}"


def _pairs(configurations: Iterable[Configuration]) -> List[Tuple[Configuration, str]]:
    """Expand configurations into (configuration, environment) pairs, rejecting null targets."""
    pairs: List[Tuple[Configuration, str]] = []
    for c in configurations:
        for env in c.environments:
            if env is None or not str(env).strip():
                raise MissingEnvironmentError(c.name)
            pairs.append((c, env))
    return pairs


def provision_all(
    configurations: Iterable[Configuration],
    provision: ProvisionFn,
    *,
    authenticate: Callable[[], Any],
    runner: Optional[JobRunner] = None,
    console: Optional[Console] = None,
) -> List[JobResult]:
    """
    Provision every (configuration, environment) pair in parallel.

    Every pair is validated before the first leg starts. Each leg then
    authenticates on its own and runs `provision`. All legs are launched,
    then joined in launch order; a failed leg never cancels its siblings.

    Returns:
        One JobResult per leg, in launch order.

    Raises:
        MissingEnvironmentError: a configuration declares a null environment
            (nothing is launched).
        ProvisioningFailedError: one or more legs failed, raised only after
            every leg has finished.
    """
    console = console or get_console()
    pairs = _pairs(configurations)
    if not pairs:
        return []

    own_runner = runner is None
    runner = runner or JobRunner(max_workers=len(pairs))

    def make_work(configuration: Configuration, environment: str):
        def work(output: JobOutput) -> Any:
            session = authenticate()
            return provision(session, configuration, environment, output)
        return work

    try:
        # ---- fan-out ----
        jobs = [
            runner.start(leg_name(c, env), make_work(c, env))
            for c, env in pairs
        ]
        console.print_info(f"Launched {len(jobs)} provisioning leg(s)")

        # ---- fan-in ----
        results: List[JobResult] = []
        for j in jobs:
            result = runner.join(j)
            console.print_leg_result(result)
            results.append(result)
    finally:
        if own_runner:
            runner.shutdown()

    failures = [(r.name, r.error) for r in results if not r.ok]
    if failures:
        raise ProvisioningFailedError(failures, results)
    return results
