# errors.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

from .model import JobResult


class PipelineError(Exception):
    """Base class for every error the pipeline raises on purpose."""
    kind = "PipelineError"


# ----------------------------------------------------------------------
# Input / authentication / publishing
# ----------------------------------------------------------------------

class InputError(PipelineError):
    """Missing or invalid configuration metadata."""
    kind = "InputError"


@dataclass(eq=False)
class MissingEnvironmentError(InputError):
    configuration: str

    def __str__(self) -> str:
        return f"Configuration '{self.configuration}' declares a null or blank target environment"


class AuthenticationError(PipelineError):
    kind = "AuthenticationError"


class PublishError(PipelineError):
    """A module or configuration could not be published or compiled remotely."""
    kind = "PublishError"


@dataclass(eq=False)
class AutomationAPIError(PublishError):
    """
    A failed request against the remote automation service.

    `transient` marks errors worth retrying inside a poll (network errors,
    5xx responses); anything else is final.
    """
    message: str
    status: Optional[int] = None
    transient: bool = False

    def __str__(self) -> str:
        if self.status is not None:
            return f"{self.message} (HTTP {self.status})"
        return self.message


class ProvisioningError(PipelineError):
    """A single provisioning action failed."""
    kind = "ProvisioningError"


# ----------------------------------------------------------------------
# Polling
# ----------------------------------------------------------------------

class TransientPollError(PipelineError):
    """Raised by a poll predicate to mean "could not tell yet, ask again"."""
    kind = "TransientPollError"


@dataclass(eq=False)
class PollTimeoutError(PipelineError):
    last_state: Any
    elapsed: float
    description: str = ""

    kind = "PollTimeoutError"

    def __str__(self) -> str:
        what = f" waiting for {self.description}" if self.description else ""
        return f"Timed out after {self.elapsed:.1f}s{what} (last state: {self.last_state!r})"


# ----------------------------------------------------------------------
# Fan-out / verification
# ----------------------------------------------------------------------

@dataclass(eq=False)
class ProvisioningFailedError(PipelineError):
    """Aggregate of every failed leg, raised once after the full fan-in."""
    failures: List[Tuple[str, BaseException]]
    results: List[JobResult] = field(default_factory=list)

    kind = "ProvisioningFailedError"

    def __str__(self) -> str:
        lines = [f"{len(self.failures)} provisioning leg(s) failed:"]
        for name, error in self.failures:
            lines.append(f"  {name}: {error}")
        return "\n".join(lines)


@dataclass(eq=False)
class VerificationFailed(PipelineError):
    stage: str
    failed: int
    total: int = 0

    kind = "VerificationFailed"

    def __str__(self) -> str:
        return f"{self.failed} of {self.total} test(s) failed in stage '{self.stage}'"


# ----------------------------------------------------------------------
# Task graph
# ----------------------------------------------------------------------

class StructuralError(PipelineError):
    """The task graph itself is misconfigured."""
    kind = "StructuralError"


@dataclass(eq=False)
class DuplicateTaskError(StructuralError):
    name: str

    def __str__(self) -> str:
        return f"Task '{self.name}' is already registered"


@dataclass(eq=False)
class UnknownDependencyError(StructuralError):
    task: str
    dependency: str
    known: List[str] = field(default_factory=list)

    def __str__(self) -> str:
        if self.task:
            msg = f"Task '{self.task}' needs unknown task '{self.dependency}'"
        else:
            msg = f"Unknown task '{self.dependency}'"
        return f"{msg}. Known tasks: {sorted(self.known)}"


@dataclass(eq=False)
class TaskFailedError(PipelineError):
    """A task action failed; the original error is kept as `error` and `__cause__`."""
    task: str
    error: BaseException

    kind = "TaskFailedError"

    def __str__(self) -> str:
        return f"Task '{self.task}' failed: {self.error}"
