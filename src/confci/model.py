# model.py
from __future__ import annotations

import io
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class Task:
    """A named pipeline stage: an action plus the stages that must run before it."""
    name: str
    action: Callable[["PipelineRun"], None]
    needs: Tuple[str, ...] = ()
    synopsis: str = ""


class JobState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (JobState.SUCCEEDED, JobState.FAILED)


class JobOutput:
    """
    Line buffer owned by a single job.

    Work running on a worker thread writes here instead of stdout, so that
    concurrent legs never interleave their output on the console.
    """

    def __init__(self) -> None:
        self._buffer = io.StringIO()
        self._lock = threading.Lock()

    def write(self, text: str) -> int:
        if not text.endswith("\n"):
            text += "\n"
        with self._lock:
            self._buffer.write(text)
        return len(text)

    def getvalue(self) -> str:
        with self._lock:
            return self._buffer.getvalue()


@dataclass
class Job:
    """One concurrently executing unit of work, as handed out by JobRunner.start()."""
    name: str
    state: JobState = JobState.PENDING
    output: JobOutput = field(default_factory=JobOutput)
    error: Optional[BaseException] = None


@dataclass(frozen=True)
class JobResult:
    name: str
    state: JobState
    output: str
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.state is JobState.SUCCEEDED


@dataclass(frozen=True)
class Configuration:
    """
    A configuration artifact to validate.

    `environments` is kept as parsed: a null entry is an input error that the
    provisioning fan-out reports, naming this configuration.
    """
    name: str
    environments: Tuple[Optional[str], ...]
    path: Optional[Path] = None


@dataclass(frozen=True)
class RequiredModule:
    name: str
    version: str = ""  # empty: any version

    def __str__(self) -> str:
        return f"{self.name}@{self.version}" if self.version else self.name


@dataclass(frozen=True)
class Credentials:
    app_id: str
    app_secret: str
    tenant_id: str

    def __repr__(self) -> str:
        return f"Credentials(app_id={self.app_id!r}, tenant_id={self.tenant_id!r})"


@dataclass(frozen=True)
class AuthContext:
    tenant_id: str
    app_id: str
    token: str
    expires_on: Optional[float] = None

    def __repr__(self) -> str:
        return f"AuthContext(app_id={self.app_id!r}, tenant_id={self.tenant_id!r})"


@dataclass(frozen=True)
class TestCase:
    __test__ = False

    name: str
    outcome: str  # "passed" | "failed" | "skipped"
    message: str = ""


@dataclass(frozen=True)
class TestResult:
    __test__ = False

    total: int
    passed: int
    failed: int
    cases: Tuple[TestCase, ...] = ()

    @classmethod
    def from_cases(cls, cases: List[TestCase]) -> "TestResult":
        passed = sum(1 for c in cases if c.outcome == "passed")
        failed = sum(1 for c in cases if c.outcome == "failed")
        return cls(total=len(cases), passed=passed, failed=failed, cases=tuple(cases))


@dataclass
class PipelineRun:
    """
    Process-wide state for one pipeline execution.

    Built once at startup and handed to every task and fan-out leg.
    `configurations` and `modules` are assigned once by the loading stages
    and treated as read-only afterwards.
    """
    run_id: str
    build_root: Path
    credentials: Credentials
    auth: Optional[AuthContext] = None
    configurations: Tuple[Configuration, ...] = ()
    modules: Tuple[RequiredModule, ...] = ()
    results: Dict[str, TestResult] = field(default_factory=dict)
    provisioned: List[str] = field(default_factory=list)

    @property
    def report_dir(self) -> Path:
        return self.build_root / "reports"

    def tally(self) -> Tuple[int, int, int]:
        total = sum(r.total for r in self.results.values())
        passed = sum(r.passed for r in self.results.values())
        failed = sum(r.failed for r in self.results.values())
        return total, passed, failed
