# collaborators/assertions.py
from __future__ import annotations

import shlex
import subprocess
import sys
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import List

from ..errors import PipelineError
from ..model import TestCase, TestResult


class TestRunError(PipelineError):
    """The test runner itself broke (as opposed to tests failing)."""
    __test__ = False
    kind = "TestRunError"


def parse_junit(path: Path) -> TestResult:
    """
    Read a JUnit XML report into a TestResult.

    Accepts either a <testsuites> or a bare <testsuite> root. Errors count
    as failures.
    """
    try:
        root = ET.parse(path).getroot()
    except (ET.ParseError, OSError) as e:
        raise TestRunError(f"Could not read test report {path}: {e}") from e

    cases: List[TestCase] = []
    for tc in root.iter("testcase"):
        classname = tc.get("classname", "")
        name = f"{classname}::{tc.get('name', '')}" if classname else tc.get("name", "")
        failure = tc.find("failure")
        if failure is None:
            failure = tc.find("error")
        if failure is not None:
            cases.append(TestCase(name, "failed", failure.get("message", "") or (failure.text or "").strip()))
        elif tc.find("skipped") is not None:
            cases.append(TestCase(name, "skipped", tc.find("skipped").get("message", "")))
        else:
            cases.append(TestCase(name, "passed"))
    return TestResult.from_cases(cases)


class PytestAssertionRunner:
    """
    Runs the project's own test suite, restricted to one marker.

    pytest exit codes 0 (all passed), 1 (some failed) and 5 (nothing
    collected) all produce a usable report; anything else is a runner error.
    """

    def __init__(self, tests_dir: str | Path, extra_args: str = ""):
        self.tests_dir = Path(tests_dir)
        self.extra_args = extra_args

    def command(self, tag: str, report_path: Path) -> List[str]:
        return [
            sys.executable, "-m", "pytest",
            str(self.tests_dir),
            "-m", tag,
            f"--junitxml={report_path}",
            "-q",
            *shlex.split(self.extra_args),
        ]

    def run(self, tag: str, report_path: Path) -> TestResult:
        proc = subprocess.run(
            self.command(tag, report_path),
            text=True,
            capture_output=True,
        )
        if proc.returncode == 5:
            return TestResult(total=0, passed=0, failed=0)
        if proc.returncode not in (0, 1):
            raise TestRunError(
                f"pytest exited with {proc.returncode} for tag '{tag}':\n{proc.stderr[-4000:]}"
            )
        return parse_junit(report_path)
