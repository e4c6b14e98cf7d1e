"""Run a tagged verification stage and publish its report.

The reporter turns one run of the test-assertion collaborator into a
JUnit-style XML artifact at a fixed per-stage path, uploads it best-effort
and hands the failed-test count back to the pipeline.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Dict, Optional

from .collaborators import ReportUploader, TestAssertionRunner
from .model import TestResult
from .ui.console import Console, get_console


def report_path(report_dir: str | Path, tag: str) -> Path:
    return Path(report_dir) / f"TestResults.{tag}.xml"


def write_junit(result: TestResult, path: Path, suite: str) -> Path:
    """Serialize `result` as a JUnit XML document with totals on the root."""
    root = ET.Element(
        "testsuites",
        name=suite,
        tests=str(result.total),
        passed=str(result.passed),
        failures=str(result.failed),
    )
    skipped = result.total - result.passed - result.failed
    ts = ET.SubElement(
        root,
        "testsuite",
        name=suite,
        tests=str(result.total),
        failures=str(result.failed),
        skipped=str(skipped),
    )
    for case in result.cases:
        tc = ET.SubElement(ts, "testcase", name=case.name, classname=suite)
        if case.outcome == "failed":
            ET.SubElement(tc, "failure", message=case.message or "failed")
        elif case.outcome == "skipped":
            ET.SubElement(tc, "skipped", message=case.message)

    path.parent.mkdir(parents=True, exist_ok=True)
    ET.ElementTree(root).write(path, encoding="utf-8", xml_declaration=True)
    return path


class ResultReporter:
    """Verification stage driver: run tests, write report, upload it, return failures."""

    def __init__(
        self,
        runner: TestAssertionRunner,
        report_dir: str | Path,
        *,
        uploader: Optional[ReportUploader] = None,
        destination: Optional[str] = None,
        console: Optional[Console] = None,
    ):
        self.runner = runner
        self.report_dir = Path(report_dir)
        self.uploader = uploader
        self.destination = destination
        self.console = console or get_console()
        self.results: Dict[str, TestResult] = {}

    def run_verification(self, tag: str) -> int:
        scratch = self.report_dir / "raw" / f"{tag}.xml"
        scratch.parent.mkdir(parents=True, exist_ok=True)

        result = self.runner.run(tag, scratch)
        self.results[tag] = result

        path = write_junit(result, report_path(self.report_dir, tag), suite=tag)
        self.console.print_verification(tag, result, str(path))
        self._upload(path)

        return result.failed

    def _upload(self, path: Path) -> None:
        if self.uploader is None or not self.destination:
            self.console.print_debug(f"No report destination configured, keeping {path} local")
            return
        try:
            self.uploader.upload(self.destination, path)
        except Exception as e:
            # upload is best-effort; the stage outcome comes from the tests
            self.console.print_warning(f"Report upload failed for {path.name}: {e}")
        else:
            self.console.print_debug(f"Uploaded {path.name} to {self.destination}")
