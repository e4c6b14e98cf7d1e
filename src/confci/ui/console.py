"""Console output formatting utilities for confci."""

from __future__ import annotations

import sys
from typing import Mapping, Optional

from ..model import JobResult, TestResult


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
        """
        self.debug = debug

    def print_run_started(self, run_id: str, build_root: str, task_count: int) -> None:
        """Print run start information."""
        print("\nRUN STARTED")
        print(f"Run ID: {run_id}")
        print(f"Build root: {build_root}")
        print(f"Tasks: {task_count}")
        print()

    def print_task_start(self, name: str) -> None:
        print(f"\nTASK STARTED: {name}")

    def print_task_failure(self, name: str, error: BaseException) -> None:
        """Print the failing stage and the originating error."""
        print(f"\nTASK FAILED: {name}", file=sys.stderr)
        print(f"Error: {type(error).__name__}", file=sys.stderr)
        if self.debug:
            print(f"Error details: {error}", file=sys.stderr)
        else:
            text = str(error)
            first = text.split("\n")[0] if text else "Unknown error"
            print(f"  {first}", file=sys.stderr)
            for line in text.split("\n")[1:]:
                print(f"  {line}", file=sys.stderr)

    def print_leg_result(self, result: JobResult) -> None:
        """Print one fan-out leg's captured output after it has been joined."""
        print(f"\nLEG: {result.name} [{result.state.value}]")
        for line in result.output.splitlines():
            print(f"  | {line}")
        if result.error is not None:
            print(f"  ! {type(result.error).__name__}: {result.error}")

    def print_verification(self, stage: str, result: TestResult, report: str) -> None:
        print(f"TESTS ({stage}): total={result.total} passed={result.passed} failed={result.failed}")
        print(f"Report: {report}")

    def print_results(self, results: Mapping[str, TestResult], exit_code: int) -> None:
        """Print final results summary."""
        print("\n" + "=" * 40)
        print("RESULTS")
        print("=" * 40)
        for stage, r in results.items():
            status = "SUCCESS" if r.failed == 0 else "FAILED"
            print(f"  {stage}: {status} ({r.passed}/{r.total} passed)")
        print(f"  exit code: {exit_code}")

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print structured error message.

        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
            suggestion: Optional suggestion for user
        """
        print(f"\nERROR: {title}", file=sys.stderr)
        print(f"{message}", file=sys.stderr)
        if details:
            for detail in details:
                print(f"  {detail}", file=sys.stderr)
        if suggestion:
            print(f"\n{suggestion}", file=sys.stderr)

    def print_exception(self, exc: BaseException) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            traceback.print_exception(type(exc), exc, exc.__traceback__)
        else:
            print(f"Error: {exc}", file=sys.stderr)

    def print_info(self, message: str) -> None:
        print(message)

    def print_warning(self, message: str) -> None:
        print(f"WARNING: {message}", file=sys.stderr)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            print(f"[DEBUG] {message}", file=sys.stderr)


# Global console instance (will be initialized by CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
