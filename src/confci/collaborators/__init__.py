"""Interfaces for the external systems the pipeline talks to.

The pipeline core only depends on these protocols. Each has one concrete
default in a sibling module; tests swap in small in-memory stubs.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Protocol

from ..model import AuthContext, Configuration, Credentials, JobOutput, RequiredModule, TestResult


class ManifestReader(Protocol):
    """Reads the dependency list out of a module's declared metadata."""

    def required_modules(self, module_dir: Path) -> list[RequiredModule]:
        ...


class Authenticator(Protocol):
    def authenticate(self, credentials: Credentials) -> AuthContext:
        """Return a fresh session context or raise AuthenticationError."""
        ...


class AutomationService(Protocol):
    """Publishing side of the remote automation service."""

    def publish_module(self, module: RequiredModule) -> None:
        ...

    def module_state(self, name: str) -> str:
        """Extraction state of a published module (e.g. "Creating", "Succeeded", "Failed")."""
        ...

    def publish_configuration(self, configuration: Configuration) -> None:
        ...

    def compilation_state(self, name: str) -> str:
        """State of the compilation job for a configuration (e.g. "Running", "Completed")."""
        ...

    def node_state(self, run_id: str, node: str) -> str:
        """Compliance state reported by a provisioned node (e.g. "Pending", "Compliant")."""
        ...


class InstanceProvisioner(Protocol):
    def provision_backend(self, run_id: str) -> None:
        ...

    def provision_instance(
        self,
        run_id: str,
        configuration: str,
        environment: str,
        output: JobOutput,
    ) -> None:
        """Create one test instance and bootstrap it; blocks until done."""
        ...

    def teardown(self, run_id: str) -> None:
        ...


class RemoteAutomation(AutomationService, InstanceProvisioner, Protocol):
    """What `connect(auth)` hands back: one session covering both sides."""


class TestAssertionRunner(Protocol):
    __test__ = False

    def run(self, tag: str, report_path: Path) -> TestResult:
        """Run tests labeled `tag`, writing raw JUnit XML to `report_path`."""
        ...


class ReportUploader(Protocol):
    def upload(self, destination: str, path: Path) -> None:
        ...


class ModuleInstaller(Protocol):
    def install(self, names: Iterable[str]) -> None:
        ...


__all__ = [
    "ManifestReader",
    "Authenticator",
    "AutomationService",
    "InstanceProvisioner",
    "RemoteAutomation",
    "TestAssertionRunner",
    "ReportUploader",
    "ModuleInstaller",
]
