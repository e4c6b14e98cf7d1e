from __future__ import annotations

import json
from pathlib import Path

import pytest

from confci.model import AuthContext, TestCase, TestResult


class FakeTests:
    """Test-assertion stub returning canned results per tag."""

    def __init__(self, results: dict[str, TestResult] | None = None):
        self.results = results or {}
        self.calls = []

    def run(self, tag, report_path):
        self.calls.append((tag, Path(report_path)))
        return self.results.get(tag, TestResult(total=0, passed=0, failed=0))


class FakeUploader:
    def __init__(self, error: Exception | None = None):
        self.error = error
        self.uploads = []

    def upload(self, destination, path):
        if self.error is not None:
            raise self.error
        self.uploads.append((destination, Path(path)))


def make_result(total: int, failed: int) -> TestResult:
    cases = [TestCase(f"test_{i}", "failed" if i < failed else "passed", "boom" if i < failed else "")
             for i in range(total)]
    return TestResult.from_cases(cases)


def write_json(path: Path, data: dict) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


@pytest.fixture
def auth():
    return AuthContext(tenant_id="tenant", app_id="app", token="token")


@pytest.fixture
def build_root(tmp_path):
    """A build root with two modules and two configurations."""
    write_json(tmp_path / "modules" / "Networking" / "module.json", {
        "name": "Networking",
        "version": "1.0.0",
        "required_modules": [
            {"name": "ComputerManagementDsc", "version": "8.5.0"},
            {"name": "NetworkingDsc", "version": "9.0.0"},
        ],
    })
    write_json(tmp_path / "modules" / "Storage" / "module.json", {
        "name": "Storage",
        "required_modules": [{"name": "ComputerManagementDsc", "version": "8.5.0"}],
    })
    write_json(tmp_path / "configurations" / "web" / "configuration.json", {
        "name": "web",
        "environments": ["WinA"],
    })
    write_json(tmp_path / "configurations" / "db" / "configuration.json", {
        "name": "db",
        "environments": ["WinB"],
    })
    return tmp_path
