import xml.etree.ElementTree as ET

from confci.conftest import FakeTests, FakeUploader, make_result
from confci.reporter import ResultReporter, report_path
from confci.ui.console import Console


def test_failed_stage_writes_report_with_totals_and_returns_failed_count(tmp_path):
    tests = FakeTests({"integration": make_result(total=10, failed=2)})
    uploader = FakeUploader()
    reporter = ResultReporter(
        tests, tmp_path, uploader=uploader, destination="https://store/reports", console=Console(),
    )

    failed = reporter.run_verification("integration")

    assert failed == 2
    path = report_path(tmp_path, "integration")
    assert path.name == "TestResults.integration.xml"
    root = ET.parse(path).getroot()
    assert (root.get("tests"), root.get("passed"), root.get("failures")) == ("10", "8", "2")
    assert len(root.findall(".//testcase")) == 10
    assert len(root.findall(".//failure")) == 2
    assert uploader.uploads == [("https://store/reports", path)]
    assert reporter.results["integration"].total == 10


def test_runner_is_called_with_tag_filter(tmp_path):
    tests = FakeTests({"unit": make_result(total=3, failed=0)})
    reporter = ResultReporter(tests, tmp_path, console=Console())

    assert reporter.run_verification("unit") == 0
    assert [tag for tag, _ in tests.calls] == ["unit"]


def test_upload_failure_is_not_fatal(tmp_path, capsys):
    tests = FakeTests({"unit": make_result(total=4, failed=0)})
    uploader = FakeUploader(error=OSError("storage unreachable"))
    reporter = ResultReporter(
        tests, tmp_path, uploader=uploader, destination="https://store/reports", console=Console(),
    )

    assert reporter.run_verification("unit") == 0
    assert report_path(tmp_path, "unit").is_file()
    assert "storage unreachable" in capsys.readouterr().err


def test_no_destination_skips_upload(tmp_path):
    uploader = FakeUploader()
    reporter = ResultReporter(FakeTests(), tmp_path, uploader=uploader, console=Console())

    assert reporter.run_verification("unit") == 0
    assert uploader.uploads == []
