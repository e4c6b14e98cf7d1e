from pathlib import Path

from confci.model import (
    Credentials,
    JobOutput,
    JobState,
    PipelineRun,
    RequiredModule,
    TestCase,
    TestResult,
)


def test_test_result_counts_from_cases():
    r = TestResult.from_cases([
        TestCase("a", "passed"),
        TestCase("b", "failed", "boom"),
        TestCase("c", "skipped"),
    ])
    assert (r.total, r.passed, r.failed) == (3, 1, 1)


def test_pipeline_run_tally_sums_stages():
    run = PipelineRun(run_id="r1", build_root=Path("/repo"), credentials=Credentials("a", "s", "t"))
    run.results["unit"] = TestResult(total=5, passed=5, failed=0)
    run.results["integration"] = TestResult(total=10, passed=8, failed=2)

    assert run.tally() == (15, 13, 2)
    assert run.report_dir == Path("/repo/reports")


def test_credentials_repr_hides_secret():
    assert "hunter2" not in repr(Credentials("app", "hunter2", "tenant"))


def test_job_output_terminates_lines():
    out = JobOutput()
    out.write("one")
    out.write("two\n")
    assert out.getvalue() == "one\ntwo\n"


def test_job_state_terminal():
    assert JobState.SUCCEEDED.terminal and JobState.FAILED.terminal
    assert not JobState.RUNNING.terminal


def test_required_module_str():
    assert str(RequiredModule("NetworkingDsc", "9.0.0")) == "NetworkingDsc@9.0.0"
    assert str(RequiredModule("NetworkingDsc")) == "NetworkingDsc"
