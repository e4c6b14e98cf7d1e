import pytest
from click.testing import CliRunner

from confci.cli import cli


def test_tasks_lists_pipeline_in_order(tmp_path):
    result = CliRunner().invoke(cli, ["tasks"], env={"CONFCI_BUILD_ROOT": str(tmp_path)})

    assert result.exit_code == 0
    names = [line.split()[0] for line in result.output.splitlines()]
    assert names[0] == "load-dependencies"
    assert names[-1] == "verify-convergence"
    assert len(names) == 11


def test_invalid_settings_exit_nonzero():
    result = CliRunner().invoke(cli, ["run"], env={"CONFCI_POLL_INTERVAL": "-1"})
    assert result.exit_code == 1


@pytest.mark.parametrize("command", ["pip install pester", "pip install {name} {other}"])
@pytest.mark.parametrize("subcommand", ["tasks", "run"])
def test_bad_install_command_is_reported_not_raised(tmp_path, subcommand, command):
    result = CliRunner().invoke(
        cli, [subcommand],
        env={"CONFCI_BUILD_ROOT": str(tmp_path), "CONFCI_INSTALL_COMMAND": command},
    )

    assert result.exit_code == 1
    assert result.exception is None or isinstance(result.exception, SystemExit)
    assert "InputError" in result.output
