from pathlib import Path

import pytest

from confci.errors import InputError
from confci.settings import PipelineSettings


def test_from_env_reads_prefixed_variables():
    s = PipelineSettings.from_env({
        "CONFCI_APP_ID": "app",
        "CONFCI_APP_SECRET": "s3cret",
        "CONFCI_TENANT_ID": "tenant",
        "CONFCI_POLL_INTERVAL": "2.5",
        "CONFCI_TOOL_MODULES": "Pester, PSScriptAnalyzer",
        "UNRELATED": "x",
    })
    assert s.poll_interval == 2.5
    assert s.tool_modules == ["Pester", "PSScriptAnalyzer"]
    assert s.credentials.app_secret == "s3cret"
    assert "s3cret" not in repr(s)


def test_overrides_win_and_none_is_ignored():
    s = PipelineSettings.from_env({"CONFCI_BUILD_ROOT": "/env"}, build_root="/cli", run_id=None)
    assert s.build_root == Path("/cli")
    assert s.run_id


def test_invalid_values_raise_input_error():
    with pytest.raises(InputError, match="poll_interval"):
        PipelineSettings.from_env({"CONFCI_POLL_INTERVAL": "0"})
