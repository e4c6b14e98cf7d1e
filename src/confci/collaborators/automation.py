# collaborators/automation.py
from __future__ import annotations

from pathlib import Path
from typing import Dict
from urllib.parse import quote

from ..errors import AutomationAPIError, ProvisioningError, TransientPollError
from ..model import AuthContext, Configuration, JobOutput, RequiredModule
from ..poller import Observation, poll_until
from .http import JSONClient


def _q(segment: str) -> str:
    return quote(segment, safe="")


def _bundle(directory: Path) -> Dict[str, str]:
    """Read every text file under a configuration directory, keyed by relative path."""
    files: Dict[str, str] = {}
    for p in sorted(directory.rglob("*")):
        if p.is_file():
            files[p.relative_to(directory).as_posix()] = p.read_text(encoding="utf-8")
    return files


class AutomationClient(JSONClient):
    """
    HTTP client for the remote automation service.

    One instance is one authenticated session. It is not shared between
    threads; each provisioning leg connects with its own token.
    """

    def __init__(
        self,
        base_url: str,
        auth: AuthContext,
        *,
        poll_interval: float = 15.0,
        provision_timeout: float = 1800.0,
        timeout: float = 60.0,
    ):
        super().__init__(base_url, token=auth.token, timeout=timeout)
        self.auth = auth
        self.poll_interval = poll_interval
        self.provision_timeout = provision_timeout

    def _state(self, path: str) -> str:
        return str(self._request("GET", path).get("state", "Unknown"))

    # ---- publishing ----

    def publish_module(self, module: RequiredModule) -> None:
        self._request("PUT", f"/modules/{_q(module.name)}", data={"version": module.version})

    def module_state(self, name: str) -> str:
        return self._state(f"/modules/{_q(name)}")

    def publish_configuration(self, configuration: Configuration) -> None:
        data: dict = {"environments": list(configuration.environments)}
        if configuration.path is not None:
            data["files"] = _bundle(Path(configuration.path))
        self._request("PUT", f"/configurations/{_q(configuration.name)}", data=data)

    def compilation_state(self, name: str) -> str:
        return self._state(f"/configurations/{_q(name)}/compilation")

    def node_state(self, run_id: str, node: str) -> str:
        return self._state(f"/runs/{_q(run_id)}/nodes/{_q(node)}")

    # ---- provisioning ----

    def provision_backend(self, run_id: str) -> None:
        self._request("PUT", f"/runs/{_q(run_id)}")

    def provision_instance(
        self,
        run_id: str,
        configuration: str,
        environment: str,
        output: JobOutput,
    ) -> None:
        response = self._request(
            "POST",
            f"/runs/{_q(run_id)}/instances",
            data={"configuration": configuration, "environment": environment},
        )
        name = response.get("name") or f"{configuration}-{environment}"
        output.write(f"deployment {name} submitted")

        def deployed() -> Observation:
            try:
                state = self._state(f"/runs/{_q(run_id)}/instances/{_q(name)}")
            except AutomationAPIError as e:
                if e.transient:
                    raise TransientPollError(str(e)) from e
                raise
            if state == "Failed":
                raise ProvisioningError(f"Deployment {name} failed")
            return Observation(state == "Succeeded", state)

        poll_until(
            deployed,
            self.poll_interval,
            self.provision_timeout,
            description=f"deployment {name}",
        )
        output.write(f"deployment {name} succeeded")

    def teardown(self, run_id: str) -> None:
        self._request("DELETE", f"/runs/{_q(run_id)}")
