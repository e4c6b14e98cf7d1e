"""The fixed validation pipeline.

Registers the eleven stages into a TaskGraph, wires them to the external
collaborators and turns the outcome into a process exit code:

    0                 every stage passed
    failed-test count a verification stage failed (clamped to 1..255)
    1                 any other failure (input, auth, publish, provisioning, graph)
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

from .collaborators import (
    Authenticator,
    ManifestReader,
    ModuleInstaller,
    RemoteAutomation,
    ReportUploader,
    TestAssertionRunner,
)
from .dag import TaskGraph, task
from .discovery import load_configurations, load_required_modules
from .errors import (
    AutomationAPIError,
    PipelineError,
    ProvisioningError,
    PublishError,
    TaskFailedError,
    TransientPollError,
    VerificationFailed,
)
from .fanout import leg_name, provision_all
from .model import AuthContext, PipelineRun
from .poller import Observation, poll_until
from .reporter import ResultReporter
from .settings import PipelineSettings
from .ui.console import Console, get_console

EXIT_OK = 0
EXIT_FAILURE = 1
MAX_EXIT_CODE = 255

UNIT_TAG = "unit"
CONVERGENCE_TAG = "integration"

LOAD_DEPENDENCIES = "load-dependencies"
LOAD_CONFIGURATIONS = "load-configurations"
UNIT_TEST = "unit-test"
AUTHENTICATE = "authenticate"
PROVISION_BACKEND = "provision-backend"
PUBLISH_MODULES = "publish-modules"
PUBLISH_CONFIGURATIONS = "publish-configurations"
VERIFY_COMPILATION = "verify-compilation"
PROVISION_INSTANCES = "provision-instances"
WAIT_FOR_CONVERGENCE = "wait-for-convergence"
VERIFY_CONVERGENCE = "verify-convergence"

DEFAULT_ENTRY = VERIFY_CONVERGENCE

FATAL_STATES = ("Failed", "Suspended")

# seconds before token expiry at which a stage re-authenticates
AUTH_REFRESH_MARGIN = 300.0


@dataclass
class Collaborators:
    manifest: ManifestReader
    authenticator: Authenticator
    connect: Callable[[AuthContext], RemoteAutomation]
    tests: TestAssertionRunner
    uploader: Optional[ReportUploader] = None
    installer: Optional[ModuleInstaller] = None

    @classmethod
    def from_settings(cls, settings: PipelineSettings) -> "Collaborators":
        """Default, network-backed collaborators."""
        from .collaborators.assertions import PytestAssertionRunner
        from .collaborators.auth import ClientSecretAuthenticator
        from .collaborators.automation import AutomationClient
        from .collaborators.installer import ShellModuleInstaller
        from .collaborators.manifest import JsonManifestReader
        from .collaborators.upload import HttpReportUploader

        def connect(auth: AuthContext) -> AutomationClient:
            return AutomationClient(
                settings.automation_url,
                auth,
                poll_interval=settings.poll_interval,
                provision_timeout=settings.provision_timeout,
            )

        return cls(
            manifest=JsonManifestReader(),
            authenticator=ClientSecretAuthenticator(authority=settings.authority),
            connect=connect,
            tests=PytestAssertionRunner(Path(settings.build_root) / settings.tests_dir),
            uploader=HttpReportUploader(),
            installer=ShellModuleInstaller(settings.install_command, cwd=str(settings.build_root)),
        )


def exit_code_for(error: BaseException) -> int:
    cause = error.error if isinstance(error, TaskFailedError) else error
    if isinstance(cause, VerificationFailed):
        return max(1, min(cause.failed, MAX_EXIT_CODE))
    return EXIT_FAILURE


class Pipeline:
    def __init__(
        self,
        settings: PipelineSettings,
        collaborators: Collaborators,
        console: Optional[Console] = None,
    ):
        self.settings = settings
        self.collaborators = collaborators
        self.console = console or get_console()
        self.run = PipelineRun(
            run_id=settings.run_id,
            build_root=Path(settings.build_root),
            credentials=settings.credentials,
        )
        self.reporter = ResultReporter(
            collaborators.tests,
            self.run.report_dir,
            uploader=collaborators.uploader,
            destination=settings.report_destination,
            console=self.console,
        )
        self._started: Dict[str, float] = {}
        self.graph = self.build_graph()

    # ------------------------------------------------------------------
    # Graph
    # ------------------------------------------------------------------

    def build_graph(self) -> TaskGraph:
        g = TaskGraph(on_enter=self._on_enter, on_exit=self._on_exit)
        stages = [
            (LOAD_DEPENDENCIES, self.load_dependencies, "Read required modules from module manifests"),
            (LOAD_CONFIGURATIONS, self.load_configurations, "Discover configurations and their target environments"),
            (UNIT_TEST, self.unit_test, "Lint and unit test configurations locally"),
            (AUTHENTICATE, self.authenticate, "Authenticate against the cloud identity provider"),
            (PROVISION_BACKEND, self.provision_backend, "Create the backend resources for this run"),
            (PUBLISH_MODULES, self.publish_modules, "Publish required modules and wait for extraction"),
            (PUBLISH_CONFIGURATIONS, self.publish_configurations, "Publish configurations for remote compilation"),
            (VERIFY_COMPILATION, self.verify_compilation, "Wait for every configuration to compile"),
            (PROVISION_INSTANCES, self.provision_instances, "Deploy one test instance per configuration and environment"),
            (WAIT_FOR_CONVERGENCE, self.wait_for_convergence, "Wait for every test instance to report compliance"),
            (VERIFY_CONVERGENCE, self.verify_convergence, "Run integration tests against converged instances"),
        ]
        previous: List[str] = []
        for name, action, synopsis in stages:
            g.register(task(name, action, needs=previous, synopsis=synopsis))
            previous = [name]
        return g

    def _on_enter(self, name: str) -> None:
        self._started[name] = time.monotonic()
        self.console.print_task_start(name)

    def _on_exit(self, name: str, error: Optional[BaseException]) -> None:
        took = time.monotonic() - self._started.pop(name, time.monotonic())
        self.console.print_debug(f"{name} finished in {took:.1f}s")

    # ------------------------------------------------------------------
    # Process hooks
    # ------------------------------------------------------------------

    def prepare(self) -> None:
        """Process-start hook: normalize paths and install build-time tool modules."""
        self.run.build_root = self.run.build_root.expanduser().resolve()
        self.reporter.report_dir = self.run.report_dir
        self.run.report_dir.mkdir(parents=True, exist_ok=True)

        installer = self.collaborators.installer
        if installer is not None and self.settings.tool_modules:
            self.console.print_info(f"Installing tool modules: {', '.join(self.settings.tool_modules)}")
            installer.install(self.settings.tool_modules)

    def teardown(self) -> None:
        """Process-end hook: best-effort removal of everything this run provisioned."""
        if not self.run.provisioned:
            return
        try:
            session = self._connect()
            for run_id in reversed(self.run.provisioned):
                session.teardown(run_id)
                self.console.print_info(f"Tore down resources for run {run_id}")
            self.run.provisioned.clear()
        except Exception as e:
            self.console.print_warning(f"Teardown failed, resources may need manual cleanup: {e}")

    def execute(self, entries: Iterable[str] | None = None) -> int:
        """Run the pipeline end to end and return the process exit code."""
        entries = list(entries) if entries else [DEFAULT_ENTRY]
        self.console.print_run_started(self.run.run_id, str(self.run.build_root), len(self.graph))

        code = EXIT_OK
        try:
            try:
                self.prepare()
            except Exception as e:
                raise TaskFailedError("prepare", e) from e
            self.graph.run(self.run, entries)
        except TaskFailedError as e:
            self.console.print_task_failure(e.task, e.error)
            code = exit_code_for(e)
        except PipelineError as e:
            self.console.print_error(e.kind, str(e))
            code = EXIT_FAILURE
        finally:
            self.teardown()

        self.console.print_results(self.run.results, code)
        return code

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _connect(self) -> RemoteAutomation:
        """Fresh session; sessions are never shared across stages or legs."""
        auth = self.collaborators.authenticator.authenticate(self.run.credentials)
        return self.collaborators.connect(auth)

    def _session(self, run: PipelineRun) -> RemoteAutomation:
        """Session on the run's token, re-authenticating once it is close to expiry."""
        if run.auth is None:
            raise PipelineError("Not authenticated")
        expires_on = run.auth.expires_on
        if expires_on is not None and expires_on - time.time() <= AUTH_REFRESH_MARGIN:
            self.console.print_debug("Access token expires soon, re-authenticating")
            run.auth = self.collaborators.authenticator.authenticate(run.credentials)
        return self.collaborators.connect(run.auth)

    def _wait_for_state(
        self,
        read: Callable[[str], str],
        name: str,
        done: str,
        timeout: float,
        what: str,
    ) -> None:
        def check() -> Observation:
            try:
                state = read(name)
            except AutomationAPIError as e:
                if e.transient:
                    raise TransientPollError(str(e)) from e
                raise
            if state in FATAL_STATES:
                raise PublishError(f"{what} '{name}' reported state {state}")
            return Observation(state == done, state)

        poll_until(check, self.settings.poll_interval, timeout, description=f"{what} '{name}'")
        self.console.print_info(f"  {what} '{name}': {done}")

    def _verify(self, run: PipelineRun, tag: str) -> None:
        failed = self.reporter.run_verification(tag)
        result = self.reporter.results[tag]
        run.results[tag] = result
        if failed:
            raise VerificationFailed(tag, failed, result.total)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def load_dependencies(self, run: PipelineRun) -> None:
        run.modules = tuple(load_required_modules(run.build_root, self.collaborators.manifest))
        for m in run.modules:
            self.console.print_info(f"  requires {m}")

    def load_configurations(self, run: PipelineRun) -> None:
        run.configurations = tuple(load_configurations(run.build_root))
        for c in run.configurations:
            envs = ", ".join(str(e) for e in c.environments)
            self.console.print_info(f"  {c.name}: {envs}")

    def unit_test(self, run: PipelineRun) -> None:
        self._verify(run, UNIT_TAG)

    def authenticate(self, run: PipelineRun) -> None:
        run.auth = self.collaborators.authenticator.authenticate(run.credentials)
        self.console.print_info(f"  authenticated as {run.auth.app_id} in tenant {run.auth.tenant_id}")

    def provision_backend(self, run: PipelineRun) -> None:
        session = self._session(run)
        # recorded first: a request that fails midway may still have created resources
        run.provisioned.append(run.run_id)
        session.provision_backend(run.run_id)

    def publish_modules(self, run: PipelineRun) -> None:
        session = self._session(run)
        for m in run.modules:
            session.publish_module(m)
            self.console.print_info(f"  published module {m}")
        for m in run.modules:
            self._wait_for_state(
                lambda name: self._session(run).module_state(name), m.name, "Succeeded",
                self.settings.module_timeout, "module",
            )

    def publish_configurations(self, run: PipelineRun) -> None:
        session = self._session(run)
        for c in run.configurations:
            session.publish_configuration(c)
            self.console.print_info(f"  published configuration {c.name}")

    def verify_compilation(self, run: PipelineRun) -> None:
        for c in run.configurations:
            self._wait_for_state(
                lambda name: self._session(run).compilation_state(name), c.name, "Completed",
                self.settings.compilation_timeout, "compilation",
            )

    def provision_instances(self, run: PipelineRun) -> None:
        def provision(session, configuration, environment, output):
            session.provision_instance(run.run_id, configuration.name, environment, output)

        provision_all(
            run.configurations,
            provision,
            authenticate=self._connect,
            console=self.console,
        )

    def wait_for_convergence(self, run: PipelineRun) -> None:
        pending = {
            leg_name(c, env)
            for c in run.configurations
            for env in c.environments
        }
        states: Dict[str, str] = {}

        def converged() -> Observation:
            session = self._session(run)
            for node in sorted(pending):
                try:
                    state = session.node_state(run.run_id, node)
                except AutomationAPIError as e:
                    if e.transient:
                        raise TransientPollError(str(e)) from e
                    raise
                states[node] = state
                if state == "Failed":
                    raise ProvisioningError(f"Node '{node}' failed to apply its configuration")
                if state == "Compliant":
                    pending.discard(node)
            return Observation(not pending, dict(states))

        poll_until(
            converged,
            self.settings.poll_interval,
            self.settings.convergence_timeout,
            description=f"{len(pending)} node(s) to converge",
        )
        self.console.print_info(f"  {len(states)} node(s) compliant")

    def verify_convergence(self, run: PipelineRun) -> None:
        self._verify(run, CONVERGENCE_TAG)
