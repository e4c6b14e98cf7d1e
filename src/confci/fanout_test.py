import threading

import pytest

from confci.errors import InputError, MissingEnvironmentError, ProvisioningFailedError
from confci.fanout import provision_all
from confci.model import Configuration, JobState
from confci.ui.console import Console


class _Recorder:
    """Provision stub that records legs and can fail chosen ones."""

    def __init__(self, fail=()):
        self.fail = set(fail)
        self.lock = threading.Lock()
        self.legs = []
        self.sessions = []

    def authenticate(self):
        with self.lock:
            session = object()
            self.sessions.append(session)
            return session

    def provision(self, session, configuration, environment, output):
        name = f"{configuration.name}-{environment}"
        with self.lock:
            self.legs.append(name)
        output.write(f"provisioned {name}")
        if name in self.fail:
            raise RuntimeError(f"{name} deployment failed")


def _run(configurations, rec):
    return provision_all(
        configurations,
        rec.provision,
        authenticate=rec.authenticate,
        console=Console(),
    )


def test_two_configurations_both_succeed():
    rec = _Recorder()
    configs = [Configuration("web", ("WinA",)), Configuration("db", ("WinB",))]

    results = _run(configs, rec)

    assert sorted(r.name for r in results) == ["db-WinB", "web-WinA"]
    assert all(r.state is JobState.SUCCEEDED for r in results)
    assert sorted(r.output.strip() for r in results) == ["provisioned db-WinB", "provisioned web-WinA"]


def test_launches_one_leg_per_configuration_environment_pair():
    rec = _Recorder()
    configs = [
        Configuration("web", ("WinA", "WinB", "Ubuntu")),
        Configuration("db", ("WinA", "WinB", "Ubuntu")),
    ]

    results = _run(configs, rec)

    assert len(results) == len(rec.legs) == 6
    # every leg authenticates for itself
    assert len(rec.sessions) == 6
    # results come back in launch order
    assert [r.name for r in results] == [
        "web-WinA", "web-WinB", "web-Ubuntu", "db-WinA", "db-WinB", "db-Ubuntu",
    ]


def test_one_failed_leg_is_reported_after_all_legs_finish():
    rec = _Recorder(fail={"b-WinB"})
    configs = [
        Configuration("a", ("WinA",)),
        Configuration("b", ("WinB",)),
        Configuration("c", ("WinC",)),
    ]

    with pytest.raises(ProvisioningFailedError) as exc:
        _run(configs, rec)

    err = exc.value
    assert [name for name, _ in err.failures] == ["b-WinB"]
    assert sorted(rec.legs) == ["a-WinA", "b-WinB", "c-WinC"]
    assert all(r.state.terminal for r in err.results)
    ok = [r for r in err.results if r.ok]
    assert [r.output.strip() for r in ok] == ["provisioned a-WinA", "provisioned c-WinC"]


def test_failure_does_not_cut_short_slower_siblings():
    finished = []
    gate = threading.Event()

    def provision(session, configuration, environment, output):
        if configuration.name == "fast":
            gate.set()
            raise RuntimeError("fast leg failed")
        assert gate.wait(5)
        finished.append(configuration.name)

    configs = [Configuration("fast", ("WinA",)), Configuration("slow", ("WinA",))]
    with pytest.raises(ProvisioningFailedError):
        provision_all(configs, provision, authenticate=lambda: None, console=Console())

    assert finished == ["slow"]


def test_every_leg_is_running_before_any_is_joined():
    # each leg blocks until all four are in flight; a join-as-you-launch fan-out never gets there
    barrier = threading.Barrier(4, timeout=5)

    def provision(session, configuration, environment, output):
        barrier.wait()
        output.write(f"released {configuration.name}-{environment}")

    configs = [Configuration("web", ("WinA", "WinB")), Configuration("db", ("WinA", "WinB"))]
    results = provision_all(configs, provision, authenticate=lambda: None, console=Console())

    assert [r.name for r in results] == ["web-WinA", "web-WinB", "db-WinA", "db-WinB"]
    assert all(r.ok for r in results)
    assert not barrier.broken


def test_null_environment_fails_before_launching_anything():
    rec = _Recorder()
    configs = [Configuration("web", ("WinA",)), Configuration("broken", ("WinA", None))]

    with pytest.raises(MissingEnvironmentError) as exc:
        _run(configs, rec)

    assert isinstance(exc.value, InputError)
    assert exc.value.configuration == "broken"
    assert "broken" in str(exc.value)
    assert rec.legs == []
    assert rec.sessions == []


def test_no_configurations_is_a_no_op():
    assert _run([], _Recorder()) == []
