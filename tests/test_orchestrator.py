from __future__ import annotations

from collections.abc import Sequence

import pytest
from rich.console import Console

from roachdeploy.config import ClusterContext
from roachdeploy.drivers.base import Driver, HostConfig, NodeSettings
from roachdeploy.exceptions import (
    ClusterExistsError,
    CommandFailedError,
    ConfigurationError,
    NoClusterError,
    StepError,
)
from roachdeploy.orchestrator import Orchestrator, step


class Recorder:
    """Shared, ordered log of every collaborator call."""

    def __init__(self) -> None:
        self.events: list[tuple[str, ...]] = []
        self.fail_on: set[tuple[str, ...]] = set()

    def __call__(self, *event: str) -> None:
        self.events.append(event)
        if event in self.fail_on:
            raise CommandFailedError(list(event), 1, "boom")

    def names(self, kind: str) -> list[str]:
        return [e[1] for e in self.events if e[0] == kind]

    def kinds(self) -> list[str]:
        return [e[0] for e in self.events]


class FakeMachines:
    def __init__(self, rec: Recorder, existing: Sequence[str] = ()) -> None:
        self.rec = rec
        self.machines = list(existing)

    def check(self) -> str:
        self.rec("machine-check")
        return "docker-machine version 0.16.2"

    def list_nodes(self) -> list[str]:
        from roachdeploy.nodes import cluster_nodes

        self.rec("list")
        return cluster_nodes(self.machines)

    def print_machines(self) -> None:
        self.rec("ls")

    def docker_flags(self, name: str) -> list[str]:
        self.rec("flags", name)
        return ["-H", f"tcp://{name}:2376"]

    def create(self, name: str, driver: str, args: Sequence[str]) -> None:
        self.rec("create", name, driver)
        self.machines.append(name)

    def start(self, name: str) -> None:
        self.rec("machine-start", name)

    def stop(self, name: str) -> None:
        self.rec("machine-stop", name)


class FakeDocker:
    def __init__(self, rec: Recorder) -> None:
        self.rec = rec

    def check(self) -> str:
        self.rec("docker-check")
        return "Docker version 24.0.7"

    def run_init(self, flags: Sequence[str], settings: NodeSettings) -> None:
        self.rec("container-init", settings.ip_address)

    def run_start(self, flags: Sequence[str], settings: NodeSettings, port: int) -> None:
        self.rec("container-start", settings.ip_address, str(port))


class FakeDriver:
    def __init__(self, rec: Recorder) -> None:
        self.rec = rec

    def init(self) -> None:
        self.rec("driver-init")

    def docker_machine_driver(self) -> str:
        return "fake"

    def create_args(self) -> list[str]:
        return ["--fake-flag"]

    def get_node_config(self, name: str) -> HostConfig[str]:
        self.rec("config", name)
        return HostConfig(
            name=name,
            settings=NodeSettings(data_dir="/data", ip_address=name, gossip_address="lb"),
            machine=f"id-{name}",
        )

    def after_first_node(self) -> None:
        self.rec("after-first-node")

    def add_node(self, name: str, config: HostConfig[str]) -> None:
        self.rec("add-node", name)

    def start_node(self, name: str, config: HostConfig[str]) -> None:
        self.rec("register", name)

    def stop_node(self, name: str, config: HostConfig[str]) -> None:
        self.rec("deregister", name)

    def print_status(self, console: Console) -> None:
        self.rec("driver-status")


MUTATIONS = {
    "create",
    "after-first-node",
    "add-node",
    "register",
    "deregister",
    "container-init",
    "container-start",
    "machine-start",
    "machine-stop",
}


@pytest.fixture
def rec() -> Recorder:
    return Recorder()


def make_orchestrator(rec: Recorder, existing: Sequence[str] = ()) -> tuple[Orchestrator, FakeMachines]:
    machines = FakeMachines(rec, existing)
    orchestrator = Orchestrator(
        ClusterContext(region="aws:us-east-1", port=26257),
        machines,  # type: ignore[arg-type]
        FakeDocker(rec),  # type: ignore[arg-type]
        driver_factory=lambda: FakeDriver(rec),
        console=Console(quiet=True),
    )
    return orchestrator, machines


class TestFakeDriver:
    def test_satisfies_protocol(self, rec):
        assert isinstance(FakeDriver(rec), Driver)


class TestStep:
    def test_wraps_failure_with_step_name(self):
        with pytest.raises(StepError, match="could not do it: boom") as exc:
            with step("could not do it"):
                raise RuntimeError("boom")
        assert isinstance(exc.value.cause, RuntimeError)
        assert exc.value.__cause__ is exc.value.cause

    def test_inner_step_error_not_rewrapped(self):
        with pytest.raises(StepError, match="^inner: boom$"):
            with step("outer"), step("inner"):
                raise RuntimeError("boom")


class TestInit:
    def test_fresh_cluster(self, rec):
        orchestrator, _ = make_orchestrator(rec)
        assert orchestrator.init() == "cockroach-0"
        assert rec.events == [
            ("driver-init",),
            ("list",),
            ("create", "cockroach-0", "fake"),
            ("after-first-node",),
            ("config", "cockroach-0"),
            ("add-node", "cockroach-0"),
            ("flags", "cockroach-0"),
            ("container-init", "cockroach-0"),
            ("container-start", "cockroach-0", "26257"),
            ("register", "cockroach-0"),
        ]

    def test_existing_node_fails_before_create(self, rec):
        orchestrator, _ = make_orchestrator(rec, ["other-machine", "cockroach-3"])
        with pytest.raises(ClusterExistsError, match="cluster already exists") as exc:
            orchestrator.init()
        assert exc.value.nodes == ("cockroach-3",)
        assert "create" not in rec.kinds()

    def test_foreign_machines_do_not_block_init(self, rec):
        orchestrator, _ = make_orchestrator(rec, ["default", "other-machine"])
        assert orchestrator.init() == "cockroach-0"

    def test_second_init_fails_without_mutations(self, rec):
        orchestrator, machines = make_orchestrator(rec)
        orchestrator.init()
        assert rec.kinds().count("after-first-node") == 1
        assert rec.names("register") == ["cockroach-0"]

        rec.events.clear()
        second, _ = make_orchestrator(rec, machines.machines)
        with pytest.raises(ClusterExistsError):
            second.init()
        assert not MUTATIONS & set(rec.kinds())

    def test_failure_names_step_and_stops(self, rec):
        rec.fail_on.add(("after-first-node",))
        orchestrator, _ = make_orchestrator(rec)
        with pytest.raises(StepError, match="could not run per-driver steps after first node"):
            orchestrator.init()
        assert rec.kinds()[-1] == "after-first-node"
        assert "container-init" not in rec.kinds()

    def test_driver_created_once(self, rec):
        orchestrator, _ = make_orchestrator(rec, ["cockroach-0"])
        orchestrator.add_nodes(2)
        assert rec.kinds().count("driver-init") == 1


class TestAddNodes:
    def test_next_index_after_highest(self, rec):
        orchestrator, _ = make_orchestrator(rec, ["cockroach-0", "cockroach-2", "other-machine"])
        assert orchestrator.add_one_node() == "cockroach-3"

    def test_indices_increase_without_gaps(self, rec):
        orchestrator, _ = make_orchestrator(rec, ["cockroach-0"])
        assert orchestrator.add_nodes(3) == ["cockroach-1", "cockroach-2", "cockroach-3"]
        assert rec.names("create") == ["cockroach-1", "cockroach-2", "cockroach-3"]

    def test_discovery_runs_each_iteration(self, rec):
        orchestrator, _ = make_orchestrator(rec, ["cockroach-0"])
        orchestrator.add_nodes(2)
        assert rec.kinds().count("list") == 2

    def test_per_node_order(self, rec):
        orchestrator, _ = make_orchestrator(rec, ["cockroach-0"])
        orchestrator.add_one_node()
        assert rec.events[1:] == [
            ("list",),
            ("create", "cockroach-1", "fake"),
            ("config", "cockroach-1"),
            ("add-node", "cockroach-1"),
            ("flags", "cockroach-1"),
            ("container-start", "cockroach-1", "26257"),
            ("register", "cockroach-1"),
        ]

    def test_no_cluster_raises(self, rec):
        orchestrator, _ = make_orchestrator(rec, ["other-machine"])
        with pytest.raises(NoClusterError):
            orchestrator.add_nodes(1)
        assert "create" not in rec.kinds()

    def test_failure_keeps_earlier_nodes(self, rec):
        rec.fail_on.add(("create", "cockroach-2", "fake"))
        orchestrator, machines = make_orchestrator(rec, ["cockroach-0"])
        with pytest.raises(StepError, match="could not create machine cockroach-2"):
            orchestrator.add_nodes(3)
        assert rec.names("register") == ["cockroach-1"]
        assert "cockroach-1" in machines.machines

    def test_zero_raises(self, rec):
        orchestrator, _ = make_orchestrator(rec, ["cockroach-0"])
        with pytest.raises(ConfigurationError):
            orchestrator.add_nodes(0)


class TestStart:
    def test_all_discovered_nodes(self, rec):
        orchestrator, _ = make_orchestrator(rec, ["cockroach-1", "cockroach-0", "other"])
        assert orchestrator.start() == ["cockroach-0", "cockroach-1"]
        assert rec.names("machine-start") == ["cockroach-0", "cockroach-1"]

    def test_per_node_order(self, rec):
        orchestrator, _ = make_orchestrator(rec, ["cockroach-0"])
        orchestrator.start(["cockroach-0"])
        assert rec.events[1:] == [
            ("machine-start", "cockroach-0"),
            ("config", "cockroach-0"),
            ("register", "cockroach-0"),
            ("flags", "cockroach-0"),
            ("container-start", "cockroach-0", "26257"),
        ]

    def test_explicit_names_skip_discovery(self, rec):
        orchestrator, _ = make_orchestrator(rec)
        orchestrator.start(["cockroach-5"])
        assert "list" not in rec.kinds()
        assert rec.names("machine-start") == ["cockroach-5"]

    def test_empty_cluster_raises(self, rec):
        orchestrator, _ = make_orchestrator(rec)
        with pytest.raises(NoClusterError):
            orchestrator.start()

    def test_machine_start_failure_aborts(self, rec):
        rec.fail_on.add(("machine-start", "cockroach-0"))
        orchestrator, _ = make_orchestrator(rec, ["cockroach-0", "cockroach-1"])
        with pytest.raises(StepError, match="could not start docker-machine cockroach-0"):
            orchestrator.start()
        assert "register" not in rec.kinds()


class TestStop:
    def test_deregister_before_machine_stop(self, rec):
        orchestrator, _ = make_orchestrator(rec)
        orchestrator.stop(["cockroach-0", "cockroach-4"])
        for name in ("cockroach-0", "cockroach-4"):
            node_events = [e[0] for e in rec.events if len(e) > 1 and e[1] == name]
            assert node_events == ["config", "deregister", "machine-stop"]

    def test_all_discovered_nodes(self, rec):
        orchestrator, _ = make_orchestrator(rec, ["cockroach-0", "cockroach-1"])
        assert orchestrator.stop() == ["cockroach-0", "cockroach-1"]

    def test_empty_cluster_raises(self, rec):
        orchestrator, _ = make_orchestrator(rec, ["other-machine"])
        with pytest.raises(NoClusterError):
            orchestrator.stop()

    def test_deregister_failure_leaves_machine_running(self, rec):
        rec.fail_on.add(("deregister", "cockroach-0"))
        orchestrator, _ = make_orchestrator(rec)
        with pytest.raises(StepError, match="stop-node steps for cockroach-0"):
            orchestrator.stop(["cockroach-0"])
        assert "machine-stop" not in rec.kinds()


class TestStatus:
    def test_order(self, rec):
        orchestrator, _ = make_orchestrator(rec)
        orchestrator.status()
        assert rec.kinds() == ["machine-check", "docker-check", "ls", "driver-init", "driver-status"]

    def test_missing_tool_aborts(self, rec):
        rec.fail_on.add(("docker-check",))
        orchestrator, _ = make_orchestrator(rec)
        with pytest.raises(StepError, match="docker is not available"):
            orchestrator.status()
        assert "driver-status" not in rec.kinds()

    def test_machine_list_failure_still_shows_driver_status(self, rec):
        rec.fail_on.add(("ls",))
        orchestrator, _ = make_orchestrator(rec)
        orchestrator.status()
        assert rec.kinds()[-2:] == ["driver-init", "driver-status"]

    def test_read_only(self, rec):
        orchestrator, _ = make_orchestrator(rec, ["cockroach-0"])
        orchestrator.status()
        assert not MUTATIONS & set(rec.kinds())


class TestDriverFailures:
    def test_factory_error_wrapped(self, rec):
        def broken() -> FakeDriver:
            raise ConfigurationError("invalid region syntax")

        orchestrator = Orchestrator(
            ClusterContext(),
            FakeMachines(rec),  # type: ignore[arg-type]
            FakeDocker(rec),  # type: ignore[arg-type]
            driver_factory=broken,
            console=Console(quiet=True),
        )
        with pytest.raises(StepError, match="could not create driver: invalid region syntax"):
            orchestrator.init()
        assert rec.events == []

    def test_init_error_wrapped(self, rec):
        rec.fail_on.add(("driver-init",))
        orchestrator, _ = make_orchestrator(rec)
        with pytest.raises(StepError, match="could not initialize driver"):
            orchestrator.init()
        assert rec.events == [("driver-init",)]
