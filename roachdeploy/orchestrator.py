"""Cluster lifecycle commands.

Each command creates a driver for the configured region, checks the
cluster's state through docker-machine, and drives the machine, container
and cloud steps in a fixed order. The first failing step aborts the command
with a StepError naming it; nothing is rolled back, and every cloud
resource is find-or-create, so re-running after fixing the cause is safe.

Order per node:

    init        create cockroach-0, provision load balancer, init + start container, register
    add-nodes   create cockroach-N, start container, register
    start       start machine, register, start container
    stop        deregister, stop machine
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from loguru import logger
from rich.console import Console

from roachdeploy.exceptions import (
    ClusterExistsError,
    ConfigurationError,
    ExternalToolError,
    NoClusterError,
    StepError,
)
from roachdeploy.nodes import FIRST_NODE_INDEX, make_node_name, next_node_index

if TYPE_CHECKING:
    from roachdeploy.config import ClusterContext
    from roachdeploy.docker import Docker
    from roachdeploy.drivers.base import Driver, HostConfig
    from roachdeploy.machine import DockerMachine

log = logger.bind(component="orchestrator")

type DriverFactory = Callable[[], Driver[Any]]


@contextmanager
def step(description: str) -> Iterator[None]:
    """Attribute any failure inside the block to ``description``."""
    try:
        yield
    except StepError:
        raise
    except Exception as e:
        raise StepError(description, e) from e


class Orchestrator:
    """Runs init, add-nodes, start, stop and status.

    Args:
        context: Cluster configuration.
        machines: docker-machine wrapper.
        docker: docker wrapper.
        driver_factory: Returns a fresh, uninitialized driver.
        console: Where status output goes.
    """

    def __init__(
        self,
        context: ClusterContext,
        machines: DockerMachine,
        docker: Docker,
        driver_factory: DriverFactory,
        console: Console | None = None,
    ) -> None:
        self._context = context
        self._machines = machines
        self._docker = docker
        self._driver_factory = driver_factory
        self._console = console or Console()
        self._driver: Driver[Any] | None = None

    def driver(self) -> Driver[Any]:
        """The initialized driver, created on first use."""
        if self._driver is None:
            with step("could not create driver"):
                driver = self._driver_factory()
            with step("could not initialize driver"):
                driver.init()
            self._driver = driver
        return self._driver

    def _discover(self) -> list[str]:
        with step("failed to list existing cockroach nodes"):
            return self._machines.list_nodes()

    def _node_config(self, driver: Driver[Any], name: str) -> HostConfig[Any]:
        with step(f"could not get node config for {name}"):
            return driver.get_node_config(name)

    def _docker_flags(self, name: str) -> list[str]:
        with step(f"could not get docker-machine config for {name}"):
            return self._machines.docker_flags(name)

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    def init(self) -> str:
        """Create a single-node cluster. Returns the first node's name.

        Raises:
            ClusterExistsError: If any cockroach node already exists.
        """
        driver = self.driver()

        nodes = self._discover()
        if nodes:
            raise ClusterExistsError(nodes)

        name = make_node_name(FIRST_NODE_INDEX)
        with step(f"could not create machine {name}"):
            self._machines.create(name, driver.docker_machine_driver(), driver.create_args())

        with step("could not run per-driver steps after first node"):
            driver.after_first_node()

        config = self._node_config(driver, name)
        with step(f"could not run per-driver add-node steps for {name}"):
            driver.add_node(name, config)

        flags = self._docker_flags(name)
        with step(f"could not initialize first cockroach node {name}"):
            self._docker.run_init(flags, config.settings)
        with step(f"could not start cockroach node {name}"):
            self._docker.run_start(flags, config.settings, self._context.port)
        with step(f"could not run per-driver start-node steps for {name}"):
            driver.start_node(name, config)

        log.info("cluster initialized with node {name}", name=name)
        return name

    def add_nodes(self, count: int) -> list[str]:
        """Add ``count`` nodes one at a time. Returns the new node names."""
        if count < 1:
            raise ConfigurationError(f"number of nodes to add must be at least 1, got {count}")
        added = []
        for i in range(count):
            log.info("adding node {i} of {count}", i=i + 1, count=count)
            added.append(self.add_one_node())
        return added

    def add_one_node(self) -> str:
        """Add the node after the highest-numbered existing one.

        Raises:
            NoClusterError: If no cockroach node exists.
        """
        driver = self.driver()

        nodes = self._discover()
        if not nodes:
            raise NoClusterError()

        name = make_node_name(next_node_index(nodes))
        with step(f"could not create machine {name}"):
            self._machines.create(name, driver.docker_machine_driver(), driver.create_args())

        config = self._node_config(driver, name)
        with step(f"could not run per-driver add-node steps for {name}"):
            driver.add_node(name, config)

        flags = self._docker_flags(name)
        with step(f"could not start cockroach node {name}"):
            self._docker.run_start(flags, config.settings, self._context.port)
        with step(f"could not run per-driver start-node steps for {name}"):
            driver.start_node(name, config)

        log.info("added node {name}", name=name)
        return name

    def _targets(self, names: Sequence[str]) -> list[str]:
        if names:
            return list(names)
        nodes = self._discover()
        if not nodes:
            raise NoClusterError()
        return nodes

    def start(self, names: Sequence[str] = ()) -> list[str]:
        """Start the named nodes, or all of them. Returns the started names."""
        driver = self.driver()
        targets = self._targets(names)

        for name in targets:
            with step(f"could not start docker-machine {name}"):
                self._machines.start(name)

            config = self._node_config(driver, name)
            with step(f"could not run per-driver start-node steps for {name}"):
                driver.start_node(name, config)

            flags = self._docker_flags(name)
            with step(f"could not start cockroach node {name}"):
                self._docker.run_start(flags, config.settings, self._context.port)
            log.info("started node {name}", name=name)
        return targets

    def stop(self, names: Sequence[str] = ()) -> list[str]:
        """Stop the named nodes, or all of them. Returns the stopped names."""
        driver = self.driver()
        targets = self._targets(names)

        for name in targets:
            config = self._node_config(driver, name)
            with step(f"could not run per-driver stop-node steps for {name}"):
                driver.stop_node(name, config)

            with step(f"could not stop docker-machine {name}"):
                self._machines.stop(name)
            log.info("stopped node {name}", name=name)
        return targets

    def status(self) -> None:
        """Report tool versions, machines and cluster-wide resources."""
        with step("docker-machine is not available"):
            machine_version = self._machines.check()
        with step("docker is not available"):
            docker_version = self._docker.check()
        log.info("{version}", version=machine_version)
        log.info("{version}", version=docker_version)

        self._console.rule("docker-machine")
        try:
            self._machines.print_machines()
        except ExternalToolError as e:
            log.error("could not list docker-machine machines: {err}", err=e)

        driver = self.driver()
        self._console.rule(driver.docker_machine_driver())
        driver.print_status(self._console)
