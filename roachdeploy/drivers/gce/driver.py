"""Google Compute Engine driver: google machines behind an HTTP load balancer."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Final

from google.api_core.exceptions import GoogleAPICallError, NotFound
from loguru import logger

from roachdeploy.drivers.base import HostConfig, NodeSettings
from roachdeploy.drivers.gce.auth import load_credentials
from roachdeploy.drivers.gce.clients import ComputeClients
from roachdeploy.drivers.gce.config import GCEMachine
from roachdeploy.drivers.gce.operations import OperationPoller
from roachdeploy.drivers.gce.resources import (
    FORWARDING_RULE_NAME,
    HTTP_PROXY_PORTS,
    INSTANCE_GROUP_NAME,
    ClusterResources,
)
from roachdeploy.drivers.machine_config import parse_machine_config
from roachdeploy.drivers.status import found, problem, status_table
from roachdeploy.exceptions import (
    ConfigurationError,
    DriverInitError,
    ResourceNotFoundError,
    RoachDeployError,
)

if TYPE_CHECKING:
    from google.auth.credentials import Credentials
    from rich.console import Console

    from roachdeploy.config import ClusterContext
    from roachdeploy.machine import DockerMachine

log = logger.bind(provider="gce")

DOCKER_MACHINE_DRIVER: Final[str] = "google"
DATA_DIR: Final[str] = "/home/docker-user/data"

_STATUS_ERRORS = (GoogleAPICallError, RoachDeployError)


class GCEDriver:
    """Driver for Google Compute Engine.

    Args:
        context: Cluster configuration.
        region: GCE region, e.g. ``us-central1``.
        machines: docker-machine wrapper used to read machine configs.
        credentials_loader: Loads credentials from the token path.
        clients_factory: Builds the compute clients from credentials.

    Raises:
        ConfigurationError: If the port cannot be served by the HTTP load balancer.
    """

    def __init__(
        self,
        context: ClusterContext,
        region: str,
        machines: DockerMachine,
        *,
        credentials_loader: Callable[[str], Credentials] = load_credentials,
        clients_factory: Callable[[Credentials], ComputeClients] = ComputeClients.from_credentials,
    ) -> None:
        if context.port not in HTTP_PROXY_PORTS:
            raise ConfigurationError(
                f"port {context.port} is not supported on GCE: the HTTP load balancer "
                f"only forwards ports {', '.join(map(str, HTTP_PROXY_PORTS))}"
            )
        self._context = context
        self._region = region
        self._machines = machines
        self._credentials_loader = credentials_loader
        self._clients_factory = clients_factory
        self._clients: ComputeClients | None = None
        self._resources: ClusterResources | None = None

    @property
    def project(self) -> str:
        return self._context.gce_project

    @property
    def zone(self) -> str:
        """Full zone, e.g. ``us-central1-a``."""
        return f"{self._region}-{self._context.zone}"

    def _require(self) -> tuple[ComputeClients, ClusterResources]:
        if self._clients is None or self._resources is None:
            raise DriverInitError("GCE driver used before init")
        return self._clients, self._resources

    # -------------------------------------------------------------------------
    # Driver protocol
    # -------------------------------------------------------------------------

    def init(self) -> None:
        credentials = self._credentials_loader(self._context.gce_token_path)
        clients = self._clients_factory(credentials)

        try:
            clients.projects.get(project=self.project)
        except GoogleAPICallError as e:
            raise DriverInitError(f"cannot access GCE project {self.project!r}: {e}") from e

        poller = OperationPoller(
            clients,
            self.project,
            self._region,
            self.zone,
            interval=self._context.poll_interval,
            timeout=self._context.operation_timeout,
        )
        resources = ClusterResources(
            clients,
            poller,
            self.project,
            self.zone,
            self._context.port,
            self._context.gce_network,
        )
        self._clients, self._resources = clients, resources
        log.info("using GCE project {project} in {zone}", project=self.project, zone=self.zone)

    def docker_machine_driver(self) -> str:
        return DOCKER_MACHINE_DRIVER

    def create_args(self) -> list[str]:
        return [
            "--google-project", self.project,
            "--google-zone", self.zone,
            "--google-network", self._context.gce_network,
        ]

    def get_node_config(self, name: str) -> HostConfig[GCEMachine]:
        clients, resources = self._require()
        machine = parse_machine_config(GCEMachine, name, self._machines.inspect(name))

        try:
            instance = clients.instances.get(
                project=self.project,
                zone=machine.driver.zone,
                instance=machine.driver.machine_name,
            )
        except NotFound as e:
            raise ResourceNotFoundError("instance", machine.driver.machine_name) from e
        if not instance.network_interfaces:
            raise ResourceNotFoundError("network interface", machine.driver.machine_name)

        gossip = resources.forwarding_address()
        if gossip is None:
            raise ResourceNotFoundError(
                "forwarding rule", FORWARDING_RULE_NAME, "you need to initialize the cluster",
            )

        return HostConfig(
            name=name,
            settings=NodeSettings(
                data_dir=DATA_DIR,
                ip_address=instance.network_interfaces[0].network_i_p,
                gossip_address=gossip,
            ),
            machine=machine.model_copy(update={"instance_link": instance.self_link}),
        )

    def after_first_node(self) -> None:
        _, resources = self._require()
        links = resources.provision()
        log.info("load balancer ready: {rule}", rule=links.forwarding_rule)

    def add_node(self, name: str, config: HostConfig[GCEMachine]) -> None:
        # the firewall rule covers every instance on the network
        log.debug("nothing to do for new node {name}", name=name)

    def start_node(self, name: str, config: HostConfig[GCEMachine]) -> None:
        _, resources = self._require()
        resources.add_to_group(config.machine.instance_link)

    def stop_node(self, name: str, config: HostConfig[GCEMachine]) -> None:
        _, resources = self._require()
        resources.remove_from_group(config.machine.instance_link)

    def print_status(self, console: Console) -> None:
        table = status_table("GCE")
        table.add_row("Project", self.project)
        table.add_row("Zone", self.zone)

        try:
            _, resources = self._require()
        except DriverInitError as e:
            table.add_row("Resources", problem(e))
            console.print(table)
            return

        try:
            for name, link in resources.existing().items():
                table.add_row(name, found(link))
        except _STATUS_ERRORS as e:
            table.add_row("Resources", problem(e))

        try:
            table.add_row("Address", found(resources.forwarding_address()))
        except _STATUS_ERRORS as e:
            table.add_row("Address", problem(e))

        try:
            members = resources.group_members()
        except NotFound:
            table.add_row(f"{INSTANCE_GROUP_NAME} members", found(None))
        except _STATUS_ERRORS as e:
            table.add_row(f"{INSTANCE_GROUP_NAME} members", problem(e))
        else:
            table.add_row(f"{INSTANCE_GROUP_NAME} members", str(len(members)))
            for member in members:
                table.add_row("", member.rsplit("/", 1)[-1])

        console.print(table)
