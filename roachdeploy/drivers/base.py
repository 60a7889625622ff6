from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from rich.console import Console


@dataclass(frozen=True, slots=True)
class NodeSettings:
    """Node parameters needed outside the driver to run the container.

    Attributes:
        data_dir: Host directory mounted as the store.
        ip_address: Address cockroach binds to.
        gossip_address: Address other nodes use to join the gossip network.
    """

    data_dir: str
    ip_address: str
    gossip_address: str


@dataclass(frozen=True, slots=True)
class HostConfig[M]:
    """Live facts about one node, resolved at lookup time and never stored.

    ``machine`` is the provider's typed view of the docker-machine config.
    """

    name: str
    settings: NodeSettings
    machine: M


@runtime_checkable
class Driver[M](Protocol):
    """Lifecycle contract every cloud back-end implements.

    One driver is created per command invocation, bound to one provider and
    one region. The orchestrator calls the hooks in a fixed order; see
    roachdeploy.orchestrator.
    """

    def init(self) -> None:
        """Set up credentials and provider prerequisites.

        Raises DriverInitError. A failed init leaves the driver unusable.
        """
        ...

    def docker_machine_driver(self) -> str:
        """Name of the docker-machine driver to create machines with."""
        ...

    def create_args(self) -> list[str]:
        """Driver-specific arguments for ``docker-machine create``."""
        ...

    def get_node_config(self, name: str) -> HostConfig[M]:
        """Resolve a node's live network facts."""
        ...

    def after_first_node(self) -> None:
        """Provision cluster-wide resources. Safe to call repeatedly."""
        ...

    def add_node(self, name: str, config: HostConfig[M]) -> None:
        """Steps needed for every new node, the first one included."""
        ...

    def start_node(self, name: str, config: HostConfig[M]) -> None:
        """Register the node with the set of machines receiving traffic."""
        ...

    def stop_node(self, name: str, config: HostConfig[M]) -> None:
        """Remove the node from the set of machines receiving traffic."""
        ...

    def print_status(self, console: Console) -> None:
        """Print cluster-wide resources. Read-only and tolerant of missing ones."""
        ...
