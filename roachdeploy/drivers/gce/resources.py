"""Cluster-wide Compute Engine resources.

The cluster is reached through an HTTP load balancer, built as a chain where
each resource references the one before it:

    firewall
    instance group  <-  backend service  <-  URL map  <-  HTTP proxy  <-  forwarding rule
    health check    <-/

Every resource is found by name or created, so provisioning can be repeated
safely after a partial failure.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final

from google.api_core.exceptions import NotFound
from google.cloud import compute_v1  # type: ignore[reportMissingImports]
from loguru import logger

if TYPE_CHECKING:
    from roachdeploy.drivers.gce.clients import ComputeClients
    from roachdeploy.drivers.gce.operations import OperationPoller

log = logger.bind(provider="gce")

FIREWALL_NAME: Final[str] = "cockroach-firewall"
INSTANCE_GROUP_NAME: Final[str] = "cockroach-group"
HEALTH_CHECK_NAME: Final[str] = "cockroach-health-check"
BACKEND_SERVICE_NAME: Final[str] = "cockroach-backend"
URL_MAP_NAME: Final[str] = "cockroach-url-map"
HTTP_PROXY_NAME: Final[str] = "cockroach-proxy"
FORWARDING_RULE_NAME: Final[str] = "cockroach-forward-rule"

NAMED_PORT: Final[str] = "http"
HEALTH_CHECK_PATH: Final[str] = "/health"
HEALTH_CHECK_INTERVAL: Final[int] = 2
HEALTH_CHECK_TIMEOUT: Final[int] = 1
HEALTHY_THRESHOLD: Final[int] = 2
UNHEALTHY_THRESHOLD: Final[int] = 2
ALL_IP_ADDRESSES: Final[str] = "0.0.0.0/0"
# ports a global forwarding rule accepts for a target HTTP proxy
HTTP_PROXY_PORTS: Final[tuple[int, ...]] = (80, 8080)


@dataclass(frozen=True, slots=True)
class ChainLinks:
    """Self links of the provisioned chain, in creation order."""

    firewall: str
    instance_group: str
    health_check: str
    backend_service: str
    url_map: str
    http_proxy: str
    forwarding_rule: str


class ClusterResources:
    """Find-or-create builders for the load-balancing chain.

    Args:
        clients: Compute clients.
        poller: Waits for the operations that inserts return.
        project: Project ID.
        zone: Zone of the instance group, e.g. ``us-central1-a``.
        port: Cockroach port.
        network: VPC network name.
    """

    def __init__(
        self,
        clients: ComputeClients,
        poller: OperationPoller,
        project: str,
        zone: str,
        port: int,
        network: str = "default",
    ) -> None:
        self._clients = clients
        self._poller = poller
        self._project = project
        self._zone = zone
        self._port = port
        self._network = network

    def _find_or_create(
        self,
        kind: str,
        name: str,
        get: Callable[[], Any],
        insert: Callable[[], Any],
    ) -> str:
        try:
            existing = get()
        except NotFound:
            pass
        else:
            log.info("found {kind} {name}", kind=kind, name=name)
            return existing.self_link

        log.info("creating {kind} {name}", kind=kind, name=name)
        op = self._poller.wait(insert())
        log.info("created {kind} {name}: {link}", kind=kind, name=name, link=op.target_link)
        return op.target_link

    # -------------------------------------------------------------------------
    # Chain builders
    # -------------------------------------------------------------------------

    def ensure_firewall(self) -> str:
        firewalls = self._clients.firewalls
        return self._find_or_create(
            "firewall rule",
            FIREWALL_NAME,
            lambda: firewalls.get(project=self._project, firewall=FIREWALL_NAME),
            lambda: firewalls.insert_unary(
                project=self._project,
                firewall_resource=compute_v1.Firewall(
                    name=FIREWALL_NAME,
                    direction="INGRESS",
                    allowed=[compute_v1.Allowed(I_p_protocol="tcp", ports=[str(self._port)])],
                    source_ranges=[ALL_IP_ADDRESSES],
                    network=f"global/networks/{self._network}",
                ),
            ),
        )

    def ensure_instance_group(self) -> str:
        groups = self._clients.instance_groups
        return self._find_or_create(
            "instance group",
            INSTANCE_GROUP_NAME,
            lambda: groups.get(
                project=self._project, zone=self._zone, instance_group=INSTANCE_GROUP_NAME,
            ),
            lambda: groups.insert_unary(
                project=self._project,
                zone=self._zone,
                instance_group_resource=compute_v1.InstanceGroup(
                    name=INSTANCE_GROUP_NAME,
                    named_ports=[compute_v1.NamedPort(name=NAMED_PORT, port=self._port)],
                ),
            ),
        )

    def ensure_health_check(self) -> str:
        checks = self._clients.http_health_checks
        return self._find_or_create(
            "health check",
            HEALTH_CHECK_NAME,
            lambda: checks.get(project=self._project, http_health_check=HEALTH_CHECK_NAME),
            lambda: checks.insert_unary(
                project=self._project,
                http_health_check_resource=compute_v1.HttpHealthCheck(
                    name=HEALTH_CHECK_NAME,
                    port=self._port,
                    request_path=HEALTH_CHECK_PATH,
                    check_interval_sec=HEALTH_CHECK_INTERVAL,
                    timeout_sec=HEALTH_CHECK_TIMEOUT,
                    healthy_threshold=HEALTHY_THRESHOLD,
                    unhealthy_threshold=UNHEALTHY_THRESHOLD,
                ),
            ),
        )

    def ensure_backend_service(self, health_check: str, instance_group: str) -> str:
        services = self._clients.backend_services
        return self._find_or_create(
            "backend service",
            BACKEND_SERVICE_NAME,
            lambda: services.get(project=self._project, backend_service=BACKEND_SERVICE_NAME),
            lambda: services.insert_unary(
                project=self._project,
                backend_service_resource=compute_v1.BackendService(
                    name=BACKEND_SERVICE_NAME,
                    health_checks=[health_check],
                    backends=[compute_v1.Backend(group=instance_group)],
                    port_name=NAMED_PORT,
                    protocol="HTTP",
                ),
            ),
        )

    def ensure_url_map(self, backend_service: str) -> str:
        url_maps = self._clients.url_maps
        return self._find_or_create(
            "URL map",
            URL_MAP_NAME,
            lambda: url_maps.get(project=self._project, url_map=URL_MAP_NAME),
            lambda: url_maps.insert_unary(
                project=self._project,
                url_map_resource=compute_v1.UrlMap(
                    name=URL_MAP_NAME, default_service=backend_service,
                ),
            ),
        )

    def ensure_http_proxy(self, url_map: str) -> str:
        proxies = self._clients.target_http_proxies
        return self._find_or_create(
            "HTTP proxy",
            HTTP_PROXY_NAME,
            lambda: proxies.get(project=self._project, target_http_proxy=HTTP_PROXY_NAME),
            lambda: proxies.insert_unary(
                project=self._project,
                target_http_proxy_resource=compute_v1.TargetHttpProxy(
                    name=HTTP_PROXY_NAME, url_map=url_map,
                ),
            ),
        )

    def ensure_forwarding_rule(self, http_proxy: str) -> str:
        rules = self._clients.global_forwarding_rules
        return self._find_or_create(
            "forwarding rule",
            FORWARDING_RULE_NAME,
            lambda: rules.get(project=self._project, forwarding_rule=FORWARDING_RULE_NAME),
            lambda: rules.insert_unary(
                project=self._project,
                forwarding_rule_resource=compute_v1.ForwardingRule(
                    name=FORWARDING_RULE_NAME,
                    I_p_protocol="TCP",
                    port_range=str(self._port),
                    target=http_proxy,
                ),
            ),
        )

    def provision(self) -> ChainLinks:
        """Find or create the whole chain. Stops at the first failure."""
        firewall = self.ensure_firewall()
        instance_group = self.ensure_instance_group()
        health_check = self.ensure_health_check()
        backend_service = self.ensure_backend_service(health_check, instance_group)
        url_map = self.ensure_url_map(backend_service)
        http_proxy = self.ensure_http_proxy(url_map)
        forwarding_rule = self.ensure_forwarding_rule(http_proxy)
        return ChainLinks(
            firewall=firewall,
            instance_group=instance_group,
            health_check=health_check,
            backend_service=backend_service,
            url_map=url_map,
            http_proxy=http_proxy,
            forwarding_rule=forwarding_rule,
        )

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def forwarding_address(self) -> str | None:
        """Public IP of the global forwarding rule, or None before provisioning."""
        try:
            rule = self._clients.global_forwarding_rules.get(
                project=self._project, forwarding_rule=FORWARDING_RULE_NAME,
            )
        except NotFound:
            return None
        return rule.I_p_address or None

    def existing(self) -> dict[str, str | None]:
        """Self link of every chain resource by name, None where missing."""
        c, p = self._clients, self._project
        lookups: dict[str, Callable[[], Any]] = {
            FIREWALL_NAME: lambda: c.firewalls.get(project=p, firewall=FIREWALL_NAME),
            INSTANCE_GROUP_NAME: lambda: c.instance_groups.get(
                project=p, zone=self._zone, instance_group=INSTANCE_GROUP_NAME,
            ),
            HEALTH_CHECK_NAME: lambda: c.http_health_checks.get(
                project=p, http_health_check=HEALTH_CHECK_NAME,
            ),
            BACKEND_SERVICE_NAME: lambda: c.backend_services.get(
                project=p, backend_service=BACKEND_SERVICE_NAME,
            ),
            URL_MAP_NAME: lambda: c.url_maps.get(project=p, url_map=URL_MAP_NAME),
            HTTP_PROXY_NAME: lambda: c.target_http_proxies.get(
                project=p, target_http_proxy=HTTP_PROXY_NAME,
            ),
            FORWARDING_RULE_NAME: lambda: c.global_forwarding_rules.get(
                project=p, forwarding_rule=FORWARDING_RULE_NAME,
            ),
        }
        found: dict[str, str | None] = {}
        for name, get in lookups.items():
            try:
                found[name] = get().self_link
            except NotFound:
                found[name] = None
        return found

    # -------------------------------------------------------------------------
    # Instance group membership
    # -------------------------------------------------------------------------

    def group_members(self) -> list[str]:
        """Instance self links currently in the instance group."""
        pager = self._clients.instance_groups.list_instances(
            project=self._project,
            zone=self._zone,
            instance_group=INSTANCE_GROUP_NAME,
            instance_groups_list_instances_request_resource=(
                compute_v1.InstanceGroupsListInstancesRequest(instance_state="ALL")
            ),
        )
        return [item.instance for item in pager]

    def add_to_group(self, instance: str) -> bool:
        """Add an instance (by self link). Returns False if it was already a member."""
        if instance in self.group_members():
            log.debug("{instance} already in {group}", instance=instance, group=INSTANCE_GROUP_NAME)
            return False
        op = self._clients.instance_groups.add_instances_unary(
            project=self._project,
            zone=self._zone,
            instance_group=INSTANCE_GROUP_NAME,
            instance_groups_add_instances_request_resource=(
                compute_v1.InstanceGroupsAddInstancesRequest(
                    instances=[compute_v1.InstanceReference(instance=instance)],
                )
            ),
        )
        self._poller.wait(op)
        log.info("added {instance} to {group}", instance=instance, group=INSTANCE_GROUP_NAME)
        return True

    def remove_from_group(self, instance: str) -> bool:
        """Remove an instance (by self link). Returns False if it was not a member."""
        if instance not in self.group_members():
            log.debug("{instance} not in {group}", instance=instance, group=INSTANCE_GROUP_NAME)
            return False
        op = self._clients.instance_groups.remove_instances_unary(
            project=self._project,
            zone=self._zone,
            instance_group=INSTANCE_GROUP_NAME,
            instance_groups_remove_instances_request_resource=(
                compute_v1.InstanceGroupsRemoveInstancesRequest(
                    instances=[compute_v1.InstanceReference(instance=instance)],
                )
            ),
        )
        self._poller.wait(op)
        log.info("removed {instance} from {group}", instance=instance, group=INSTANCE_GROUP_NAME)
        return True
