"""Compute Engine API clients, grouped so they can be built and faked together."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from google.auth.credentials import Credentials


@dataclass(frozen=True, slots=True)
class ComputeClients:
    projects: Any
    instances: Any
    firewalls: Any
    instance_groups: Any
    http_health_checks: Any
    backend_services: Any
    url_maps: Any
    target_http_proxies: Any
    global_forwarding_rules: Any
    global_operations: Any
    region_operations: Any
    zone_operations: Any

    @classmethod
    def from_credentials(cls, credentials: Credentials) -> ComputeClients:
        from google.cloud import compute_v1  # type: ignore[reportMissingImports]

        return cls(
            projects=compute_v1.ProjectsClient(credentials=credentials),
            instances=compute_v1.InstancesClient(credentials=credentials),
            firewalls=compute_v1.FirewallsClient(credentials=credentials),
            instance_groups=compute_v1.InstanceGroupsClient(credentials=credentials),
            http_health_checks=compute_v1.HttpHealthChecksClient(credentials=credentials),
            backend_services=compute_v1.BackendServicesClient(credentials=credentials),
            url_maps=compute_v1.UrlMapsClient(credentials=credentials),
            target_http_proxies=compute_v1.TargetHttpProxiesClient(credentials=credentials),
            global_forwarding_rules=compute_v1.GlobalForwardingRulesClient(credentials=credentials),
            global_operations=compute_v1.GlobalOperationsClient(credentials=credentials),
            region_operations=compute_v1.RegionOperationsClient(credentials=credentials),
            zone_operations=compute_v1.ZoneOperationsClient(credentials=credentials),
        )
