"""Classic Elastic Load Balancer in front of the cockroach nodes.

The ELB is the cluster's single entry point: clients connect to its DNS name,
and nodes use it as their gossip address.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

from botocore.exceptions import ClientError
from loguru import logger

from roachdeploy.drivers.aws.errors import is_aws_error_code
from roachdeploy.exceptions import CloudResourceError

if TYPE_CHECKING:
    from mypy_boto3_elb import ElasticLoadBalancingClient

log = logger.bind(provider="aws")

LOAD_BALANCER_NAME: Final[str] = "cockroach-db"
LOAD_BALANCER_NOT_FOUND: Final[str] = "LoadBalancerNotFound"
LISTENER_PROTOCOL: Final[str] = "TCP"

HEALTH_CHECK_INTERVAL: Final[int] = 10
HEALTH_CHECK_TIMEOUT: Final[int] = 5
HEALTHY_THRESHOLD: Final[int] = 2
UNHEALTHY_THRESHOLD: Final[int] = 2


def find_load_balancer(elb: ElasticLoadBalancingClient, name: str = LOAD_BALANCER_NAME) -> str | None:
    """Return the DNS name of the load balancer, or None if it does not exist.

    Raises:
        CloudResourceError: If more than one load balancer matches.
    """
    try:
        resp = elb.describe_load_balancers(LoadBalancerNames=[name])
    except ClientError as e:
        if is_aws_error_code(e, LOAD_BALANCER_NOT_FOUND):
            return None
        raise

    descriptions = resp.get("LoadBalancerDescriptions", [])
    if not descriptions:
        return None
    if len(descriptions) > 1:
        raise CloudResourceError(f"found {len(descriptions)} load balancers named {name}")
    return descriptions[0]["DNSName"]


def create_load_balancer(
    elb: ElasticLoadBalancingClient,
    *,
    port: int,
    zone: str,
    security_group_id: str,
    name: str = LOAD_BALANCER_NAME,
) -> str:
    """Create a TCP pass-through load balancer on ``port`` and return its DNS name."""
    resp = elb.create_load_balancer(
        LoadBalancerName=name,
        Listeners=[
            {
                "Protocol": LISTENER_PROTOCOL,
                "LoadBalancerPort": port,
                "InstanceProtocol": LISTENER_PROTOCOL,
                "InstancePort": port,
            }
        ],
        AvailabilityZones=[zone],
        SecurityGroups=[security_group_id],
    )
    return resp["DNSName"]


def configure_health_check(
    elb: ElasticLoadBalancingClient, *, port: int, name: str = LOAD_BALANCER_NAME,
) -> None:
    """Mark instances healthy while they accept TCP connections on ``port``."""
    elb.configure_health_check(
        LoadBalancerName=name,
        HealthCheck={
            "Target": f"{LISTENER_PROTOCOL}:{port}",
            "Interval": HEALTH_CHECK_INTERVAL,
            "Timeout": HEALTH_CHECK_TIMEOUT,
            "UnhealthyThreshold": UNHEALTHY_THRESHOLD,
            "HealthyThreshold": HEALTHY_THRESHOLD,
        },
    )


def ensure_load_balancer(
    elb: ElasticLoadBalancingClient,
    *,
    port: int,
    zone: str,
    security_group_id: str,
    name: str = LOAD_BALANCER_NAME,
) -> str:
    """Find or create the load balancer and apply its health check. Returns its DNS name.

    The health check is applied on every call, so a run that failed between
    creation and configuration is completed by the next one.
    """
    if (dns := find_load_balancer(elb, name)) is not None:
        log.info("found load balancer {name}: {dns}", name=name, dns=dns)
    else:
        log.info("creating load balancer {name} in {zone}", name=name, zone=zone)
        dns = create_load_balancer(
            elb, port=port, zone=zone, security_group_id=security_group_id, name=name,
        )
        log.info("created load balancer {name}: {dns}", name=name, dns=dns)
    configure_health_check(elb, port=port, name=name)
    return dns


def register_instance(
    elb: ElasticLoadBalancingClient, instance_id: str, name: str = LOAD_BALANCER_NAME,
) -> None:
    elb.register_instances_with_load_balancer(
        LoadBalancerName=name, Instances=[{"InstanceId": instance_id}],
    )
    log.info("registered {instance} with load balancer {name}", instance=instance_id, name=name)


def deregister_instance(
    elb: ElasticLoadBalancingClient, instance_id: str, name: str = LOAD_BALANCER_NAME,
) -> None:
    elb.deregister_instances_from_load_balancer(
        LoadBalancerName=name, Instances=[{"InstanceId": instance_id}],
    )
    log.info("deregistered {instance} from load balancer {name}", instance=instance_id, name=name)


def instance_health(
    elb: ElasticLoadBalancingClient, name: str = LOAD_BALANCER_NAME,
) -> list[tuple[str, str]]:
    """(instance ID, state) for every registered instance, e.g. ``("i-0ab", "InService")``."""
    resp = elb.describe_instance_health(LoadBalancerName=name)
    return [(s["InstanceId"], s["State"]) for s in resp.get("InstanceStates", [])]
