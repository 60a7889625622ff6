"""AWS driver: amazonec2 machines behind a classic ELB.

Cluster-wide resources:

- the ``docker-machine`` security group, opened on the cockroach port
- the ``cockroach-db`` load balancer, a TCP listener on the cockroach port

Both live in the region's default VPC.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Final

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from injector import Injector
from loguru import logger

from roachdeploy.drivers.aws.clients import EC2, ELB, AWSModule
from roachdeploy.drivers.aws.config import AWSMachine
from roachdeploy.drivers.aws.elb import (
    LOAD_BALANCER_NAME,
    LOAD_BALANCER_NOT_FOUND,
    deregister_instance,
    ensure_load_balancer,
    find_load_balancer,
    instance_health,
    register_instance,
)
from roachdeploy.drivers.aws.errors import is_aws_error_code
from roachdeploy.drivers.aws.security_group import (
    SECURITY_GROUP_NAME,
    authorize_cockroach_ingress,
    find_security_group,
    require_security_group,
)
from roachdeploy.drivers.aws.vpc import find_default_vpc
from roachdeploy.drivers.base import HostConfig, NodeSettings
from roachdeploy.drivers.machine_config import parse_machine_config
from roachdeploy.drivers.status import found, problem, status_table
from roachdeploy.exceptions import (
    CloudResourceError,
    DriverInitError,
    ResourceNotFoundError,
    RoachDeployError,
)

if TYPE_CHECKING:
    from rich.console import Console

    from roachdeploy.config import ClusterContext
    from roachdeploy.machine import DockerMachine

log = logger.bind(provider="aws")

DOCKER_MACHINE_DRIVER: Final[str] = "amazonec2"
DATA_DIR: Final[str] = "/home/ubuntu/data"

_STATUS_ERRORS = (ClientError, BotoCoreError, RoachDeployError)


class AWSDriver:
    """Driver for Amazon EC2.

    Args:
        context: Cluster configuration.
        region: AWS region, e.g. ``us-east-1``.
        machines: docker-machine wrapper used to read machine configs.
        session: boto3 session bound to ``region``.
        ec2: EC2 client.
        elb: Classic ELB client.
    """

    def __init__(
        self,
        context: ClusterContext,
        region: str,
        machines: DockerMachine,
        session: boto3.Session,
        ec2: Any,
        elb: Any,
    ) -> None:
        self._context = context
        self._region = region
        self._machines = machines
        self._session = session
        self._ec2 = ec2
        self._elb = elb
        self._access_key: str | None = None
        self._secret_key: str | None = None
        self._session_token: str | None = None
        self._vpc_id: str | None = None

    @classmethod
    def create(cls, context: ClusterContext, region: str, machines: DockerMachine) -> AWSDriver:
        """Build the driver with clients from AWSModule."""
        injector = Injector([AWSModule(region)])
        return cls(
            context,
            region,
            machines,
            session=injector.get(boto3.Session),
            ec2=injector.get(EC2).client,
            elb=injector.get(ELB).client,
        )

    @property
    def zone(self) -> str:
        """Full availability zone, e.g. ``us-east-1a``."""
        return f"{self._region}{self._context.zone}"

    def _require_vpc(self) -> str:
        if self._vpc_id is None:
            raise DriverInitError("AWS driver used before init")
        return self._vpc_id

    # -------------------------------------------------------------------------
    # Driver protocol
    # -------------------------------------------------------------------------

    def init(self) -> None:
        credentials = self._session.get_credentials()
        if credentials is None:
            raise DriverInitError(
                "unable to find AWS credentials: set AWS_ACCESS_KEY_ID and "
                "AWS_SECRET_ACCESS_KEY, or configure ~/.aws/credentials"
            )
        frozen = credentials.get_frozen_credentials()
        if not frozen.access_key or not frozen.secret_key:
            raise DriverInitError("AWS credentials are missing an access key or secret key")

        try:
            vpc_id = find_default_vpc(self._ec2, self._region)
        except (ClientError, BotoCoreError, CloudResourceError) as e:
            raise DriverInitError(f"could not find default VPC: {e}") from e

        self._access_key = frozen.access_key
        self._secret_key = frozen.secret_key
        self._session_token = frozen.token
        self._vpc_id = vpc_id
        log.info("using default VPC {vpc} in {region}", vpc=vpc_id, region=self._region)

    def docker_machine_driver(self) -> str:
        return DOCKER_MACHINE_DRIVER

    def create_args(self) -> list[str]:
        vpc_id = self._require_vpc()
        args = [
            "--amazonec2-access-key", self._access_key or "",
            "--amazonec2-secret-key", self._secret_key or "",
            "--amazonec2-region", self._region,
            "--amazonec2-vpc-id", vpc_id,
            "--amazonec2-zone", self._context.zone,
        ]
        if self._session_token:
            args += ["--amazonec2-session-token", self._session_token]
        return args

    def get_node_config(self, name: str) -> HostConfig[AWSMachine]:
        machine = parse_machine_config(AWSMachine, name, self._machines.inspect(name))
        dns = find_load_balancer(self._elb)
        if dns is None:
            raise ResourceNotFoundError(
                "load balancer", LOAD_BALANCER_NAME, "you need to initialize the cluster",
            )
        return HostConfig(
            name=name,
            settings=NodeSettings(
                data_dir=DATA_DIR,
                ip_address=machine.driver.private_ip_address,
                gossip_address=dns,
            ),
            machine=machine,
        )

    def after_first_node(self) -> None:
        group_id = require_security_group(self._ec2, self._require_vpc())
        authorize_cockroach_ingress(self._ec2, group_id, self._context.port)
        ensure_load_balancer(
            self._elb,
            port=self._context.port,
            zone=self.zone,
            security_group_id=group_id,
        )

    def add_node(self, name: str, config: HostConfig[AWSMachine]) -> None:
        """Check the node sits in the security group that opens the cockroach port."""
        groups = config.machine.security_groups
        if not groups:
            log.warning("docker-machine config for {name} lists no security groups", name=name)
            return
        group_id = require_security_group(self._ec2, self._require_vpc())
        if group_id not in groups:
            raise CloudResourceError(
                f"node {name} is not in security group {SECURITY_GROUP_NAME} ({group_id}), "
                f"its security groups are: {', '.join(groups)}"
            )
        log.debug("node {name} is in security group {group}", name=name, group=group_id)

    def start_node(self, name: str, config: HostConfig[AWSMachine]) -> None:
        register_instance(self._elb, config.machine.driver.instance_id)

    def stop_node(self, name: str, config: HostConfig[AWSMachine]) -> None:
        deregister_instance(self._elb, config.machine.driver.instance_id)

    def print_status(self, console: Console) -> None:
        table = status_table("AWS")
        table.add_row("Region", self._region)

        try:
            table.add_row("Load balancer", found(find_load_balancer(self._elb)))
        except _STATUS_ERRORS as e:
            table.add_row("Load balancer", problem(e))

        try:
            table.add_row("Security group", found(find_security_group(self._ec2, self._require_vpc())))
        except _STATUS_ERRORS as e:
            table.add_row("Security group", problem(e))

        try:
            for instance_id, state in instance_health(self._elb):
                table.add_row(f"  {instance_id}", state)
        except ClientError as e:
            if not is_aws_error_code(e, LOAD_BALANCER_NOT_FOUND):
                table.add_row("Instances", problem(e))
        except BotoCoreError as e:
            table.add_row("Instances", problem(e))

        console.print(table)

