"""Security group handling.

docker-machine creates (and owns) the ``docker-machine`` security group when
it provisions the first amazonec2 machine. We only look it up and open the
cockroach port on it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

from botocore.exceptions import ClientError
from loguru import logger

from roachdeploy.drivers.aws.errors import is_aws_error_code
from roachdeploy.exceptions import ResourceNotFoundError

if TYPE_CHECKING:
    from mypy_boto3_ec2 import EC2Client

log = logger.bind(provider="aws")

SECURITY_GROUP_NAME: Final[str] = "docker-machine"
ALL_IP_ADDRESSES: Final[str] = "0.0.0.0/0"
COCKROACH_PROTOCOL: Final[str] = "tcp"
DUPLICATE_RULE_ERROR: Final[str] = "InvalidPermission.Duplicate"


def find_security_group(ec2: EC2Client, vpc_id: str) -> str | None:
    """Return the docker-machine security group ID, or None if it does not exist."""
    resp = ec2.describe_security_groups(
        Filters=[
            {"Name": "group-name", "Values": [SECURITY_GROUP_NAME]},
            {"Name": "vpc-id", "Values": [vpc_id]},
        ],
    )
    groups = resp.get("SecurityGroups", [])
    if not groups:
        return None
    return groups[0]["GroupId"]


def require_security_group(ec2: EC2Client, vpc_id: str) -> str:
    if (group_id := find_security_group(ec2, vpc_id)) is None:
        raise ResourceNotFoundError(
            "security group", SECURITY_GROUP_NAME, "docker-machine creates it with the first node",
        )
    return group_id


def authorize_cockroach_ingress(ec2: EC2Client, group_id: str, port: int) -> bool:
    """Open ``port`` to the world on the security group.

    A duplicate rule is an error for the EC2 API; here it means the rule is
    already in place. Returns True if a rule was added.
    """
    try:
        ec2.authorize_security_group_ingress(
            GroupId=group_id,
            IpPermissions=[
                {
                    "IpProtocol": COCKROACH_PROTOCOL,
                    "FromPort": port,
                    "ToPort": port,
                    "IpRanges": [{"CidrIp": ALL_IP_ADDRESSES}],
                }
            ],
        )
    except ClientError as e:
        if is_aws_error_code(e, DUPLICATE_RULE_ERROR):
            log.info("security group {group} already allows port {port}", group=group_id, port=port)
            return False
        raise
    log.info("added security group rule for port {port} on {group}", port=port, group=group_id)
    return True
