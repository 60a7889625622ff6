from __future__ import annotations

from typing import TYPE_CHECKING

from roachdeploy.exceptions import CloudResourceError

if TYPE_CHECKING:
    from mypy_boto3_ec2 import EC2Client


def find_default_vpc(ec2: EC2Client, region: str) -> str:
    """Return the ID of the region's default VPC.

    Raises:
        CloudResourceError: If there is no default VPC, or more than one.
    """
    resp = ec2.describe_vpcs(Filters=[{"Name": "is-default", "Values": ["true"]}])
    vpcs = resp.get("Vpcs", [])
    if not vpcs:
        raise CloudResourceError(f"no default VPC found in region {region}")
    if len(vpcs) > 1:
        raise CloudResourceError(f"found {len(vpcs)} default VPCs in region {region}")
    return vpcs[0]["VpcId"]
