from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from aws_fakes import FakeELB


@pytest.fixture
def elb() -> FakeELB:
    return FakeELB()


@pytest.fixture
def ec2() -> MagicMock:
    client = MagicMock()
    client.describe_vpcs.return_value = {"Vpcs": [{"VpcId": "vpc-default", "IsDefault": True}]}
    client.describe_security_groups.return_value = {
        "SecurityGroups": [{"GroupId": "sg-dm", "GroupName": "docker-machine"}]
    }
    return client
