"""AWS client providers with dependency injection.

Usage:
    >>> from injector import Injector
    >>> from roachdeploy.drivers.aws.clients import AWSModule, EC2
    >>>
    >>> injector = Injector([AWSModule("us-east-1")])
    >>> injector.get(EC2).client.describe_vpcs()
"""

from __future__ import annotations

from typing import Any

import boto3
from injector import Module, provider, singleton


# =============================================================================
# Wrapper Classes for DI (each needs a unique type)
# =============================================================================


class EC2:
    """Wrapper for the boto3 EC2 client."""

    def __init__(self, client: Any) -> None:
        self.client = client


class ELB:
    """Wrapper for the boto3 classic Elastic Load Balancing client."""

    def __init__(self, client: Any) -> None:
        self.client = client


# =============================================================================
# AWS Module
# =============================================================================


class AWSModule(Module):
    """DI module providing a region-bound boto3 session and clients.

    Credentials come from the boto3 default chain: environment, then
    ~/.aws/credentials, then instance metadata.
    """

    def __init__(self, region: str) -> None:
        self._region = region

    @singleton
    @provider
    def provide_session(self) -> boto3.Session:
        return boto3.Session(region_name=self._region)

    @singleton
    @provider
    def provide_ec2(self, session: boto3.Session) -> EC2:
        return EC2(session.client("ec2"))

    @singleton
    @provider
    def provide_elb(self, session: boto3.Session) -> ELB:
        return ELB(session.client("elb"))


__all__ = [
    "AWSModule",
    "EC2",
    "ELB",
]
