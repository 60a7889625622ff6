"""Driver registry.

Maps the provider half of the region specifier to a driver. Cloud SDKs are
imported lazily, so a GCE user does not need boto3 importable and vice versa.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from loguru import logger

from roachdeploy.exceptions import ConfigurationError

if TYPE_CHECKING:
    from roachdeploy.config import ClusterContext
    from roachdeploy.drivers.base import Driver
    from roachdeploy.machine import DockerMachine

log = logger.bind(component="registry")


def create_driver(context: ClusterContext, machines: DockerMachine) -> Driver[Any]:
    """Create an uninitialized driver for ``context.region``.

    Raises:
        ConfigurationError: Bad region syntax or unknown provider.
    """
    target = context.target()
    log.debug("creating driver for {target}", target=str(target))

    match target.provider:
        case "aws":
            from .aws.driver import AWSDriver
            return AWSDriver.create(context, target.region, machines)
        case "gce":
            from .gce.driver import GCEDriver
            return GCEDriver(context, target.region, machines)
        case _:
            raise ConfigurationError(f"unknown driver {target.provider!r}, expected aws or gce")
