"""Cloud drivers.

Each driver module is imported on demand by create_driver.
"""

from roachdeploy.drivers.base import Driver, HostConfig, NodeSettings
from roachdeploy.drivers.registry import create_driver

__all__ = [
    "Driver",
    "HostConfig",
    "NodeSettings",
    "create_driver",
]
