"""Google Compute Engine driver."""

from roachdeploy.drivers.gce.driver import GCEDriver

__all__ = ["GCEDriver"]
