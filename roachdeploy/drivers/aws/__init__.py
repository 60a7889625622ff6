"""Amazon EC2 driver."""

from roachdeploy.drivers.aws.driver import AWSDriver

__all__ = ["AWSDriver"]
