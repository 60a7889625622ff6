"""Custom exception hierarchy for roachdeploy.

All roachdeploy-specific exceptions inherit from RoachDeployError, so the CLI
can report any command failure with a single except clause.
"""

from __future__ import annotations

from collections.abc import Sequence


class RoachDeployError(Exception):
    """Base exception for all roachdeploy errors."""


class ConfigurationError(RoachDeployError):
    """Raised for invalid configuration, detected before any external call."""


class PreconditionError(RoachDeployError):
    """Raised when discovery shows the cluster is not in the expected state."""


class ClusterExistsError(PreconditionError):
    """Raised by init when cockroach nodes already exist."""

    def __init__(self, nodes: Sequence[str]) -> None:
        self.nodes = tuple(nodes)
        super().__init__(
            f"cluster already exists: docker-machine has {len(self.nodes)} "
            f"existing cockroach nodes: {', '.join(self.nodes)}"
        )


class NoClusterError(PreconditionError):
    """Raised when no cockroach nodes exist but the command needs a cluster."""

    def __init__(self) -> None:
        super().__init__(
            "no existing cockroach nodes detected, "
            "this means there is probably no existing cluster"
        )


class ExternalToolError(RoachDeployError):
    """Raised when docker or docker-machine cannot be used."""


class CommandFailedError(ExternalToolError):
    """Raised when an external command exits non-zero."""

    def __init__(
        self, command: Sequence[str], returncode: int, stderr: str = "", display: str = "",
    ) -> None:
        self.command = tuple(command)
        self.returncode = returncode
        self.stderr = stderr
        detail = f": {stderr}" if stderr else ""
        super().__init__(f"{display or ' '.join(self.command)} failed (exit {returncode}){detail}")


class ToolOutputError(ExternalToolError):
    """Raised when an external command succeeds but its output is unusable."""

    def __init__(self, command: Sequence[str], reason: str) -> None:
        self.command = tuple(command)
        self.reason = reason
        super().__init__(f"bad output from {' '.join(self.command)}: {reason}")


class MachineConfigError(ExternalToolError):
    """Raised when a docker-machine config misses fields the driver needs."""

    def __init__(self, name: str, fields: Sequence[str]) -> None:
        self.name = name
        self.fields = tuple(fields)
        super().__init__(
            f"docker-machine config for {name} is missing or has invalid fields: "
            f"{', '.join(self.fields)}"
        )


class DriverInitError(RoachDeployError):
    """Raised when a driver cannot set up credentials or prerequisites."""


class CloudResourceError(RoachDeployError):
    """Raised when a cloud resource is in an unexpected state."""


class ResourceNotFoundError(CloudResourceError):
    """Raised when a required cloud resource does not exist."""

    def __init__(self, kind: str, name: str, hint: str = "") -> None:
        self.kind = kind
        self.name = name
        suffix = f" ({hint})" if hint else ""
        super().__init__(f"{kind} {name!r} not found{suffix}")


class OperationError(RoachDeployError):
    """Raised when a cloud operation finishes with an embedded error."""

    def __init__(self, code: str, message: str = "") -> None:
        self.code = code
        self.message = message
        super().__init__(f"{code}: {message}" if message else code)


class OperationTimeoutError(RoachDeployError):
    """Raised when a cloud operation is still running after the deadline."""

    def __init__(self, name: str, timeout: float) -> None:
        self.name = name
        self.timeout = timeout
        super().__init__(f"operation {name} not done after {timeout:.0f}s")


class UnsupportedOperationError(RoachDeployError):
    """Raised when an operation is neither global, regional nor zonal."""


class StepError(RoachDeployError):
    """Raised by the orchestrator to name the step that failed."""

    def __init__(self, step: str, cause: BaseException) -> None:
        self.step = step
        self.cause = cause
        super().__init__(f"{step}: {cause}")
