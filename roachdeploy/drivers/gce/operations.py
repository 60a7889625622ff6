"""Waiting for Compute Engine long-running operations.

Every mutating Compute Engine call returns an Operation. Operations live in
one of three scopes (global, regional or zonal), and each scope has its own
API for fetching status, so the poller first works out the scope from the
operation's self link.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Final, Literal

from loguru import logger
from tenacity import (
    RetryError,
    retry,
    retry_if_exception_type,
    stop_after_delay,
    stop_never,
    wait_fixed,
)

from roachdeploy.exceptions import (
    OperationError,
    OperationTimeoutError,
    UnsupportedOperationError,
)

if TYPE_CHECKING:
    from roachdeploy.drivers.gce.clients import ComputeClients

log = logger.bind(provider="gce")

COMPUTE_API_BASE: Final[str] = "https://www.googleapis.com/compute/v1/projects/"
DONE: Final[str] = "DONE"

type Scope = Literal["global", "region", "zone"]


class _OperationPending(Exception):
    """Operation not done yet - retry."""


def is_done(op: Any) -> bool:
    # compute_v1 reports status as a string; accept Operation.Status members too
    status = op.status
    return getattr(status, "name", status) == DONE


def operation_error(op: Any) -> OperationError | None:
    """First error embedded in a finished operation, if any."""
    errors = list(op.error.errors) if op.error else []
    if not errors:
        return None
    first = errors[0]
    return OperationError(first.code, first.message)


class OperationPoller:
    """Blocks until an operation is done, then surfaces its embedded error.

    Args:
        clients: Compute clients; only the three operations clients are used.
        project: Project ID the operations belong to.
        region: Region for regional operations, e.g. ``us-central1``.
        zone: Zone for zonal operations, e.g. ``us-central1-a``.
        interval: Seconds between status checks.
        timeout: Seconds before giving up. 0 waits forever.
        sleep: Sleep function, replaced in tests.
    """

    def __init__(
        self,
        clients: ComputeClients,
        project: str,
        region: str,
        zone: str,
        *,
        interval: float = 1.0,
        timeout: float = 600.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._clients = clients
        self._project = project
        self._region = region
        self._zone = zone
        self._interval = interval
        self._timeout = timeout
        self._sleep = sleep

    def scope(self, op: Any) -> Scope:
        prefix = f"{COMPUTE_API_BASE}{self._project}/"
        link: str = op.self_link
        if link.startswith(f"{prefix}global/"):
            return "global"
        if link.startswith(f"{prefix}regions/{self._region}/"):
            return "region"
        if link.startswith(f"{prefix}zones/{self._zone}/"):
            return "zone"
        raise UnsupportedOperationError(
            f"operation {op.name} is neither global, in region {self._region} "
            f"nor in zone {self._zone}: {link}"
        )

    def fetch(self, scope: Scope, name: str) -> Any:
        match scope:
            case "global":
                return self._clients.global_operations.get(
                    project=self._project, operation=name,
                )
            case "region":
                return self._clients.region_operations.get(
                    project=self._project, region=self._region, operation=name,
                )
            case "zone":
                return self._clients.zone_operations.get(
                    project=self._project, zone=self._zone, operation=name,
                )

    def wait(self, op: Any) -> Any:
        """Wait for ``op`` and return its final state.

        Raises:
            OperationError: The operation finished with an error.
            OperationTimeoutError: Still running after ``timeout`` seconds.
            UnsupportedOperationError: Unknown operation scope.
        """
        if is_done(op):
            log.debug("operation {name} already done", name=op.name)
            return self._check(op)

        scope = self.scope(op)

        @retry(
            stop=stop_after_delay(self._timeout) if self._timeout else stop_never,
            wait=wait_fixed(self._interval),
            retry=retry_if_exception_type(_OperationPending),
            sleep=self._sleep,
        )
        def _poll() -> Any:
            live = self.fetch(scope, op.name)
            if not is_done(live):
                raise _OperationPending()
            return live

        log.debug("waiting for {scope} operation {name}", scope=scope, name=op.name)
        try:
            final = _poll()
        except RetryError as e:
            raise OperationTimeoutError(op.name, self._timeout) from e
        return self._check(final)

    def _check(self, op: Any) -> Any:
        if (err := operation_error(op)) is not None:
            raise err
        return op
