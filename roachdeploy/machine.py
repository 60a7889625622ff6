"""docker-machine collaborator.

Thin wrapper over the docker-machine binary. The only facts the rest of
roachdeploy relies on are: machine names following the node naming
convention are cluster members, ``inspect`` returns a JSON config with a
``Driver`` object, and ``config`` prints exactly one line of flags.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Final

from loguru import logger

from roachdeploy.exceptions import ToolOutputError
from roachdeploy.nodes import cluster_nodes
from roachdeploy.process import CommandRunner, SubprocessRunner, output_lines

log = logger.bind(component="docker-machine")

VERSION_PREFIX: Final[str] = "docker-machine version "


class DockerMachine:
    def __init__(self, binary: str = "docker-machine", runner: CommandRunner | None = None) -> None:
        self._bin = binary
        self._runner = runner or SubprocessRunner()

    def _cmd(self, *args: str) -> list[str]:
        return [self._bin, *args]

    def check(self) -> str:
        """Verify docker-machine is installed and runnable. Returns its version line."""
        cmd = self._cmd("-v")
        out = self._runner.output(cmd)
        if not out.startswith(VERSION_PREFIX):
            raise ToolOutputError(cmd, f"{out!r}, expected string prefix {VERSION_PREFIX!r}")
        return out

    def list_machines(self) -> list[str]:
        return output_lines(self._runner, self._cmd("ls", "-q"))

    def list_nodes(self) -> list[str]:
        """Machines that are cockroach nodes, ignoring everything else."""
        return cluster_nodes(self.list_machines())

    def print_machines(self) -> None:
        self._runner.stream(self._cmd("ls"))

    def inspect(self, name: str) -> str:
        """Raw JSON machine config. Parsing is left to the driver that owns the format."""
        return self._runner.output(self._cmd("inspect", name))

    def docker_flags(self, name: str) -> list[str]:
        """Flags docker needs to talk to the machine's daemon.

        docker-machine prints them on a single line; anything else is an error.
        """
        cmd = self._cmd("config", name)
        lines = output_lines(self._runner, cmd)
        if len(lines) != 1:
            raise ToolOutputError(cmd, f"expected a single output line, got: {lines!r}")
        return lines[0].split()

    def create(self, name: str, driver: str, args: Sequence[str]) -> None:
        log.info("creating docker-machine {name}", name=name)
        self._runner.stream(self._cmd("create", "--driver", driver, *args, name))

    def start(self, name: str) -> None:
        log.info("starting docker-machine {name}", name=name)
        self._runner.stream(self._cmd("start", name))

    def stop(self, name: str) -> None:
        log.info("stopping docker-machine {name}", name=name)
        self._runner.stream(self._cmd("stop", name))
