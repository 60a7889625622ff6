"""docker collaborator: runs cockroach containers on a machine's daemon."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Final

from loguru import logger

from roachdeploy.drivers.base import NodeSettings
from roachdeploy.exceptions import ToolOutputError
from roachdeploy.process import CommandRunner, SubprocessRunner

log = logger.bind(component="docker")

VERSION_PREFIX: Final[str] = "Docker version "
STORE_PATH: Final[str] = "/data"


class Docker:
    def __init__(
        self,
        binary: str = "docker",
        image: str = "cockroachdb/cockroach",
        runner: CommandRunner | None = None,
    ) -> None:
        self._bin = binary
        self._image = image
        self._runner = runner or SubprocessRunner()

    def check(self) -> str:
        """Verify docker is installed and runnable. Returns its version line."""
        cmd = [self._bin, "-v"]
        out = self._runner.output(cmd)
        if not out.startswith(VERSION_PREFIX):
            raise ToolOutputError(cmd, f"{out!r}, expected string prefix {VERSION_PREFIX!r}")
        return out

    def init_args(self, flags: Sequence[str], settings: NodeSettings) -> list[str]:
        return [
            self._bin, *flags,
            "run", "--rm",
            "-v", f"{settings.data_dir}:{STORE_PATH}",
            self._image,
            "init",
            "--insecure",
            f"--stores=ssd={STORE_PATH}",
        ]

    def start_args(self, flags: Sequence[str], settings: NodeSettings, port: int) -> list[str]:
        return [
            self._bin, *flags,
            "run", "-d", "--rm",
            "-v", f"{settings.data_dir}:{STORE_PATH}",
            "-p", f"{port}:{port}",
            "--net", "host",
            self._image,
            "start",
            "--insecure",
            f"--stores=ssd={STORE_PATH}",
            f"--addr={settings.ip_address}:{port}",
            f"--gossip={settings.gossip_address}:{port}",
        ]

    def run_init(self, flags: Sequence[str], settings: NodeSettings) -> None:
        """Bootstrap the store of the first node."""
        self._runner.stream(self.init_args(flags, settings))

    def run_start(self, flags: Sequence[str], settings: NodeSettings, port: int) -> None:
        """Start a detached cockroach container."""
        self._runner.stream(self.start_args(flags, settings, port))
