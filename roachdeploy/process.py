from __future__ import annotations

import shlex
import subprocess
from collections.abc import Sequence
from typing import Protocol

from loguru import logger

from roachdeploy.exceptions import CommandFailedError

log = logger.bind(component="process")

SECRET_FLAG_SUFFIXES = ("-access-key", "-secret-key", "-session-token")


def redact(cmd: Sequence[str]) -> str:
    """Shell-quoted command line with credential flag values masked."""
    shown: list[str] = []
    hide_next = False
    for arg in cmd:
        shown.append("***" if hide_next else arg)
        hide_next = arg.startswith("--") and arg.endswith(SECRET_FLAG_SUFFIXES)
    return shlex.join(shown)


class CommandRunner(Protocol):
    """Runs external commands. Swapped for a fake in tests."""

    def output(self, cmd: Sequence[str]) -> str:
        """Run and return stripped stdout. Raises CommandFailedError on non-zero exit."""
        ...

    def stream(self, cmd: Sequence[str]) -> None:
        """Run with stdout/stderr attached to ours. Raises CommandFailedError on non-zero exit."""
        ...


class SubprocessRunner:
    def output(self, cmd: Sequence[str]) -> str:
        log.debug("running: {cmd}", cmd=redact(cmd))
        try:
            proc = subprocess.run(cmd, capture_output=True, text=True, check=False)
        except FileNotFoundError as e:
            raise CommandFailedError(cmd, 127, str(e), display=redact(cmd)) from e
        if proc.returncode != 0:
            raise CommandFailedError(cmd, proc.returncode, proc.stderr.strip(), display=redact(cmd))
        return proc.stdout.strip()

    def stream(self, cmd: Sequence[str]) -> None:
        log.info("running: {cmd}", cmd=redact(cmd))
        try:
            proc = subprocess.run(cmd, check=False)
        except FileNotFoundError as e:
            raise CommandFailedError(cmd, 127, str(e), display=redact(cmd)) from e
        if proc.returncode != 0:
            raise CommandFailedError(cmd, proc.returncode, display=redact(cmd))


def output_lines(runner: CommandRunner, cmd: Sequence[str]) -> list[str]:
    out = runner.output(cmd)
    return [line for line in out.splitlines() if line.strip()]

