from __future__ import annotations

from collections.abc import Sequence

import pytest

from roachdeploy.exceptions import CommandFailedError


class FakeRunner:
    """CommandRunner that records commands and replays canned output."""

    def __init__(self) -> None:
        self.outputs: dict[tuple[str, ...], str] = {}
        self.failures: set[tuple[str, ...]] = set()
        self.calls: list[list[str]] = []
        self.streamed: list[list[str]] = []

    def _record(self, cmd: Sequence[str]) -> tuple[str, ...]:
        self.calls.append(list(cmd))
        key = tuple(cmd)
        if key in self.failures:
            raise CommandFailedError(cmd, 1, "boom")
        return key

    def output(self, cmd: Sequence[str]) -> str:
        return self.outputs.get(self._record(cmd), "")

    def stream(self, cmd: Sequence[str]) -> None:
        self._record(cmd)
        self.streamed.append(list(cmd))


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()
