"""Cockroach node naming and discovery.

Only docker-machine machines named ``cockroach-<index>`` are cluster members.
Index 0 is the bootstrap node; new nodes always take ``max(existing) + 1``.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Final

NODE_PREFIX: Final[str] = "cockroach-"
NODE_PATTERN: Final[re.Pattern[str]] = re.compile(r"^cockroach-([0-9]+)$")
FIRST_NODE_INDEX: Final[int] = 0


def make_node_name(index: int) -> str:
    if index < 0:
        raise ValueError(f"node index must be >= 0, got {index}")
    return f"{NODE_PREFIX}{index}"


def is_node_name(name: str) -> bool:
    return NODE_PATTERN.match(name) is not None


def node_index(name: str) -> int:
    """Return the index encoded in a node name.

    Raises:
        ValueError: If the name does not follow the node naming convention.
    """
    if not (m := NODE_PATTERN.match(name)):
        raise ValueError(f"{name!r} is not a cockroach node name")
    return int(m.group(1))


def cluster_nodes(machines: Iterable[str]) -> list[str]:
    """Filter machine names down to cluster members, ordered by index."""
    return sorted((m for m in machines if is_node_name(m)), key=node_index)


def next_node_index(nodes: Iterable[str]) -> int:
    """Smallest index greater than every discovered index.

    An empty cluster yields the bootstrap index.
    """
    return max((node_index(n) for n in nodes), default=FIRST_NODE_INDEX - 1) + 1
