from __future__ import annotations

from typing import Final

from rich.table import Table
from rich.text import Text

NOT_FOUND: Final[str] = "not found (you need to initialize the cluster)"


def status_table(title: str) -> Table:
    """Two-column key/value table for ``status`` output."""
    table = Table(
        title=title,
        title_style="bold",
        title_justify="left",
        show_header=False,
        show_edge=False,
        box=None,
        padding=(0, 2),
    )
    table.add_column("key", style="bright_black", min_width=16)
    table.add_column("value")
    return table


def found(value: str | None) -> Text:
    return Text(value) if value else Text(NOT_FOUND, style="yellow")


def problem(err: Exception) -> Text:
    return Text(f"problem: {err}", style="red")
