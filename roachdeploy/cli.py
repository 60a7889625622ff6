"""roachdeploy command line.

Options must precede the command:

    roachdeploy --region aws:us-east-1 init
    roachdeploy --region gce:us-central1 --gce-project my-project add-nodes 2
    roachdeploy --region aws:us-east-1 stop cockroach-1
"""

from __future__ import annotations

import argparse
import sys
from collections.abc import Callable
from dataclasses import fields
from pathlib import Path

from loguru import logger
from rich.console import Console
from rich.table import Table

from roachdeploy import __version__
from roachdeploy.config import ClusterContext, load_context
from roachdeploy.docker import Docker
from roachdeploy.drivers.registry import create_driver
from roachdeploy.exceptions import RoachDeployError
from roachdeploy.logging import LogConfig, setup_logging, teardown_logging
from roachdeploy.machine import DockerMachine
from roachdeploy.orchestrator import Orchestrator

log = logger.bind(component="cli")


def _positive_int(value: str) -> int:
    try:
        n = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {value!r}") from None
    if n < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {n}")
    return n


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="roachdeploy",
        description="Deploy and manage cockroach clusters with docker-machine.",
    )
    parser.add_argument("--certs", help="certificates directory")
    parser.add_argument("--port", type=int, help="port cockroach and the load balancer listen on")
    parser.add_argument("--region", help="<driver>:<region>, e.g. aws:us-east-1 or gce:us-central1")
    parser.add_argument("--zone", help="zone suffix within the region, e.g. a")
    parser.add_argument("--gce-project", help="Google Compute Engine project")
    parser.add_argument(
        "--gce-auth-token", dest="gce_token_path", help="cached Google Compute Engine token",
    )
    parser.add_argument("--config", type=Path, help="project config file (default ./roachdeploy.toml)")
    parser.add_argument(
        "--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    parser.add_argument("--log-file", help="also write logs to this file")

    sub = parser.add_subparsers(dest="command", metavar="command")
    sub.add_parser("init", help="create a new single-node cluster")
    add = sub.add_parser("add-nodes", help="add nodes to an existing cluster")
    add.add_argument("count", type=_positive_int, help="number of nodes to add")
    start = sub.add_parser("start", help="start nodes (all by default)")
    start.add_argument("nodes", nargs="*")
    stop = sub.add_parser("stop", help="stop nodes (all by default)")
    stop.add_argument("nodes", nargs="*")
    sub.add_parser("status", help="show machines and cluster resources")
    sub.add_parser("listparams", help="list parameters and their defaults")
    sub.add_parser("version", help="print the roachdeploy version")
    return parser


def _overrides(args: argparse.Namespace) -> dict[str, object]:
    return {
        "certs": args.certs,
        "port": args.port,
        "region": args.region,
        "zone": args.zone,
        "gce_project": args.gce_project,
        "gce_token_path": args.gce_token_path,
    }


def _orchestrator(context: ClusterContext, console: Console) -> Orchestrator:
    machines = DockerMachine(context.docker_machine_binary)
    docker = Docker(context.docker_binary, context.image)
    return Orchestrator(
        context,
        machines,
        docker,
        driver_factory=lambda: create_driver(context, machines),
        console=console,
    )


def list_params(context: ClusterContext, console: Console) -> None:
    table = Table(show_edge=False, box=None, padding=(0, 2))
    table.add_column("parameter", style="bold")
    table.add_column("default", style="bright_black")
    table.add_column("value")
    defaults = ClusterContext()
    for f in fields(ClusterContext):
        table.add_row(f.name, repr(getattr(defaults, f.name)), repr(getattr(context, f.name)))
    console.print(table)


def run(args: argparse.Namespace, console: Console) -> None:
    context = load_context(_overrides(args), project_path=args.config)
    log.debug("context: {context}", context=context)

    commands: dict[str, Callable[[], object]] = {
        "init": lambda: _orchestrator(context, console).init(),
        "add-nodes": lambda: _orchestrator(context, console).add_nodes(args.count),
        "start": lambda: _orchestrator(context, console).start(args.nodes),
        "stop": lambda: _orchestrator(context, console).stop(args.nodes),
        "status": lambda: _orchestrator(context, console).status(),
        "listparams": lambda: list_params(context, console),
        "version": lambda: console.print(f"roachdeploy {__version__}"),
    }
    commands[args.command]()


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 1

    handler_ids = setup_logging(LogConfig(level=args.log_level, file=args.log_file))
    try:
        run(args, Console())
    except RoachDeployError as e:
        log.error("{err}", err=e)
        return 1
    finally:
        teardown_logging(handler_ids)
    return 0


def cli() -> None:
    sys.exit(main())
