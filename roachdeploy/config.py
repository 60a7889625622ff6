"""TOML-based cluster configuration.

Loads ~/.roachdeploy/defaults.toml (global) and roachdeploy.toml (project),
merges them, applies command-line overrides and resolves the result into an
immutable ClusterContext that is passed explicitly to every component.
"""

from __future__ import annotations

import getpass
import os
import tomllib
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Final, Literal

from pydantic import TypeAdapter, ValidationError

from roachdeploy.exceptions import ConfigurationError

type Provider = Literal["aws", "gce"]
type RawConfig = dict[str, Any]

PROVIDERS: Final[tuple[str, ...]] = ("aws", "gce")

GLOBAL_CONFIG_PATH = Path.home() / ".roachdeploy" / "defaults.toml"
PROJECT_CONFIG_NAME = "roachdeploy.toml"

DEFAULT_GCE_TOKEN_PATH = "${HOME}/.docker/machine/gce_token"


def _default_gce_project() -> str:
    return f"cockroach-{getpass.getuser()}"


@dataclass(frozen=True, slots=True)
class Target:
    """Provider and region parsed from a ``<provider>:<region>`` specifier."""

    provider: Provider
    region: str

    def __str__(self) -> str:
        return f"{self.provider}:{self.region}"


@dataclass(frozen=True, slots=True)
class ClusterContext:
    """Process-wide configuration, built once at startup.

    Args:
        certs: Certificates directory.
        port: Port cockroach nodes and the load balancer listen on.
        region: Region specifier, ``aws:us-east-1`` or ``gce:us-central1``.
        zone: Zone suffix. AWS zones are ``<region><zone>``, GCE zones are
            ``<region>-<zone>``.
        gce_project: Google Compute Engine project.
        gce_token_path: Cached OAuth token for Google Compute Engine.
        gce_network: VPC network for GCE firewall rules and machines.
        image: Cockroach container image.
        operation_timeout: Seconds to wait for a cloud operation. 0 waits forever.
        poll_interval: Seconds between operation status checks.
        docker_machine_binary: docker-machine executable.
        docker_binary: docker executable.
    """

    certs: str = "certs"
    port: int = 8080
    region: str = ""
    zone: str = "a"
    gce_project: str = ""
    gce_token_path: str = ""
    gce_network: str = "default"
    image: str = "cockroachdb/cockroach"
    operation_timeout: float = 600.0
    poll_interval: float = 1.0
    docker_machine_binary: str = "docker-machine"
    docker_binary: str = "docker"

    def __post_init__(self) -> None:
        if not self.gce_project:
            object.__setattr__(self, "gce_project", _default_gce_project())
        object.__setattr__(
            self,
            "gce_token_path",
            os.path.expandvars(os.path.expanduser(self.gce_token_path or DEFAULT_GCE_TOKEN_PATH)),
        )

    def target(self) -> Target:
        """Parse the region specifier.

        Raises:
            ConfigurationError: On a malformed specifier or unknown provider.
        """
        return parse_region(self.region)


def parse_region(spec: str) -> Target:
    provider, sep, region = spec.partition(":")
    if not sep or not provider or not region:
        raise ConfigurationError(
            f"invalid region syntax, expected <driver>:<region name>, got: {spec!r}"
        )
    if provider not in PROVIDERS:
        raise ConfigurationError(
            f"unknown driver: {provider!r}. Valid: {', '.join(PROVIDERS)}"
        )
    return Target(provider=provider, region=region)  # type: ignore[arg-type]


_CONTEXT_ADAPTER: Final = TypeAdapter(ClusterContext)


def _deep_merge(base: RawConfig, override: RawConfig) -> RawConfig:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_toml(path: Path) -> RawConfig:
    if not path.is_file():
        return {}
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"could not parse {path}: {e}") from e


def load_config(
    *,
    project_path: Path | None = None,
    global_path: Path | None = None,
) -> RawConfig:
    global_cfg = _read_toml(global_path or GLOBAL_CONFIG_PATH)
    project_cfg = _read_toml(project_path or Path.cwd() / PROJECT_CONFIG_NAME)
    return _deep_merge(global_cfg, project_cfg)


def build_context(raw: RawConfig) -> ClusterContext:
    known = {f.name for f in fields(ClusterContext)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ConfigurationError(
            f"unknown configuration keys: {', '.join(unknown)}. "
            f"Valid: {', '.join(sorted(known))}"
        )
    try:
        return _CONTEXT_ADAPTER.validate_python(raw)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']} (got {err['input']!r})"
            for err in e.errors()
        )
        raise ConfigurationError(f"invalid configuration values: {problems}") from e


def load_context(
    overrides: RawConfig | None = None,
    *,
    project_path: Path | None = None,
    global_path: Path | None = None,
) -> ClusterContext:
    """Resolve defaults, config files and overrides into a ClusterContext.

    Overrides whose value is None are ignored so that unset command-line
    flags do not mask file settings.
    """
    raw = load_config(project_path=project_path, global_path=global_path)
    set_overrides = {k: v for k, v in (overrides or {}).items() if v is not None}
    return build_context(_deep_merge(raw, set_overrides))
