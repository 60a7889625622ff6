"""Typed parsing of ``docker-machine inspect`` output.

Each driver declares a pydantic model for the parts of the machine config it
reads. Validation happens once, here, and names every missing field.
"""

from __future__ import annotations

from pydantic import BaseModel, ValidationError

from roachdeploy.exceptions import MachineConfigError


def _field_path(loc: tuple[int | str, ...]) -> str:
    return ".".join(str(p) for p in loc) or "<document>"


def parse_machine_config[T: BaseModel](model: type[T], name: str, raw: str) -> T:
    """Validate raw inspect JSON against ``model``.

    Raises:
        MachineConfigError: Listing each missing or invalid field, e.g.
            ``Driver.InstanceId``.
    """
    try:
        return model.model_validate_json(raw)
    except ValidationError as e:
        raise MachineConfigError(
            name, [_field_path(err["loc"]) for err in e.errors()],
        ) from e
