"""The google part of ``docker-machine inspect`` output."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class GoogleDriver(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    machine_name: str = Field(alias="MachineName", min_length=1)
    zone: str = Field(alias="Zone", min_length=1)
    project: str = Field(default="", alias="Project")


class GCEMachine(BaseModel):
    """Typed machine config, plus the instance self link resolved from the API.

    ``instance_link`` is not part of the docker-machine config; the driver
    fills it in when it looks up the instance.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = Field(alias="Name")
    driver_name: Literal["google"] = Field(alias="DriverName")
    driver: GoogleDriver = Field(alias="Driver")
    instance_link: str = ""
