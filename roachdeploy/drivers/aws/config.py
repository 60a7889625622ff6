"""The amazonec2 part of ``docker-machine inspect`` output."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class AmazonEC2Driver(BaseModel):
    """Fields of the machine's ``Driver`` object that roachdeploy reads."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    instance_id: str = Field(alias="InstanceId", min_length=1)
    private_ip_address: str = Field(alias="PrivateIPAddress", min_length=1)
    zone: str = Field(alias="Zone", min_length=1)
    region: str = Field(default="", alias="Region")
    security_group_id: str = Field(default="", alias="SecurityGroupId")
    security_group_ids: list[str] = Field(default_factory=list, alias="SecurityGroupIds")


class AWSMachine(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = Field(alias="Name")
    driver_name: Literal["amazonec2"] = Field(alias="DriverName")
    driver: AmazonEC2Driver = Field(alias="Driver")

    @property
    def security_groups(self) -> list[str]:
        """Security group IDs; older docker-machine releases record a single one."""
        groups = list(self.driver.security_group_ids)
        if self.driver.security_group_id and self.driver.security_group_id not in groups:
            groups.append(self.driver.security_group_id)
        return groups
