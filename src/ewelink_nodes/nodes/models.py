"""
Pydantic models for flow definitions.

A flow is a list of node definitions in the shape the flow editor exports:

    - id: n1
      type: ewelink-credentials
      credentials: {type: stored, credential_id: home}
    - id: n2
      type: ewelink-temperature
      auth: n1
      deviceId: "1000abcdef"
      wires: [[n3]]
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FlowNodeDefinition(BaseModel):
    # editor exports carry layout keys (x, y, z) we don't use
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    type: str
    name: str = ""
    wires: list[list[str]] = Field(default_factory=list)


class StoredCredential(BaseModel):
    type: Literal["stored"] = "stored"
    credential_id: str


class InlineCredential(BaseModel):
    type: Literal["inline"] = "inline"
    email: Optional[str] = None
    phone_number: Optional[str] = None
    password: str = Field(repr=False)
    region: Optional[str] = None


CredentialSource = StoredCredential | InlineCredential


class CredentialsNodeDefinition(FlowNodeDefinition):
    credentials: CredentialSource = Field(discriminator="type")


class CommandNodeDefinition(FlowNodeDefinition):
    auth: str
    device_id: str = Field("", alias="deviceId")

    @field_validator("device_id", mode="before")
    @classmethod
    def normalize_device_id(cls, v):
        # unquoted ids in YAML flows arrive as numbers
        if v is None:
            return ""
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v


class PowerStateNodeDefinition(CommandNodeDefinition):
    channel: int = Field(1, ge=1)
