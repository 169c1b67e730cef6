"""
Pydantic models used across the gateway.

Static configuration shapes (contracts, device entries) are frozen so
they cannot drift after the catalog is loaded. Wire shapes
(`IngestFrame`, `ValidationIssue`, `IngestAccepted`) are built by the
service after its own structural checks.

Guidelines:
- Keep models minimal and stable. Mutable runtime state (the hardware
  serial binding) lives on `repo_devices.DeviceRecord`, not here.
"""

from datetime import datetime
from typing import Dict, Literal, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


FieldType = Literal["number", "boolean"]
Scalar = Union[bool, int, float]


class FieldRule(BaseModel):
    """One whitelisted sensor key of a device model."""

    model_config = ConfigDict(frozen=True)

    key: str
    type: FieldType
    required: bool = True


class DeviceModelContract(BaseModel):
    """Field contract for one class of sensor board.

    Fields:
    - `model_id`: registry key, e.g. `FLOW_V1`.
    - `display_name` / `version`: descriptive only, echoed in manifests
      and acceptance logs.
    - `fields`: ordered whitelist; keys are unique.
    """

    model_config = ConfigDict(frozen=True, protected_namespaces=())

    model_id: str
    display_name: str
    version: str
    fields: Tuple[FieldRule, ...] = ()

    @field_validator("fields")
    @classmethod
    def _unique_keys(cls, fields: Tuple[FieldRule, ...]) -> Tuple[FieldRule, ...]:
        seen = set()
        for rule in fields:
            if rule.key in seen:
                raise ValueError(f"duplicate field key: {rule.key}")
            seen.add(rule.key)
        return fields


class DeviceConfig(BaseModel):
    """Static description of a provisioned board.

    `secret` is the HMAC key shared with the vendor. It is excluded from
    `repr()` so it never ends up in logs by accident.
    """

    model_config = ConfigDict(frozen=True, protected_namespaces=())

    device_id: str
    secret: str = Field(repr=False)
    model_id: str
    enabled: bool = True


class IngestFrame(BaseModel):
    """A single structurally-valid telemetry frame."""

    schema_version: int
    hardware_sn: str
    observed_at: datetime
    observed_at_raw: str
    data: Dict[str, Scalar] = Field(default_factory=dict)


class ValidationIssue(BaseModel):
    key: str
    reason: str


class IngestAccepted(BaseModel):
    """Acceptance record handed to the sink after a frame passes every gate."""

    model_config = ConfigDict(protected_namespaces=())

    device_id: str
    model_id: str
    model_name: str
    model_version: str
    observed_at: str
    accepted_keys: int
    server_time: datetime
    data: Dict[str, Scalar] = Field(default_factory=dict)
