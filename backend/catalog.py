"""
Static device catalog: which board models exist and which devices are
provisioned against them.

The built-in catalog below mirrors the boards handed to vendors. Set
`REGISTRY_FILE` to a JSON file of the same shape to replace it:

    {
      "models": {
        "FLOW_V1": {"name": "flow-board", "version": "v1",
                    "keys": [{"key": "flow.rate.lpm", "type": "number", "required": true}]}
      },
      "devices": [
        {"deviceId": "dev-flow-001", "secret": "...", "model": "FLOW_V1", "enabled": true}
      ]
    }
"""

import json
from typing import Any, Dict, Optional, Tuple

from models import DeviceConfig, DeviceModelContract, FieldRule
from repo_devices import DeviceModelRepo, DeviceRepo


DEVICE_MODELS: Dict[str, Dict[str, Any]] = {
    # 3 coolant temperature probes + room temp/humidity + tank level switch
    "RACK_COOLANT_V1": {
        "name": "rack-coolant-board",
        "version": "v1",
        "keys": [
            {"key": "water.temp1.c", "type": "number", "required": True},
            {"key": "water.temp2.c", "type": "number", "required": True},
            {"key": "water.temp3.c", "type": "number", "required": True},
            {"key": "room.temp.c", "type": "number", "required": True},
            {"key": "room.humi.pct", "type": "number", "required": True},
            {"key": "tank.level.ok", "type": "boolean", "required": True},
        ],
    },
    "FLOW_V1": {
        "name": "flow-board",
        "version": "v1",
        "keys": [
            {"key": "flow.rate.lpm", "type": "number", "required": True},
        ],
    },
    "VOLTAGE_BOARD_V1": {
        "name": "voltage-board",
        "version": "v1",
        "keys": [
            {"key": "psu.v1.v", "type": "number", "required": True},
            {"key": "psu.v2.v", "type": "number", "required": True},
        ],
    },
}

DEVICES = [
    {"deviceId": "dev-rack-coolant-001", "secret": "RKx_2Pq5M4F9gE3yP1Jv", "model": "RACK_COOLANT_V1", "enabled": True},
    {"deviceId": "dev-flow-001", "secret": "FLw_7nQm2Zt9bH6cJ4Vr", "model": "FLOW_V1", "enabled": True},
    # four voltage boards: same model, distinct ids and secrets
    {"deviceId": "dev-voltage-001", "secret": "VOLT_1_aBc123", "model": "VOLTAGE_BOARD_V1", "enabled": True},
    {"deviceId": "dev-voltage-002", "secret": "VOLT_2_dEf456", "model": "VOLTAGE_BOARD_V1", "enabled": True},
    {"deviceId": "dev-voltage-003", "secret": "VOLT_3_gHi789", "model": "VOLTAGE_BOARD_V1", "enabled": True},
    {"deviceId": "dev-voltage-004", "secret": "VOLT_4_jKl012", "model": "VOLTAGE_BOARD_V1", "enabled": True},
]


def build_contract(model_id: str, model_def: Dict[str, Any]) -> DeviceModelContract:
    return DeviceModelContract(
        model_id=model_id,
        display_name=model_def.get("name", model_id),
        version=str(model_def.get("version", "")),
        fields=tuple(FieldRule(**k) for k in model_def.get("keys", [])),
    )


def build_device(entry: Dict[str, Any]) -> DeviceConfig:
    return DeviceConfig(
        device_id=entry["deviceId"],
        secret=entry["secret"],
        model_id=entry["model"],
        enabled=entry.get("enabled", True),
    )


def build_registries(models: Dict[str, Dict[str, Any]], devices) -> Tuple[DeviceModelRepo, DeviceRepo]:
    """Build both registries and check every device points at a known model.

    Raises `ValueError` on any inconsistency (pydantic's `ValidationError`
    is a `ValueError` subclass).
    """

    try:
        model_repo = DeviceModelRepo(build_contract(mid, model_def) for mid, model_def in models.items())
        device_repo = DeviceRepo(build_device(d) for d in devices)
    except KeyError as e:
        raise ValueError(f"device entry missing field: {e}") from e
    except (AttributeError, TypeError) as e:
        raise ValueError(f"malformed registry entry: {e}") from e

    for record in device_repo.all():
        if model_repo.lookup(record.model_id) is None:
            raise ValueError(f"device {record.device_id} references unknown model {record.model_id}")
    return model_repo, device_repo


def load_registries(path: Optional[str] = None) -> Tuple[DeviceModelRepo, DeviceRepo]:
    """Load from `path` when given, else the built-in catalog."""

    if not path:
        return build_registries(DEVICE_MODELS, DEVICES)

    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)
    if not isinstance(raw, dict):
        raise ValueError(f"registry file {path} must hold a JSON object")
    return build_registries(raw.get("models") or {}, raw.get("devices") or [])

