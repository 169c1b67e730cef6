"""
Repository: in-memory device and device-model registries.

Both registries are built once from static configuration (see
`catalog.py`) and injected into `IngestService`. Nothing here touches
disk or network; keep business rules out of this module.

Important notes:
- Contracts and device configs are frozen pydantic models.
- The only mutable field is `DeviceRecord.bound_hardware_sn`, and it is
  only written through `DeviceRepo.bind_or_check`, under the record's
  own lock.
- Bindings are process-lifetime: a restart forgets them.
"""

import enum
import logging
import threading
from typing import Dict, Iterable, List, Optional

from models import DeviceConfig, DeviceModelContract

logger = logging.getLogger(__name__)


class BindOutcome(enum.Enum):
    BOUND = "bound"  # first accepted serial, stored now
    MATCHED = "matched"
    MISMATCH = "mismatch"

    @property
    def ok(self) -> bool:
        return self is not BindOutcome.MISMATCH


class DeviceRecord:
    """A provisioned device plus its hardware-serial binding."""

    def __init__(self, config: DeviceConfig):
        self.config = config
        self._bound_hardware_sn: Optional[str] = None
        self._lock = threading.Lock()

    @property
    def device_id(self) -> str:
        return self.config.device_id

    @property
    def secret(self) -> str:
        return self.config.secret

    @property
    def model_id(self) -> str:
        return self.config.model_id

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    @property
    def bound_hardware_sn(self) -> Optional[str]:
        return self._bound_hardware_sn

    def compare_and_set(self, hardware_sn: str) -> BindOutcome:
        """Bind to `hardware_sn` if unbound, else compare against the binding."""

        with self._lock:
            current = self._bound_hardware_sn
            if current is None:
                self._bound_hardware_sn = hardware_sn
                return BindOutcome.BOUND
            if current == hardware_sn:
                return BindOutcome.MATCHED
            return BindOutcome.MISMATCH

    def __repr__(self) -> str:
        return (
            f"DeviceRecord(device_id={self.device_id!r}, model_id={self.model_id!r}, "
            f"enabled={self.enabled!r}, bound_hardware_sn={self._bound_hardware_sn!r})"
        )


class DeviceModelRepo:
    """Read-only lookup of model contracts by `model_id`."""

    def __init__(self, contracts: Iterable[DeviceModelContract]):
        self._contracts: Dict[str, DeviceModelContract] = {}
        for c in contracts:
            if c.model_id in self._contracts:
                raise ValueError(f"duplicate model id: {c.model_id}")
            self._contracts[c.model_id] = c

    def lookup(self, model_id: str) -> Optional[DeviceModelContract]:
        return self._contracts.get(model_id)

    def all(self) -> List[DeviceModelContract]:
        return list(self._contracts.values())


class DeviceRepo:
    """Device lookup and first-use hardware binding.

    Responsibilities:
    - Map `device_id` -> `DeviceRecord`
    - Atomically bind a record to the first hardware serial it presents
    """

    def __init__(self, configs: Iterable[DeviceConfig]):
        self._records: Dict[str, DeviceRecord] = {}
        for cfg in configs:
            if cfg.device_id in self._records:
                raise ValueError(f"duplicate device id: {cfg.device_id}")
            self._records[cfg.device_id] = DeviceRecord(cfg)

    def lookup(self, device_id: str) -> Optional[DeviceRecord]:
        return self._records.get(device_id)

    def all(self) -> List[DeviceRecord]:
        return list(self._records.values())

    def bind_or_check(self, record: DeviceRecord, hardware_sn: str) -> BindOutcome:
        """Compare-and-set the record's binding.

        Unbound: store `hardware_sn` and return BOUND. Bound: MATCHED when
        equal, else MISMATCH. The record lock covers only the compare-and-set,
        not the rest of the request.
        """

        outcome = record.compare_and_set(hardware_sn)
        if outcome is BindOutcome.BOUND:
            logger.info(f"[BIND] {record.device_id} -> {hardware_sn}")
        return outcome
