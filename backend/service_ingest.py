"""
Service / facade layer for frame ingestion.

This module implements the authenticated ingest pipeline. It is free of
HTTP concerns; `main.py` reads headers and the raw body and hands them
to `IngestService.ingest`. Every gate raises an `errors.IngestRejected`
subclass and the first failure ends the request, except schema
validation, which reports all offending keys together.

Gates, in order:
1. auth headers present
2. device known and enabled
3. `X-Timestamp` is integer epoch milliseconds
4. timestamp within the allowed skew window
5. signature over the raw body bytes
6. payload shape (schemaVersion, hardwareSN, observedAt, data)
7. hardware serial binding
8. whitelist validation against the device's model contract
9. accept: emit the acceptance record
"""

import json
import logging
import re
import time
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional

import signing
from errors import BadRequest, Forbidden, Internal, Unauthenticated
from models import DeviceModelContract, IngestAccepted, IngestFrame
from repo_devices import DeviceModelRepo, DeviceRecord, DeviceRepo
from settings import SCHEMA_VERSION, Settings, settings as default_settings
from validation import validate_frame

logger = logging.getLogger(__name__)

_EPOCH_MS = re.compile(r"[0-9]{1,16}")


def now_ms() -> int:
    return time.time_ns() // 1_000_000


def log_acceptance(rec: IngestAccepted) -> None:
    """Default sink: nothing is stored, the frame is only logged."""

    logger.info(
        f"[INGEST] device={rec.device_id} model={rec.model_name}@{rec.model_version} "
        f"observedAt={rec.observed_at} keys={rec.accepted_keys}"
    )
    logger.debug(f"[INGEST] data={json.dumps(rec.data, sort_keys=True)}")


def parse_epoch_ms(raw: str) -> Optional[int]:
    """Digits-only epoch milliseconds, or None."""

    raw = raw.strip()
    if not _EPOCH_MS.fullmatch(raw):
        return None
    return int(raw)


def parse_iso8601(raw: str) -> Optional[datetime]:
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        return None


def parse_frame(body: bytes, schema_version: int = SCHEMA_VERSION) -> IngestFrame:
    """Structural checks on the signed body. First failing check wins."""

    try:
        payload = json.loads(body)
    except (UnicodeDecodeError, ValueError, RecursionError):
        raise BadRequest("body must be a JSON object")
    if not isinstance(payload, dict):
        raise BadRequest("body must be a JSON object")

    version = payload.get("schemaVersion")
    if isinstance(version, bool) or not isinstance(version, (int, float)) or version != schema_version:
        raise BadRequest("schemaVersion mismatch")

    hardware_sn = payload.get("hardwareSN")
    if not isinstance(hardware_sn, str) or not hardware_sn:
        raise BadRequest("hardwareSN required")

    observed_raw = payload.get("observedAt")
    observed_at = parse_iso8601(observed_raw) if isinstance(observed_raw, str) else None
    if observed_at is None:
        raise BadRequest("observedAt must be ISO string")

    data = payload.get("data")
    if not isinstance(data, dict):
        raise BadRequest("data object required")
    if any(isinstance(v, (dict, list)) for v in data.values()):
        raise BadRequest("data must be a flat object")

    # model_construct: the values were checked above and the validator
    # must see them untouched (no int -> float coercion, no bool -> int)
    return IngestFrame.model_construct(
        schema_version=int(version),
        hardware_sn=hardware_sn,
        observed_at=observed_at,
        observed_at_raw=observed_raw,
        data=data,
    )


class IngestService:
    """Authenticated ingest pipeline.

    Example usage:
        models, devices = catalog.load_registries()
        svc = IngestService(models, devices)
        accepted = svc.ingest(device_id, ts_header, sign_header, raw_body)
    """

    def __init__(
        self,
        models: DeviceModelRepo,
        devices: DeviceRepo,
        config: Optional[Settings] = None,
        clock: Callable[[], int] = now_ms,
        sink: Callable[[IngestAccepted], None] = log_acceptance,
    ):
        self.models = models
        self.devices = devices
        self.config = config or default_settings
        self.clock = clock
        self.sink = sink

    def ingest(
        self,
        device_id: Optional[str],
        timestamp: Optional[str],
        signature: Optional[str],
        body: bytes,
    ) -> IngestAccepted:
        """Run every gate for one frame and return the acceptance record.

        Raises:
        - `Unauthenticated` for missing headers or a bad signature
        - `Forbidden` for unknown/disabled devices or a serial mismatch
        - `BadRequest` for timestamp, shape, or schema problems
        - `Internal` when the device's model is not configured
        """

        # 1) auth headers
        if not device_id or not timestamp or not signature:
            raise Unauthenticated("missing auth headers")

        # 2) identity, before any crypto work
        device = self.devices.lookup(device_id)
        if device is None or not device.enabled:
            raise Forbidden("unknown or disabled device")

        # 3-4) replay window
        self._check_freshness(timestamp)

        # 5) signature over the bytes exactly as received
        if not signing.verify(device.secret, timestamp, body, signature):
            raise Unauthenticated("bad signature")

        # 6) structure
        frame = parse_frame(body)

        # 7) first-use binding
        outcome = self.devices.bind_or_check(device, frame.hardware_sn)
        if not outcome.ok:
            raise Forbidden("hardwareSN mismatch")

        # 8) whitelist
        contract = self._contract_for(device)
        issues = validate_frame(contract, frame.data)
        if issues:
            raise BadRequest("validation failed", errors=issues)

        # 9) accept
        accepted = IngestAccepted(
            device_id=device.device_id,
            model_id=contract.model_id,
            model_name=contract.display_name,
            model_version=contract.version,
            observed_at=frame.observed_at_raw,
            accepted_keys=len(frame.data),
            server_time=datetime.now(timezone.utc),
            data=frame.data,
        )
        self.sink(accepted)
        return accepted

    def _check_freshness(self, timestamp: str) -> None:
        client_ts = parse_epoch_ms(timestamp)
        if client_ts is None:
            raise BadRequest("invalid X-Timestamp")

        drift = self.clock() - client_ts
        if drift > self.config.allowed_skew_ms or -drift > self.config.future_skew_ms:
            raise BadRequest("timestamp skew too large")

    def _contract_for(self, device: DeviceRecord) -> DeviceModelContract:
        contract = self.models.lookup(device.model_id)
        if contract is None:
            logger.error(f"device {device.device_id} references missing model {device.model_id}")
            raise Internal("server model missing")
        return contract

    def manifest(self, device_id: str) -> Optional[Mapping[str, Any]]:
        """Public field contract for a device, or None when unknown.

        Raises `Internal` when the device exists but its model does not.
        """

        device = self.devices.lookup(device_id)
        if device is None:
            return None
        contract = self._contract_for(device)
        return {
            "ok": True,
            "deviceId": device.device_id,
            "model": contract.display_name,
            "version": contract.version,
            "keys": [rule.model_dump() for rule in contract.fields],
            "schemaVersion": SCHEMA_VERSION,
        }
