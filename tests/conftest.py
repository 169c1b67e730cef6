import json

import pytest
from fastapi.testclient import TestClient

import catalog
from main import create_app
from settings import Settings
from signing import sign_headers

NOW_MS = 1_757_567_400_000  # 2025-09-11T05:10:00Z


def encode(frame) -> bytes:
    return json.dumps(frame, separators=(",", ":")).encode("utf-8")


def make_frame(hardware_sn="MB-SN-FLOW-001", data=None, **overrides):
    frame = {
        "schemaVersion": 1,
        "hardwareSN": hardware_sn,
        "observedAt": "2025-09-11T05:10:00.000Z",
        "data": {"flow.rate.lpm": 42.3} if data is None else data,
    }
    frame.update(overrides)
    return frame


class Recorder:
    def __init__(self):
        self.records = []

    def __call__(self, rec):
        self.records.append(rec)


@pytest.fixture
def registries():
    return catalog.build_registries(catalog.DEVICE_MODELS, catalog.DEVICES)


@pytest.fixture
def sink():
    return Recorder()


@pytest.fixture
def test_client(registries, sink):
    models, devices = registries
    app = create_app(
        config=Settings(allowed_skew_ms=120_000, allowed_future_skew_ms=None, registry_file=None),
        models=models,
        devices=devices,
        clock=lambda: NOW_MS,
        sink=sink,
    )
    return TestClient(app)


@pytest.fixture
def post_frame(test_client):
    """Sign and POST a frame the way a device does."""

    secrets = {d["deviceId"]: d["secret"] for d in catalog.DEVICES}

    def _post(device_id, frame, ts=NOW_MS, secret=None, raw=None, path="/v1/ingest", headers=None):
        body = raw if raw is not None else encode(frame)
        hdrs = sign_headers(device_id, secret or secrets.get(device_id, "x"), body, ts)
        hdrs["Content-Type"] = "application/json"
        if headers:
            hdrs.update(headers)
        return test_client.post(path, content=body, headers=hdrs)

    return _post
