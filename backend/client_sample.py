"""
Sample device client: builds a random frame for a board type, signs it
and POSTs it to the gateway. Vendors use it to check their secret and
hardware serial before flashing firmware.

Usage:
    python client_sample.py <BASE_URL> <BOARD_TYPE> <DEVICE_ID> <SECRET> <HW_SN>

    PERIOD_SECS=2 python client_sample.py http://localhost:3000 flow-board dev-flow-001 FLw_7nQm2Zt9bH6cJ4Vr MB-SN-FLOW-001

Environment:
- `PERIOD_SECS`: send every N seconds instead of once.
- `INGEST_PATH`: endpoint path, default `/v1/ingest`.
"""

import json
import os
import random
import sys
import time
from datetime import datetime, timezone

import requests

from settings import SCHEMA_VERSION
from signing import sign_headers

API_TIMEOUT_SECONDS = 10

# Field generators per board type; `scale` is the number of decimals.
BOARD_SCHEMAS = {
    "rack-coolant-board": [
        {"key": "water.temp1.c", "type": "number", "min": 18, "max": 32, "scale": 1},
        {"key": "water.temp2.c", "type": "number", "min": 18, "max": 32, "scale": 1},
        {"key": "water.temp3.c", "type": "number", "min": 18, "max": 32, "scale": 1},
    ],
    "rack-room-board": [
        {"key": "room.temp.c", "type": "number", "min": 18, "max": 27, "scale": 1},
        {"key": "room.humi.pct", "type": "number", "min": 20, "max": 60, "scale": 1},
        {"key": "tank.level.ok", "type": "boolean", "true_prob": 1.0},
    ],
    "flow-board": [
        {"key": "flow.rate.lpm", "type": "number", "min": 0, "max": 100, "scale": 1},
    ],
    "voltage-board": [
        {"key": "psu.v1.v", "type": "number", "min": 0, "max": 24, "scale": 2},
        {"key": "psu.v2.v", "type": "number", "min": 0, "max": 24, "scale": 2},
    ],
}


def build_data(board_type: str, rng: random.Random = random) -> dict:
    data = {}
    for field in BOARD_SCHEMAS[board_type]:
        if field["type"] == "number":
            v = rng.uniform(field["min"], field["max"])
            data[field["key"]] = round(v, field.get("scale", 0))
        elif field["type"] == "boolean":
            data[field["key"]] = rng.random() < field.get("true_prob", 0.5)
    return data


def build_frame(board_type: str, hardware_sn: str) -> dict:
    return {
        "schemaVersion": SCHEMA_VERSION,
        "hardwareSN": hardware_sn,
        "observedAt": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "data": build_data(board_type),
    }


def encode_frame(frame: dict) -> bytes:
    """Serialize once; these exact bytes are both signed and sent."""

    return json.dumps(frame, separators=(",", ":")).encode("utf-8")


def send_once(session: requests.Session, url: str, board_type: str, device_id: str, secret: str, hardware_sn: str) -> int:
    raw = encode_frame(build_frame(board_type, hardware_sn))
    headers = sign_headers(device_id, secret, raw, time.time_ns() // 1_000_000)
    headers["Content-Type"] = "application/json"
    stamp = datetime.now(timezone.utc).isoformat()
    try:
        resp = session.post(url, data=raw, headers=headers, timeout=API_TIMEOUT_SECONDS)
    except requests.RequestException as exc:
        print(f"[{stamp}] ERROR {exc}")
        return 0
    print(f"[{stamp}] STATUS {resp.status_code}")
    if resp.text:
        print(resp.text)
    return resp.status_code


def main(argv: list) -> int:
    if len(argv) != 6:
        print("Usage: python client_sample.py <BASE_URL> <BOARD_TYPE> <DEVICE_ID> <SECRET> <HW_SN>")
        print(f"BOARD_TYPE: {' | '.join(BOARD_SCHEMAS)}")
        print("Option: PERIOD_SECS=<n> for periodic sending")
        return 1

    base, board_type, device_id, secret, hardware_sn = argv[1:]
    if board_type not in BOARD_SCHEMAS:
        print(f"Unknown BOARD_TYPE: {board_type}\nValid: {', '.join(BOARD_SCHEMAS)}")
        return 1

    url = base.rstrip("/") + os.getenv("INGEST_PATH", "/v1/ingest")
    try:
        period = float(os.getenv("PERIOD_SECS", "") or 0)
    except ValueError:
        period = 0

    session = requests.Session()
    if period <= 0:
        status = send_once(session, url, board_type, device_id, secret, hardware_sn)
        return 0 if status == 200 else 2

    print(f"Start periodic sending every {period}s, BOARD_TYPE={board_type}, DEVICE_ID={device_id}")
    try:
        while True:
            send_once(session, url, board_type, device_id, secret, hardware_sn)
            time.sleep(period)
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))
