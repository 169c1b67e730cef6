import main

from conftest import NOW_MS, encode, make_frame


def test_healthz(test_client):
    resp = test_client.get("/healthz")
    assert resp.status_code == 200
    assert resp.json()["ok"] is True


def test_manifest(test_client):
    resp = test_client.get("/manifest/dev-rack-coolant-001")
    assert resp.status_code == 200
    body = resp.json()
    assert body["deviceId"] == "dev-rack-coolant-001"
    assert body["model"] == "rack-coolant-board"
    assert body["version"] == "v1"
    assert len(body["keys"]) == 6
    assert {"key": "tank.level.ok", "type": "boolean", "required": True} in body["keys"]


def test_manifest_unknown(test_client):
    resp = test_client.get("/manifest/dev-nobody")
    assert resp.status_code == 404
    assert resp.json() == {"ok": False, "error": "unknown deviceId"}


def test_scenario_a_first_frame_accepted(post_frame, sink):
    resp = post_frame("dev-flow-001", make_frame())
    assert resp.status_code == 200
    body = resp.json()
    assert body["ok"] is True
    assert body["acceptedKeys"] == 1
    assert body["serverTime"].endswith("Z")
    assert sink.records[0].device_id == "dev-flow-001"


def test_scenario_b_other_serial_forbidden(post_frame):
    assert post_frame("dev-flow-001", make_frame()).status_code == 200
    resp = post_frame("dev-flow-001", make_frame(hardware_sn="OTHER-SN"))
    assert resp.status_code == 403
    assert resp.json() == {"ok": False, "error": "hardwareSN mismatch"}


def test_scenario_c_schema_errors(post_frame):
    frame = make_frame(hardware_sn="MB-SN-VOLT-001", data={"psu.v1.v": 12.0, "psu.v3.v": 1.0})
    resp = post_frame("dev-voltage-001", frame)
    assert resp.status_code == 400
    body = resp.json()
    assert body["ok"] is False
    assert "serverTime" in body
    assert body["errors"] == [
        {"key": "psu.v3.v", "reason": "key not allowed for this device model"},
        {"key": "psu.v2.v", "reason": "missing required key"},
    ]


def test_scenario_d_stale_timestamp(post_frame):
    resp = post_frame("dev-flow-001", make_frame(), ts=NOW_MS - 200_000)
    assert resp.status_code == 400
    assert resp.json() == {"ok": False, "error": "timestamp skew too large"}


def test_scenario_e_unknown_device(post_frame):
    resp = post_frame("dev-unknown", make_frame())
    assert resp.status_code == 403
    assert resp.json() == {"ok": False, "error": "unknown or disabled device"}


def test_missing_headers(test_client):
    resp = test_client.post("/v1/ingest", content=encode(make_frame()), headers={"X-Device-ID": "dev-flow-001"})
    assert resp.status_code == 401
    assert resp.json() == {"ok": False, "error": "missing auth headers"}


def test_bad_signature(post_frame):
    resp = post_frame("dev-flow-001", make_frame(), secret="wrong-secret")
    assert resp.status_code == 401
    assert resp.json() == {"ok": False, "error": "bad signature"}


def test_error_never_leaks_expected_tag(post_frame):
    resp = post_frame("dev-flow-001", make_frame(), headers={"X-Device-Sign": "AAAA"})
    assert resp.status_code == 401
    assert set(resp.json()) == {"ok", "error"}


def test_invalid_timestamp(post_frame):
    resp = post_frame("dev-flow-001", make_frame(), headers={"X-Timestamp": "soon"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "invalid X-Timestamp"


def test_alternate_path(post_frame):
    resp = post_frame("dev-flow-001", make_frame(), path="/api/v1/ingest")
    assert resp.status_code == 200


def test_rack_board_full_frame(post_frame):
    data = {
        "water.temp1.c": 24.7,
        "water.temp2.c": 24.8,
        "water.temp3.c": 25.1,
        "room.temp.c": 23.9,
        "room.humi.pct": 42.0,
        "tank.level.ok": True,
    }
    resp = post_frame("dev-rack-coolant-001", make_frame(hardware_sn="MB-SN-COOLANT-001", data=data))
    assert resp.status_code == 200
    assert resp.json()["acceptedKeys"] == 6


def test_boolean_where_number_expected(post_frame):
    resp = post_frame("dev-flow-001", make_frame(data={"flow.rate.lpm": True}))
    assert resp.status_code == 400
    assert resp.json()["errors"] == [
        {"key": "flow.rate.lpm", "reason": "type mismatch: expected number (finite)"}
    ]


def test_payload_too_large(post_frame):
    big = make_frame(hardware_sn="X" * (300 * 1024))
    resp = post_frame("dev-flow-001", big)
    assert resp.status_code == 413
    assert resp.json() == {"ok": False, "error": "payload too large"}


def test_unexpected_failure_is_500(test_client, post_frame, monkeypatch):
    def boom(*a, **kw):
        raise RuntimeError("sink down")

    monkeypatch.setattr(test_client.app.state.ingest, "sink", boom)
    resp = post_frame("dev-flow-001", make_frame())
    assert resp.status_code == 500
    assert resp.json() == {"ok": False, "error": "internal error"}


def test_deeply_nested_body_is_400(post_frame):
    raw = b'{"schemaVersion":1,"hardwareSN":"SN","observedAt":"2025-09-11T05:10:00Z","data":{"a":' + b"[" * 100_000
    resp = post_frame("dev-flow-001", None, raw=raw)
    assert resp.status_code == 400
    assert resp.json() == {"ok": False, "error": "body must be a JSON object"}


def test_whitespace_hardware_sn_accepted(post_frame):
    resp = post_frame("dev-flow-001", make_frame(hardware_sn="   "))
    assert resp.status_code == 200


def test_ingest_runs_in_threadpool(post_frame, monkeypatch):
    calls = []
    real = main.run_in_threadpool

    async def spy(func, *args, **kwargs):
        calls.append(func)
        return await real(func, *args, **kwargs)

    monkeypatch.setattr(main, "run_in_threadpool", spy)
    resp = post_frame("dev-flow-001", make_frame())
    assert resp.status_code == 200
    assert len(calls) == 1
    assert calls[0].__name__ == "ingest"
