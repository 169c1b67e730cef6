import logging
from datetime import datetime, timezone
from typing import Optional

import uvicorn
from fastapi import FastAPI, Header, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

import catalog
from errors import BadRequest, IngestRejected
from repo_devices import DeviceModelRepo, DeviceRepo
from service_ingest import IngestService, now_ms, log_acceptance
from settings import Settings, settings

logger = logging.getLogger("ingest_gateway")


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, (level or "INFO").upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )


def iso_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def rejection_response(exc: IngestRejected) -> JSONResponse:
    if isinstance(exc, BadRequest) and exc.errors:
        body = {
            "ok": False,
            "serverTime": iso_now(),
            "errors": [e.model_dump() for e in exc.errors],
        }
    else:
        body = {"ok": False, "error": exc.reason}
    return JSONResponse(status_code=exc.status_code, content=body)


def create_app(
    config: Optional[Settings] = None,
    models: Optional[DeviceModelRepo] = None,
    devices: Optional[DeviceRepo] = None,
    clock=now_ms,
    sink=log_acceptance,
) -> FastAPI:
    """Build the gateway app.

    Registries default to `catalog.load_registries(config.registry_file)`.
    Tests pass their own registries, a fixed `clock` and a recording `sink`.
    """

    config = config or settings
    if models is None or devices is None:
        models, devices = catalog.load_registries(config.registry_file)

    app = FastAPI(title="Device Ingest Gateway")

    # The service is built once here and shared by every request; the
    # registries it holds are the only state the gateway keeps.
    svc = IngestService(models, devices, config=config, clock=clock, sink=sink)
    app.state.ingest = svc

    for record in devices.all():
        logger.info(f"[STARTUP] device={record.device_id} model={record.model_id} enabled={record.enabled}")

    @app.get("/healthz")
    def healthz():
        return {"ok": True, "time": iso_now()}

    @app.get("/manifest/{device_id}")
    def manifest(device_id: str):
        try:
            doc = svc.manifest(device_id)
        except IngestRejected as e:
            return rejection_response(e)
        if doc is None:
            return JSONResponse(status_code=404, content={"ok": False, "error": "unknown deviceId"})
        return doc

    @app.post("/v1/ingest")
    @app.post("/api/v1/ingest")
    async def ingest(
        request: Request,
        x_device_id: Optional[str] = Header(default=None, alias="X-Device-ID"),
        x_timestamp: Optional[str] = Header(default=None, alias="X-Timestamp"),
        x_device_sign: Optional[str] = Header(default=None, alias="X-Device-Sign"),
    ):
        too_large = JSONResponse(status_code=413, content={"ok": False, "error": "payload too large"})
        declared = request.headers.get("content-length")
        if declared and declared.isdigit() and int(declared) > config.max_body_bytes:
            return too_large
        raw = await request.body()
        if len(raw) > config.max_body_bytes:
            return too_large

        try:
            accepted = await run_in_threadpool(svc.ingest, x_device_id, x_timestamp, x_device_sign, raw)
        except IngestRejected as e:
            logger.info(f"[REJECT] device={x_device_id} status={e.status_code} reason={e.reason}")
            return rejection_response(e)
        except Exception:
            logger.exception("ingest failed")
            return JSONResponse(status_code=500, content={"ok": False, "error": "internal error"})

        return {
            "ok": True,
            "serverTime": accepted.server_time.isoformat().replace("+00:00", "Z"),
            "acceptedKeys": accepted.accepted_keys,
        }

    return app


setup_logging(settings.log_level)
app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host=settings.host, port=settings.port)
