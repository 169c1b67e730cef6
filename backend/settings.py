"""
Centralized runtime configuration for the ingest gateway.

Values come from the process environment, with a local `.env` picked up
by `python-dotenv` for development runs. The service, app factory and
ops script read the module-level `settings`; tests build their own
`Settings(...)` and hand it to `create_app()`.

Environment variables used:
- `HOST` / `PORT`: bind address used when running `main.py` directly.
- `MAX_BODY_BYTES`: largest accepted ingest body (default 256 KiB).
- `ALLOWED_SKEW_MS`: how far in the past `X-Timestamp` may lie.
- `ALLOWED_FUTURE_SKEW_MS`: how far in the future it may lie
  (defaults to `ALLOWED_SKEW_MS`, i.e. a symmetric window).
- `REGISTRY_FILE`: optional JSON file replacing the built-in catalog.
- `LOG_LEVEL`: root log level.

Example `.env`:
PORT=3000
ALLOWED_SKEW_MS=120000
REGISTRY_FILE=./registry.json

"""

from typing import Optional
import os

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()

# Frame layout version accepted by /v1/ingest.
SCHEMA_VERSION = 1


def _optional_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    return int(raw)


class Settings(BaseModel):
    """Typed settings container.

    All downstream code should import `settings` from this module. Use
    these attributes (not os.getenv) so tests can build their own
    `Settings(...)` and pass it to `create_app()`.
    """

    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "3000"))
    max_body_bytes: int = int(os.getenv("MAX_BODY_BYTES", str(256 * 1024)))
    allowed_skew_ms: int = int(os.getenv("ALLOWED_SKEW_MS", "120000"))
    allowed_future_skew_ms: Optional[int] = _optional_int("ALLOWED_FUTURE_SKEW_MS")
    registry_file: Optional[str] = os.getenv("REGISTRY_FILE") or None
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    @property
    def future_skew_ms(self) -> int:
        """Upper bound for timestamps ahead of the server clock."""

        if self.allowed_future_skew_ms is None:
            return self.allowed_skew_ms
        return self.allowed_future_skew_ms


settings = Settings()
