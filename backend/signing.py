"""
Request signing shared by the gateway and device clients.

Canonical tag:

    base64(HMAC-SHA256(secret, "<timestamp>.<sha256hex(raw_body)>"))

The body is hashed first so the HMAC input has a fixed size, and the
timestamp and body are bound together in one tag. `raw_body` is the
exact byte sequence on the wire; never re-serialize parsed JSON before
verifying.
"""

import base64
import hashlib
import hmac
from typing import Dict, Union

Secret = Union[str, bytes]

HEADER_DEVICE_ID = "X-Device-ID"
HEADER_TIMESTAMP = "X-Timestamp"
HEADER_SIGNATURE = "X-Device-Sign"


def _key(secret: Secret) -> bytes:
    return secret if isinstance(secret, bytes) else secret.encode("utf-8")


def sha256_hex(b: bytes) -> str:
    return hashlib.sha256(b).hexdigest()


def expected_tag(secret: Secret, timestamp: str, canonical_body: bytes) -> str:
    """Return the base64 tag a correctly signed request must carry."""

    message = f"{timestamp}.{sha256_hex(canonical_body)}".encode("utf-8")
    digest = hmac.new(_key(secret), message, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify(secret: Secret, timestamp: str, canonical_body: bytes, provided_tag: str) -> bool:
    """Constant-time check of `provided_tag` against the expected tag.

    Length mismatches and undecodable tags are a plain False.
    """

    if not provided_tag:
        return False
    want = expected_tag(secret, timestamp, canonical_body).encode("ascii")
    got = provided_tag.encode("utf-8", errors="replace")
    return hmac.compare_digest(want, got)


def sign_headers(device_id: str, secret: Secret, body: bytes, timestamp_ms: int) -> Dict[str, str]:
    """Build the auth headers a device sends alongside `body`."""

    ts = str(timestamp_ms)
    return {
        HEADER_DEVICE_ID: device_id,
        HEADER_TIMESTAMP: ts,
        HEADER_SIGNATURE: expected_tag(secret, ts, body),
    }
