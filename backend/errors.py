"""
Rejection taxonomy for the ingest pipeline.

Every gate in `IngestService.ingest` raises one of these; `main.py`
turns them into the `{ok: false, ...}` JSON envelope. `reason` is the
user-facing text and must never contain key material.

`Forbidden` and `BadRequest` also subclass `PermissionError` and
`ValueError` so generic callers can keep catching the builtin types.
"""

from typing import List, Optional

from models import ValidationIssue


class IngestRejected(Exception):
    """Base class: a frame was refused at some pipeline gate."""

    status_code = 500

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class Unauthenticated(IngestRejected):
    """Auth material missing or not matching (headers, signature)."""

    status_code = 401


class Forbidden(IngestRejected, PermissionError):
    """Identity-level refusal: unknown/disabled device, serial mismatch."""

    status_code = 403


class BadRequest(IngestRejected, ValueError):
    """Content-level refusal. `errors` is set for schema violations."""

    status_code = 400

    def __init__(self, reason: str, errors: Optional[List[ValidationIssue]] = None):
        super().__init__(reason)
        self.errors = list(errors or [])


class Internal(IngestRejected):
    """Server misconfiguration, e.g. a device pointing at a missing model."""

    status_code = 500
