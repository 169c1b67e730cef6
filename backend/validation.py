"""
Whitelist validation of frame `data` against a device model contract.

`validate_frame` is a pure function: no logging, no registry access,
no request context. It reports every problem it finds so a vendor can
fix all fields in one round trip.
"""

import math
from typing import Any, List, Mapping

from models import DeviceModelContract, FieldRule, ValidationIssue

REASON_NOT_ALLOWED = "key not allowed for this device model"
REASON_MISSING = "missing required key"
REASON_EXPECTED = {
    "number": "type mismatch: expected number (finite)",
    "boolean": "type mismatch: expected boolean",
}


def is_finite_number(v: Any) -> bool:
    # bool is an int subclass; a boolean reading is never a number
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        return False
    try:
        return math.isfinite(float(v))
    except OverflowError:
        # ints beyond the double range are not finite readings
        return False


def matches_type(rule: FieldRule, v: Any) -> bool:
    if rule.type == "number":
        return is_finite_number(v)
    return isinstance(v, bool)


def validate_frame(contract: DeviceModelContract, data: Mapping[str, Any]) -> List[ValidationIssue]:
    """Return all issues for `data`; an empty list means accept.

    Pass 1 checks each submitted key (unknown key, wrong type).
    Pass 2 checks each required rule is present.
    """

    rules = {rule.key: rule for rule in contract.fields}
    issues: List[ValidationIssue] = []

    for key, value in data.items():
        rule = rules.get(key)
        if rule is None:
            issues.append(ValidationIssue(key=key, reason=REASON_NOT_ALLOWED))
        elif not matches_type(rule, value):
            issues.append(ValidationIssue(key=key, reason=REASON_EXPECTED[rule.type]))

    for rule in contract.fields:
        if rule.required and rule.key not in data:
            issues.append(ValidationIssue(key=rule.key, reason=REASON_MISSING))

    return issues
