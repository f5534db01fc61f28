# portfolio_engine/domain/references.py
from __future__ import annotations

import re
import secrets
import string
import time
from typing import Optional

_ALPHABET = string.ascii_uppercase + string.digits

MAINTENANCE_PREFIX = "MNT"
INSPECTION_PREFIX = "INS"
REPORT_PREFIX = "RPT"
TENANCY_PREFIX = "TEN"
PAYMENT_PREFIX = "PAY"

REFERENCE_RE = re.compile(r"^(?P<prefix>[A-Z]{3})-(?P<millis>\d+)-(?P<suffix>[A-Z0-9]{5})$")


def make_reference(prefix: str, *, now_millis: Optional[int] = None) -> str:
    """<PREFIX>-<unix millis>-<5 uppercase alphanumerics>"""
    millis = int(now_millis) if now_millis is not None else int(time.time() * 1000)
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(5))
    return f"{prefix}-{millis}-{suffix}"


def maintenance_reference() -> str:
    return make_reference(MAINTENANCE_PREFIX)


def inspection_reference() -> str:
    return make_reference(INSPECTION_PREFIX)


def report_reference() -> str:
    return make_reference(REPORT_PREFIX)


def tenancy_reference() -> str:
    return make_reference(TENANCY_PREFIX)


def payment_reference() -> str:
    return make_reference(PAYMENT_PREFIX)


def is_reference(value: str, prefix: Optional[str] = None) -> bool:
    m = REFERENCE_RE.match(value or "")
    if not m:
        return False
    return prefix is None or m.group("prefix") == prefix
