"""
Shared type helpers for the Sentinel City handlers and scoring code.
"""

import math
import random
import string
import time
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP


def safe_float(val, default=0.0):
    """
    Coerce a request/document value to float.
    None, blank or non-numeric strings, NaN and infinities fall back to `default`.
    """
    if val is None or isinstance(val, (list, dict)):
        return default
    if isinstance(val, bool):
        return float(val)
    try:
        out = float(str(val).strip())
    except Exception:
        return default
    if not math.isfinite(out):
        return default
    return out


def round_half_up(value, places=0):
    """Round half away from zero, the way dashboards display numbers."""
    quantum = Decimal(1).scaleb(-places)
    rounded = Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    return int(rounded) if places == 0 else float(rounded)


def utc_now_iso():
    return datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')


def _base36(n):
    digits = string.digits + string.ascii_lowercase
    out = ''
    while n:
        n, r = divmod(n, 36)
        out = digits[r] + out
    return out or '0'


def generate_id():
    """Time-ordered opaque id: base36 millis + 6 random chars."""
    millis = int(time.time() * 1000)
    suffix = ''.join(random.choices(string.digits + string.ascii_lowercase, k=6))
    return _base36(millis) + suffix
