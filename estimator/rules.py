# estimator/rules.py
# Small arithmetic rules shared by every stage.

from __future__ import annotations

import math
import re
from datetime import date, datetime, timezone
from typing import Any

_NUMBER_NOISE = re.compile(r"[\s$,]")

# float noise allowance for tolerance comparisons
_EPSILON = 1e-9


def parse_number(value: Any) -> float | None:
    """Finite float from a number or numeric string, else None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        cleaned = _NUMBER_NOISE.sub("", value)
        if not cleaned:
            return None
        try:
            number = float(cleaned)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def money(x: float, places: int = 2) -> float:
    # stable currency rounding, presentation only
    return round(float(x) + _EPSILON, places)


def within_tolerance(amount: float, tolerance: float) -> bool:
    return amount <= tolerance + _EPSILON


def parse_date(value: Any) -> datetime | None:
    """Naive UTC datetime from an ISO string / date / datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def reference_time(as_of: datetime | None = None) -> datetime:
    """``as_of`` as a naive UTC datetime, or now when not given."""
    if as_of is None:
        return utc_now()
    return parse_date(as_of) or utc_now()
