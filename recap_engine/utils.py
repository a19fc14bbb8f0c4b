from __future__ import annotations

import math


def to_number(x) -> float:
    """Coerce a stored value to float; anything unusable becomes 0."""
    if x is None or isinstance(x, bool):
        return 0.0
    if isinstance(x, (int, float)):
        val = float(x)
    else:
        s = str(x).strip()
        if not s:
            return 0.0
        try:
            val = float(s)
        except ValueError:
            return 0.0
    if math.isnan(val):
        return 0.0
    return val


def unit_multiplier(x) -> float:
    # Zero, blank and non-numeric units all count as 1
    return to_number(x) or 1.0


def money(amount: float, symbol: str = "") -> str:
    """Whole-unit display amount; halves round away from zero."""
    x = float(amount or 0.0)
    val = int(math.floor(abs(x) + 0.5))
    sign = "-" if x < 0 and val else ""
    return f"{sign}{symbol}{val:,}"


def split(amount: float, share: float) -> float:
    return float(amount or 0.0) * share
