from __future__ import annotations

import math
from typing import Any

_TRUE = {"1", "true", "yes", "y", "on"}
_FALSE = {"0", "false", "no", "n", "off"}


def coerce_bool(value: Any, *, default: bool = False) -> bool:
    """Coerce a loosely-typed value into a boolean.

    Used for settings.yaml and environment values where booleans arrive as
    strings like "false"/"0". Unknown strings fall back to `default` so that
    bool("false") never reads as True.
    """
    if value is None:
        return bool(default)
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, float):
        if math.isnan(value):
            return bool(default)
        return value != 0.0
    if isinstance(value, str):
        s = value.strip().lower()
        if not s:
            return bool(default)
        if s in _TRUE:
            return True
        if s in _FALSE:
            return False
        try:
            return int(s) != 0
        except Exception:
            return bool(default)
    return bool(value)


def coerce_int(value: Any, *, default: int = 0) -> int:
    if value is None or isinstance(value, bool):
        return int(default)
    try:
        return int(str(value).strip())
    except Exception:
        try:
            f = float(str(value).strip())
        except Exception:
            return int(default)
        if math.isnan(f):
            return int(default)
        return int(f)


def split_csv(value: Any) -> list[str]:
    if isinstance(value, (list, tuple)):
        items = [str(x) for x in value]
    else:
        items = str(value or "").split(",")
    return [s.strip() for s in items if s and s.strip()]
