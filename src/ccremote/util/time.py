from __future__ import annotations

import time


def now_seconds() -> int:
    return int(time.time())


def format_age(seconds: float) -> str:
    """Compact relative age: "42s ago", "5m ago", "3h ago", "2d ago"."""
    s = max(0, int(seconds))
    if s < 60:
        return f"{s}s ago"
    if s < 3600:
        return f"{s // 60}m ago"
    if s < 86400:
        return f"{s // 3600}h ago"
    return f"{s // 86400}d ago"
