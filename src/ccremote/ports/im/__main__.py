"""
Entry point for running the chat bridge as a module.

Usage:
    python -m ccremote.ports.im
"""

from __future__ import annotations

from .bridge import start_bridge


def main() -> int:
    try:
        start_bridge()
        return 0
    except SystemExit as e:
        return int(e.code) if e.code is not None else 1
    except Exception as e:
        print(f"[error] {e}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
