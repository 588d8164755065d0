from __future__ import annotations

import os
from pathlib import Path


def ccremote_home() -> Path:
    env = os.environ.get("CCREMOTE_HOME", "").strip()
    if env:
        return Path(env).expanduser().resolve()
    return (Path.home() / ".ccremote").resolve()


def ensure_home() -> Path:
    home = ccremote_home()
    home.mkdir(parents=True, exist_ok=True)
    return home


def data_dir() -> Path:
    """Persisted registry documents (session map, history, routing state)."""
    p = ensure_home() / "data"
    p.mkdir(parents=True, exist_ok=True)
    return p


def state_dir() -> Path:
    """Volatile side-channel files (typing signal, terminal activity, locks)."""
    p = ensure_home() / "state"
    p.mkdir(parents=True, exist_ok=True)
    return p


def logs_dir() -> Path:
    p = ensure_home() / "logs"
    p.mkdir(parents=True, exist_ok=True)
    return p


def prompts_dir() -> Path:
    env = os.environ.get("CCREMOTE_PROMPTS_DIR", "").strip()
    p = Path(env).expanduser() if env else ensure_home() / "prompts"
    p.mkdir(parents=True, exist_ok=True)
    return p
