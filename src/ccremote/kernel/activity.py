"""Side-channel files shared between the bridge and hook processes.

typing-active      exists while a chat-injected command is in flight; the
                   bridge creates it, output hooks remove it.
last-prompt-time   Unix seconds of the last prompt typed at the terminal.
"""
from __future__ import annotations

import time
from pathlib import Path
from typing import Optional

from ..paths import state_dir
from ..util.fs import atomic_write_text, remove_file

DEFAULT_ACTIVE_THRESHOLD_SECONDS = 300


def typing_signal_path(root: Optional[Path] = None) -> Path:
    return (root if root is not None else state_dir()) / "typing-active"


def last_prompt_path(root: Optional[Path] = None) -> Path:
    return (root if root is not None else state_dir()) / "last-prompt-time"


def write_typing_signal(root: Optional[Path] = None) -> None:
    atomic_write_text(typing_signal_path(root), str(int(time.time())))


def clear_typing_signal(root: Optional[Path] = None) -> bool:
    return remove_file(typing_signal_path(root))


def typing_signal_active(root: Optional[Path] = None) -> bool:
    return typing_signal_path(root).exists()


def record_terminal_prompt(root: Optional[Path] = None) -> None:
    atomic_write_text(last_prompt_path(root), str(int(time.time())))


def is_user_active_at_terminal(
    threshold_seconds: int = DEFAULT_ACTIVE_THRESHOLD_SECONDS,
    root: Optional[Path] = None,
) -> bool:
    """True when a prompt was typed at the terminal within `threshold_seconds`."""
    try:
        last = int(last_prompt_path(root).read_text(encoding="utf-8").strip())
    except (OSError, ValueError):
        return False
    if last <= 0:
        return False
    return (int(time.time()) - last) < int(threshold_seconds)
