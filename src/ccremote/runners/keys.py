from __future__ import annotations

from typing import Dict

# tmux-style key names -> raw bytes for a PTY master.
KEY_SEQUENCES: Dict[str, str] = {
    "Down": "\x1b[B",
    "Up": "\x1b[A",
    "Enter": "\r",
    "C-m": "\r",
    "C-c": "\x03",
    "C-u": "\x15",
    "Space": " ",
}

INTERRUPT = KEY_SEQUENCES["C-c"]
CLEAR_LINE = KEY_SEQUENCES["C-u"]


def key_sequence(key: str) -> str:
    """Raw sequence for a named key; unknown names pass through verbatim."""
    return KEY_SEQUENCES.get(key, key)
