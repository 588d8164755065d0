"""Keystroke plans for answering the assistant's interactive question UI.

The UI opens with the first option highlighted. Multi-select lists end with
an automatically added "Other" entry, followed by the Submit row.
"""

from __future__ import annotations

from typing import List, Sequence


def single_select_keys(index: int) -> List[str]:
    """Move from the first option down to `index` (0-based), then confirm."""
    return ["Down"] * max(0, int(index)) + ["Enter"]


def multi_select_keys(selected: Sequence[bool]) -> List[str]:
    """Toggle each selected option while walking the list, skip "Other", submit."""
    keys: List[str] = []
    for checked in selected:
        if checked:
            keys.append("Space")
        keys.append("Down")
    keys.append("Down")
    keys.append("Enter")
    return keys
