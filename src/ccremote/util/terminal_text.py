from __future__ import annotations

import re
from typing import List

# CSI sequences (cursor movement, colors), OSC sequences (titles, hyperlinks),
# charset designations, and stray C0 controls other than \t \n \r.
_CSI_RE = re.compile(r"\x1b\[[0-9;?]*[a-zA-Z]")
_OSC_RE = re.compile(r"\x1b\][^\x07]*\x07")
_CHARSET_RE = re.compile(r"\x1b[()][AB012]")
_CTRL_RE = re.compile(r"[\x00-\x08\x0b-\x0c\x0e-\x1f\x7f]")

_LINE_SPLIT_RE = re.compile(r"\r?\n")

# Pane noise around a plan: braille spinner frames, activity banners, status lines.
_SPINNER_RE = re.compile("^[⠋⠙⠹⠸⠼⠴⠦⠧⠇⠏]")
_ACTIVITY_RE = re.compile(r"^(Clauding|Working|Waiting|Processing)", re.IGNORECASE)
_STATUSLINE_RE = re.compile(r"^.+\|.+\|.+\|.+\$")


def strip_ansi(text: str) -> str:
    t = _CSI_RE.sub("", text or "")
    t = _OSC_RE.sub("", t)
    t = _CHARSET_RE.sub("", t)
    return _CTRL_RE.sub("", t)


def split_lines(text: str) -> List[str]:
    return _LINE_SPLIT_RE.split(text or "")


def tail_lines(text: str, count: int) -> str:
    if count <= 0:
        return ""
    lines = (text or "").rstrip("\n").split("\n")
    return "\n".join(lines[-count:])


def clean_plan_output(raw: str) -> str:
    """Reduce a captured terminal pane to the plan text the user should read."""
    lines = [_OSC_RE.sub("", _CSI_RE.sub("", ln)) for ln in (raw or "").split("\n")]
    kept: List[str] = []
    for line in lines:
        t = line.strip()
        if t and (_SPINNER_RE.match(t) or _ACTIVITY_RE.match(t) or _STATUSLINE_RE.match(t)):
            continue
        kept.append(line)
    return "\n".join(kept).strip()
