from __future__ import annotations

import threading
from collections import deque
from typing import Deque, Optional

from ..util.terminal_text import split_lines, strip_ansi

DEFAULT_MAX_LINES = 100


class OutputBuffer:
    """Decoded tail of a terminal's output, as logical lines.

    The last line is kept open: the next chunk's text up to its first newline
    is appended to it rather than starting a new line.
    """

    def __init__(self, max_lines: int = DEFAULT_MAX_LINES) -> None:
        self._max_lines = max(1, int(max_lines))
        self._lines: Deque[str] = deque(maxlen=self._max_lines)
        self._lock = threading.Lock()

    def feed(self, text: str) -> None:
        parts = split_lines(strip_ansi(text))
        with self._lock:
            if self._lines:
                self._lines[-1] += parts[0]
            else:
                self._lines.append(parts[0])
            for part in parts[1:]:
                self._lines.append(part)

    def tail(self, count: Optional[int] = None) -> str:
        with self._lock:
            lines = list(self._lines)
        n = self._max_lines if count is None else int(count)
        if n <= 0:
            return ""
        return "\n".join(lines[-n:])

    def __len__(self) -> int:
        with self._lock:
            return len(self._lines)
