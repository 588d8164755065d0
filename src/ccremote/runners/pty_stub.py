from __future__ import annotations

from pathlib import Path
from typing import List, Optional

PTY_SUPPORTED = False


class HeadlessTerminalManager:
    """Stand-in used where POSIX PTYs (termios/fcntl) are unavailable.

    Every operation reports failure so callers fall back to tmux or tell the
    user headless mode is unavailable.
    """

    def __init__(self, *, cli_command: str = "claude", log_root: Optional[Path] = None) -> None:
        self.cli_command = cli_command

    def is_available(self) -> bool:
        return False

    def has(self, name: str) -> bool:
        return False

    def spawn(self, name: str, cwd: str, args: Optional[List[str]] = None, *, command: Optional[List[str]] = None) -> bool:
        return False

    def write(self, name: str, data: str) -> bool:
        return False

    def send_key(self, name: str, key: str) -> bool:
        return False

    def capture(self, name: str, lines: int = 100) -> Optional[str]:
        return None

    def interrupt(self, name: str) -> bool:
        return False

    def kill(self, name: str) -> bool:
        return False

    def kill_all(self) -> None:
        return None
