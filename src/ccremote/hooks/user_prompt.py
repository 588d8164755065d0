"""UserPromptSubmit hook: remembers that someone is typing at the terminal."""
from __future__ import annotations

from typing import List, Optional

from ..kernel.activity import record_terminal_prompt
from .common import read_stdin_text


def main(argv: Optional[List[str]] = None) -> int:
    read_stdin_text()
    record_terminal_prompt()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
