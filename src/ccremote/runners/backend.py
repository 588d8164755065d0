"""Terminal backends behind one capability interface.

A session is reached either through tmux (ExternalMultiplexerSession) or
through a PTY this process owns (HeadlessPtySession). Callers ask the
router for the session variant and then only use TerminalBackend methods.
"""
from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional, Union

from . import tmux
from .keys import CLEAR_LINE, INTERRUPT

logger = logging.getLogger("ccremote.terminal")

KEYSTROKE_PAUSE = 0.15


class TerminalError(RuntimeError):
    """A terminal session was missing or refused input."""


class TerminalBackend(ABC):
    kind: str = "unknown"

    def __init__(self, *, sleep: Callable[[float], None] = time.sleep) -> None:
        self.sleep = sleep

    @abstractmethod
    def exists(self, handle: str) -> bool:
        pass

    @abstractmethod
    def send_key(self, handle: str, key: str) -> None:
        """Send one named key (Down, Enter, C-u, ...). Raises TerminalError."""
        pass

    @abstractmethod
    def send_text(self, handle: str, text: str) -> None:
        """Type literal text without submitting it. Raises TerminalError."""
        pass

    @abstractmethod
    def capture(self, handle: str, lines: int = 100) -> Optional[str]:
        pass

    @abstractmethod
    def start(self, handle: str, cwd: str, cli_command: str) -> None:
        """Start the assistant CLI in a new session named `handle`."""
        pass

    def write_command(self, handle: str, text: str) -> None:
        """Clear the input line, type `text`, submit it."""
        self.send_key(handle, "C-u")
        self.sleep(KEYSTROKE_PAUSE)
        self.send_text(handle, text)
        self.sleep(KEYSTROKE_PAUSE)
        self.send_key(handle, "Enter")

    def interrupt(self, handle: str) -> None:
        self.send_key(handle, "C-c")


class MultiplexerBackend(TerminalBackend):
    kind = "external-multiplexer"

    def available(self) -> bool:
        return tmux.available()

    def exists(self, handle: str) -> bool:
        return tmux.has_session(handle)

    def send_key(self, handle: str, key: str) -> None:
        if not tmux.send_key(handle, key):
            raise TerminalError(f"tmux session '{handle}' not found")

    def send_text(self, handle: str, text: str) -> None:
        if not tmux.send_literal(handle, text):
            raise TerminalError(f"tmux session '{handle}' not found")

    def capture(self, handle: str, lines: int = 100) -> Optional[str]:
        return tmux.capture_pane(handle, lines)

    def start(self, handle: str, cwd: str, cli_command: str) -> None:
        try:
            tmux.new_session(handle, cwd)
        except RuntimeError as e:
            raise TerminalError(str(e)) from e
        self.sleep(0.3)
        self.send_text(handle, cli_command)
        self.send_key(handle, "C-m")


class HeadlessPtyBackend(TerminalBackend):
    kind = "headless-pty"

    def __init__(self, manager, *, sleep: Callable[[float], None] = time.sleep) -> None:
        super().__init__(sleep=sleep)
        self.manager = manager

    def available(self) -> bool:
        return bool(self.manager.is_available())

    def exists(self, handle: str) -> bool:
        return bool(self.manager.has(handle))

    def send_key(self, handle: str, key: str) -> None:
        if not self.manager.send_key(handle, key):
            raise TerminalError(f"headless session '{handle}' not found")

    def send_text(self, handle: str, text: str) -> None:
        if not self.manager.write(handle, text):
            raise TerminalError(f"headless session '{handle}' not found")

    def capture(self, handle: str, lines: int = 100) -> Optional[str]:
        return self.manager.capture(handle, lines)

    def start(self, handle: str, cwd: str, cli_command: str) -> None:
        if not self.manager.spawn(handle, cwd):
            raise TerminalError(f"failed to start headless session '{handle}'")

    def interrupt(self, handle: str) -> None:
        if not self.manager.write(handle, INTERRUPT):
            raise TerminalError(f"headless session '{handle}' not found")

    def write_command(self, handle: str, text: str) -> None:
        if not self.manager.write(handle, CLEAR_LINE):
            raise TerminalError(f"headless session '{handle}' not found")
        self.sleep(KEYSTROKE_PAUSE)
        self.send_text(handle, text)
        self.sleep(KEYSTROKE_PAUSE)
        self.send_key(handle, "Enter")


@dataclass(frozen=True)
class ExternalMultiplexerSession:
    handle: str
    backend: MultiplexerBackend


@dataclass(frozen=True)
class HeadlessPtySession:
    handle: str
    backend: HeadlessPtyBackend


TerminalSession = Union[ExternalMultiplexerSession, HeadlessPtySession]


class TerminalRouter:
    """Picks the backend that can reach a handle.

    A live headless PTY wins; otherwise tmux is used when it is installed.
    """

    def __init__(self, multiplexer: MultiplexerBackend, headless: HeadlessPtyBackend) -> None:
        self.multiplexer = multiplexer
        self.headless = headless
        self._tmux_available: Optional[bool] = None

    def tmux_available(self) -> bool:
        if self._tmux_available is None:
            self._tmux_available = bool(self.multiplexer.available())
        return self._tmux_available

    def session_for(self, handle: Optional[str]) -> Optional[TerminalSession]:
        if not handle:
            return None
        if self.headless.exists(handle):
            return HeadlessPtySession(handle=handle, backend=self.headless)
        if self.tmux_available():
            return ExternalMultiplexerSession(handle=handle, backend=self.multiplexer)
        return None

    def live_session(self, handle: Optional[str]) -> Optional[TerminalSession]:
        """Like session_for, but only when the session is actually running."""
        session = self.session_for(handle)
        if session is None or not session.backend.exists(session.handle):
            return None
        return session
