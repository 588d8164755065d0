"""Chat "typing..." presence while an injected command is running.

The signal file is the shared state: the bridge creates it, output hooks
delete it when the assistant answers. The ticker re-checks the file before
every send so a late tick never re-asserts a stale indicator.
"""
from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import Optional

from ...kernel.activity import clear_typing_signal, typing_signal_active, write_typing_signal
from .adapters.base import IMAdapter

logger = logging.getLogger("ccremote.typing")

TICK_SECONDS = 4.5
CEILING_SECONDS = 5 * 60


class TypingIndicator:
    def __init__(
        self,
        adapter: IMAdapter,
        chat_id: str,
        *,
        state_root: Optional[Path] = None,
        interval: float = TICK_SECONDS,
        ceiling: float = CEILING_SECONDS,
    ) -> None:
        self.adapter = adapter
        self.chat_id = chat_id
        self.state_root = state_root
        self.interval = float(interval)
        self.ceiling = float(ceiling)
        self._lock = threading.Lock()
        self._stop_event: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        t = self._thread
        return t is not None and t.is_alive()

    def start(self) -> None:
        self.stop()
        write_typing_signal(self.state_root)
        stop_event = threading.Event()
        t = threading.Thread(target=self._run, args=(stop_event,), name="ccremote-typing", daemon=True)
        with self._lock:
            self._stop_event = stop_event
            self._thread = t
        t.start()

    def stop(self) -> None:
        with self._lock:
            stop_event, self._stop_event = self._stop_event, None
            self._thread = None
        if stop_event is not None:
            stop_event.set()
        clear_typing_signal(self.state_root)

    def tick(self) -> bool:
        """Send one presence ping; False once the signal file is gone."""
        if not typing_signal_active(self.state_root):
            return False
        try:
            self.adapter.send_chat_action(self.chat_id, "typing")
        except Exception as e:
            logger.debug(f"chat action failed: {e}")
        return True

    def _run(self, stop_event: threading.Event) -> None:
        deadline = time.monotonic() + self.ceiling
        while not stop_event.is_set():
            if not self.tick():
                break
            if time.monotonic() >= deadline:
                break
            stop_event.wait(self.interval)
        with self._lock:
            owned = self._stop_event is stop_event
            if owned:
                self._stop_event = None
                self._thread = None
        if owned and not stop_event.is_set() and time.monotonic() >= deadline:
            clear_typing_signal(self.state_root)
