"""
Base class for chat transport adapters.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional


class TransportError(RuntimeError):
    """The chat platform could not be reached or rejected the call."""


class IMAdapter(ABC):
    """
    Abstract base class for chat transport adapters.

    Each adapter handles:
    - Connecting to the platform
    - Receiving inbound events (messages and button presses)
    - Sending and editing messages, with optional inline buttons
    - Presence indicators
    """

    platform: str = "unknown"

    @abstractmethod
    def connect(self) -> bool:
        """
        Initialize connection to the platform.
        Returns True if successful.
        """
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the platform."""
        pass

    @abstractmethod
    def poll(self) -> List[Dict[str, Any]]:
        """
        Block until the next batch of inbound events (or the poll timeout).

        Each event dict has `kind` ("message" or "callback") and `chat_id`.
        Messages carry `text`, `message_id`, `reply_to_message_id`;
        callbacks carry `callback_id`, `data`, `message_id`, `message_text`.

        Raises TransportError when the platform call fails.
        """
        pass

    @abstractmethod
    def send_message(
        self,
        chat_id: str,
        text: str,
        *,
        parse_mode: Optional[str] = None,
        reply_markup: Optional[Dict[str, Any]] = None,
    ) -> Optional[int]:
        """
        Send a message to a chat.
        Returns the platform message id, or None on failure.
        """
        pass

    @abstractmethod
    def edit_message(
        self,
        chat_id: str,
        message_id: int,
        text: str,
        *,
        parse_mode: Optional[str] = None,
        reply_markup: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Replace the text (and buttons) of a message we sent."""
        pass

    @abstractmethod
    def answer_callback(self, callback_id: str, text: str = "") -> bool:
        """Acknowledge a button press, optionally with a short toast."""
        pass

    def send_chat_action(self, chat_id: str, action: str = "typing") -> bool:
        return False

    def set_commands(self, commands: List[Dict[str, str]]) -> bool:
        return False

    def delete_webhook(self) -> bool:
        """Platforms that push updates must be switched to polling first."""
        return True

    def summarize(self, text: str, max_chars: int = 900, max_lines: int = 8) -> str:
        """
        Summarize text for chat display.

        - Normalize newlines
        - Collapse multiple blank lines
        - Limit lines and characters
        """
        if not text:
            return ""

        t = text.replace("\r\n", "\n").replace("\r", "\n").replace("\t", "  ")
        lines = [ln.rstrip() for ln in t.split("\n")]

        while lines and not lines[0].strip():
            lines.pop(0)
        while lines and not lines[-1].strip():
            lines.pop()

        kept = []
        empty_count = 0
        for ln in lines:
            if not ln.strip():
                empty_count += 1
                if empty_count <= 1:
                    kept.append("")
            else:
                empty_count = 0
                kept.append(ln)

        kept = kept[:max_lines]
        out = "\n".join(kept).strip()

        if len(out) > max_chars:
            out = out[: max(0, max_chars - 1)] + "…"

        return out
