"""
ccremote chat bridge port

Remote control of assistant sessions from Telegram.

Architecture:
- Bridge runs as one long-polling process per machine
- Inbound: chat messages -> terminal sessions (tmux or headless PTY)
- Inbound: button presses -> prompt mailbox responses / keystroke replay
- Outbound notifications are sent by hook processes, not by the bridge

Usage:
    ccremote bot
    python -m ccremote.ports.im
"""

from .bridge import RemoteBridge, start_bridge
from .typing_indicator import TypingIndicator

__all__ = ["RemoteBridge", "TypingIndicator", "start_bridge"]
