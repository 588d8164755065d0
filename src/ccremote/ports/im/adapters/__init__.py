"""
Chat transport adapters.

- Telegram: long-poll getUpdates, inline keyboards
"""

from .base import IMAdapter, TransportError
from .telegram import TelegramAdapter

__all__ = ["IMAdapter", "TelegramAdapter", "TransportError"]
