from __future__ import annotations

import json
import logging
import os
import re
import select
import sys
import time
from typing import Any, Dict, Optional, TextIO

from ..contracts.v1 import HookInput
from ..kernel.routing import WorkspaceRouting
from ..kernel.settings import Settings
from ..paths import logs_dir
from ..ports.im.adapters.base import IMAdapter
from ..ports.im.adapters.telegram import TelegramAdapter
from ..runners import tmux
from ..util.obslog import setup_root_json_logging

logger = logging.getLogger("ccremote.hooks")

STDIN_TIMEOUT_SECONDS = 0.5

_HANDLE_UNSAFE_RE = re.compile(r"[.:\s]")


def read_stdin_text(stream: Optional[TextIO] = None, timeout: float = STDIN_TIMEOUT_SECONDS) -> str:
    """Read stdin until EOF, giving up after `timeout` seconds of silence.

    The CLI normally closes stdin right after writing the payload, but a hook
    run by hand must not hang forever.
    """
    stream = stream if stream is not None else sys.stdin
    try:
        fd = stream.fileno()
    except (AttributeError, OSError, ValueError):
        return stream.read()

    chunks = []
    deadline = time.monotonic() + timeout
    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            break
        try:
            ready, _, _ = select.select([fd], [], [], remaining)
        except (OSError, ValueError):
            break
        if not ready:
            break
        chunk = os.read(fd, 65536)
        if not chunk:
            break
        chunks.append(chunk)
    return b"".join(chunks).decode("utf-8", errors="replace")


def parse_hook_input(raw: str) -> Optional[HookInput]:
    try:
        doc = json.loads(raw or "{}")
    except ValueError:
        return None
    if not isinstance(doc, dict):
        return None
    try:
        return HookInput.model_validate(doc)
    except Exception:
        return None


def read_hook_input(stream: Optional[TextIO] = None) -> Optional[HookInput]:
    return parse_hook_input(read_stdin_text(stream))


def resolve_cwd(hook_input: Optional[HookInput]) -> str:
    if hook_input is not None and hook_input.cwd:
        return hook_input.cwd
    return os.environ.get("CLAUDE_CWD") or os.getcwd()


def sanitize_handle(name: str) -> str:
    return _HANDLE_UNSAFE_RE.sub("-", name)


def detect_terminal_handle(cwd: str) -> Optional[str]:
    """tmux session name when running inside tmux, else the sanitized workspace name.

    Headless sessions started from the chat use the sanitized project name as
    their handle, so the fallback reaches them too.
    """
    name = tmux.current_session()
    if name:
        return name
    base = os.path.basename(os.path.normpath(cwd)) if cwd else ""
    return sanitize_handle(base) if base else None


def setup_hook_logging(settings: Settings) -> None:
    # stdout belongs to the hook protocol
    setup_root_json_logging(component="hooks", level=settings.log_level, log_path=logs_dir() / "hooks.log")


class HookNotifier:
    """Sends hook notifications to the configured chat and indexes them for replies."""

    def __init__(self, adapter: IMAdapter, chat_id: str, routing: Optional[WorkspaceRouting] = None) -> None:
        self.adapter = adapter
        self.chat_id = str(chat_id)
        self.routing = routing or WorkspaceRouting()

    def send(
        self,
        text: str,
        *,
        workspace: str,
        kind: str,
        parse_mode: Optional[str] = "Markdown",
        reply_markup: Optional[Dict[str, Any]] = None,
    ) -> Optional[int]:
        message_id = self.adapter.send_message(self.chat_id, text, parse_mode=parse_mode, reply_markup=reply_markup)
        if message_id is None:
            logger.error(f"send failed for {kind}", extra={"workspace": workspace})
            return None
        self.routing.track_notification_message(message_id, workspace, kind)
        return message_id

    def edit(self, message_id: int, text: str, *, parse_mode: Optional[str] = "Markdown") -> bool:
        return self.adapter.edit_message(self.chat_id, message_id, text, parse_mode=parse_mode)


def make_notifier(settings: Settings, *, require_enabled: bool = True) -> Optional[HookNotifier]:
    """None when Telegram is disabled or credentials are missing."""
    if require_enabled and not settings.telegram_enabled:
        return None
    if settings.missing_credentials():
        return None
    return HookNotifier(TelegramAdapter(token=settings.telegram_bot_token), settings.telegram_chat_id)
