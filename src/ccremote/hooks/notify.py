"""Status hooks: Stop, Notification, SessionStart, SessionEnd, SubagentStop.

Usage (assistant CLI hook command):
    ccremote hook notify completed
    ccremote hook notify waiting
    ccremote hook notify session-start
    ccremote hook notify session-end
    ccremote hook notify subagent-done
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from ..contracts.v1 import HookInput
from ..kernel.activity import clear_typing_signal, is_user_active_at_terminal, typing_signal_active
from ..kernel.mailbox import PromptMailbox
from ..kernel.registry import SessionRegistry, extract_workspace_name
from ..kernel.settings import Settings, load_settings
from ..ports.im.formatting import escape_html, markdown_to_html, strip_html, truncate
from ..runners import tmux
from .common import HookNotifier, detect_terminal_handle, make_notifier, read_hook_input, resolve_cwd, setup_hook_logging

logger = logging.getLogger("ccremote.hooks.notify")

MAX_RESPONSE_CHARS = 3500


@dataclass(frozen=True)
class StatusConfig:
    icon: str
    label: str
    upsert_session: bool = True


STATUS_CONFIG: Dict[str, StatusConfig] = {
    "completed": StatusConfig("✅", "Task completed"),
    "waiting": StatusConfig("⏳", "Waiting for input"),
    "session-start": StatusConfig("🟢", "Session started"),
    "session-end": StatusConfig("🔴", "Session ended", upsert_session=False),
    "subagent-done": StatusConfig("🤖", "Subagent finished"),
}


def extract_last_response(transcript_path: str) -> Optional[str]:
    """Text of the newest assistant entry in a transcript JSONL file."""
    try:
        data = Path(transcript_path).read_text(encoding="utf-8").rstrip()
    except OSError:
        return None
    for line in reversed(data.split("\n")):
        try:
            entry = json.loads(line)
        except ValueError:
            continue
        if not isinstance(entry, dict) or entry.get("type") != "assistant":
            continue
        content = (entry.get("message") or {}).get("content")
        if not isinstance(content, list):
            continue
        texts = [str(c.get("text") or "") for c in content if isinstance(c, dict) and c.get("type") == "text"]
        if texts:
            return "\n\n".join(texts)
    return None


def get_response_text(hook_input: HookInput) -> Optional[str]:
    if hook_input.last_assistant_message:
        return hook_input.last_assistant_message
    for path in (hook_input.agent_transcript_path, hook_input.transcript_path):
        if path:
            text = extract_last_response(path)
            if text:
                return text
    return None


def run_notify(
    status: str,
    hook_input: HookInput,
    *,
    settings: Settings,
    notifier: Optional[HookNotifier],
    registry: Optional[SessionRegistry] = None,
    mailbox: Optional[PromptMailbox] = None,
) -> Optional[int]:
    """Returns the id of the message sent, if any."""
    config = STATUS_CONFIG.get(status) or STATUS_CONFIG["waiting"]
    cwd = resolve_cwd(hook_input)
    workspace = extract_workspace_name(cwd)

    if config.upsert_session:
        registry = registry or SessionRegistry.from_settings(settings)
        in_tmux = tmux.current_session() is not None
        try:
            registry.upsert_session(
                cwd=cwd,
                terminal_handle=detect_terminal_handle(cwd),
                status=status,
                session_id=hook_input.session_id or None,
                session_kind="external-multiplexer" if in_tmux else None,
            )
        except OSError as e:
            logger.error(f"failed to update session map: {e}", extra={"workspace": workspace})

    chat_injected = typing_signal_active()
    if not chat_injected and is_user_active_at_terminal(settings.active_threshold_seconds):
        clear_typing_signal()
        return None

    if notifier is None:
        return None

    mailbox = mailbox or PromptMailbox()
    if status == "waiting" and mailbox.has_pending_for_workspace(workspace):
        # The question or permission message already asked for input.
        clear_typing_signal()
        return None

    message = f"{config.icon} {config.label} in <b>{escape_html(workspace)}</b>"
    if status != "session-start":
        response = get_response_text(hook_input)
        if response:
            message += f"\n\n{markdown_to_html(truncate(response, MAX_RESPONSE_CHARS))}"

    clear_typing_signal()

    kind = f"hook-{status}"
    message_id = notifier.send(message, workspace=workspace, kind=kind, parse_mode="HTML")
    if message_id is None:
        message_id = notifier.send(strip_html(message), workspace=workspace, kind=kind, parse_mode=None)
    return message_id


def main(argv: Optional[List[str]] = None) -> int:
    args = list(argv or [])
    status = args[0] if args else "completed"
    settings = load_settings()
    setup_hook_logging(settings)
    hook_input = read_hook_input() or HookInput()
    try:
        run_notify(status, hook_input, settings=settings, notifier=make_notifier(settings))
    except Exception as e:
        logger.exception(f"notify hook failed: {e}")
        return 1
    return 0


if __name__ == "__main__":
    import sys

    raise SystemExit(main(sys.argv[1:]))
