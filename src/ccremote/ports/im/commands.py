"""
Chat command parser for ccremote.

Parses commands from chat messages, in priority order:
- /help (/start), /sessions
- /status [ws], /stop [ws], /use [ws|clear|none], /compact [ws]
- /new [project]
- /cmd <TOKEN> <command>
- /<workspace> <command>
- /<workspace> (status shortcut)
- anything else is plain text
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple


class CommandType(str, Enum):
    HELP = "help"
    SESSIONS = "sessions"
    STATUS = "status"
    STOP = "stop"
    USE = "use"
    COMPACT = "compact"
    NEW = "new"
    CMD = "cmd"

    # /<workspace> <command> and bare /<workspace>
    WORKSPACE = "workspace"
    WORKSPACE_STATUS = "workspace_status"

    # Telegram bot-suffixed names (/foo@SomeBot ...) are not ours
    IGNORED = "ignored"

    # Not a command - regular message
    MESSAGE = "message"


@dataclass
class ParsedCommand:
    """Result of parsing a chat message."""

    type: CommandType
    text: str  # command text to inject, or the plain message
    target: Optional[str] = None  # workspace, token, or project argument


_OPTIONAL_ARG = {
    CommandType.STATUS: re.compile(r"/status(?:\s+(\S+))?"),
    CommandType.STOP: re.compile(r"/stop(?:\s+(\S+))?"),
    CommandType.USE: re.compile(r"/use(?:\s+(.*))?", re.DOTALL),
    CommandType.COMPACT: re.compile(r"/compact(?:\s+(\S+))?"),
    CommandType.NEW: re.compile(r"/new(?:\s+(.+))?", re.DOTALL),
}
_CMD_RE = re.compile(r"/cmd\s+(\S+)\s+(.+)", re.DOTALL)
_WS_RE = re.compile(r"/(\S+)\s+(.+)", re.DOTALL)
_BARE_RE = re.compile(r"/(\S+)")


def parse_message(text: str) -> ParsedCommand:
    """
    Parse a chat message into a command or a plain message.

    Examples:
        "/status" -> STATUS, target None
        "/app-front run tests" -> WORKSPACE, target "app-front", text "run tests"
        "/app" -> WORKSPACE_STATUS, target "app"
        "hello" -> MESSAGE
    """
    text = (text or "").strip()
    if not text:
        return ParsedCommand(type=CommandType.MESSAGE, text="")

    if text in ("/help", "/start"):
        return ParsedCommand(type=CommandType.HELP, text="")
    if text == "/sessions":
        return ParsedCommand(type=CommandType.SESSIONS, text="")

    for cmd_type, pattern in _OPTIONAL_ARG.items():
        m = pattern.fullmatch(text)
        if m:
            arg = (m.group(1) or "").strip() or None
            return ParsedCommand(type=cmd_type, text="", target=arg)

    m = _CMD_RE.match(text)
    if m:
        return ParsedCommand(type=CommandType.CMD, text=m.group(2), target=m.group(1))

    m = _WS_RE.match(text)
    if m:
        if "@" in m.group(1):
            return ParsedCommand(type=CommandType.IGNORED, text=text)
        return ParsedCommand(type=CommandType.WORKSPACE, text=m.group(2), target=m.group(1))

    m = _BARE_RE.fullmatch(text)
    if m:
        if "@" in m.group(1):
            return ParsedCommand(type=CommandType.IGNORED, text=text)
        return ParsedCommand(type=CommandType.WORKSPACE_STATUS, text=text, target=m.group(1))

    return ParsedCommand(type=CommandType.MESSAGE, text=text)


BOT_COMMANDS: List[Dict[str, str]] = [
    {"command": "new", "description": "Start Claude in a project directory"},
    {"command": "sessions", "description": "List all active Claude sessions"},
    {"command": "use", "description": "Set or show default workspace"},
    {"command": "status", "description": "Show current session output"},
    {"command": "stop", "description": "Interrupt the running prompt"},
    {"command": "compact", "description": "Compact context in the current session"},
    {"command": "help", "description": "Show available commands"},
]


def format_help(default_workspace: Optional[str], escape) -> str:
    """Generate help text; `escape` is the Markdown escaper for workspace names."""
    if default_workspace:
        footer = f"_Default:_ plain text routes to *{escape(default_workspace)}*"
    else:
        footer = "_Tip:_ Use `/use <workspace>` to send plain text without a prefix"
    return "\n".join(
        [
            "*Claude Remote Control*",
            "",
            "`/<workspace> <command>` - Send command to workspace",
            "`/use <workspace>` - Set default workspace",
            "`/use` - Show current default",
            "`/use clear` - Clear default",
            "`/compact [workspace]` - Compact context in workspace",
            "`/new [project]` - Start Claude in a project (shows recent if no arg)",
            "`/sessions` - List active sessions",
            "`/status [workspace]` - Show session output",
            "`/stop [workspace]` - Interrupt running prompt",
            "`/cmd <TOKEN> <command>` - Token-based fallback",
            "`/help` - This message",
            "",
            "_Prefix matching:_ `/ass hello` matches `assistant`",
            "_Reply-to:_ Reply to any notification to route to that workspace",
            footer,
        ]
    )


def format_sessions(rows: Sequence[Tuple[str, str, str]], default_workspace: Optional[str], escape) -> str:
    """Format the session list; each row is (icon, workspace, age)."""
    if not rows:
        return "No active sessions."
    lines = [f"{icon} *{escape(ws)}* ({age})" for icon, ws, age in rows]
    footer = ""
    if default_workspace:
        footer = f"\n\n_Default workspace:_ *{escape(default_workspace)}*"
    return "*Active Sessions*\n\n" + "\n".join(lines) + footer
