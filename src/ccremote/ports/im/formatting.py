"""Text and keyboard helpers for Telegram messages.

Telegram "Markdown" (v1) only needs `_ * ` [` escaped; HTML needs `& < >`.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Sequence

from .callbacks import NewProjectCallback, OptionCallback, OptionSubmitCallback, PermissionCallback

Button = Dict[str, str]
Keyboard = Dict[str, List[List[Button]]]

_MD_SPECIAL_RE = re.compile(r"([_*`\[])")
_TAG_RE = re.compile(r"<[^>]+>")


def escape_markdown(text: str) -> str:
    return _MD_SPECIAL_RE.sub(r"\\\1", text or "")


def escape_html(text: str) -> str:
    return (text or "").replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def strip_html(text: str) -> str:
    return _TAG_RE.sub("", text or "")


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: max(0, limit - 3)] + "..."


def markdown_to_html(text: str) -> str:
    """Best-effort conversion of assistant Markdown to Telegram HTML."""
    html = escape_html(text)
    html = re.sub(r"```(\w*)\n([\s\S]*?)```", lambda m: f"<pre>{m.group(2).strip()}</pre>", html)
    html = re.sub(r"`([^`]+)`", r"<code>\1</code>", html)
    html = re.sub(r"\*\*(.+?)\*\*", r"<b>\1</b>", html)
    html = re.sub(r"\*(.+?)\*", r"<i>\1</i>", html)
    html = re.sub(r"^[-*]\s+", "• ", html, flags=re.MULTILINE)
    html = re.sub(r"^#{1,6}\s+", "", html, flags=re.MULTILINE)
    return html


def format_tool_description(tool_name: str, tool_input: Dict[str, Any]) -> str:
    """One or two Markdown lines describing what a tool call is about to do."""
    if tool_name == "Bash" and tool_input.get("command"):
        cmd = truncate(str(tool_input["command"]), 500)
        return f"*Command:* `{escape_markdown(cmd)}`"
    if tool_name == "Edit" and tool_input.get("file_path"):
        file_path = escape_markdown(str(tool_input["file_path"]))
        old, new = tool_input.get("old_string"), tool_input.get("new_string")
        if old and new:
            return f"*File:* `{file_path}`\n```\n{_diff_lines(str(old), '-')}\n{_diff_lines(str(new), '+')}\n```"
        return f"*File:* `{file_path}`"
    if tool_name in ("Write", "Read") and tool_input.get("file_path"):
        return f"*File:* `{escape_markdown(str(tool_input['file_path']))}`"
    if tool_input:
        key = next(iter(tool_input))
        val = str(tool_input[key])[:200]
        return f"*{escape_markdown(key)}:* `{escape_markdown(val)}`"
    return ""


def _diff_lines(text: str, marker: str, max_lines: int = 12) -> str:
    lines = text.split("\n")
    out = "\n".join(f"{marker} {ln}" for ln in lines[:max_lines])
    if len(lines) > max_lines:
        out += "\n  ..."
    return out


def rows(buttons: Sequence[Button], per_row: int = 2) -> List[List[Button]]:
    return [list(buttons[i : i + per_row]) for i in range(0, len(buttons), per_row)]


def project_keyboard(names: Sequence[str], limit: int = 10) -> Keyboard:
    buttons = [{"text": n, "callback_data": NewProjectCallback(project=n).encode()} for n in list(names)[:limit]]
    return {"inline_keyboard": rows(buttons)}


def permission_keyboard(prompt_id: str) -> Keyboard:
    return {
        "inline_keyboard": [
            [
                {"text": "✅ Allow", "callback_data": PermissionCallback(prompt_id, "allow").encode()},
                {"text": "❌ Deny", "callback_data": PermissionCallback(prompt_id, "deny").encode()},
                {"text": "🔓 Always", "callback_data": PermissionCallback(prompt_id, "always").encode()},
            ]
        ]
    }


def plan_keyboard(prompt_id: str) -> Keyboard:
    return {
        "inline_keyboard": [
            [
                {"text": "✅ Approve", "callback_data": PermissionCallback(prompt_id, "allow").encode()},
                {"text": "❌ Reject", "callback_data": PermissionCallback(prompt_id, "deny").encode()},
            ]
        ]
    }


def option_keyboard(prompt_id: str, options: Sequence[str], *, multi_select: bool = False, selected: Sequence[bool] = ()) -> Keyboard:
    """Numbered option buttons, two per row; multi-select adds checkboxes and Submit."""
    buttons: List[Button] = []
    for idx, label in enumerate(options):
        prefix = ""
        if multi_select:
            checked = idx < len(selected) and bool(selected[idx])
            prefix = "☑ " if checked else "☐ "
        buttons.append({"text": f"{prefix}{idx + 1}. {label}", "callback_data": OptionCallback(prompt_id, idx).encode()})
    keyboard = rows(buttons)
    if multi_select:
        keyboard.append([{"text": "✅ Submit", "callback_data": OptionSubmitCallback(prompt_id).encode()}])
    return {"inline_keyboard": keyboard}
