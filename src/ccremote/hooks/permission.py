"""PermissionRequest hook.

Sends the request to the chat with Allow / Deny / Always buttons (Approve /
Reject for plans), then blocks polling the prompt mailbox until the bridge
writes a response or the timeout passes. Prints exactly one decision
document on stdout unless the chat could not be reached.
"""
from __future__ import annotations

import json
import logging
import sys
import time
from typing import Any, Callable, Dict, List, Optional

from ..contracts.v1 import HookInput, permission_output
from ..kernel.mailbox import PromptMailbox, generate_prompt_id
from ..kernel.registry import extract_workspace_name
from ..kernel.settings import Settings, load_settings
from ..ports.im.formatting import (
    escape_markdown,
    format_tool_description,
    permission_keyboard,
    plan_keyboard,
    truncate,
)
from ..runners import tmux
from ..util.terminal_text import clean_plan_output
from .common import HookNotifier, detect_terminal_handle, make_notifier, read_hook_input, resolve_cwd, setup_hook_logging

logger = logging.getLogger("ccremote.hooks.permission")

POLL_INTERVAL_SECONDS = 0.5
MAX_BODY_CHARS = 2500
PLAN_CAPTURE_LINES = 50

# The interactive question UI handles its own permission; see hooks.question.
PASSTHROUGH_TOOLS = ("AskUserQuestion",)


def build_message(tool_name: str, tool_input: Dict[str, Any], workspace: str, plan_text: str, prompt_id: str):
    """(text, keyboard, kind) for the chat message."""
    ws = escape_markdown(workspace)
    if tool_name == "ExitPlanMode":
        text = f"📋 *Plan Approval* - {ws}"
        if plan_text:
            text += f"\n\n{truncate(plan_text, MAX_BODY_CHARS)}"
        return text, plan_keyboard(prompt_id), "plan"

    text = f"🔐 *Permission* - {ws}\n\n*Tool:* {escape_markdown(tool_name)}"
    description = format_tool_description(tool_name, tool_input)
    if description:
        text += f"\n{truncate(description, MAX_BODY_CHARS)}"
    return text, permission_keyboard(prompt_id), "permission"


def run_permission(
    hook_input: HookInput,
    *,
    settings: Settings,
    notifier: Optional[HookNotifier],
    mailbox: Optional[PromptMailbox] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Optional[Dict[str, Any]]:
    """Returns the decision document to print, or None to stay silent."""
    tool_name = hook_input.tool_name or "Unknown"
    if tool_name in PASSTHROUGH_TOOLS or notifier is None:
        return None

    mailbox = mailbox or PromptMailbox()
    cwd = resolve_cwd(hook_input)
    workspace = extract_workspace_name(cwd)
    handle = detect_terminal_handle(cwd)
    prompt_id = generate_prompt_id()

    plan_text = ""
    if tool_name == "ExitPlanMode":
        session = tmux.current_session()
        if session:
            plan_text = clean_plan_output(tmux.capture_pane(session, PLAN_CAPTURE_LINES) or "")

    text, keyboard, kind = build_message(tool_name, hook_input.tool_input, workspace, plan_text, prompt_id)
    mailbox.write_pending(
        prompt_id,
        {
            "kind": kind,
            "workspace": workspace,
            "tool_name": tool_name,
            "tool_input": hook_input.tool_input,
            "terminal_handle": handle,
        },
    )

    message_id = notifier.send(text, workspace=workspace, kind="permission", reply_markup=keyboard)
    if message_id is None:
        mailbox.clean_prompt(prompt_id)
        return None
    logger.info(f"waiting for {tool_name} decision", extra={"prompt_id": prompt_id, "workspace": workspace})

    try:
        response = mailbox.wait_for_response(
            prompt_id,
            timeout=settings.permission_timeout_seconds,
            interval=POLL_INTERVAL_SECONDS,
            sleep=sleep,
        )
        if response is None:
            logger.warning("timed out, denying", extra={"prompt_id": prompt_id, "workspace": workspace})
            notifier.edit(message_id, f"{text}\n\n- ⏰ Timed out, denied")
            notifier.send(
                f"⏰ Permission request for *{escape_markdown(tool_name)}* in *{escape_markdown(workspace)}* "
                f"timed out after {settings.permission_timeout_seconds}s and was denied.",
                workspace=workspace,
                kind="permission-timeout",
            )
            return permission_output("deny")
        action = str(response.get("action") or "allow")
        logger.info(f"decision {action}", extra={"prompt_id": prompt_id, "workspace": workspace})
        return permission_output("deny" if action == "deny" else "allow")
    finally:
        mailbox.clean_prompt(prompt_id)


def main(argv: Optional[List[str]] = None) -> int:
    settings = load_settings()
    setup_hook_logging(settings)
    hook_input = read_hook_input()
    if hook_input is None:
        return 0
    try:
        output = run_permission(hook_input, settings=settings, notifier=make_notifier(settings, require_enabled=False))
    except Exception as e:
        logger.exception(f"permission hook failed: {e}")
        return 0
    if output is not None:
        sys.stdout.write(json.dumps(output) + "\n")
        sys.stdout.flush()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
