"""PreToolUse hook for AskUserQuestion.

Posts each question to the chat (numbered option buttons, checkboxes plus
Submit for multi-select) and records a pending prompt so the bridge can
replay the chosen answer as keystrokes. Prints nothing: the terminal's own
question UI stays active.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional

from ..contracts.v1 import HookInput
from ..kernel.mailbox import PromptMailbox, generate_prompt_id
from ..kernel.registry import extract_workspace_name
from ..kernel.settings import load_settings
from ..ports.im.formatting import escape_markdown, option_keyboard
from .common import HookNotifier, detect_terminal_handle, make_notifier, read_hook_input, resolve_cwd, setup_hook_logging

logger = logging.getLogger("ccremote.hooks.question")

# The permission message for the same tool call should reach the chat first.
SEND_DELAY_SECONDS = 2.0


def _option_label(opt: Any) -> str:
    if isinstance(opt, dict):
        return str(opt.get("label") or "")
    return str(opt or "")


def _option_line(idx: int, opt: Any) -> str:
    line = f"*{idx + 1}.* {escape_markdown(_option_label(opt))}"
    if isinstance(opt, dict) and opt.get("description"):
        line += f" - _{escape_markdown(str(opt['description']))}_"
    return line


def run_question(
    hook_input: HookInput,
    *,
    notifier: Optional[HookNotifier],
    mailbox: Optional[PromptMailbox] = None,
) -> List[str]:
    """Returns the prompt ids written, one per question."""
    questions = hook_input.tool_input.get("questions") or []
    if not isinstance(questions, list) or not questions or notifier is None:
        return []

    mailbox = mailbox or PromptMailbox()
    cwd = resolve_cwd(hook_input)
    workspace = extract_workspace_name(cwd)
    handle = detect_terminal_handle(cwd)

    prompt_ids: List[str] = []
    for qi, q in enumerate(questions):
        if not isinstance(q, dict):
            continue
        prompt_id = generate_prompt_id()
        question_text = str(q.get("question") or "Question")
        options = q.get("options") or []
        multi = bool(q.get("multiSelect") or q.get("multi_select"))
        is_last = qi == len(questions) - 1

        text = f"❓ *Question* - {escape_markdown(workspace)}\n\n{escape_markdown(question_text)}"
        pending: Dict[str, Any] = {
            "workspace": workspace,
            "terminal_handle": handle,
            "question_text": question_text,
        }

        if options:
            labels = [_option_label(o) for o in options]
            text += "\n\n" + "\n".join(_option_line(i, o) for i, o in enumerate(options))
            pending.update(
                {
                    "kind": "question",
                    "options": labels,
                    "multi_select": multi,
                    "selected_options": [False] * len(labels) if multi else [],
                    "is_last": is_last,
                }
            )
            mailbox.write_pending(prompt_id, pending)
            notifier.send(
                text,
                workspace=workspace,
                kind="question",
                reply_markup=option_keyboard(prompt_id, labels, multi_select=multi),
            )
        else:
            text += "\n\n_Reply to this message with your answer_"
            pending["kind"] = "question-freetext"
            mailbox.write_pending(prompt_id, pending)
            notifier.send(text, workspace=workspace, kind="question-freetext")

        logger.info(f"question {qi + 1}/{len(questions)} sent", extra={"prompt_id": prompt_id, "workspace": workspace})
        prompt_ids.append(prompt_id)
    return prompt_ids


def main(argv: Optional[List[str]] = None) -> int:
    settings = load_settings()
    setup_hook_logging(settings)
    hook_input = read_hook_input()
    time.sleep(SEND_DELAY_SECONDS)
    if hook_input is None:
        return 0
    try:
        run_question(hook_input, notifier=make_notifier(settings, require_enabled=False))
    except Exception as e:
        logger.exception(f"question hook failed: {e}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
