from __future__ import annotations

import argparse
import json
from typing import Any

from . import __version__
from .kernel.mailbox import PromptMailbox
from .kernel.registry import SessionRegistry
from .kernel.routing import WorkspaceRouting
from .kernel.settings import load_settings


def _print_json(obj: Any) -> None:
    print(json.dumps(obj, ensure_ascii=False, indent=2))


def cmd_bot(args: argparse.Namespace) -> int:
    from .ports.im.bridge import start_bridge

    start_bridge()
    return 0


def cmd_hook(args: argparse.Namespace) -> int:
    if args.hook == "permission":
        from .hooks import permission

        return permission.main()
    if args.hook == "question":
        from .hooks import question

        return question.main()
    if args.hook == "notify":
        from .hooks import notify

        return notify.main([args.status])
    if args.hook == "user-prompt":
        from .hooks import user_prompt

        return user_prompt.main()
    return 2


def cmd_sessions(args: argparse.Namespace) -> int:
    registry = SessionRegistry.from_settings(load_settings())
    sessions = [
        {
            "workspace": s.workspace,
            "token": s.token,
            "age": s.age,
            **s.session.model_dump(),
        }
        for s in registry.list_active_sessions()
    ]
    _print_json({"ok": True, "result": {"sessions": sessions}})
    return 0


def cmd_prune(args: argparse.Namespace) -> int:
    registry = SessionRegistry.from_settings(load_settings())
    removed = registry.prune_expired()
    expired_prompts = PromptMailbox().clean_expired()
    _print_json({"ok": True, "result": {"sessions_removed": removed, "prompts_removed": expired_prompts}})
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    settings = load_settings()
    registry = SessionRegistry.from_settings(settings)
    _print_json(
        {
            "ok": True,
            "result": {
                "version": __version__,
                "telegram_configured": not settings.missing_credentials(),
                "injection_mode": settings.injection_mode,
                "default_workspace": WorkspaceRouting().get_default_workspace(),
                "active_sessions": len(registry.list_active_sessions()),
                "pending_prompts": PromptMailbox().count_pending(),
            },
        }
    )
    return 0


def cmd_version(args: argparse.Namespace) -> int:
    print(__version__)
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="ccremote", description="Remote control for assistant CLI sessions over Telegram")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_bot = sub.add_parser("bot", help="Run the Telegram bridge (long polling)")
    p_bot.set_defaults(func=cmd_bot)

    p_hook = sub.add_parser("hook", help="Entry points for assistant CLI hooks (reads JSON on stdin)")
    hook_sub = p_hook.add_subparsers(dest="hook", required=True)
    hook_sub.add_parser("permission", help="PermissionRequest: ask in chat, print the decision")
    hook_sub.add_parser("question", help="PreToolUse(AskUserQuestion): post the question to chat")
    p_notify = hook_sub.add_parser("notify", help="Stop / Notification / Session* / SubagentStop")
    p_notify.add_argument(
        "status",
        nargs="?",
        default="completed",
        help="completed, waiting, session-start, session-end, subagent-done (default: completed)",
    )
    hook_sub.add_parser("user-prompt", help="UserPromptSubmit: record terminal activity")
    p_hook.set_defaults(func=cmd_hook)

    p_sessions = sub.add_parser("sessions", help="List active sessions")
    p_sessions.set_defaults(func=cmd_sessions)

    p_prune = sub.add_parser("prune", help="Remove expired sessions and stale prompts")
    p_prune.set_defaults(func=cmd_prune)

    p_status = sub.add_parser("status", help="Show configuration and mailbox summary")
    p_status.set_defaults(func=cmd_status)

    p_ver = sub.add_parser("version", help="Show version")
    p_ver.set_defaults(func=cmd_version)

    return p


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
