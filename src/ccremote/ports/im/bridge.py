"""
Remote bridge: the chat-side orchestrator.

Long-polls the chat transport and dispatches each event:
- text messages -> commands, workspace routing, command injection
- button presses -> permission decisions, question answers, /new shortcuts

All mutable routing state (default workspace, reply index, typing presence)
lives in objects owned by RemoteBridge, so one bridge can be driven from
tests with fake adapters and terminals.
"""

from __future__ import annotations

import logging
import os
import re
import signal
import sys
import threading
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from ...kernel.mailbox import PromptMailbox
from ...kernel.registry import ResolveResult, SessionMatch, SessionRegistry
from ...kernel.routing import WorkspaceRouting
from ...kernel.settings import Settings, load_settings
from ...paths import logs_dir
from ...runners import pty
from ...runners.backend import (
    HeadlessPtyBackend,
    MultiplexerBackend,
    TerminalError,
    TerminalRouter,
)
from ...util.obslog import setup_root_json_logging
from ...util.terminal_text import tail_lines
from .adapters.base import IMAdapter, TransportError
from .adapters.telegram import TelegramAdapter
from .callbacks import (
    CallbackParseError,
    NewProjectCallback,
    OptionCallback,
    OptionSubmitCallback,
    PermissionCallback,
    QuestionPermissionCallback,
    parse_callback,
)
from .commands import BOT_COMMANDS, CommandType, ParsedCommand, format_help, format_sessions, parse_message
from .formatting import escape_html, escape_markdown, option_keyboard, project_keyboard
from .keystrokes import multi_select_keys, single_select_keys
from .typing_indicator import TypingIndicator

logger = logging.getLogger("ccremote.bridge")

MARKDOWN = "Markdown"
HTML = "HTML"

KEY_PAUSE = 0.1
LAST_QUESTION_PAUSE = 0.5
QPERM_REPLAY_DELAY = 4.0
POLL_ERROR_BACKOFF = 5.0
STALE_POLL_SECONDS = 60

COMPACT_START_CHECKS = 5
COMPACT_DONE_CHECKS = 30
COMPACT_CHECK_INTERVAL = 2.0

PERMISSION_LABELS = {
    "allow": "✅ Allowed",
    "always": "🔓 Always Allowed",
    "deny": "❌ Denied",
}

_HANDLE_UNSAFE_RE = re.compile(r"[.:\s]")


def _daemon_thread(fn: Callable[[], None], name: str) -> None:
    threading.Thread(target=fn, name=name, daemon=True).start()


def _daemon_timer(delay: float, fn: Callable[[], None]) -> None:
    t = threading.Timer(delay, fn)
    t.daemon = True
    t.start()


def _short_path(p: Path) -> str:
    home = str(Path.home())
    s = str(p)
    return "~" + s[len(home) :] if s.startswith(home) else s


def build_router(settings: Settings) -> TerminalRouter:
    manager = pty.HeadlessTerminalManager(cli_command=settings.cli_command, log_root=logs_dir())
    return TerminalRouter(MultiplexerBackend(), HeadlessPtyBackend(manager))


class RemoteBridge:
    """
    Main bridge class.

    Coordinates:
    - Adapter (chat transport)
    - Session registry and routing state
    - Prompt mailbox (answers for hook processes)
    - Terminal router (tmux or headless PTY)
    """

    def __init__(
        self,
        adapter: IMAdapter,
        settings: Settings,
        *,
        registry: Optional[SessionRegistry] = None,
        routing: Optional[WorkspaceRouting] = None,
        mailbox: Optional[PromptMailbox] = None,
        router: Optional[TerminalRouter] = None,
        typing: Optional[TypingIndicator] = None,
        sleep: Callable[[float], None] = time.sleep,
        schedule: Callable[[float, Callable[[], None]], None] = _daemon_timer,
        background: Callable[[Callable[[], None], str], None] = _daemon_thread,
    ):
        self.adapter = adapter
        self.settings = settings
        self.chat_id = str(settings.telegram_chat_id)

        self.registry = registry or SessionRegistry.from_settings(settings)
        self.routing = routing or WorkspaceRouting()
        self.mailbox = mailbox or PromptMailbox()
        self.router = router or build_router(settings)
        self.typing = typing or TypingIndicator(adapter, self.chat_id)

        self.sleep = sleep
        self.schedule = schedule
        self.background = background

        self.started_at = time.time()
        self.last_poll_time: Optional[float] = None
        self._running = False

    # -- outbound helpers --------------------------------------------------

    def _send(self, text: str, reply_markup: Optional[Dict[str, Any]] = None) -> Optional[int]:
        return self.adapter.send_message(self.chat_id, text, parse_mode=MARKDOWN, reply_markup=reply_markup)

    def _send_html(self, html: str, plain: str) -> Optional[int]:
        message_id = self.adapter.send_message(self.chat_id, html, parse_mode=HTML)
        if message_id is None:
            message_id = self.adapter.send_message(self.chat_id, plain)
        return message_id

    def _edit(self, message_id: int, text: str, reply_markup: Optional[Dict[str, Any]] = None) -> None:
        if not message_id:
            return
        if not self.adapter.edit_message(self.chat_id, message_id, text, parse_mode=MARKDOWN, reply_markup=reply_markup):
            logger.error(f"failed to edit message {message_id}", extra={"chat_id": self.chat_id})

    def _send_ambiguous(self, matches: List[SessionMatch]) -> None:
        names = ", ".join(f"`{escape_markdown(m.workspace)}`" for m in matches)
        self._send(f"Multiple matches: {names}. Be more specific.")

    def _resolve(self, query: str, *, hint_sessions: bool = True) -> Optional[SessionMatch]:
        """Resolve a workspace, reporting "none" and "ambiguous" to the chat."""
        result: ResolveResult = self.registry.resolve_workspace(query)
        if result.kind == "ambiguous":
            self._send_ambiguous(result.matches)
            return None
        if not result.resolved:
            hint = " Use /sessions to see available workspaces." if hint_sessions else ""
            self._send(f"No active session for *{escape_markdown(query)}*.{hint}")
            return None
        return result.match

    def _workspace_or_default(self, arg: Optional[str], command: str) -> Optional[str]:
        if arg:
            return arg
        default = self.routing.get_default_workspace()
        if default:
            return default
        self._send(f"Usage: `/{command} <workspace>` or set a default with `/use`.")
        return None

    # -- terminal helpers --------------------------------------------------

    def _session_exists(self, handle: str) -> bool:
        return self.router.live_session(handle) is not None

    def _send_key(self, handle: str, key: str) -> None:
        session = self.router.session_for(handle)
        if session is None:
            raise TerminalError(f"session '{handle}' not found")
        session.backend.send_key(session.handle, key)
        self.sleep(KEY_PAUSE)

    def _send_keys(self, handle: str, keys: List[str], *, is_last: bool = False) -> None:
        """Replay a keystroke plan; the last question of a batch needs one more Enter."""
        for key in keys:
            self._send_key(handle, key)
        if is_last:
            self.sleep(LAST_QUESTION_PAUSE)
            self._send_key(handle, "Enter")

    def _capture(self, handle: str, lines: int = 20) -> str:
        session = self.router.session_for(handle)
        if session is None:
            raise TerminalError(f"session '{handle}' not found")
        output = session.backend.capture(session.handle, lines)
        if output is None:
            raise TerminalError(f"could not read session '{handle}'")
        return output

    def _session_icon(self, kind: str, handle: str, status: str) -> str:
        if kind == "headless-pty":
            return "🤖" if self.router.headless.exists(handle) else "💤"
        return "⏳" if status.startswith("waiting") else "✅"

    def inject(self, match: SessionMatch, command: str) -> bool:
        """Type `command` into the session and submit it."""
        handle = match.session.terminal_handle
        session = self.router.live_session(handle)
        if session is None:
            self._send("⚠️ Session not found. Start Claude via /new for full remote control, or use tmux.")
            return False
        try:
            session.backend.write_command(session.handle, command)
        except TerminalError as e:
            self._send(f"❌ Failed: {e}")
            return False
        self.typing.start()
        logger.info(f"injected into {handle}", extra={"workspace": match.workspace, "handle": handle})
        return True

    # -- lifecycle ---------------------------------------------------------

    def startup(self) -> None:
        pruned = self.registry.prune_expired()
        if pruned:
            logger.info(f"pruned {pruned} expired sessions")
        if self.adapter.delete_webhook():
            logger.info("webhook cleared, using long polling")
        else:
            logger.warning("could not delete webhook")
        if self.adapter.set_commands(BOT_COMMANDS):
            logger.info("bot commands registered")
        else:
            logger.warning("failed to register bot commands")
        self._running = True

    def stop(self) -> None:
        self._running = False
        self.typing.stop()
        self.adapter.disconnect()

    def run_once(self) -> int:
        """Process one batch of inbound events. Raises TransportError."""
        events = self.adapter.poll()
        self.last_poll_time = time.time()
        for event in events:
            try:
                self.handle_event(event)
            except Exception as e:
                logger.exception(f"error processing {event.get('kind', 'event')}: {e}")
        return len(events)

    def run_forever(self) -> None:
        while self._running:
            try:
                self.run_once()
            except TransportError as e:
                logger.error(f"polling error: {e}")
                self.sleep(POLL_ERROR_BACKOFF)
            except Exception as e:
                logger.exception(f"loop error: {e}")
                self.sleep(POLL_ERROR_BACKOFF)

    def status_snapshot(self) -> Dict[str, Any]:
        now = time.time()
        poll_age = int(now - self.last_poll_time) if self.last_poll_time is not None else None
        stale = poll_age is None or poll_age > STALE_POLL_SECONDS
        return {
            "status": "unhealthy" if stale else "ok",
            "uptime": int(now - self.started_at),
            "last_poll_age": poll_age,
            "active_sessions": len(self.registry.list_active_sessions()),
            "pending_prompts": self.mailbox.count_pending(),
        }

    # -- dispatch ----------------------------------------------------------

    def handle_event(self, event: Dict[str, Any]) -> None:
        kind = event.get("kind")
        if kind == "callback":
            self.handle_callback(event)
        elif kind == "message":
            self.handle_message(event)

    def handle_message(self, event: Dict[str, Any]) -> None:
        self.typing.stop()
        chat_id = str(event.get("chat_id") or "")
        if chat_id != self.chat_id:
            logger.warning(f"ignoring message from unauthorized chat: {chat_id}", extra={"chat_id": chat_id})
            return

        text = str(event.get("text") or "").strip()
        if not text:
            return
        logger.info(f"received: {text}")

        parsed = parse_message(text)
        t = parsed.type
        if t == CommandType.HELP:
            self._handle_help()
        elif t == CommandType.SESSIONS:
            self._handle_sessions()
        elif t == CommandType.STATUS:
            self._handle_status(parsed.target)
        elif t == CommandType.STOP:
            self._handle_stop(parsed.target)
        elif t == CommandType.USE:
            self._handle_use(parsed.target)
        elif t == CommandType.COMPACT:
            self._handle_compact(parsed.target)
        elif t == CommandType.NEW:
            self._handle_new(parsed.target)
        elif t == CommandType.CMD:
            self._handle_cmd(parsed.target or "", parsed.text)
        elif t == CommandType.WORKSPACE:
            self._handle_workspace_command(parsed.target or "", parsed.text)
        elif t == CommandType.WORKSPACE_STATUS:
            self._handle_bare_workspace(parsed)
        elif t == CommandType.MESSAGE:
            self._handle_plain_text(text, event.get("reply_to_message_id"))

    def _handle_help(self) -> None:
        self._send(format_help(self.routing.get_default_workspace(), escape_markdown))

    def _handle_sessions(self) -> None:
        self.registry.prune_expired()
        rows = [
            (
                self._session_icon(s.session.session_kind, s.session.terminal_handle, s.session.status),
                s.workspace,
                s.age,
            )
            for s in self.registry.list_active_sessions()
        ]
        self._send(format_sessions(rows, self.routing.get_default_workspace(), escape_markdown))

    def _handle_status(self, arg: Optional[str]) -> None:
        workspace = self._workspace_or_default(arg, "status")
        if workspace is None:
            return
        match = self._resolve(workspace, hint_sessions=False)
        if match is None:
            return
        handle = match.session.terminal_handle
        try:
            output = self._capture(handle, 20)
        except TerminalError as e:
            self._send(f"Could not read session `{handle}`: {e}")
            return
        trimmed = tail_lines(output.strip(), 20)
        self._send_html(
            f"<b>{escape_html(match.workspace)}</b> session output:\n<pre>{escape_html(trimmed)}</pre>",
            f"{match.workspace} session output:\n{trimmed}",
        )

    def _handle_stop(self, arg: Optional[str]) -> None:
        workspace = self._workspace_or_default(arg, "stop")
        if workspace is None:
            return
        match = self._resolve(workspace, hint_sessions=False)
        if match is None:
            return
        handle = match.session.terminal_handle
        session = self.router.live_session(handle)
        if session is None:
            self._send(f"Session `{handle}` not found.")
            return
        try:
            session.backend.interrupt(session.handle)
        except TerminalError as e:
            self._send(f"❌ Failed to interrupt: {e}")
            return
        self._send(f"⛔ Sent interrupt to *{escape_markdown(match.workspace)}*")

    def _handle_use(self, arg: Optional[str]) -> None:
        if not arg:
            current = self.routing.get_default_workspace()
            if current:
                self._send(
                    f"Default workspace: *{escape_markdown(current)}*\n\n"
                    "Plain text messages will route here. Use `/use clear` to unset."
                )
            else:
                self._send("No default workspace set. Use `/use <workspace>` to set one.")
            return
        if arg in ("clear", "none"):
            self.routing.set_default_workspace(None)
            self._send("Default workspace cleared.")
            return
        match = self._resolve(arg)
        if match is None:
            return
        self.routing.set_default_workspace(match.workspace)
        self._send(f"Default workspace set to *{escape_markdown(match.workspace)}*. Plain text messages will route here.")

    def _handle_compact(self, arg: Optional[str]) -> None:
        workspace = self._workspace_or_default(arg, "compact")
        if workspace is None:
            return
        match = self._resolve(workspace)
        if match is None:
            return
        if not self.inject(match, "/compact"):
            return
        self.background(lambda: self._watch_compact(match), "ccremote-compact")

    def _watch_compact(self, match: SessionMatch) -> None:
        """Wait for "Compacting" to appear, then to disappear, and report the tail."""
        handle = match.session.terminal_handle
        ws = escape_markdown(match.workspace)

        started = False
        for _ in range(COMPACT_START_CHECKS):
            self.sleep(COMPACT_CHECK_INTERVAL)
            try:
                output = self._capture(handle)
            except TerminalError:
                break
            if "Compacting" in output:
                started = True
                break

        if not started:
            # Finished before the first check, or never started.
            try:
                output = self._capture(handle)
            except TerminalError:
                return
            if "Compacted" in output:
                self._send(f"✅ *{ws}* compact done:\n```\n{tail_lines(output.strip(), 10)}\n```")
            return

        for _ in range(COMPACT_DONE_CHECKS):
            self.sleep(COMPACT_CHECK_INTERVAL)
            try:
                output = self._capture(handle)
            except TerminalError:
                break
            if "Compacting" not in output:
                self._send(f"✅ *{ws}* compact done:\n```\n{tail_lines(output.strip(), 10)}\n```")
                return

        try:
            output = self._capture(handle)
        except TerminalError:
            return
        self._send(f"⏳ *{ws}* compact may still be running:\n```\n{tail_lines(output.strip(), 5)}\n```")

    def _handle_new(self, arg: Optional[str]) -> None:
        if arg:
            self.start_project(arg)
            return
        recent = self.registry.get_recent_projects(10)
        if not recent:
            dirs = ", ".join(_short_path(p) for p in self.settings.project_roots())
            self._send(f"No project history yet.\n\nUse `/new <project-name>` to start.\nSearches: {dirs}, ~/")
            return
        self._send(
            "*Start Claude Session*\n\nSelect a project or use `/new <name>`:",
            reply_markup=project_keyboard([p.name for p in recent]),
        )

    def _find_project_dir(self, name: str) -> tuple[Optional[Path], str]:
        """Exact directory lookup, then a unique prefix match in the project roots.

        Returns (None, name) after reporting ambiguity or absence to the chat.
        """
        roots = self.settings.project_roots()
        for candidate in [r / name for r in roots] + [Path.home() / name]:
            if candidate.is_dir():
                return candidate, name

        # Home is skipped here so Desktop, Documents, ... never match.
        matches: Dict[str, Path] = {}
        lower = name.lower()
        for base in roots:
            try:
                entries = sorted(os.scandir(base), key=lambda e: e.name)
            except OSError:
                continue
            for e in entries:
                try:
                    is_dir = e.is_dir()
                except OSError:
                    continue
                if is_dir and e.name.lower().startswith(lower) and e.name not in matches:
                    matches[e.name] = Path(e.path)

        if len(matches) == 1:
            found_name, found_path = next(iter(matches.items()))
            return found_path, found_name
        if len(matches) > 1:
            self._send(
                f"Multiple matches for *{escape_markdown(name)}*:",
                reply_markup=project_keyboard(list(matches)),
            )
            return None, name

        searched = ", ".join(_short_path(r) for r in roots) + ", ~/"
        self._send(f"Project `{escape_markdown(name)}` not found.\n\nSearched: {searched}")
        return None, name

    def start_project(self, name: str) -> None:
        project_dir, name = self._find_project_dir(name.strip())
        if project_dir is None:
            return
        cwd = str(project_dir)
        handle = _HANDLE_UNSAFE_RE.sub("-", name)

        if self._session_exists(handle):
            self.registry.upsert_session(cwd=cwd, terminal_handle=handle, status="waiting")
            self.routing.set_default_workspace(name)
            self._send(f"Session `{handle}` already running.\nSet as default - send messages directly.")
            return

        use_pty = not self.router.tmux_available() or self.settings.injection_mode == "pty"
        if not use_pty:
            backend = self.router.multiplexer
            note = ""
        elif self.router.headless.available():
            backend = self.router.headless
            note = "\n\n_Headless PTY mode - full Telegram control. Not attachable from terminal._"
        else:
            self._send("⚠️ tmux not found and headless PTY sessions are unavailable on this system.\nInstall tmux to start sessions.")
            return

        try:
            backend.start(handle, cwd, self.settings.cli_command)
        except TerminalError as e:
            self._send(f"Failed to start session: {e}")
            return

        self.registry.upsert_session(cwd=cwd, terminal_handle=handle, status="starting", session_kind=backend.kind)
        self.routing.set_default_workspace(name)
        logger.info(f"started {handle} in {cwd}", extra={"workspace": name, "handle": handle})

        message_id = self._send(
            f"Started Claude in *{escape_markdown(name)}*\n\n"
            f"*Path:* `{cwd}`\n"
            f"*Session:* `{handle}`\n\n"
            f"Default workspace set - send messages directly.{note}"
        )
        self.routing.track_notification_message(message_id, name, "new-session")

    def _handle_cmd(self, token: str, command: str) -> None:
        key = token.strip().upper()
        if key not in self.registry.read_session_map():
            self._send(f"No session found for token `{token}`.")
            return
        match = self.registry.find_session_by_token(key)
        if match is None:
            self._send(f"Session `{token}` has expired.")
            return
        self.inject(match, command)

    def _handle_workspace_command(self, workspace: str, command: str) -> None:
        match = self._resolve(workspace)
        if match is not None:
            self.inject(match, command)

    def _handle_bare_workspace(self, parsed: ParsedCommand) -> None:
        result = self.registry.resolve_workspace(parsed.target or "")
        if result.resolved and result.match is not None:
            self._handle_status(result.match.workspace)
        elif result.kind == "ambiguous":
            self._send_ambiguous(result.matches)
        else:
            self._send(f"Unknown command: `{parsed.text}`. Try /help")

    def _handle_plain_text(self, text: str, reply_to: Optional[int]) -> None:
        if reply_to:
            workspace = self.routing.get_workspace_for_message(reply_to)
            if workspace:
                self._handle_workspace_command(workspace, text)
                return
        default = self.routing.get_default_workspace()
        if default:
            self._handle_workspace_command(default, text)
            return
        self._send("Use `/help` to see available commands, or `/use <workspace>` to set a default.")

    # -- callbacks ---------------------------------------------------------

    def handle_callback(self, event: Dict[str, Any]) -> None:
        chat_id = str(event.get("chat_id") or "")
        if chat_id != self.chat_id:
            logger.warning(f"ignoring callback from unauthorized chat: {chat_id}", extra={"chat_id": chat_id})
            return

        callback_id = str(event.get("callback_id") or "")
        data = str(event.get("data") or "")
        message_id = int(event.get("message_id") or 0)
        original = str(event.get("message_text") or "")
        logger.info(f"callback: {data}")

        try:
            cb = parse_callback(data)
        except CallbackParseError as e:
            logger.warning(f"rejected callback: {e}")
            self.adapter.answer_callback(callback_id, "Invalid callback")
            return

        if isinstance(cb, NewProjectCallback):
            self.adapter.answer_callback(callback_id, f"Starting {cb.project}...")
            self._edit(message_id, f"{original}\n\n- Starting *{escape_markdown(cb.project)}*...")
            self.start_project(cb.project)
        elif isinstance(cb, PermissionCallback):
            self._on_permission(cb, callback_id, message_id, original)
        elif isinstance(cb, OptionCallback):
            self._on_option(cb, callback_id, message_id, original)
        elif isinstance(cb, OptionSubmitCallback):
            self._on_option_submit(cb, callback_id, message_id, original)
        elif isinstance(cb, QuestionPermissionCallback):
            self._on_question_permission(cb, callback_id, message_id, original)

    def _on_permission(self, cb: PermissionCallback, callback_id: str, message_id: int, original: str) -> None:
        if self.mailbox.read_pending(cb.prompt_id) is None:
            self.adapter.answer_callback(callback_id, "Session not found")
            return
        if self.mailbox.has_response(cb.prompt_id):
            self.adapter.answer_callback(callback_id, "Already answered")
            return
        label = PERMISSION_LABELS[cb.action]
        try:
            self.mailbox.write_response(cb.prompt_id, {"action": cb.action})
        except (OSError, ValueError) as e:
            logger.error(f"failed to write permission response: {e}", extra={"prompt_id": cb.prompt_id})
            self.adapter.answer_callback(callback_id, "Failed to save response")
            return
        logger.info(f"permission {cb.action}", extra={"prompt_id": cb.prompt_id})
        self.adapter.answer_callback(callback_id, label)
        self._edit(message_id, f"{original}\n\n- {label}")

    def _on_option(self, cb: OptionCallback, callback_id: str, message_id: int, original: str) -> None:
        pending = self.mailbox.read_pending_prompt(cb.prompt_id)
        if pending is None or not pending.terminal_handle:
            self.adapter.answer_callback(callback_id, "Session not found")
            return
        idx = cb.index
        if pending.options and idx >= len(pending.options):
            self.adapter.answer_callback(callback_id, "Option not found")
            return
        label = pending.options[idx] if idx < len(pending.options) else f"Option {idx + 1}"

        if pending.multi_select:
            selected = list(pending.selected_options) or [False] * len(pending.options)
            if idx >= len(selected):
                selected.extend([False] * (idx + 1 - len(selected)))
            selected[idx] = not selected[idx]
            self.mailbox.update_pending(cb.prompt_id, {"selected_options": selected})
            mark = "☑" if selected[idx] else "☐"
            self.adapter.answer_callback(callback_id, f"{mark} {label}")
            keyboard = option_keyboard(cb.prompt_id, pending.options, multi_select=True, selected=selected)
            self._edit(message_id, original, reply_markup=keyboard)
            return

        try:
            self._send_keys(pending.terminal_handle, single_select_keys(idx), is_last=pending.is_last)
        except TerminalError as e:
            logger.error(f"failed to inject keystroke: {e}", extra={"prompt_id": cb.prompt_id})
            self.adapter.answer_callback(callback_id, "Failed to send selection")
            return
        self.adapter.answer_callback(callback_id, f"Selected: {label}")
        self.typing.start()
        self._edit(message_id, f"{original}\n\n- Selected: *{escape_markdown(label)}*")
        self.mailbox.clean_prompt(cb.prompt_id)

    def _on_option_submit(self, cb: OptionSubmitCallback, callback_id: str, message_id: int, original: str) -> None:
        pending = self.mailbox.read_pending_prompt(cb.prompt_id)
        if pending is None or not pending.terminal_handle:
            self.adapter.answer_callback(callback_id, "Session not found")
            return
        selected = [i < len(pending.selected_options) and pending.selected_options[i] for i in range(len(pending.options))]
        labels = [label for label, on in zip(pending.options, selected) if on]
        if not labels:
            self.adapter.answer_callback(callback_id, "No options selected")
            return
        try:
            self._send_keys(pending.terminal_handle, multi_select_keys(selected), is_last=pending.is_last)
        except TerminalError as e:
            logger.error(f"failed to inject keystrokes: {e}", extra={"prompt_id": cb.prompt_id})
            self.adapter.answer_callback(callback_id, "Failed to send selections")
            return
        self.adapter.answer_callback(callback_id, f"Submitted {len(labels)} options")
        self.typing.start()
        bullets = "\n".join(f"• {escape_markdown(label)}" for label in labels)
        self._edit(message_id, f"{original}\n\n- Selected:\n{bullets}")
        self.mailbox.clean_prompt(cb.prompt_id)

    def _on_question_permission(
        self, cb: QuestionPermissionCallback, callback_id: str, message_id: int, original: str
    ) -> None:
        pending = self.mailbox.read_pending_prompt(cb.prompt_id)
        if pending is None:
            self.adapter.answer_callback(callback_id, "Session not found")
            return
        if self.mailbox.has_response(cb.prompt_id):
            self.adapter.answer_callback(callback_id, "Already answered")
            return
        idx = cb.index
        if pending.options and idx >= len(pending.options):
            self.adapter.answer_callback(callback_id, "Option not found")
            return
        label = pending.options[idx] if idx < len(pending.options) else f"Option {idx + 1}"

        # Unblocks the permission hook; the question UI renders once it returns.
        try:
            self.mailbox.write_response(cb.prompt_id, {"action": "allow", "selected_option": idx + 1})
        except (OSError, ValueError) as e:
            logger.error(f"failed to write question response: {e}", extra={"prompt_id": cb.prompt_id})
            self.adapter.answer_callback(callback_id, "Failed to save response")
            return
        self.adapter.answer_callback(callback_id, f"Selected: {label}")

        handle = pending.terminal_handle
        if handle:

            def replay() -> None:
                try:
                    self._send_keys(handle, single_select_keys(idx))
                except TerminalError as e:
                    logger.error(f"failed to inject question answer: {e}", extra={"handle": handle})
                    return
                self.typing.start()
                logger.info(f"injected answer {idx + 1} into {handle}", extra={"handle": handle})

            self.schedule(QPERM_REPLAY_DELAY, replay)

        self._edit(message_id, f"{original}\n\n- Selected: *{escape_markdown(label)}*")


def start_bridge(settings: Optional[Settings] = None) -> None:
    """
    Start the chat bridge.

    This is the main entry point called by the CLI.
    """
    settings = settings or load_settings()
    setup_root_json_logging(component="bridge", level=settings.log_level)

    missing = settings.missing_credentials()
    if missing:
        logger.error(f"missing configuration: {', '.join(missing)}")
        print(f"[error] Missing configuration: {', '.join(missing)}")
        print("Set them in ~/.ccremote/settings.yaml or the environment.")
        sys.exit(1)

    adapter = TelegramAdapter(token=settings.telegram_bot_token)
    if not adapter.connect():
        logger.warning("could not verify bot token, polling anyway")

    bridge = RemoteBridge(adapter, settings)

    def handle_signal(signum: int, frame: Any) -> None:
        logger.info(f"received signal {signum}, stopping")
        bridge.stop()

    signal.signal(signal.SIGTERM, handle_signal)
    signal.signal(signal.SIGINT, handle_signal)

    bridge.startup()

    if settings.health_port:
        from ..health import create_app, start_health_server

        start_health_server(settings.health_port, create_app(bridge.status_snapshot))

    logger.info(f"bridge started for chat {settings.telegram_chat_id}", extra={"chat_id": settings.telegram_chat_id})
    try:
        bridge.run_forever()
    finally:
        bridge.router.headless.manager.kill_all()
        logger.info("bridge stopped")
