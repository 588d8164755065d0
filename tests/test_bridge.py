import tempfile
import unittest
from pathlib import Path
from typing import Any, Dict, List, Optional

from ccremote.ports.im.adapters.base import IMAdapter
from ccremote.runners.backend import MultiplexerBackend


class FakeAdapter(IMAdapter):
    platform = "fake"

    def __init__(self) -> None:
        self.sent: List[Dict[str, Any]] = []
        self.edits: List[Dict[str, Any]] = []
        self.answers: List[tuple] = []
        self.inbox: List[List[Dict[str, Any]]] = []
        self._next_id = 100

    def connect(self) -> bool:
        return True

    def disconnect(self) -> None:
        pass

    def poll(self) -> List[Dict[str, Any]]:
        return self.inbox.pop(0) if self.inbox else []

    def send_message(self, chat_id, text, *, parse_mode=None, reply_markup=None) -> Optional[int]:
        self._next_id += 1
        self.sent.append(
            {"chat_id": chat_id, "text": text, "parse_mode": parse_mode, "reply_markup": reply_markup, "id": self._next_id}
        )
        return self._next_id

    def edit_message(self, chat_id, message_id, text, *, parse_mode=None, reply_markup=None) -> bool:
        self.edits.append({"message_id": message_id, "text": text, "reply_markup": reply_markup})
        return True

    def answer_callback(self, callback_id: str, text: str = "") -> bool:
        self.answers.append((callback_id, text))
        return True

    def set_commands(self, commands) -> bool:
        return True

    @property
    def texts(self) -> List[str]:
        return [m["text"] for m in self.sent]


class FakeManager:
    def __init__(self, names=()) -> None:
        self.names = set(names)
        self.writes: List[tuple] = []
        self.keys: List[tuple] = []
        self.outputs: List[str] = []
        self.spawned: List[tuple] = []

    def is_available(self) -> bool:
        return True

    def has(self, name: str) -> bool:
        return name in self.names

    def spawn(self, name: str, cwd: str) -> bool:
        self.names.add(name)
        self.spawned.append((name, cwd))
        return True

    def write(self, name: str, data: str) -> bool:
        if name not in self.names:
            return False
        self.writes.append((name, data))
        return True

    def send_key(self, name: str, key: str) -> bool:
        if name not in self.names:
            return False
        self.keys.append((name, key))
        return True

    def capture(self, name: str, lines: int = 100) -> Optional[str]:
        if name not in self.names:
            return None
        if len(self.outputs) > 1:
            return self.outputs.pop(0)
        return self.outputs[0] if self.outputs else ""

    def kill_all(self) -> None:
        self.names.clear()


class FakeMux(MultiplexerBackend):
    def available(self) -> bool:
        return False

    def exists(self, handle: str) -> bool:
        return False


class FakeTyping:
    def __init__(self) -> None:
        self.starts = 0
        self.stops = 0

    def start(self) -> None:
        self.starts += 1

    def stop(self) -> None:
        self.stops += 1


class BridgeTestCase(unittest.TestCase):
    def setUp(self) -> None:
        from ccremote.kernel.mailbox import PromptMailbox
        from ccremote.kernel.registry import SessionRegistry
        from ccremote.kernel.routing import WorkspaceRouting
        from ccremote.kernel.settings import Settings
        from ccremote.ports.im.bridge import RemoteBridge
        from ccremote.runners.backend import HeadlessPtyBackend, TerminalRouter

        self._td = tempfile.TemporaryDirectory()
        root = Path(self._td.name)
        self.projects = root / "projects"
        self.projects.mkdir()

        self.adapter = FakeAdapter()
        self.manager = FakeManager(["app-frontend", "app-backend"])
        self.typing = FakeTyping()
        self.settings = Settings(telegram_bot_token="t", telegram_chat_id="42", project_dirs=[str(self.projects)])
        self.registry = SessionRegistry(root / "data", project_dirs=[self.projects])
        self.routing = WorkspaceRouting(root / "data")
        self.mailbox = PromptMailbox(root / "prompts")
        router = TerminalRouter(FakeMux(sleep=lambda s: None), HeadlessPtyBackend(self.manager, sleep=lambda s: None))

        self.bridge = RemoteBridge(
            self.adapter,
            self.settings,
            registry=self.registry,
            routing=self.routing,
            mailbox=self.mailbox,
            router=router,
            typing=self.typing,
            sleep=lambda s: None,
            schedule=lambda delay, fn: fn(),
            background=lambda fn, name: fn(),
        )
        for name in ("app-frontend", "app-backend"):
            self.registry.upsert_session(
                cwd=f"/work/{name}", terminal_handle=name, status="waiting", session_kind="headless-pty"
            )

    def tearDown(self) -> None:
        self._td.cleanup()

    def message(self, text: str, *, chat_id: str = "42", reply_to: Optional[int] = None) -> None:
        self.bridge.handle_event(
            {"kind": "message", "chat_id": chat_id, "text": text, "message_id": 1, "reply_to_message_id": reply_to}
        )

    def callback(self, data: str, *, chat_id: str = "42", message_text: str = "Prompt") -> None:
        self.bridge.handle_event(
            {
                "kind": "callback",
                "chat_id": chat_id,
                "callback_id": "cb1",
                "data": data,
                "message_id": 7,
                "message_text": message_text,
            }
        )


class TestMessages(BridgeTestCase):
    def test_workspace_prefix_injects_command(self) -> None:
        self.message("/app-front run tests")
        self.assertEqual(self.manager.writes, [("app-frontend", "\x15"), ("app-frontend", "run tests")])
        self.assertEqual(self.manager.keys, [("app-frontend", "Enter")])
        self.assertEqual(self.typing.starts, 1)
        self.assertEqual(self.adapter.sent, [])

    def test_unauthorized_chat_is_ignored(self) -> None:
        self.message("/app-front run tests", chat_id="99")
        self.assertEqual(self.manager.writes, [])
        self.assertEqual(self.adapter.sent, [])

    def test_ambiguous_prefix_asks_to_be_more_specific(self) -> None:
        self.message("/app hello")
        self.assertEqual(self.manager.writes, [])
        self.assertEqual(len(self.adapter.sent), 1)
        self.assertIn("Multiple matches", self.adapter.texts[0])
        self.assertIn("app-backend", self.adapter.texts[0])
        self.assertIn("app-frontend", self.adapter.texts[0])

    def test_unknown_workspace(self) -> None:
        self.message("/zzz hello")
        self.assertIn("No active session for *zzz*", self.adapter.texts[0])

    def test_use_sets_and_clears_default(self) -> None:
        self.message("/use app-back")
        self.assertEqual(self.routing.get_default_workspace(), "app-backend")
        self.assertIn("Default workspace set to *app-backend*", self.adapter.texts[-1])

        self.message("/use")
        self.assertIn("Default workspace: *app-backend*", self.adapter.texts[-1])

        self.message("deploy it")
        self.assertIn(("app-backend", "deploy it"), self.manager.writes)

        self.message("/use clear")
        self.assertIsNone(self.routing.get_default_workspace())
        self.message("/use")
        self.assertIn("No default workspace set", self.adapter.texts[-1])

    def test_plain_text_without_default_gets_a_hint(self) -> None:
        self.message("hello there")
        self.assertEqual(self.manager.writes, [])
        self.assertIn("/help", self.adapter.texts[-1])

    def test_reply_to_notification_routes_to_its_workspace(self) -> None:
        self.routing.set_default_workspace("app-frontend")
        self.routing.track_notification_message(555, "app-backend", "hook-completed")
        self.message("looks good, continue", reply_to=555)
        self.assertEqual(self.manager.writes[-1], ("app-backend", "looks good, continue"))

    def test_cmd_with_token(self) -> None:
        token = self.registry.resolve_workspace("app-backend").match.token
        self.message(f"/cmd {token.lower()} run lint")
        self.assertEqual(self.manager.writes[-1], ("app-backend", "run lint"))

        self.message("/cmd FFFFFFFF run lint")
        self.assertIn("No session found for token", self.adapter.texts[-1])

    def test_inject_into_dead_session(self) -> None:
        self.manager.names.discard("app-backend")
        self.message("/app-backend hi")
        self.assertIn("Session not found", self.adapter.texts[-1])
        self.assertEqual(self.typing.starts, 0)

    def test_status_shows_session_output(self) -> None:
        self.manager.outputs = ["line one\n<line two>\n"]
        self.message("/status app-frontend")
        msg = self.adapter.sent[-1]
        self.assertEqual(msg["parse_mode"], "HTML")
        self.assertIn("<b>app-frontend</b>", msg["text"])
        self.assertIn("<pre>line one\n&lt;line two&gt;</pre>", msg["text"])

    def test_bare_workspace_is_a_status_shortcut(self) -> None:
        self.manager.outputs = ["ready"]
        self.message("/app-back")
        self.assertIn("<pre>ready</pre>", self.adapter.texts[-1])

        self.message("/nothing")
        self.assertIn("Unknown command", self.adapter.texts[-1])

    def test_status_without_workspace_or_default(self) -> None:
        self.message("/status")
        self.assertIn("Usage: `/status <workspace>`", self.adapter.texts[-1])

    def test_stop_sends_interrupt(self) -> None:
        self.message("/stop app-frontend")
        self.assertEqual(self.manager.writes[-1], ("app-frontend", "\x03"))
        self.assertIn("Sent interrupt", self.adapter.texts[-1])

    def test_compact_reports_completion(self) -> None:
        self.manager.outputs = ["Compacting conversation...", "Compacted. Context is small now"]
        self.message("/compact app-backend")
        self.assertIn(("app-backend", "/compact"), self.manager.writes)
        self.assertIn("compact done", self.adapter.texts[-1])
        self.assertIn("Compacted", self.adapter.texts[-1])

    def test_sessions_list(self) -> None:
        self.manager.names.discard("app-backend")
        self.message("/sessions")
        text = self.adapter.texts[-1]
        self.assertIn("*Active Sessions*", text)
        self.assertIn("🤖 *app-frontend*", text)
        self.assertIn("💤 *app-backend*", text)

    def test_help(self) -> None:
        self.message("/help")
        self.assertIn("*Claude Remote Control*", self.adapter.texts[-1])

    def test_ignored_bot_suffix(self) -> None:
        self.message("/help@OtherBot now")
        self.assertEqual(self.adapter.sent, [])


class TestNewSession(BridgeTestCase):
    def test_new_starts_headless_session_and_sets_default(self) -> None:
        (self.projects / "myproj").mkdir()
        self.message("/new myproj")

        self.assertEqual(self.manager.spawned, [("myproj", str(self.projects / "myproj"))])
        self.assertEqual(self.routing.get_default_workspace(), "myproj")
        match = self.registry.resolve_workspace("myproj").match
        self.assertEqual(match.session.session_kind, "headless-pty")
        self.assertEqual(match.session.terminal_handle, "myproj")

        msg = self.adapter.sent[-1]
        self.assertIn("Started Claude in *myproj*", msg["text"])
        self.assertIn("Headless PTY mode", msg["text"])
        self.assertEqual(self.routing.get_workspace_for_message(msg["id"]), "myproj")

    def test_new_with_running_session_only_sets_default(self) -> None:
        (self.projects / "app.v2").mkdir()
        self.manager.names.add("app-v2")
        self.message("/new app.v2")
        self.assertEqual(self.manager.spawned, [])
        self.assertEqual(self.routing.get_default_workspace(), "app.v2")
        self.assertIn("already running", self.adapter.texts[-1])

    def test_new_prefix_match_and_ambiguity(self) -> None:
        (self.projects / "website").mkdir()
        (self.projects / "webapp").mkdir()
        self.message("/new webs")
        self.assertEqual(self.manager.spawned[-1][0], "website")

        self.message("/new web")
        msg = self.adapter.sent[-1]
        self.assertIn("Multiple matches for *web*", msg["text"])
        data = [b["callback_data"] for row in msg["reply_markup"]["inline_keyboard"] for b in row]
        self.assertEqual(data, ["new:webapp", "new:website"])

    def test_new_unknown_project(self) -> None:
        self.message("/new does-not-exist-anywhere-42")
        self.assertIn("not found", self.adapter.texts[-1])
        self.assertEqual(self.manager.spawned, [])

    def test_new_without_argument_lists_recent_projects(self) -> None:
        (self.projects / "alpha").mkdir()
        self.message("/new")
        msg = self.adapter.sent[-1]
        self.assertIn("Start Claude Session", msg["text"])
        data = [b["callback_data"] for row in msg["reply_markup"]["inline_keyboard"] for b in row]
        self.assertIn("new:alpha", data)

    def test_new_project_button(self) -> None:
        (self.projects / "alpha").mkdir()
        self.callback("new:alpha", message_text="Pick one")
        self.assertEqual(self.adapter.answers, [("cb1", "Starting alpha...")])
        self.assertIn("Starting *alpha*", self.adapter.edits[0]["text"])
        self.assertEqual(self.manager.spawned[-1][0], "alpha")


class TestCallbacks(BridgeTestCase):
    def test_permission_decision_is_written(self) -> None:
        self.mailbox.write_pending("abcd1234", {"kind": "permission", "workspace": "app-frontend"})
        self.callback("perm:abcd1234:always", message_text="🔐 Permission")

        self.assertEqual(self.mailbox.read_response("abcd1234")["action"], "always")
        self.assertEqual(self.adapter.answers, [("cb1", "🔓 Always Allowed")])
        self.assertEqual(self.adapter.edits[-1]["text"], "🔐 Permission\n\n- 🔓 Always Allowed")

    def test_permission_for_unknown_prompt(self) -> None:
        self.callback("perm:deadbeef:allow")
        self.assertEqual(self.adapter.answers, [("cb1", "Session not found")])
        self.assertIsNone(self.mailbox.read_response("deadbeef"))

    def test_single_select_option_replays_keys(self) -> None:
        self.mailbox.write_pending(
            "q1", {"kind": "question", "terminal_handle": "app-frontend", "options": ["A", "B", "C"]}
        )
        self.callback("opt:q1:3")
        self.assertEqual(self.manager.keys, [("app-frontend", "Down"), ("app-frontend", "Down"), ("app-frontend", "Enter")])
        self.assertEqual(self.adapter.answers, [("cb1", "Selected: C")])
        self.assertIn("- Selected: *C*", self.adapter.edits[-1]["text"])
        self.assertIsNone(self.mailbox.read_pending("q1"))
        self.assertEqual(self.typing.starts, 1)

    def test_last_question_gets_an_extra_enter(self) -> None:
        self.mailbox.write_pending(
            "q2", {"kind": "question", "terminal_handle": "app-frontend", "options": ["A", "B"], "is_last": True}
        )
        self.callback("opt:q2:1")
        self.assertEqual([k for _, k in self.manager.keys], ["Enter", "Enter"])

    def test_option_for_dead_session(self) -> None:
        self.mailbox.write_pending("q3", {"kind": "question", "terminal_handle": "gone", "options": ["A"]})
        self.callback("opt:q3:1")
        self.assertEqual(self.adapter.answers, [("cb1", "Failed to send selection")])
        self.assertIsNotNone(self.mailbox.read_pending("q3"))

    def test_multi_select_toggle_is_an_involution(self) -> None:
        self.mailbox.write_pending(
            "m1",
            {
                "kind": "question",
                "terminal_handle": "app-frontend",
                "options": ["A", "B"],
                "multi_select": True,
                "selected_options": [False, False],
            },
        )
        self.callback("opt:m1:2")
        self.assertEqual(self.mailbox.read_pending("m1")["selected_options"], [False, True])
        self.assertEqual(self.adapter.answers[-1], ("cb1", "☑ B"))
        keyboard = self.adapter.edits[-1]["reply_markup"]["inline_keyboard"]
        self.assertEqual(keyboard[0][1]["text"], "☑ 2. B")
        self.assertEqual(self.adapter.edits[-1]["text"], "Prompt")

        self.callback("opt:m1:2")
        self.assertEqual(self.mailbox.read_pending("m1")["selected_options"], [False, False])
        self.assertEqual(self.adapter.answers[-1], ("cb1", "☐ B"))
        self.assertEqual(self.manager.keys, [])

    def test_multi_select_submit(self) -> None:
        self.mailbox.write_pending(
            "m2",
            {
                "kind": "question",
                "terminal_handle": "app-frontend",
                "options": ["A", "B", "C"],
                "multi_select": True,
                "selected_options": [True, False, True],
            },
        )
        self.callback("opt-submit:m2")
        self.assertEqual(
            [k for _, k in self.manager.keys],
            ["Space", "Down", "Down", "Space", "Down", "Down", "Enter"],
        )
        self.assertEqual(self.adapter.answers, [("cb1", "Submitted 2 options")])
        self.assertIn("- Selected:\n• A\n• C", self.adapter.edits[-1]["text"])
        self.assertIsNone(self.mailbox.read_pending("m2"))

    def test_multi_select_submit_with_nothing_selected(self) -> None:
        self.mailbox.write_pending(
            "m3",
            {
                "kind": "question",
                "terminal_handle": "app-frontend",
                "options": ["A", "B"],
                "multi_select": True,
                "selected_options": [False, False],
            },
        )
        self.callback("opt-submit:m3")
        self.assertEqual(self.adapter.answers, [("cb1", "No options selected")])
        self.assertEqual(self.manager.keys, [])

    def test_question_permission_answers_and_replays(self) -> None:
        self.mailbox.write_pending(
            "qp1", {"kind": "question", "terminal_handle": "app-backend", "options": ["X", "Y"]}
        )
        self.callback("qperm:qp1:2")
        response = self.mailbox.read_response("qp1")
        self.assertEqual(response["action"], "allow")
        self.assertEqual(response["selected_option"], 2)
        self.assertEqual(self.manager.keys, [("app-backend", "Down"), ("app-backend", "Enter")])
        self.assertEqual(self.adapter.answers, [("cb1", "Selected: Y")])

    def test_second_permission_press_keeps_first_decision(self) -> None:
        self.mailbox.write_pending("abcd1234", {"kind": "permission", "workspace": "app-frontend"})
        self.callback("perm:abcd1234:allow", message_text="🔐 Permission")
        self.callback("perm:abcd1234:deny", message_text="🔐 Permission")

        self.assertEqual(self.mailbox.read_response("abcd1234")["action"], "allow")
        self.assertEqual(self.adapter.answers[-1], ("cb1", "Already answered"))
        self.assertEqual(len(self.adapter.edits), 1)
        self.assertEqual(self.adapter.edits[0]["text"], "🔐 Permission\n\n- ✅ Allowed")

    def test_second_question_permission_press_is_ignored(self) -> None:
        self.mailbox.write_pending(
            "qp2", {"kind": "question", "terminal_handle": "app-backend", "options": ["X", "Y"]}
        )
        self.callback("qperm:qp2:1")
        self.callback("qperm:qp2:2")
        self.assertEqual(self.mailbox.read_response("qp2")["selected_option"], 1)
        self.assertEqual(self.manager.keys, [("app-backend", "Enter")])
        self.assertEqual(self.adapter.answers[-1], ("cb1", "Already answered"))

    def test_option_index_past_the_options_is_rejected(self) -> None:
        self.mailbox.write_pending(
            "q4", {"kind": "question", "terminal_handle": "app-frontend", "options": ["A", "B"]}
        )
        self.callback("opt:q4:100000")
        self.callback("qperm:q4:3")
        self.assertEqual(self.adapter.answers, [("cb1", "Option not found")] * 2)
        self.assertEqual(self.manager.keys, [])
        self.assertIsNotNone(self.mailbox.read_pending("q4"))
        self.assertIsNone(self.mailbox.read_response("q4"))

    def test_invalid_callbacks_are_rejected(self) -> None:
        for data in ("bogus:1", "perm:x:maybe", "opt:x:0", ""):
            self.callback(data)
        self.assertEqual(self.adapter.answers, [("cb1", "Invalid callback")] * 4)
        self.assertEqual(self.manager.keys, [])

    def test_callback_from_unauthorized_chat(self) -> None:
        self.mailbox.write_pending("abcd9999", {"kind": "permission", "workspace": "x"})
        self.callback("perm:abcd9999:allow", chat_id="7")
        self.assertEqual(self.adapter.answers, [])
        self.assertIsNone(self.mailbox.read_response("abcd9999"))


class TestLifecycle(BridgeTestCase):
    def test_run_once_isolates_event_errors(self) -> None:
        self.adapter.inbox.append(
            [
                {"kind": "callback", "chat_id": "42", "callback_id": "c", "data": "perm:x:allow", "message_id": "bad"},
                {"kind": "message", "chat_id": "42", "text": "/help"},
            ]
        )
        self.assertEqual(self.bridge.run_once(), 2)
        self.assertIn("*Claude Remote Control*", self.adapter.texts[-1])

    def test_status_snapshot_tracks_polling(self) -> None:
        snap = self.bridge.status_snapshot()
        self.assertEqual(snap["status"], "unhealthy")
        self.assertIsNone(snap["last_poll_age"])

        self.bridge.run_once()
        snap = self.bridge.status_snapshot()
        self.assertEqual(snap["status"], "ok")
        self.assertEqual(snap["active_sessions"], 2)
        self.assertEqual(snap["pending_prompts"], 0)

    def test_startup_prunes_and_registers_commands(self) -> None:
        self.bridge.startup()
        self.assertTrue(self.bridge._running)
        self.bridge.stop()
        self.assertFalse(self.bridge._running)
        self.assertEqual(self.typing.stops, 1)

    def test_every_message_stops_the_typing_indicator(self) -> None:
        self.message("/help")
        self.message("/help", chat_id="99")
        self.assertEqual(self.typing.stops, 2)


if __name__ == "__main__":
    unittest.main()
