import unittest


class TestParseMessage(unittest.TestCase):
    def test_builtin_commands(self) -> None:
        from ccremote.ports.im.commands import CommandType, parse_message

        self.assertEqual(parse_message("/help").type, CommandType.HELP)
        self.assertEqual(parse_message("/start").type, CommandType.HELP)
        self.assertEqual(parse_message("/sessions").type, CommandType.SESSIONS)

        p = parse_message("/status")
        self.assertEqual((p.type, p.target), (CommandType.STATUS, None))
        p = parse_message("/stop api")
        self.assertEqual((p.type, p.target), (CommandType.STOP, "api"))
        p = parse_message("/use clear")
        self.assertEqual((p.type, p.target), (CommandType.USE, "clear"))
        p = parse_message("/compact web")
        self.assertEqual((p.type, p.target), (CommandType.COMPACT, "web"))
        p = parse_message("/new my project")
        self.assertEqual((p.type, p.target), (CommandType.NEW, "my project"))

    def test_cmd_token(self) -> None:
        from ccremote.ports.im.commands import CommandType, parse_message

        p = parse_message("/cmd AB12CD34 run the tests\nplease")
        self.assertEqual(p.type, CommandType.CMD)
        self.assertEqual(p.target, "AB12CD34")
        self.assertEqual(p.text, "run the tests\nplease")

    def test_workspace_command_and_status_shortcut(self) -> None:
        from ccremote.ports.im.commands import CommandType, parse_message

        p = parse_message("/app-front run tests")
        self.assertEqual((p.type, p.target, p.text), (CommandType.WORKSPACE, "app-front", "run tests"))

        p = parse_message("/app")
        self.assertEqual((p.type, p.target), (CommandType.WORKSPACE_STATUS, "app"))

        # Builtins with trailing words that do not fit their syntax fall through.
        p = parse_message("/status a b")
        self.assertEqual((p.type, p.target, p.text), (CommandType.WORKSPACE, "status", "a b"))

    def test_bot_suffixed_names_are_ignored(self) -> None:
        from ccremote.ports.im.commands import CommandType, parse_message

        self.assertEqual(parse_message("/foo@OtherBot hello").type, CommandType.IGNORED)
        self.assertEqual(parse_message("/foo@OtherBot").type, CommandType.IGNORED)

    def test_plain_text(self) -> None:
        from ccremote.ports.im.commands import CommandType, parse_message

        p = parse_message("  fix the login bug  ")
        self.assertEqual((p.type, p.text), (CommandType.MESSAGE, "fix the login bug"))
        self.assertEqual(parse_message("").type, CommandType.MESSAGE)


class TestKeystrokePlans(unittest.TestCase):
    def test_single_select(self) -> None:
        from ccremote.ports.im.keystrokes import single_select_keys

        self.assertEqual(single_select_keys(0), ["Enter"])
        self.assertEqual(single_select_keys(2), ["Down", "Down", "Enter"])

    def test_multi_select(self) -> None:
        from ccremote.ports.im.keystrokes import multi_select_keys

        self.assertEqual(
            multi_select_keys([True, False, True]),
            ["Space", "Down", "Down", "Space", "Down", "Down", "Enter"],
        )
        self.assertEqual(multi_select_keys([False]), ["Down", "Down", "Enter"])


class TestFormatting(unittest.TestCase):
    def test_help_footer_depends_on_default(self) -> None:
        from ccremote.ports.im.commands import format_help
        from ccremote.ports.im.formatting import escape_markdown

        self.assertIn("/use <workspace>", format_help(None, escape_markdown))
        text = format_help("my_app", escape_markdown)
        self.assertIn("*my\\_app*", text)

    def test_sessions_list(self) -> None:
        from ccremote.ports.im.commands import format_sessions
        from ccremote.ports.im.formatting import escape_markdown

        self.assertEqual(format_sessions([], None, escape_markdown), "No active sessions.")
        text = format_sessions([("⏳", "api", "5m ago"), ("🤖", "web", "1h ago")], "api", escape_markdown)
        self.assertTrue(text.startswith("*Active Sessions*\n\n"))
        self.assertIn("⏳ *api* (5m ago)", text)
        self.assertIn("🤖 *web* (1h ago)", text)
        self.assertTrue(text.endswith("_Default workspace:_ *api*"))

    def test_escaping_and_truncation(self) -> None:
        from ccremote.ports.im.formatting import escape_html, escape_markdown, strip_html, truncate

        self.assertEqual(escape_markdown("a_b*c`d[e"), "a\\_b\\*c\\`d\\[e")
        self.assertEqual(escape_html("<a & b>"), "&lt;a &amp; b&gt;")
        self.assertEqual(strip_html("<b>x</b> y"), "x y")
        self.assertEqual(truncate("abcdef", 10), "abcdef")
        self.assertEqual(truncate("abcdefghij", 6), "abc...")

    def test_markdown_to_html(self) -> None:
        from ccremote.ports.im.formatting import markdown_to_html

        html = markdown_to_html("# Title\n**bold** and `x<y`\n- item")
        self.assertIn("Title", html)
        self.assertNotIn("#", html)
        self.assertIn("<b>bold</b>", html)
        self.assertIn("<code>x&lt;y</code>", html)
        self.assertIn("• item", html)

    def test_tool_descriptions(self) -> None:
        from ccremote.ports.im.formatting import format_tool_description

        self.assertEqual(format_tool_description("Bash", {"command": "ls -la"}), "*Command:* `ls -la`")
        edit = format_tool_description("Edit", {"file_path": "/a.py", "old_string": "x = 1", "new_string": "x = 2"})
        self.assertIn("*File:* `/a.py`", edit)
        self.assertIn("- x = 1", edit)
        self.assertIn("+ x = 2", edit)
        self.assertEqual(format_tool_description("Read", {"file_path": "/b.txt"}), "*File:* `/b.txt`")
        self.assertEqual(format_tool_description("WebFetch", {"url": "https://x"}), "*url:* `https://x`")
        self.assertEqual(format_tool_description("Other", {}), "")

    def test_keyboards(self) -> None:
        from ccremote.ports.im.formatting import option_keyboard, permission_keyboard, plan_keyboard, project_keyboard

        kb = permission_keyboard("p1")["inline_keyboard"]
        self.assertEqual([b["callback_data"] for b in kb[0]], ["perm:p1:allow", "perm:p1:deny", "perm:p1:always"])
        kb = plan_keyboard("p1")["inline_keyboard"]
        self.assertEqual([b["text"] for b in kb[0]], ["✅ Approve", "❌ Reject"])

        kb = project_keyboard(["a", "b", "c"])["inline_keyboard"]
        self.assertEqual([[b["callback_data"] for b in row] for row in kb], [["new:a", "new:b"], ["new:c"]])

        kb = option_keyboard("p2", ["Yes", "No", "Maybe"], multi_select=True, selected=[False, True, False])
        rows = kb["inline_keyboard"]
        self.assertEqual(rows[0][0]["text"], "☐ 1. Yes")
        self.assertEqual(rows[0][1]["text"], "☑ 2. No")
        self.assertEqual(rows[1][0]["callback_data"], "opt:p2:3")
        self.assertEqual(rows[-1], [{"text": "✅ Submit", "callback_data": "opt-submit:p2"}])

        rows = option_keyboard("p3", ["Yes"])["inline_keyboard"]
        self.assertEqual(rows, [[{"text": "1. Yes", "callback_data": "opt:p3:1"}]])


if __name__ == "__main__":
    unittest.main()
