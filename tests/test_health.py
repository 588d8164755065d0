import unittest


class TestHealthEndpoint(unittest.TestCase):
    def test_ok_and_unhealthy(self) -> None:
        from fastapi.testclient import TestClient

        from ccremote.ports.health import create_app

        state = {"status": "ok", "uptime": 5, "last_poll_age": 1, "active_sessions": 2, "pending_prompts": 0}
        client = TestClient(create_app(lambda: dict(state)))

        r = client.get("/health")
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json()["active_sessions"], 2)

        state["status"] = "unhealthy"
        state["last_poll_age"] = 120
        r = client.get("/health")
        self.assertEqual(r.status_code, 503)
        self.assertEqual(r.json()["status"], "unhealthy")


class TestCli(unittest.TestCase):
    def test_parser_routes_subcommands(self) -> None:
        from ccremote.cli import build_parser, cmd_hook, cmd_sessions

        p = build_parser()
        args = p.parse_args(["hook", "notify", "waiting"])
        self.assertIs(args.func, cmd_hook)
        self.assertEqual(args.status, "waiting")
        args = p.parse_args(["hook", "notify"])
        self.assertEqual(args.status, "completed")
        self.assertIs(p.parse_args(["sessions"]).func, cmd_sessions)

    def test_sessions_and_prune_print_json(self) -> None:
        import contextlib
        import io
        import json
        import os
        import tempfile

        from ccremote.cli import main
        from ccremote.kernel.registry import SessionRegistry

        old_home = os.environ.get("CCREMOTE_HOME")
        try:
            with tempfile.TemporaryDirectory() as td:
                os.environ["CCREMOTE_HOME"] = td
                SessionRegistry().upsert_session(cwd="/w/api", terminal_handle="api", status="waiting")

                buf = io.StringIO()
                with contextlib.redirect_stdout(buf):
                    self.assertEqual(main(["sessions"]), 0)
                doc = json.loads(buf.getvalue())
                self.assertTrue(doc["ok"])
                self.assertEqual([s["workspace"] for s in doc["result"]["sessions"]], ["api"])

                buf = io.StringIO()
                with contextlib.redirect_stdout(buf):
                    self.assertEqual(main(["prune"]), 0)
                self.assertEqual(json.loads(buf.getvalue())["result"]["sessions_removed"], 0)
        finally:
            if old_home is None:
                os.environ.pop("CCREMOTE_HOME", None)
            else:
                os.environ["CCREMOTE_HOME"] = old_home


if __name__ == "__main__":
    unittest.main()
