import io
import unittest
import urllib.error
from unittest import mock

from ccremote.ports.im.adapters import telegram
from ccremote.ports.im.adapters.telegram import RateLimiter, TelegramAdapter


class _Clock:
    def __init__(self) -> None:
        self.now = 100.0
        self.slept = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.slept.append(seconds)
        self.now += seconds


class TestRateLimiter(unittest.TestCase):
    def test_sends_to_one_chat_are_spaced(self) -> None:
        clock = _Clock()
        limiter = RateLimiter(max_per_second=1.0, clock=clock, sleep=clock.sleep)
        limiter.wait_and_acquire("42")
        limiter.wait_and_acquire("42")
        limiter.wait_and_acquire("7")
        self.assertEqual(clock.slept, [1.0])

    def test_reservations_queue_up(self) -> None:
        clock = _Clock()
        limiter = RateLimiter(max_per_second=2.0, clock=clock, sleep=clock.sleep)
        self.assertEqual([limiter.reserve("42") for _ in range(3)], [0.0, 0.5, 1.0])
        clock.now += 5
        self.assertEqual(limiter.reserve("42"), 0.0)


def _http_error(code: int, body: bytes) -> urllib.error.HTTPError:
    return urllib.error.HTTPError("https://api.telegram.org/x", code, "error", {}, io.BytesIO(body))


class TestTelegramErrors(unittest.TestCase):
    def test_http_failure_keeps_description_and_retry_after(self) -> None:
        failure = telegram._http_failure(
            _http_error(
                429,
                b'{"ok":false,"error_code":429,"description":"Too Many Requests: retry after 7",'
                b'"parameters":{"retry_after":7}}',
            )
        )
        self.assertFalse(failure["ok"])
        self.assertEqual(failure["http_status"], 429)
        self.assertEqual(failure["error"], "Too Many Requests: retry after 7")
        self.assertEqual(failure["retry_after"], 7.0)

    def test_http_failure_with_unreadable_body(self) -> None:
        failure = telegram._http_failure(_http_error(502, b"<html>bad gateway</html>"))
        self.assertEqual(failure["http_status"], 502)
        self.assertNotIn("retry_after", failure)

    def test_retry_waits_for_retry_after(self) -> None:
        adapter = TelegramAdapter("t")
        responses = [
            {"ok": False, "error": "Too Many Requests", "http_status": 429, "retry_after": 3.0},
            {"ok": True, "result": {"message_id": 9}},
        ]
        with mock.patch.object(adapter, "_api", side_effect=responses) as api, mock.patch.object(
            telegram.time, "sleep"
        ) as sleep:
            resp = adapter._call_with_retry("sendMessage", {"chat_id": "42", "text": "hi"})
        self.assertTrue(resp["ok"])
        self.assertEqual(api.call_count, 2)
        sleep.assert_called_once_with(3.0)

    def test_client_errors_are_not_retried(self) -> None:
        adapter = TelegramAdapter("t")
        with mock.patch.object(
            adapter, "_api", return_value={"ok": False, "error": "Bad Request", "http_status": 400}
        ) as api, mock.patch.object(telegram.time, "sleep") as sleep:
            resp = adapter._call_with_retry("editMessageText", {})
        self.assertFalse(resp["ok"])
        self.assertEqual(api.call_count, 1)
        sleep.assert_not_called()


if __name__ == "__main__":
    unittest.main()
