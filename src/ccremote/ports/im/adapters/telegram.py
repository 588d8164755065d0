"""
Telegram Bot API adapter.

Messages and inline-button callbacks arrive through long-poll getUpdates.
Outbound sends are spaced per chat and clipped to Telegram's length limit;
a 429 is retried after the delay Telegram asks for.
"""

from __future__ import annotations

import json
import logging
import threading
import time
import urllib.error
import urllib.request
from typing import Any, Dict, List, Optional

from .base import IMAdapter, TransportError

# Telegram API limits
TELEGRAM_MAX_MESSAGE_LENGTH = 4096
DEFAULT_MAX_CHARS = 4096
DEFAULT_MAX_LINES = 200

POLL_TIMEOUT_SECONDS = 30
MAX_RETRY_AFTER_SECONDS = 30.0

logger = logging.getLogger("ccremote.telegram")


def _http_failure(e: urllib.error.HTTPError) -> Dict[str, Any]:
    """Failure document for an HTTP error, keeping Telegram's description and retry_after."""
    failure: Dict[str, Any] = {"ok": False, "error": str(e), "http_status": e.code}
    try:
        body = json.loads(e.read().decode("utf-8", "ignore"))
    except (OSError, ValueError):
        return failure
    if isinstance(body, dict):
        failure["error"] = str(body.get("description") or failure["error"])[:300]
        retry_after = (body.get("parameters") or {}).get("retry_after")
        if isinstance(retry_after, (int, float)) and retry_after > 0:
            failure["retry_after"] = float(retry_after)
    return failure


class RateLimiter:
    """Per-chat send slots.

    Telegram accepts roughly one message per second in a single chat. Each
    caller reserves the next free slot for its chat and sleeps until then,
    so concurrent senders queue up instead of racing for the same second.
    """

    def __init__(self, max_per_second: float = 1.0, *, clock=time.monotonic, sleep=time.sleep):
        self.min_interval = 1.0 / max_per_second
        self._clock = clock
        self._sleep = sleep
        self._next_slot: Dict[str, float] = {}
        self._lock = threading.Lock()

    def reserve(self, chat_id: str) -> float:
        """Claim the next slot for chat_id; returns seconds until it opens."""
        with self._lock:
            now = self._clock()
            slot = max(now, self._next_slot.get(chat_id, now))
            self._next_slot[chat_id] = slot + self.min_interval
            return slot - now

    def wait_and_acquire(self, chat_id: str) -> None:
        delay = self.reserve(chat_id)
        if delay > 0:
            self._sleep(delay)


class TelegramAdapter(IMAdapter):
    """
    Telegram Bot API adapter using long-poll getUpdates.
    """

    platform = "telegram"

    def __init__(
        self,
        token: str,
        max_chars: int = DEFAULT_MAX_CHARS,
        max_lines: int = DEFAULT_MAX_LINES,
        rate_per_second: float = 1.0,
    ):
        self.token = token
        self.max_chars = max_chars
        self.max_lines = max_lines

        self._offset = 0
        self._rate_limiter = RateLimiter(max_per_second=rate_per_second)
        self._connected = False
        self._bot_username = ""

    def _api(
        self,
        method: str,
        params: Optional[Dict[str, Any]] = None,
        timeout: int = 35,
    ) -> Dict[str, Any]:
        """POST one Bot API method with a JSON body.

        Never raises: failures come back as {"ok": False, "error": ...} with
        the HTTP status and Telegram's retry_after hint when there is one.
        """
        req = urllib.request.Request(
            f"https://api.telegram.org/bot{self.token}/{method}",
            data=json.dumps(params or {}, ensure_ascii=False).encode("utf-8"),
            headers={"Content-Type": "application/json; charset=utf-8", "Accept": "application/json"},
            method="POST",
        )
        try:
            with urllib.request.urlopen(req, timeout=timeout) as resp:
                return json.loads(resp.read().decode("utf-8", errors="replace"))
        except urllib.error.HTTPError as e:
            failure = _http_failure(e)
            logger.warning(f"api {method}: HTTP {e.code} - {failure['error']}")
            return failure
        except (OSError, ValueError) as e:
            logger.warning(f"api {method}: {e}")
            return {"ok": False, "error": str(e)}

    def connect(self) -> bool:
        """Verify token and get bot info."""
        resp = self._api("getMe", timeout=10)
        if resp.get("ok"):
            info = resp.get("result", {}) or {}
            self._connected = True
            self._bot_username = str(info.get("username") or "").strip()
            logger.info(f"connected as @{self._bot_username or 'unknown'}")
            return True
        logger.error(f"connect failed: {resp.get('error', 'unknown error')}")
        return False

    def disconnect(self) -> None:
        """Disconnect (no-op for Telegram, just mark as disconnected)."""
        self._connected = False

    def delete_webhook(self) -> bool:
        """Long polling only works when no webhook is registered."""
        resp = self._api("deleteWebhook", {"drop_pending_updates": False}, timeout=10)
        return bool(resp.get("ok"))

    def set_commands(self, commands: List[Dict[str, str]]) -> bool:
        resp = self._api("setMyCommands", {"commands": commands}, timeout=10)
        return bool(resp.get("ok"))

    def poll(self) -> List[Dict[str, Any]]:
        """
        Long-poll for new messages and button presses using getUpdates.

        Returns list of normalized event dicts.
        """
        resp = self._api(
            "getUpdates",
            {
                "offset": self._offset,
                "timeout": POLL_TIMEOUT_SECONDS,
                # Edited messages are ignored to avoid double-processing commands.
                "allowed_updates": ["message", "callback_query"],
            },
            timeout=POLL_TIMEOUT_SECONDS + 5,
        )
        if not resp.get("ok"):
            raise TransportError(str(resp.get("error") or resp.get("description") or "getUpdates failed"))

        events: List[Dict[str, Any]] = []
        for update in resp.get("result") or []:
            try:
                update_id = int(update.get("update_id", 0))
                self._offset = max(self._offset, update_id + 1)
                event = self._normalize_update(update)
            except Exception as e:
                logger.warning(f"error parsing update: {e}")
                continue
            if event is not None:
                event["update_id"] = update_id
                events.append(event)
        return events

    def _normalize_update(self, update: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        cq = update.get("callback_query")
        if isinstance(cq, dict):
            msg = cq.get("message") or {}
            chat = msg.get("chat") or {}
            return {
                "kind": "callback",
                "chat_id": str(chat.get("id", "")),
                "callback_id": str(cq.get("id") or ""),
                "data": str(cq.get("data") or ""),
                "message_id": int(msg.get("message_id") or 0),
                "message_text": str(msg.get("text") or ""),
                "from_user": str((cq.get("from") or {}).get("username") or "user"),
            }

        msg = update.get("message")
        if not isinstance(msg, dict):
            return None
        text = msg.get("text") or ""
        if not text:
            return None
        chat = msg.get("chat") or {}
        reply_to = msg.get("reply_to_message") or {}
        from_user = msg.get("from") or {}
        return {
            "kind": "message",
            "chat_id": str(chat.get("id", "")),
            "text": str(text),
            "message_id": int(msg.get("message_id") or 0),
            "reply_to_message_id": int(reply_to.get("message_id") or 0) or None,
            "from_user": str(from_user.get("username") or from_user.get("first_name") or "user"),
        }

    def send_message(
        self,
        chat_id: str,
        text: str,
        *,
        parse_mode: Optional[str] = None,
        reply_markup: Optional[Dict[str, Any]] = None,
    ) -> Optional[int]:
        """
        Send a message to a chat.

        Handles:
        - Rate limiting
        - Message length limits
        - Retry on transient failure
        """
        if not text:
            return None

        params: Dict[str, Any] = {
            "chat_id": chat_id,
            "text": self._compose_safe(text),
            "disable_web_page_preview": True,
        }
        if parse_mode:
            params["parse_mode"] = parse_mode
        if reply_markup is not None:
            params["reply_markup"] = reply_markup

        self._rate_limiter.wait_and_acquire(str(chat_id))
        resp = self._call_with_retry("sendMessage", params)
        if not resp.get("ok"):
            logger.warning(f"send to chat {chat_id} failed: {resp.get('error', 'unknown')}", extra={"chat_id": chat_id})
            return None
        result = resp.get("result") or {}
        try:
            return int(result.get("message_id") or 0) or None
        except Exception:
            return None

    def edit_message(
        self,
        chat_id: str,
        message_id: int,
        text: str,
        *,
        parse_mode: Optional[str] = None,
        reply_markup: Optional[Dict[str, Any]] = None,
    ) -> bool:
        params: Dict[str, Any] = {
            "chat_id": chat_id,
            "message_id": int(message_id),
            "text": self._compose_safe(text),
            "disable_web_page_preview": True,
        }
        if parse_mode:
            params["parse_mode"] = parse_mode
        if reply_markup is not None:
            params["reply_markup"] = reply_markup
        resp = self._call_with_retry("editMessageText", params)
        return bool(resp.get("ok"))

    def answer_callback(self, callback_id: str, text: str = "") -> bool:
        params: Dict[str, Any] = {"callback_query_id": callback_id}
        if text:
            params["text"] = text
        resp = self._api("answerCallbackQuery", params, timeout=10)
        return bool(resp.get("ok"))

    def send_chat_action(self, chat_id: str, action: str = "typing") -> bool:
        resp = self._api("sendChatAction", {"chat_id": chat_id, "action": action}, timeout=10)
        return bool(resp.get("ok"))

    def _compose_safe(self, text: str) -> str:
        """Ensure message fits within Telegram limits."""
        summarized = self.summarize(text, self.max_chars, self.max_lines)

        if len(summarized) > TELEGRAM_MAX_MESSAGE_LENGTH:
            summarized = summarized[: TELEGRAM_MAX_MESSAGE_LENGTH - 1] + "…"

        return summarized

    def _call_with_retry(self, method: str, params: Dict[str, Any], retries: int = 1) -> Dict[str, Any]:
        """Call once more unless Telegram rejected the request itself; a 429 waits out its retry_after."""
        resp = self._api(method, params, timeout=15)
        if resp.get("ok"):
            return resp

        status = int(resp.get("http_status") or 0)
        client_error = 400 <= status < 500 and status != 429
        if retries > 0 and not client_error:
            time.sleep(min(float(resp.get("retry_after") or 1.0), MAX_RETRY_AFTER_SECONDS))
            return self._call_with_retry(method, params, retries=retries - 1)
        return resp
