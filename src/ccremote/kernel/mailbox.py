"""Prompt mailbox: file pairs shared by hook processes and the bridge.

    pending-<id>.json   written by a hook, read by the bridge's callback handler
    response-<id>.json  written by the bridge, polled for by the hook

Only the hook that owns a prompt id writes its pending file (the bridge may
merge multi-select toggles into it) and only the bridge writes the response.
Missing or corrupt files read as "no data"; nothing here raises on I/O.
"""
from __future__ import annotations

import json
import logging
import re
import secrets
import time
from pathlib import Path
from typing import Any, Dict, Optional

from ..contracts.v1 import PendingPrompt, ResponseRecord
from ..paths import prompts_dir
from ..util.fs import atomic_write_json, remove_file

logger = logging.getLogger("ccremote.mailbox")

EXPIRY_SECONDS = 5 * 60

_PROMPT_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def generate_prompt_id() -> str:
    return secrets.token_hex(4)


def _read_doc(path: Path) -> Optional[Dict[str, Any]]:
    try:
        doc = json.loads(path.read_text(encoding="utf-8"))
    except Exception:
        return None
    return doc if isinstance(doc, dict) else None


class PromptMailbox:
    def __init__(self, root: Optional[Path] = None, *, expiry_seconds: float = EXPIRY_SECONDS) -> None:
        self.root = root if root is not None else prompts_dir()
        self.expiry_seconds = float(expiry_seconds)

    def _path(self, kind: str, prompt_id: str) -> Optional[Path]:
        pid = str(prompt_id or "").strip()
        if not _PROMPT_ID_RE.match(pid):
            return None
        return self.root / f"{kind}-{pid}.json"

    def write_pending(self, prompt_id: str, data: Dict[str, Any]) -> None:
        path = self._path("pending", prompt_id)
        if path is None:
            raise ValueError(f"invalid prompt id: {prompt_id!r}")
        self.clean_expired()
        atomic_write_json(path, {**data, "created_at": time.time()})

    def write_response(self, prompt_id: str, data: Dict[str, Any]) -> None:
        path = self._path("response", prompt_id)
        if path is None:
            raise ValueError(f"invalid prompt id: {prompt_id!r}")
        atomic_write_json(path, {**data, "responded_at": time.time()})

    def read_pending(self, prompt_id: str) -> Optional[Dict[str, Any]]:
        path = self._path("pending", prompt_id)
        return _read_doc(path) if path is not None else None

    def read_response(self, prompt_id: str) -> Optional[Dict[str, Any]]:
        path = self._path("response", prompt_id)
        return _read_doc(path) if path is not None else None

    def has_response(self, prompt_id: str) -> bool:
        path = self._path("response", prompt_id)
        return path is not None and path.exists()

    def read_pending_prompt(self, prompt_id: str) -> Optional[PendingPrompt]:
        doc = self.read_pending(prompt_id)
        if doc is None:
            return None
        try:
            return PendingPrompt.model_validate(doc)
        except Exception:
            logger.warning(f"unreadable pending prompt {prompt_id}", extra={"prompt_id": prompt_id})
            return None

    def read_response_record(self, prompt_id: str) -> Optional[ResponseRecord]:
        doc = self.read_response(prompt_id)
        if doc is None:
            return None
        try:
            return ResponseRecord.model_validate(doc)
        except Exception:
            return None

    def update_pending(self, prompt_id: str, updates: Dict[str, Any]) -> None:
        existing = self.read_pending(prompt_id)
        path = self._path("pending", prompt_id)
        if existing is None or path is None:
            return
        atomic_write_json(path, {**existing, **updates})

    def clean_prompt(self, prompt_id: str) -> None:
        for kind in ("pending", "response"):
            path = self._path(kind, prompt_id)
            if path is not None:
                remove_file(path)

    def clean_expired(self) -> int:
        """Delete pending/response files whose mtime is older than the expiry window."""
        removed = 0
        now = time.time()
        try:
            files = list(self.root.glob("*.json"))
        except OSError:
            return 0
        for path in files:
            try:
                if now - path.stat().st_mtime > self.expiry_seconds:
                    path.unlink()
                    removed += 1
            except OSError:
                continue
        return removed

    def has_pending_for_workspace(self, workspace: str) -> bool:
        now = time.time()
        try:
            files = sorted(self.root.glob("pending-*.json"))
        except OSError:
            return False
        for path in files:
            doc = _read_doc(path)
            if doc is None or doc.get("workspace") != workspace:
                continue
            try:
                created = float(doc.get("created_at") or 0)
            except (TypeError, ValueError):
                continue
            if now - created >= self.expiry_seconds:
                continue
            prompt_id = path.name[len("pending-") : -len(".json")]
            if not self.has_response(prompt_id):
                return True
        return False

    def count_pending(self) -> int:
        try:
            return sum(1 for _ in self.root.glob("pending-*.json"))
        except OSError:
            return 0

    def wait_for_response(
        self,
        prompt_id: str,
        *,
        timeout: float,
        interval: float = 0.5,
        sleep=time.sleep,
    ) -> Optional[Dict[str, Any]]:
        """Poll for the response file; None when `timeout` elapses first."""
        deadline = time.monotonic() + max(0.0, float(timeout))
        while True:
            doc = self.read_response(prompt_id)
            if doc is not None:
                return doc
            if time.monotonic() >= deadline:
                return None
            sleep(interval)
