from __future__ import annotations

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, TextIO

# Keys callers pass through `extra=` to tie a line to a session or prompt.
CORRELATION_KEYS = ("workspace", "token", "prompt_id", "chat_id", "handle", "status")

HOOK_LOG_MAX_BYTES = 1024 * 1024
HOOK_LOG_BACKUPS = 3

_CONFIGURED: Dict[str, bool] = {}


class JsonlFormatter(logging.Formatter):
    """One JSON object per line, tagged with the process that wrote it.

    The bridge and every hook invocation share the logs directory, so
    `component` tells them apart and the correlation keys let a permission
    prompt be followed from the hook that wrote it to the button that
    answered it.
    """

    def __init__(self, *, component: str):
        super().__init__()
        self.component = str(component or "").strip() or "ccremote"

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "component": self.component,
            "msg": record.getMessage(),
        }
        for key in CORRELATION_KEYS:
            value = str(getattr(record, key, None) or "").strip()
            if value:
                payload[key] = value
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def _level(name: str) -> int:
    value = getattr(logging, str(name or "").strip().upper(), None)
    return value if isinstance(value, int) else logging.INFO


def _make_handler(stream: Optional[TextIO], log_path: Optional[Path]) -> logging.Handler:
    if log_path is None:
        return logging.StreamHandler(stream or sys.stderr)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    # Hooks start a fresh process per event and append forever otherwise.
    return logging.handlers.RotatingFileHandler(
        str(log_path), maxBytes=HOOK_LOG_MAX_BYTES, backupCount=HOOK_LOG_BACKUPS, encoding="utf-8"
    )


def setup_root_json_logging(
    *,
    component: str,
    level: str = "INFO",
    stream: Optional[TextIO] = None,
    log_path: Optional[Path] = None,
    force: bool = False,
) -> None:
    """Route root logging through a JsonlFormatter, once per component.

    The bridge logs to stderr. Hooks pass `log_path` because their stdout is
    read by the assistant CLI as the hook result. A root logger that already
    carries a JSONL handler only has its level updated unless `force` is set,
    which replaces every existing handler.
    """
    key = f"root:{component}"
    if _CONFIGURED.get(key) and not force:
        return
    _CONFIGURED[key] = True

    root = logging.getLogger()
    lvl = _level(level)
    root.setLevel(lvl)

    if force:
        for h in list(root.handlers):
            root.removeHandler(h)
    else:
        existing = [h for h in root.handlers if isinstance(h.formatter, JsonlFormatter)]
        if existing:
            for h in existing:
                h.setLevel(lvl)
            return

    handler = _make_handler(stream, log_path)
    handler.setLevel(lvl)
    handler.setFormatter(JsonlFormatter(component=component))
    root.addHandler(handler)
