"""Routing state for plain chat messages.

- default-workspace.json: where un-prefixed text goes
- message-workspace-map.json: outbound notification id -> workspace, so a
  reply to a notification reaches the session that sent it
"""
from __future__ import annotations

import math
import time
from pathlib import Path
from typing import Any, Optional, Union

from ..paths import data_dir
from ..util.fs import atomic_write_json, read_json, remove_file

MESSAGE_MAX_AGE_SECONDS = 24 * 60 * 60


def _is_fresh(entry: Any, now: float) -> bool:
    """False for expired entries and ones with a missing or unreadable timestamp."""
    if not isinstance(entry, dict):
        return False
    try:
        ts = float(entry.get("timestamp"))
    except (TypeError, ValueError):
        return False
    return not math.isnan(ts) and now - ts <= MESSAGE_MAX_AGE_SECONDS


class WorkspaceRouting:
    def __init__(self, root: Optional[Path] = None) -> None:
        self.root = root if root is not None else data_dir()

    @property
    def default_path(self) -> Path:
        return self.root / "default-workspace.json"

    @property
    def message_map_path(self) -> Path:
        return self.root / "message-workspace-map.json"

    def get_default_workspace(self) -> Optional[str]:
        name = read_json(self.default_path).get("workspace")
        return str(name) if isinstance(name, str) and name else None

    def set_default_workspace(self, name: Optional[str]) -> None:
        if name:
            atomic_write_json(self.default_path, {"workspace": name})
        else:
            remove_file(self.default_path)

    def track_notification_message(self, message_id: Union[int, str, None], workspace: str, kind: str) -> None:
        if not message_id or not workspace:
            return
        now = time.time()
        entries = read_json(self.message_map_path)
        fresh = {k: v for k, v in entries.items() if _is_fresh(v, now)}
        fresh[str(message_id)] = {"workspace": workspace, "kind": kind, "timestamp": now}
        atomic_write_json(self.message_map_path, fresh)

    def get_workspace_for_message(self, message_id: Union[int, str, None]) -> Optional[str]:
        if not message_id:
            return None
        entry = read_json(self.message_map_path).get(str(message_id))
        if not _is_fresh(entry, time.time()):
            return None
        ws = entry.get("workspace")
        return str(ws) if ws else None
