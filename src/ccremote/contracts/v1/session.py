from __future__ import annotations

import os
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

SessionKind = Literal["external-multiplexer", "headless-pty"]


class SessionEntry(BaseModel):
    """One assistant session, keyed by token in the session map.

    `created_at` / `expires_at` are Unix epoch seconds.
    """

    cwd: str
    terminal_handle: str
    session_kind: SessionKind = "external-multiplexer"
    session_id: Optional[str] = None
    created_at: int = 0
    expires_at: int = 0
    status: str = ""

    model_config = ConfigDict(extra="ignore")

    @property
    def workspace_name(self) -> str:
        return os.path.basename(os.path.normpath(self.cwd)) if self.cwd else ""

    def is_expired(self, now: int) -> bool:
        return bool(self.expires_at) and self.expires_at < now


class SessionHistoryEntry(BaseModel):
    id: str
    started_at: float

    model_config = ConfigDict(extra="ignore")


class ProjectHistoryEntry(BaseModel):
    path: str
    last_used: float
    # newest first, bounded
    sessions: List[SessionHistoryEntry] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")


class RecentProject(BaseModel):
    name: str
    path: str
    last_used: float = 0.0
