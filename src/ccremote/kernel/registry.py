"""Session registry: which assistant sessions exist and how to reach them.

Backed by small JSON documents in the data directory:
- session-map.json: token -> SessionEntry
- project-history.json: project name -> ProjectHistoryEntry

All reads tolerate missing/corrupt files (treated as empty). There is one
logical writer per document; nothing here takes a lock.
"""
from __future__ import annotations

import logging
import os
import secrets
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Literal, Optional

from ..contracts.v1 import ProjectHistoryEntry, RecentProject, SessionEntry, SessionHistoryEntry, SessionKind
from ..paths import data_dir
from ..util.fs import atomic_write_json, read_json
from ..util.time import format_age, now_seconds

logger = logging.getLogger("ccremote.registry")

MAX_PROJECT_HISTORY = 50
MAX_SESSION_HISTORY = 5

ResolveKind = Literal["exact", "prefix", "ambiguous", "none"]


@dataclass
class SessionMatch:
    workspace: str
    token: str
    session: SessionEntry


@dataclass
class ResolveResult:
    kind: ResolveKind
    match: Optional[SessionMatch] = None
    matches: List[SessionMatch] = field(default_factory=list)

    @property
    def resolved(self) -> bool:
        return self.kind in ("exact", "prefix") and self.match is not None


@dataclass
class ActiveSession:
    workspace: str
    token: str
    session: SessionEntry
    age: str


def extract_workspace_name(cwd: Optional[str]) -> str:
    if not cwd:
        return ""
    return os.path.basename(os.path.normpath(cwd))


def generate_token() -> str:
    return secrets.token_hex(4).upper()


class SessionRegistry:
    def __init__(
        self,
        root: Optional[Path] = None,
        *,
        timeout_hours: int = 24,
        project_dirs: Optional[List[Path]] = None,
        pinned_projects: Optional[List[str]] = None,
    ) -> None:
        self.root = root if root is not None else data_dir()
        self.timeout_hours = int(timeout_hours)
        self.project_dirs = list(project_dirs or [])
        self.pinned_projects = list(pinned_projects or [])

    @classmethod
    def from_settings(cls, settings) -> "SessionRegistry":
        return cls(
            timeout_hours=settings.session_timeout_hours,
            project_dirs=settings.project_roots(),
            pinned_projects=settings.pinned_projects,
        )

    @property
    def session_map_path(self) -> Path:
        return self.root / "session-map.json"

    @property
    def history_path(self) -> Path:
        return self.root / "project-history.json"

    # -- session map -------------------------------------------------------

    def read_session_map(self) -> Dict[str, SessionEntry]:
        raw = read_json(self.session_map_path)
        out: Dict[str, SessionEntry] = {}
        for token, item in raw.items():
            if not isinstance(item, dict):
                continue
            try:
                out[str(token)] = SessionEntry.model_validate(item)
            except Exception:
                logger.warning(f"dropping unreadable session entry {token}")
        return out

    def write_session_map(self, sessions: Dict[str, SessionEntry]) -> None:
        atomic_write_json(self.session_map_path, {t: s.model_dump() for t, s in sessions.items()})

    def _newest_by_workspace(self, now: int) -> Dict[str, SessionMatch]:
        """Non-expired sessions keyed by lowercase workspace name, newest wins."""
        by_ws: Dict[str, SessionMatch] = {}
        for token, session in self.read_session_map().items():
            if session.is_expired(now):
                continue
            ws = session.workspace_name
            if not ws:
                continue
            existing = by_ws.get(ws.lower())
            if existing is None or session.created_at > existing.session.created_at:
                by_ws[ws.lower()] = SessionMatch(workspace=ws, token=token, session=session)
        return by_ws

    def resolve_workspace(self, query: str) -> ResolveResult:
        """Exact (case-insensitive) match, else a unique prefix match.

        Several prefix candidates come back as "ambiguous"; the caller asks
        the user to pick rather than guessing.
        """
        lower = (query or "").strip().lower()
        if not lower:
            return ResolveResult(kind="none")
        by_ws = self._newest_by_workspace(now_seconds())

        exact = by_ws.get(lower)
        if exact is not None:
            return ResolveResult(kind="exact", match=exact)

        prefix = [m for ws, m in by_ws.items() if ws.startswith(lower)]
        if len(prefix) == 1:
            return ResolveResult(kind="prefix", match=prefix[0])
        if len(prefix) > 1:
            prefix.sort(key=lambda m: m.workspace.lower())
            return ResolveResult(kind="ambiguous", matches=prefix)
        return ResolveResult(kind="none")

    def find_session_by_token(self, token: str) -> Optional[SessionMatch]:
        key = (token or "").strip().upper()
        session = self.read_session_map().get(key)
        if session is None or session.is_expired(now_seconds()):
            return None
        return SessionMatch(workspace=session.workspace_name, token=key, session=session)

    def list_active_sessions(self) -> List[ActiveSession]:
        now = now_seconds()
        items = sorted(self._newest_by_workspace(now).values(), key=lambda m: m.session.created_at, reverse=True)
        return [
            ActiveSession(
                workspace=m.workspace,
                token=m.token,
                session=m.session,
                age=format_age(now - m.session.created_at),
            )
            for m in items
        ]

    def upsert_session(
        self,
        *,
        cwd: str,
        terminal_handle: Optional[str],
        status: str,
        session_id: Optional[str] = None,
        session_kind: Optional[SessionKind] = None,
    ) -> tuple[str, str]:
        """Create or refresh the entry for (cwd, terminal_handle); returns (token, workspace)."""
        sessions = self.read_session_map()
        workspace = extract_workspace_name(cwd)
        handle = terminal_handle or f"claude-{workspace}"
        now = now_seconds()

        existing_token: Optional[str] = None
        for token, s in sessions.items():
            if s.cwd == cwd and s.terminal_handle == handle and not s.is_expired(now):
                existing_token = token
                break

        prior = sessions.get(existing_token) if existing_token else None
        token = existing_token or generate_token()
        sessions[token] = SessionEntry(
            cwd=cwd,
            terminal_handle=handle,
            session_kind=session_kind or (prior.session_kind if prior else "external-multiplexer"),
            session_id=session_id or (prior.session_id if prior else None),
            created_at=prior.created_at if prior else now,
            expires_at=now + self.timeout_hours * 3600,
            status=f"{status} - {workspace}",
        )
        self.write_session_map(sessions)
        self.record_project_usage(workspace, cwd, session_id=session_id)
        logger.debug(f"upsert {token} {workspace} {status}", extra={"workspace": workspace, "token": token})
        return token, workspace

    def prune_expired(self) -> int:
        sessions = self.read_session_map()
        now = now_seconds()
        expired = [t for t, s in sessions.items() if s.is_expired(now)]
        for token in expired:
            sessions.pop(token, None)
        if expired:
            self.write_session_map(sessions)
        return len(expired)

    # -- project history ---------------------------------------------------

    def read_project_history(self) -> Dict[str, ProjectHistoryEntry]:
        out: Dict[str, ProjectHistoryEntry] = {}
        for name, item in read_json(self.history_path).items():
            if not isinstance(item, dict):
                continue
            try:
                out[str(name)] = ProjectHistoryEntry.model_validate(item)
            except Exception:
                continue
        return out

    def record_project_usage(self, name: str, project_path: str, session_id: Optional[str] = None) -> None:
        if not name:
            return
        history = self.read_project_history()
        now = time.time()
        sessions = list(history[name].sessions) if name in history else []
        if session_id:
            sessions = [s for s in sessions if s.id != session_id]
            sessions.insert(0, SessionHistoryEntry(id=session_id, started_at=now))
            sessions = sessions[:MAX_SESSION_HISTORY]
        history[name] = ProjectHistoryEntry(path=project_path, last_used=now, sessions=sessions)

        ranked = sorted(history.items(), key=lambda kv: kv[1].last_used, reverse=True)[:MAX_PROJECT_HISTORY]
        atomic_write_json(self.history_path, {n: e.model_dump() for n, e in ranked})

    def _scan_project_dirs(self) -> Dict[str, RecentProject]:
        found: Dict[str, RecentProject] = {}
        for base in self.project_dirs:
            try:
                entries = list(os.scandir(base))
            except OSError:
                continue
            for e in entries:
                try:
                    if not e.is_dir():
                        continue
                    mtime = e.stat().st_mtime
                except OSError:
                    continue
                existing = found.get(e.name)
                if existing is None or mtime > existing.last_used:
                    found[e.name] = RecentProject(name=e.name, path=e.path, last_used=mtime)
        return found

    def get_recent_projects(self, limit: int = 10) -> List[RecentProject]:
        projects = self._scan_project_dirs()

        for name, entry in self.read_project_history().items():
            existing = projects.get(name)
            if existing is not None:
                existing.last_used = max(existing.last_used, entry.last_used)
            elif Path(entry.path).is_dir():
                projects[name] = RecentProject(name=name, path=entry.path, last_used=entry.last_used)

        pinned = [p for p in projects.values() if p.name in self.pinned_projects]
        pinned.sort(key=lambda p: self.pinned_projects.index(p.name))
        rest = [p for p in projects.values() if p.name not in self.pinned_projects]
        rest.sort(key=lambda p: p.last_used, reverse=True)
        return (pinned + rest)[: max(0, int(limit))]
