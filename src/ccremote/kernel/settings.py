"""Global settings for ccremote.

Settings are stored in ~/.ccremote/settings.yaml; every key can be overridden
from the environment, which is how hook processes launched by the assistant
CLI usually receive their credentials.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import yaml  # type: ignore
from pydantic import BaseModel, ConfigDict, Field

from ..paths import ensure_home
from ..util.conv import coerce_bool, coerce_int, split_csv
from ..util.fs import atomic_write_text

InjectionMode = Literal["tmux", "pty"]


def _default_project_dirs() -> List[str]:
    home = Path.home()
    return [str(home / "projects"), str(home / "tools")]


class Settings(BaseModel):
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""
    telegram_enabled: bool = True
    project_dirs: List[str] = Field(default_factory=_default_project_dirs)
    pinned_projects: List[str] = Field(default_factory=list)
    session_timeout_hours: int = 24
    injection_mode: InjectionMode = "tmux"
    cli_command: str = "claude"
    health_port: int = 0
    active_threshold_seconds: int = 300
    permission_timeout_seconds: int = 90
    log_level: str = "INFO"

    model_config = ConfigDict(extra="ignore")

    def missing_credentials(self) -> List[str]:
        missing: List[str] = []
        if not self.telegram_bot_token:
            missing.append("TELEGRAM_BOT_TOKEN")
        if not self.telegram_chat_id:
            missing.append("TELEGRAM_CHAT_ID")
        return missing

    def project_roots(self) -> List[Path]:
        return [Path(p).expanduser() for p in self.project_dirs if str(p).strip()]


# environment variable -> (settings key, coercion)
_ENV_OVERRIDES: Dict[str, tuple[str, str]] = {
    "TELEGRAM_BOT_TOKEN": ("telegram_bot_token", "str"),
    "TELEGRAM_CHAT_ID": ("telegram_chat_id", "str"),
    "TELEGRAM_ENABLED": ("telegram_enabled", "bool"),
    "PROJECT_DIRS": ("project_dirs", "csv"),
    "PINNED_PROJECTS": ("pinned_projects", "csv"),
    "SESSION_TIMEOUT": ("session_timeout_hours", "int"),
    "INJECTION_MODE": ("injection_mode", "str"),
    "CLAUDE_CLI_PATH": ("cli_command", "str"),
    "HEALTH_PORT": ("health_port", "int"),
    "ACTIVE_THRESHOLD_SECONDS": ("active_threshold_seconds", "int"),
    "PERMISSION_TIMEOUT_SECONDS": ("permission_timeout_seconds", "int"),
    "CCREMOTE_LOG_LEVEL": ("log_level", "str"),
}


def _settings_path() -> Path:
    return ensure_home() / "settings.yaml"


def load_settings_doc() -> Dict[str, Any]:
    """Load the raw settings document from ~/.ccremote/settings.yaml."""
    p = _settings_path()
    if not p.exists():
        return {}
    try:
        doc = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
        return doc if isinstance(doc, dict) else {}
    except Exception:
        return {}


def save_settings_doc(doc: Dict[str, Any]) -> None:
    """Save the raw settings document to ~/.ccremote/settings.yaml."""
    p = _settings_path()
    p.parent.mkdir(parents=True, exist_ok=True)
    atomic_write_text(p, yaml.safe_dump(doc, allow_unicode=True, sort_keys=False))


def _apply_env(doc: Dict[str, Any], env: Dict[str, str]) -> Dict[str, Any]:
    out = dict(doc)
    for var, (key, kind) in _ENV_OVERRIDES.items():
        raw = env.get(var)
        if raw is None or not str(raw).strip():
            continue
        if kind == "bool":
            out[key] = coerce_bool(raw, default=bool(out.get(key, True)))
        elif kind == "int":
            out[key] = coerce_int(raw, default=coerce_int(out.get(key), default=0))
        elif kind == "csv":
            out[key] = split_csv(raw)
        else:
            out[key] = str(raw).strip()
    return out


def load_settings(env: Optional[Dict[str, str]] = None) -> Settings:
    """Settings from settings.yaml, overridden by environment variables.

    Invalid documents (or invalid individual values) fall back to defaults so
    that a hook never fails to start because of a typo in settings.yaml.
    """
    doc = _apply_env(load_settings_doc(), dict(os.environ if env is None else env))
    for key in ("telegram_bot_token", "telegram_chat_id", "cli_command", "log_level"):
        if doc.get(key) is not None:
            doc[key] = str(doc[key]).strip()
    if "project_dirs" in doc:
        doc["project_dirs"] = split_csv(doc.get("project_dirs"))
    if "pinned_projects" in doc:
        doc["pinned_projects"] = split_csv(doc.get("pinned_projects"))
    if str(doc.get("injection_mode") or "").strip().lower() not in ("tmux", "pty"):
        doc.pop("injection_mode", None)
    else:
        doc["injection_mode"] = str(doc["injection_mode"]).strip().lower()
    try:
        return Settings.model_validate(doc)
    except Exception:
        cleaned: Dict[str, Any] = {}
        for key, value in doc.items():
            try:
                Settings.model_validate({key: value})
            except Exception:
                continue
            cleaned[key] = value
        return Settings.model_validate(cleaned)
