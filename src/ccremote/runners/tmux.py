from __future__ import annotations

import os
import shutil
import subprocess
from typing import List, Optional, Tuple


def _run_tmux(args: List[str], *, timeout_s: float = 3.0) -> Tuple[int, str, str]:
    try:
        p = subprocess.run(
            ["tmux", *args],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            timeout=timeout_s,
            check=False,
        )
        return int(p.returncode), (p.stdout or ""), (p.stderr or "")
    except subprocess.TimeoutExpired:
        return 124, "", "tmux timeout"
    except Exception as e:
        return 1, "", str(e)


def available() -> bool:
    if shutil.which("tmux") is None:
        return False
    code, _, _ = _run_tmux(["-V"])
    return code == 0


def has_session(session: str) -> bool:
    if not session:
        return False
    code, _, _ = _run_tmux(["has-session", "-t", session])
    return code == 0


def new_session(session: str, cwd: str) -> None:
    code, _, err = _run_tmux(["new-session", "-d", "-s", session, "-c", cwd])
    if code != 0:
        raise RuntimeError(f"tmux new-session failed: {err.strip()}")


def send_literal(session: str, text: str) -> bool:
    code, _, _ = _run_tmux(["send-keys", "-t", session, "-l", text])
    return code == 0


def send_key(session: str, key: str) -> bool:
    code, _, _ = _run_tmux(["send-keys", "-t", session, key])
    return code == 0


def capture_pane(session: str, lines: int = 100) -> Optional[str]:
    code, out, _ = _run_tmux(["capture-pane", "-t", session, "-p", "-S", f"-{int(lines)}"])
    if code != 0:
        return None
    return out


def current_session() -> Optional[str]:
    """Name of the tmux session this process runs in, if any."""
    if not os.environ.get("TMUX"):
        return None
    code, out, _ = _run_tmux(["display-message", "-p", "#S"])
    name = (out or "").strip()
    if code != 0 or not name:
        return None
    return name
