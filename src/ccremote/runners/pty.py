from __future__ import annotations

import codecs
import fcntl
import logging
import os
import pty
import selectors
import shutil
import signal
import struct
import subprocess
import threading
import time
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

import termios

from ..paths import logs_dir
from .keys import INTERRUPT, key_sequence
from .output_buffer import DEFAULT_MAX_LINES, OutputBuffer

PTY_SUPPORTED = True

DEFAULT_COLS = 220
DEFAULT_ROWS = 50

logger = logging.getLogger("ccremote.pty")


def _set_winsize(fd: int, *, cols: int, rows: int) -> None:
    try:
        winsize = struct.pack("HHHH", int(rows), int(cols), 0, 0)
        fcntl.ioctl(fd, termios.TIOCSWINSZ, winsize)
    except Exception:
        pass


def _best_effort_killpg(pid: int, sig: signal.Signals) -> None:
    if pid <= 0:
        return
    try:
        os.killpg(pid, sig)
    except Exception:
        try:
            os.kill(pid, sig)
        except Exception:
            pass


class HeadlessSession:
    """One interactive CLI subprocess attached to a PTY we own.

    A reader thread drains the master fd: raw bytes go to the session log,
    decoded text goes to the line buffer.
    """

    def __init__(
        self,
        *,
        name: str,
        cwd: Path,
        command: Iterable[str],
        log_path: Optional[Path] = None,
        on_exit: Optional[Callable[["HeadlessSession"], None]] = None,
        max_lines: int = DEFAULT_MAX_LINES,
        cols: int = DEFAULT_COLS,
        rows: int = DEFAULT_ROWS,
    ) -> None:
        self.name = name
        self.buffer = OutputBuffer(max_lines=max_lines)
        self._on_exit = on_exit
        self._log_path = log_path
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._selector = selectors.DefaultSelector()

        cmd = [str(x) for x in command if isinstance(x, str) and str(x).strip()]
        if not cmd:
            raise ValueError("missing command")

        master_fd, slave_fd = pty.openpty()
        _set_winsize(master_fd, cols=cols, rows=rows)
        os.set_blocking(master_fd, False)

        proc_env = os.environ.copy()
        proc_env["TERM"] = "xterm-256color"

        def _preexec() -> None:
            try:
                os.setsid()
            except Exception:
                pass
            try:
                fcntl.ioctl(0, termios.TIOCSCTTY, 0)
            except Exception:
                pass

        try:
            self._proc = subprocess.Popen(
                cmd,
                stdin=slave_fd,
                stdout=slave_fd,
                stderr=slave_fd,
                cwd=str(cwd),
                env=proc_env,
                close_fds=True,
                preexec_fn=_preexec,
            )
        except Exception:
            os.close(master_fd)
            os.close(slave_fd)
            raise
        try:
            os.close(slave_fd)
        except Exception:
            pass

        self._master_fd = master_fd
        self._running = True
        self._selector.register(master_fd, selectors.EVENT_READ)

        self._thread = threading.Thread(target=self._loop, name=f"ccremote-pty:{name}", daemon=True)
        self._thread.start()

    @property
    def pid(self) -> int:
        return int(getattr(self._proc, "pid", 0) or 0)

    def is_running(self) -> bool:
        return bool(self._running) and self._proc.poll() is None

    def write_input(self, data: bytes) -> bool:
        """Write to the PTY master, retrying partial/non-blocking writes for up to ~5s."""
        if not data:
            return True

        remaining = data
        max_attempts = 50
        attempt = 0

        while remaining and attempt < max_attempts:
            try:
                written = os.write(self._master_fd, remaining)
                if written <= 0:
                    return False
                remaining = remaining[written:]
                attempt = 0
            except BlockingIOError:
                attempt += 1
                time.sleep(0.1)
            except OSError:
                return False

        return len(remaining) == 0

    def stop(self) -> None:
        self._running = False
        _best_effort_killpg(self.pid, signal.SIGTERM)
        deadline = time.time() + 1.0
        while time.time() < deadline:
            if self._proc.poll() is not None:
                break
            time.sleep(0.05)
        if self._proc.poll() is None:
            _best_effort_killpg(self.pid, signal.SIGKILL)

    def _append_log(self, chunk: bytes) -> None:
        if self._log_path is None:
            return
        try:
            with self._log_path.open("ab") as f:
                f.write(chunk)
        except OSError:
            pass

    def _on_readable(self) -> None:
        while True:
            try:
                chunk = os.read(self._master_fd, 65536)
            except BlockingIOError:
                return
            except OSError:
                self._running = False
                return
            if not chunk:
                self._running = False
                return
            self._append_log(chunk)
            text = self._decoder.decode(chunk)
            if text:
                self.buffer.feed(text)

    def _loop(self) -> None:
        try:
            while self._running and self._proc.poll() is None:
                for _key, mask in self._selector.select(timeout=0.1):
                    if mask & selectors.EVENT_READ:
                        self._on_readable()
            # Drain whatever the process wrote right before exiting.
            self._on_readable()
        finally:
            self._running = False
            try:
                self._selector.unregister(self._master_fd)
            except Exception:
                pass
            try:
                self._selector.close()
            except Exception:
                pass
            try:
                os.close(self._master_fd)
            except Exception:
                pass
            if self._proc.poll() is None:
                _best_effort_killpg(self.pid, signal.SIGKILL)
            try:
                self._proc.wait(timeout=1.0)
            except Exception:
                pass
            if self._on_exit is not None:
                try:
                    self._on_exit(self)
                except Exception:
                    logger.exception(f"exit hook failed for {self.name}")


class HeadlessTerminalManager:
    """Named headless sessions for machines without tmux.

    Sessions cannot be attached from a terminal; the bridge drives them
    entirely through write/send_key/capture.
    """

    def __init__(self, *, cli_command: str = "claude", log_root: Optional[Path] = None) -> None:
        self.cli_command = cli_command
        self._log_root = log_root
        self._lock = threading.Lock()
        self._sessions: Dict[str, HeadlessSession] = {}

    def is_available(self) -> bool:
        return True

    def has(self, name: str) -> bool:
        with self._lock:
            s = self._sessions.get(name)
        return bool(s and s.is_running())

    def _drop_if_same(self, session: HeadlessSession) -> None:
        with self._lock:
            if self._sessions.get(session.name) is session:
                self._sessions.pop(session.name, None)
        logger.info(f"headless session exited: {session.name}", extra={"handle": session.name})

    def spawn(self, name: str, cwd: str, args: Optional[List[str]] = None, *, command: Optional[List[str]] = None) -> bool:
        """Start the CLI in a fresh PTY, replacing any live session of the same name."""
        key = str(name or "").strip()
        if not key:
            raise ValueError("missing session name")
        self.kill(key)

        if command is None:
            exe = shutil.which(self.cli_command) or self.cli_command
            command = [exe, *(args or [])]

        log_root = self._log_root if self._log_root is not None else logs_dir()
        try:
            session = HeadlessSession(
                name=key,
                cwd=Path(cwd),
                command=command,
                log_path=log_root / f"pty-{key}.log",
                on_exit=self._drop_if_same,
            )
        except Exception as e:
            logger.error(f"failed to spawn {key}: {e}", extra={"handle": key})
            return False
        with self._lock:
            self._sessions[key] = session
        logger.info(f"spawned headless session {key} pid={session.pid}", extra={"handle": key})
        return True

    def _get(self, name: str) -> Optional[HeadlessSession]:
        with self._lock:
            s = self._sessions.get(name)
        if s is None or not s.is_running():
            return None
        return s

    def write(self, name: str, data: str) -> bool:
        s = self._get(name)
        if s is None:
            return False
        return s.write_input(data.encode("utf-8"))

    def send_key(self, name: str, key: str) -> bool:
        return self.write(name, key_sequence(key))

    def capture(self, name: str, lines: int = DEFAULT_MAX_LINES) -> Optional[str]:
        with self._lock:
            s = self._sessions.get(name)
        if s is None:
            return None
        return s.buffer.tail(lines)

    def interrupt(self, name: str) -> bool:
        return self.write(name, INTERRUPT)

    def kill(self, name: str) -> bool:
        with self._lock:
            s = self._sessions.pop(name, None)
        if s is None:
            return False
        try:
            s.stop()
        except Exception as e:
            logger.warning(f"failed to stop {name}: {e}", extra={"handle": name})
        return True

    def kill_all(self) -> None:
        with self._lock:
            items = list(self._sessions.values())
            self._sessions.clear()
        for s in items:
            try:
                s.stop()
            except Exception:
                pass
