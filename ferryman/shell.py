"""A long-lived login shell that runs commands one at a time and keeps its cwd."""

from __future__ import annotations

import contextlib
import os
import re
import signal
import subprocess
import tempfile
import threading
import time
from dataclasses import dataclass
from typing import Optional

_POLL_INTERVAL = 0.01
_INTERRUPTED_EXIT_CODE = 143


@dataclass
class CommandResult:
    """Output, exit status and interruption flag of one command."""

    stdout: str
    stderr: str
    exit_code: int
    interrupted: bool


def shell_quote(text: str) -> str:
    """Quote text as a single POSIX shell word."""
    return "'" + text.replace("'", "'\\''") + "'"


def _read_or_empty(path: str) -> str:
    try:
        with open(path, encoding="utf-8", errors="replace") as handle:
            return handle.read()
    except OSError:
        return ""


def _has_content(path: str) -> bool:
    try:
        return os.stat(path).st_size > 0
    except OSError:
        return False


class PersistentShell:
    """A login shell process fed commands through its standard input."""

    def __init__(self, cwd: str):
        shell_path = os.environ.get("SHELL") or "/bin/bash"
        env = {**os.environ, "GIT_EDITOR": "true"}
        self.cwd = cwd
        self._lock = threading.Lock()
        self._closed = False
        self._proc = subprocess.Popen(
            [shell_path, "-l"],
            cwd=cwd,
            env=env,
            stdin=subprocess.PIPE,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            text=True,
        )

    @property
    def is_alive(self) -> bool:
        """Whether the shell process is still running and not closed."""
        return not self._closed and self._proc.poll() is None

    def __enter__(self) -> PersistentShell:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def exec(
        self,
        command: str,
        timeout_ms: int = 0,
        cancel: Optional[threading.Event] = None,
    ) -> CommandResult:
        """Run a command in the shell and wait for it.

        A positive timeout_ms or a set cancel event stops the command's children
        and marks the result as interrupted.
        """
        with self._lock:
            if not self.is_alive:
                raise RuntimeError("shell is not alive")

            tmp = tempfile.gettempdir()
            stdout_file = os.path.join(tmp, f"ferryer-stdout-{time.time_ns()}")
            stderr_file = os.path.join(tmp, f"ferryer-stderr-{time.time_ns()}")
            status_file = os.path.join(tmp, f"ferryer-status-{time.time_ns()}")
            cwd_file = os.path.join(tmp, f"ferryer-cwd-{time.time_ns()}")
            try:
                script = (
                    f"\neval {shell_quote(command)} < /dev/null > {shell_quote(stdout_file)}"
                    f" 2> {shell_quote(stderr_file)}\n"
                    "EXEC_EXIT_CODE=$?\n"
                    f"pwd > {shell_quote(cwd_file)}\n"
                    f"echo $EXEC_EXIT_CODE > {shell_quote(status_file)}\n"
                )
                try:
                    self._proc.stdin.write(script + "\n")
                    self._proc.stdin.flush()
                except (OSError, ValueError) as exc:
                    raise RuntimeError(f"Failed to write command to shell: {exc}") from exc

                interrupted = self._wait_for(status_file, timeout_ms / 1000, cancel)

                stdout = _read_or_empty(stdout_file)
                stderr = _read_or_empty(stderr_file)
                status = _read_or_empty(status_file)
                new_cwd = _read_or_empty(cwd_file)
            finally:
                for path in (stdout_file, stderr_file, status_file, cwd_file):
                    with contextlib.suppress(OSError):
                        os.remove(path)

            exit_code = 0
            if status:
                match = re.match(r"\s*([+-]?\d+)", status)
                if match:
                    exit_code = int(match.group(1))
            elif interrupted:
                exit_code = _INTERRUPTED_EXIT_CODE
                stderr += "\nCommand execution timed out or was interrupted"

            if new_cwd:
                self.cwd = new_cwd.strip()

            return CommandResult(stdout, stderr, exit_code, interrupted)

    def _wait_for(
        self, status_file: str, timeout: float, cancel: Optional[threading.Event]
    ) -> bool:
        start = time.monotonic()
        while True:
            if cancel is not None and cancel.is_set():
                self._kill_children()
                return True
            if _has_content(status_file):
                return False
            if timeout > 0 and time.monotonic() - start > timeout:
                self._kill_children()
                return True
            time.sleep(_POLL_INTERVAL)

    def _kill_children(self) -> None:
        try:
            found = subprocess.run(
                ["pgrep", "-P", str(self._proc.pid)],
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError:
            return
        if found.returncode != 0:
            return
        for line in found.stdout.splitlines():
            match = re.match(r"\s*(\d+)", line)
            if match:
                with contextlib.suppress(OSError):
                    os.kill(int(match.group(1)), signal.SIGKILL)

    def close(self) -> None:
        """Stop the shell and any command it is running."""
        if self._proc.poll() is None:
            self._kill_children()
            self._proc.kill()
            with contextlib.suppress(subprocess.TimeoutExpired):
                self._proc.wait(timeout=5)
        with contextlib.suppress(OSError, ValueError):
            self._proc.stdin.close()
        self._closed = True


_instance: Optional[PersistentShell] = None
_instance_lock = threading.Lock()


def get_persistent_shell(working_dir: str) -> PersistentShell:
    """Return the shared shell, starting a new one if none is running.

    A replacement for a dead shell starts in the dead shell's last directory.
    """
    global _instance
    with _instance_lock:
        if _instance is None:
            _instance = PersistentShell(working_dir)
        elif not _instance.is_alive:
            _instance = PersistentShell(_instance.cwd)
        return _instance