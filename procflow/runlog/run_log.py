from __future__ import annotations

import getpass
import os
import shlex
import socket
from pathlib import Path
from typing import IO, Sequence


def _current_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return str(os.getuid()) if hasattr(os, "getuid") else "unknown"


def format_command_line(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in argv)


class RunLog:
    """
    Append-only text sink for the run.

    Truncated once at process start, appended to afterwards. Command output is
    written straight into the file by the child process.
    """

    def __init__(self, path: Path):
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def reset(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text("", encoding="utf-8")

    def append(self, line: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("a", encoding="utf-8") as f:
            f.write(line + "\n")

    def audit_command(self, argv: Sequence[str], *, cwd: Path | None = None) -> None:
        basedir = (cwd or Path.cwd()).name or "/"
        self.append(f"[{_current_user()}@{socket.gethostname()} {basedir}]# {format_command_line(argv)}")

    def open_for_output(self) -> IO[bytes]:
        """
        Binary append handle for a child process's stdout/stderr.
        """
        self._path.parent.mkdir(parents=True, exist_ok=True)
        return self._path.open("ab")
