from __future__ import annotations

import errno
import shlex
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence, Union

from procflow.runlog.run_log import RunLog
from procflow.trace.trace_emitter import TraceEmitter

from .console import Console
from .errors import ValidationError
from .lifecycle import ProcedureLifecycle
from .run_context import RunContext


Command = Union[str, Sequence[str]]

# Shell conventions for commands that never started.
STATUS_NOT_EXECUTABLE = 126
STATUS_NOT_FOUND = 127


def build_argv(command: Command, args: Sequence[str] = (), *, shell: bool = False) -> List[str]:
    """
    Normalize a step command into an argv list.

    - list/tuple: used as-is, extra args appended
    - string: split like a shell would split words (no expansion), extra args appended
    - shell=True: the joined command line is handed to /bin/sh -c; list items
      and extra args are quoted, a string command is passed through verbatim
    """
    if isinstance(command, str):
        if shell:
            line = " ".join([command, *[shlex.quote(str(a)) for a in args]]) if args else command
            return ["/bin/sh", "-c", line]
        try:
            argv = shlex.split(command)
        except ValueError as e:
            raise ValidationError(
                code="step.command_invalid",
                message=f"Cannot split step command: {e}",
                data={"command": command},
            ) from e
    else:
        argv = [str(c) for c in command]
        if shell:
            return ["/bin/sh", "-c", " ".join(shlex.quote(a) for a in [*argv, *[str(a) for a in args]])]
    argv.extend(str(a) for a in args)
    if not argv:
        raise ValidationError(code="step.command_empty", message="Step command must not be empty")
    return argv


def _status_from_returncode(returncode: int) -> int:
    # subprocess reports signal deaths as -N; shells report 128+N.
    if returncode < 0:
        return 128 + (-returncode)
    return returncode


class StepRunner:
    """
    Runs one external command per call and applies the failure policy.

    Callers must only invoke run() for a procedure whose permission is PROCEED;
    the runner does not check it again.
    """

    def __init__(
        self,
        ctx: RunContext,
        lifecycle: ProcedureLifecycle,
        console: Console,
        run_log: RunLog,
        trace: TraceEmitter,
        *,
        cwd: Optional[Path] = None,
    ):
        self._ctx = ctx
        self._lifecycle = lifecycle
        self._console = console
        self._log = run_log
        self._trace = trace
        self._cwd = cwd

    def run(self, description: str, command: Command, *args: str, shell: bool = False) -> int:
        argv = build_argv(command, args, shell=shell)
        procedure = self._ctx.current_procedure
        self._trace.emit("step_started", procedure=procedure, step=description, data={"argv": argv})

        if self._ctx.inline_output:
            status = self._execute_inline(argv)
        else:
            self._log.audit_command(argv, cwd=self._cwd)
            self._console.pending(description)
            status = self._execute_logged(argv)

        if status == 0:
            self._console.success(description)
            self._trace.emit("step_finished", procedure=procedure, step=description, data={"status": 0})
            return status

        self._console.failure(description)
        self._trace.emit("step_failed", procedure=procedure, step=description, data={"status": status})

        if not self._ctx.exit_on_error and self._console.confirm_ignore():
            self._trace.emit("step_forgiven", procedure=procedure, step=description, data={"status": status})
            return status

        self._ctx.error_count += status
        self._lifecycle.end_procedure()
        # end_procedure() always raises here: the error count is nonzero.
        return status

    def _execute_logged(self, argv: List[str]) -> int:
        with self._log.open_for_output() as sink:
            try:
                proc = subprocess.run(argv, stdout=sink, stderr=subprocess.STDOUT, cwd=self._cwd)
            except OSError as e:
                sink.write(f"{argv[0]}: {e.strerror or e}\n".encode("utf-8", errors="replace"))
                return self._launch_failure_status(e)
        return _status_from_returncode(proc.returncode)

    def _execute_inline(self, argv: List[str]) -> int:
        try:
            proc = subprocess.run(argv, cwd=self._cwd)
        except OSError as e:
            self._console.line(f"{argv[0]}: {e.strerror or e}")
            return self._launch_failure_status(e)
        return _status_from_returncode(proc.returncode)

    @staticmethod
    def _launch_failure_status(e: OSError) -> int:
        if isinstance(e, FileNotFoundError) or e.errno == errno.ENOENT:
            return STATUS_NOT_FOUND
        return STATUS_NOT_EXECUTABLE
