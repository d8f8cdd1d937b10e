from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional

from procflow.runlog.run_log import RunLog
from procflow.trace.trace_emitter import NullTraceEmitter, TraceEmitter
from procflow.trace.trace_store_jsonl import TraceStoreJSONL

from .console import Console
from .errors import ProcflowError, RunTerminated
from .lifecycle import ProcedureLifecycle
from .run_context import Permission, RunContext, RunSettings
from .step_runner import Command, StepRunner


class Workflow:
    """
    Author-facing API: declare procedures in order and gate every step on the
    published permission.

        wf = Workflow(settings)
        if wf.start_proc("set-repo"):
            wf.run("Mount DVD", "mount", "/dev/cdrom", "/media/", "-o", "loop")
            wf.run("List repos", "yum repolist")
            wf.end_proc()

    Fatal failures and single-procedure completion unwind as RunTerminated;
    use run_workflow() to turn them into an exit code.
    """

    def __init__(
        self,
        settings: Optional[RunSettings] = None,
        *,
        console: Optional[Console] = None,
        cwd: Optional[Path] = None,
    ):
        self.settings = settings or RunSettings.from_env()
        self.ctx = RunContext.from_settings(self.settings)
        self.console = console or Console()
        self.run_log = RunLog(self.settings.logfile)
        if self.settings.trace_path is not None:
            self.trace: TraceEmitter = TraceEmitter(TraceStoreJSONL(self.settings.trace_path), run_id=self.settings.run_id)
        else:
            self.trace = NullTraceEmitter()
        self.lifecycle = ProcedureLifecycle(self.ctx, self.console, self.run_log, self.trace)
        self.runner = StepRunner(self.ctx, self.lifecycle, self.console, self.run_log, self.trace, cwd=cwd)

    def begin(self) -> None:
        self.run_log.reset()
        self.trace.emit(
            "run_started",
            data={
                "resume_from": self.settings.resume_from,
                "single_procedure": self.settings.single_procedure,
                "exit_on_error": self.settings.exit_on_error,
                "inline_output": self.settings.inline_output,
                "logfile": str(self.settings.logfile),
            },
        )

    @property
    def can_proceed(self) -> bool:
        return self.ctx.can_proceed

    def start_proc(self, name: str) -> bool:
        return self.lifecycle.start_procedure(name) == Permission.PROCEED

    def run(self, description: str, command: Command, *args: str, shell: bool = False) -> int:
        return self.runner.run(description, command, *args, shell=shell)

    def end_proc(self) -> None:
        self.lifecycle.end_procedure()


WorkflowBody = Callable[[Workflow], None]


def run_workflow(body: WorkflowBody, settings: Optional[RunSettings] = None, *, workflow: Optional[Workflow] = None) -> int:
    """
    Top-level run loop. Returns the process exit status:
    - 0 when every selected procedure succeeded (or the single target finished)
    - the clamped error count of the procedure that failed fatally

    Other coded errors propagate after run_finished is traced.
    """
    wf = workflow or Workflow(settings)
    wf.begin()
    try:
        body(wf)
    except RunTerminated as e:
        wf.trace.emit("run_finished", message=e.message, data={"code": e.code, "exit_status": e.exit_status})
        return e.exit_status
    except ProcflowError as e:
        wf.trace.emit("run_finished", message=e.message, data={"code": e.code, "exit_status": None})
        raise
    wf.trace.emit("run_finished", message="Run finished", data={"code": "run.completed", "exit_status": 0})
    return 0
