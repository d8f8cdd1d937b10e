from __future__ import annotations

from procflow.runlog.run_log import RunLog
from procflow.trace.trace_emitter import TraceEmitter

from .console import SEPARATOR, Console, timestamp
from .errors import FatalProcedureFailure, SingleProcedureFinished, ValidationError
from .run_context import Permission, RunContext
from .selection import decide


MAX_EXIT_STATUS = 255


def clamp_exit_status(error_count: int) -> int:
    """
    Map an accumulated error count onto a valid process exit status.
    Nonzero counts never collapse to 0.
    """
    if error_count <= 0:
        return 0
    return min(error_count, MAX_EXIT_STATUS)


class ProcedureLifecycle:
    """
    Brackets one procedure at a time: start -> steps -> end.

    States per procedure: Idle -> Deciding -> (Skipped | Open) -> Closed.
    A skipped procedure produces no output anywhere.
    """

    def __init__(self, ctx: RunContext, console: Console, run_log: RunLog, trace: TraceEmitter):
        self._ctx = ctx
        self._console = console
        self._log = run_log
        self._trace = trace
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    def _announce(self, text: str) -> None:
        self._console.line(text)
        self._log.append(text)

    def start_procedure(self, name: str) -> Permission:
        ctx = self._ctx
        ctx.procedure_counter += 1
        ctx.error_count = 0
        ctx.current_procedure = name

        decision = decide(name, ctx.single_target, ctx.resume)
        ctx.resume = decision.resume
        ctx.permission = decision.permission
        if not decision.proceed:
            self._open = False
            return ctx.permission

        self._open = True
        self._announce(SEPARATOR)
        self._announce(f"{timestamp()} - Starting procedure #{ctx.procedure_counter} - {name}")
        self._trace.emit("procedure_started", procedure=name, procedure_number=ctx.procedure_counter)
        return ctx.permission

    def end_procedure(self) -> None:
        ctx = self._ctx
        if ctx.permission == Permission.SKIP:
            return
        if not self._open:
            raise ValidationError(
                code="procedure.not_started",
                message="end_proc called without an open procedure",
                data={"procedure": ctx.current_procedure},
            )
        self._open = False
        name = ctx.current_procedure

        if ctx.error_count != 0:
            self._announce(f"{timestamp()} - Procedure {name} - FAIL")
            status = clamp_exit_status(ctx.error_count)
            self._trace.emit(
                "procedure_finished",
                procedure=name,
                procedure_number=ctx.procedure_counter,
                data={"ok": False, "errors": ctx.error_count, "exit_status": status},
            )
            raise FatalProcedureFailure(
                code="procedure.failed",
                message=f"Procedure {name} failed",
                data={"procedure": name, "errors": ctx.error_count},
                exit_status=status,
            )

        self._announce(f"{timestamp()} - Procedure {name} - SUCCESS")
        self._announce(SEPARATOR)
        self._trace.emit(
            "procedure_finished",
            procedure=name,
            procedure_number=ctx.procedure_counter,
            data={"ok": True, "errors": 0},
        )

        if ctx.single_target and ctx.single_target == name:
            raise SingleProcedureFinished(
                code="procedure.single_done",
                message=f"Single procedure {name} completed",
                data={"procedure": name},
                exit_status=0,
            )
