from .run_context import Permission, ResumeState, ResumeTarget, RunContext, RunSettings
from .selection import SelectionDecision, decide
from .lifecycle import ProcedureLifecycle, clamp_exit_status
from .step_runner import StepRunner
from .workflow import Workflow, run_workflow
from .executor import Executor, execute_workflow

__all__ = [
  "Permission",
  "ResumeState",
  "ResumeTarget",
  "RunContext",
  "RunSettings",
  "SelectionDecision",
  "decide",
  "ProcedureLifecycle",
  "clamp_exit_status",
  "StepRunner",
  "Workflow",
  "run_workflow",
  "Executor",
  "execute_workflow",
]
