from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from .run_context import RunSettings
from .workflow import Workflow, run_workflow

if TYPE_CHECKING:
    from procflow.workflow_loader import WorkflowDocument


class Executor:
    """
    Executes a declared workflow document procedure by procedure, in order,
    through the same start/run/end contract a hand-written script uses.
    """

    def __init__(self, document: "WorkflowDocument"):
        self._doc = document

    def __call__(self, wf: Workflow) -> None:
        for proc in self._doc.procedures:
            if not wf.start_proc(proc.name):
                continue
            for step in proc.steps:
                wf.run(step.description, step.command, shell=step.shell)
            wf.end_proc()


def execute_workflow(
    document: "WorkflowDocument",
    settings: Optional[RunSettings] = None,
    *,
    workflow: Optional[Workflow] = None,
) -> int:
    return run_workflow(Executor(document), settings, workflow=workflow)
