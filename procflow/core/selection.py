from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .run_context import Permission, ResumeTarget


@dataclass(frozen=True)
class SelectionDecision:
    permission: Permission
    resume: ResumeTarget

    @property
    def proceed(self) -> bool:
        return self.permission == Permission.PROCEED


def decide(procedure_name: str, single_target: Optional[str], resume: ResumeTarget) -> SelectionDecision:
    """
    Decide whether `procedure_name` runs this invocation.

    Rules, in order:
    - a single target, when set, alone governs permission
    - a pending resume target skips everything until its name comes up, then is consumed
    - otherwise proceed

    Names that never match are not an error; they just keep skipping.
    """
    if single_target:
        if procedure_name != single_target:
            return SelectionDecision(permission=Permission.SKIP, resume=resume)
        return SelectionDecision(permission=Permission.PROCEED, resume=resume)

    if resume.is_pending:
        if procedure_name != resume.name:
            return SelectionDecision(permission=Permission.SKIP, resume=resume)
        return SelectionDecision(permission=Permission.PROCEED, resume=resume.consumed())

    return SelectionDecision(permission=Permission.PROCEED, resume=resume)
