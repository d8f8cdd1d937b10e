from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ProcflowError(Exception):
    code: str
    message: str
    data: dict[str, Any] | None = None

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class ValidationError(ProcflowError):
    pass


@dataclass(frozen=True)
class RunTerminated(ProcflowError):
    """
    Base for results that unwind the whole run back to the top-level loop.

    The engine never calls sys.exit(); the run loop turns these into an exit code.
    """

    exit_status: int = 0


class FatalProcedureFailure(RunTerminated):
    pass


class SingleProcedureFinished(RunTerminated):
    pass
