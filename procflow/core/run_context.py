from __future__ import annotations

import os
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Mapping, Optional


DEFAULT_LOGFILE = "installation.log"


def _env_str(environ: Mapping[str, str], key: str) -> Optional[str]:
    v = environ.get(key)
    if isinstance(v, str) and v != "":
        return v
    return None


def _env_flag(environ: Mapping[str, str], key: str) -> bool:
    # Presence flag: any non-empty value turns the toggle on.
    return _env_str(environ, key) is not None


@dataclass(frozen=True)
class RunSettings:
    """
    Configuration for one invocation: the two selectors, the two toggles and
    where output goes.

    Environment:
    - RESUME_FLAG       procedure name to resume from (one-shot)
    - SINGLE_PROCNAME   the only procedure allowed to run
    - EXIT_ON_ERROR     any non-empty value: step failures are fatal without prompting
    - INLINE_OUTPUT     any non-empty value: step output goes to the terminal
    - LOGFILE           run log path (default: installation.log)
    - PROCFLOW_TRACE    optional JSONL trace path
    """

    resume_from: Optional[str] = None
    single_procedure: Optional[str] = None
    exit_on_error: bool = False
    inline_output: bool = False
    logfile: Path = Path(DEFAULT_LOGFILE)
    trace_path: Optional[Path] = None
    run_id: str = field(default_factory=lambda: "run_" + uuid.uuid4().hex[:12])

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "RunSettings":
        env = os.environ if environ is None else environ
        trace = _env_str(env, "PROCFLOW_TRACE")
        return cls(
            resume_from=_env_str(env, "RESUME_FLAG"),
            single_procedure=_env_str(env, "SINGLE_PROCNAME"),
            exit_on_error=_env_flag(env, "EXIT_ON_ERROR"),
            inline_output=_env_flag(env, "INLINE_OUTPUT"),
            logfile=Path(_env_str(env, "LOGFILE") or DEFAULT_LOGFILE),
            trace_path=Path(trace) if trace else None,
        )

    def with_overrides(self, **changes) -> "RunSettings":
        """
        Layer explicit values (e.g. CLI flags) over this configuration.
        None means "not given" and keeps the current value.
        """
        given = {k: v for k, v in changes.items() if v is not None}
        return replace(self, **given)


class Permission(str, Enum):
    UNDECIDED = "undecided"
    PROCEED = "proceed"
    SKIP = "skip"


class ResumeState(str, Enum):
    NONE = "none"
    PENDING = "pending"
    CONSUMED = "consumed"


@dataclass(frozen=True)
class ResumeTarget:
    """
    One-shot resume selector.

    PENDING(name) gates every procedure until `name` starts; after that it is
    CONSUMED and never gates again.
    """

    state: ResumeState = ResumeState.NONE
    name: Optional[str] = None

    @classmethod
    def pending(cls, name: str) -> "ResumeTarget":
        return cls(state=ResumeState.PENDING, name=name)

    @classmethod
    def from_name(cls, name: Optional[str]) -> "ResumeTarget":
        if name:
            return cls.pending(name)
        return cls()

    @property
    def is_pending(self) -> bool:
        return self.state == ResumeState.PENDING

    def consumed(self) -> "ResumeTarget":
        return ResumeTarget(state=ResumeState.CONSUMED, name=None)


@dataclass
class RunContext:
    """
    Mutable state for one run. Written only by the procedure lifecycle and the
    step runner.
    """

    single_target: Optional[str] = None
    resume: ResumeTarget = field(default_factory=ResumeTarget)
    exit_on_error: bool = False
    inline_output: bool = False
    procedure_counter: int = 0
    current_procedure: str = ""
    error_count: int = 0
    permission: Permission = Permission.UNDECIDED

    @classmethod
    def from_settings(cls, settings: RunSettings) -> "RunContext":
        return cls(
            single_target=settings.single_procedure or None,
            resume=ResumeTarget.from_name(settings.resume_from),
            exit_on_error=bool(settings.exit_on_error),
            inline_output=bool(settings.inline_output),
        )

    @property
    def can_proceed(self) -> bool:
        return self.permission == Permission.PROCEED
