from __future__ import annotations

import argparse
import json
import os
import re
import sys
from pathlib import Path
from typing import NoReturn

from procflow import __version__
from procflow.core.errors import ProcflowError
from procflow.core.executor import execute_workflow
from procflow.core.run_context import RunSettings
from procflow.workflow_loader import WorkflowDocument, load_workflow


_ENV_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_DESCRIPTION = "Run the procedures of a workflow file in order, one step at a time."

_EPILOG = """\
Environment:
  RESUME_FLAG       same as -r
  SINGLE_PROCNAME   same as -s
  EXIT_ON_ERROR     same as -x (any non-empty value)
  INLINE_OUTPUT     same as -i (any non-empty value)
  LOGFILE           run log path (default: installation.log)
  PROCFLOW_TRACE    same as --trace

Exit status is 0 on success, otherwise the error count of the failed procedure.
"""


class _ArgumentParser(argparse.ArgumentParser):
    """
    Usage errors exit with status 1 (argparse defaults to 2).
    """

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def _load_dotenv_from_file(path: Path) -> None:
    """
    Minimal dotenv loader (no dependencies).

    - Supports lines like KEY=VALUE (optionally prefixed with 'export ')
    - Ignores empty lines and comments (# ...)
    - Strips single/double quotes around values
    - Does not override already-present environment variables
    """
    p = path
    if not p.exists() or not p.is_file():
        return
    try:
        txt = p.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return
    for raw_line in txt.splitlines():
        s = raw_line.strip()
        if not s or s.startswith("#"):
            continue
        if s.startswith("export "):
            s = s[len("export ") :].lstrip()
        if "=" not in s:
            continue
        k, v = s.split("=", 1)
        k = k.strip()
        v = v.strip()
        if not k or not _ENV_KEY_RE.match(k):
            continue
        if k in os.environ:
            continue
        if len(v) >= 2 and ((v[0] == v[-1] == '"') or (v[0] == v[-1] == "'")):
            v = v[1:-1]
        os.environ[k] = v


def _maybe_load_dotenv() -> None:
    cwd = Path.cwd()
    for name in (".env", "env"):
        _load_dotenv_from_file(cwd / name)


def _format_cli_error(e: Exception) -> str:
    """
    Print-friendly error formatting for CLI commands.
    - Always includes code/message (via __str__) when it's a ProcflowError
    - Includes structured `data` payload when present
    """
    if isinstance(e, ProcflowError) and isinstance(e.data, dict) and e.data:
        return str(e) + "\n" + json.dumps(e.data, ensure_ascii=False, indent=2)
    return str(e)


def _build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="pflow",
        description=_DESCRIPTION,
        epilog=_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("workflow", help="Workflow file (YAML or JSON)")
    parser.add_argument("-r", dest="resume", metavar="PROCEDURE", help="Resume from the specified procedure")
    parser.add_argument("-s", dest="single", metavar="PROCEDURE", help="Execute only this procedure and exit")
    parser.add_argument("-x", dest="exit_on_error", action="store_true", default=None, help="Exit if any command fails")
    parser.add_argument("-i", dest="inline_output", action="store_true", default=None, help="Show command output inline")
    parser.add_argument("--logfile", help="Run log path (overrides LOGFILE and the workflow's logfile)")
    parser.add_argument("--trace", help="Also write a JSONL event trace to this path")
    parser.add_argument("--run-id", help="Run ID for trace correlation")
    parser.add_argument("--list", action="store_true", help="List declared procedures and exit")
    parser.add_argument("--check", action="store_true", help="Validate the workflow file and exit")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _resolve_settings(args: argparse.Namespace, doc: WorkflowDocument) -> RunSettings:
    settings = RunSettings.from_env()

    # Precedence for the run log: --logfile, then LOGFILE, then the workflow file.
    logfile = args.logfile
    if logfile is None and not os.environ.get("LOGFILE") and doc.logfile:
        logfile = doc.logfile

    return settings.with_overrides(
        resume_from=args.resume,
        single_procedure=args.single,
        exit_on_error=args.exit_on_error,
        inline_output=args.inline_output,
        logfile=Path(logfile) if logfile else None,
        trace_path=Path(args.trace) if args.trace else None,
        run_id=args.run_id,
    )


def _warn_unknown_targets(settings: RunSettings, doc: WorkflowDocument) -> None:
    names = set(doc.procedure_names())
    if settings.resume_from and settings.resume_from not in names:
        print(f"warning: resume target is not declared: {settings.resume_from} (every procedure will be skipped)", file=sys.stderr)
    if settings.single_procedure and settings.single_procedure not in names:
        print(f"warning: single target is not declared: {settings.single_procedure} (nothing will run)", file=sys.stderr)


def cmd_list(doc: WorkflowDocument) -> int:
    for i, proc in enumerate(doc.procedures, start=1):
        suffix = f" - {proc.description}" if proc.description else ""
        print(f"{i}. {proc.name} ({len(proc.steps)} steps){suffix}")
    return 0


def cmd_check(doc: WorkflowDocument) -> int:
    print(f"Workflow OK: {len(doc.procedures)} procedures")
    return 0


def cmd_run(args: argparse.Namespace, doc: WorkflowDocument) -> int:
    settings = _resolve_settings(args, doc)
    _warn_unknown_targets(settings, doc)
    return execute_workflow(doc, settings)


def main(argv=None) -> int:
    if str(os.environ.get("PROCFLOW_DISABLE_DOTENV", "")).strip().lower() not in ("1", "true", "yes"):
        _maybe_load_dotenv()
    parser = _build_parser()
    ns = parser.parse_args(argv)
    try:
        doc = load_workflow(Path(ns.workflow))
        if ns.check:
            return cmd_check(doc)
        if ns.list:
            return cmd_list(doc)
        return int(cmd_run(ns, doc))
    except ProcflowError as e:
        print(_format_cli_error(e), file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
