import io
import re
import sys
import tempfile
import unittest
from pathlib import Path
from typing import List

from procflow.core.console import Console
from procflow.core.errors import ValidationError
from procflow.core.executor import execute_workflow
from procflow.core.run_context import RunSettings
from procflow.core.workflow import Workflow, run_workflow
from procflow.trace.replay import Replay
from procflow.workflow_loader import parse_workflow


PY = sys.executable


def _echo(text: str) -> List[str]:
    return [PY, "-c", f"print({text!r})"]


def _fail(status: int) -> List[str]:
    return [PY, "-c", f"import sys; sys.exit({status})"]


def _no_prompt(_prompt: str) -> str:
    raise AssertionError("operator must not be prompted")


class TestWorkflowRuns(unittest.TestCase):
    def setUp(self) -> None:
        self._td = tempfile.TemporaryDirectory()
        self.td = Path(self._td.name)
        self.log_path = self.td / "installation.log"
        self.out = io.StringIO()
        self.ran: List[str] = []

    def tearDown(self) -> None:
        self._td.cleanup()

    def _settings(self, **kw) -> RunSettings:
        return RunSettings(logfile=self.log_path, **kw)

    def _workflow(self, settings: RunSettings, input_fn=_no_prompt) -> Workflow:
        return Workflow(settings, console=Console(out=self.out, input_fn=input_fn))

    def _abc(self, wf: Workflow) -> None:
        for name in ("A", "B", "C"):
            if wf.start_proc(name):
                self.ran.append(name)
                wf.run(f"step of {name}", _echo(f"output-{name}"))
                wf.end_proc()

    def _log_text(self) -> str:
        return self.log_path.read_text(encoding="utf-8")

    def _started(self) -> List[str]:
        return re.findall(r"Starting procedure #\d+ - (\w+)", self._log_text())

    def _outcomes(self) -> List[str]:
        return re.findall(r"Procedure (\w+) - (SUCCESS|FAIL)", self._log_text())

    def test_all_procedures_run_in_order(self) -> None:
        settings = self._settings()
        rc = run_workflow(self._abc, workflow=self._workflow(settings))

        self.assertEqual(rc, 0)
        self.assertEqual(self.ran, ["A", "B", "C"])
        self.assertEqual(self._started(), ["A", "B", "C"])
        self.assertEqual(self._outcomes(), [("A", "SUCCESS"), ("B", "SUCCESS"), ("C", "SUCCESS")])

    def test_single_procedure_runs_only_target_and_stops(self) -> None:
        settings = self._settings(single_procedure="B")
        rc = run_workflow(self._abc, workflow=self._workflow(settings))

        self.assertEqual(rc, 0)
        self.assertEqual(self.ran, ["B"])
        log = self._log_text()
        self.assertNotIn("output-A", log)
        self.assertNotIn("output-C", log)
        self.assertEqual(self._started(), ["B"])
        self.assertEqual(self._outcomes(), [("B", "SUCCESS")])
        self.assertNotIn("step of A", self.out.getvalue())

    def test_single_procedure_stops_before_later_declarations(self) -> None:
        reached_after = []

        def body(wf: Workflow) -> None:
            if wf.start_proc("A"):
                wf.run("a", _echo("a"))
                wf.end_proc()
            reached_after.append(True)

        rc = run_workflow(body, workflow=self._workflow(self._settings(single_procedure="A")))
        self.assertEqual(rc, 0)
        self.assertEqual(reached_after, [])

    def test_resume_skips_earlier_and_is_one_shot(self) -> None:
        settings = self._settings(resume_from="B")

        def body(wf: Workflow) -> None:
            self._abc(wf)
            # Declared after the match: the resume target must not gate it.
            if wf.start_proc("A"):
                self.ran.append("A-again")
                wf.end_proc()

        rc = run_workflow(body, workflow=self._workflow(settings))

        self.assertEqual(rc, 0)
        self.assertEqual(self.ran, ["B", "C", "A-again"])
        self.assertIn("Starting procedure #2 - B", self._log_text())

    def test_unmatched_resume_skips_everything_without_error(self) -> None:
        settings = self._settings(resume_from="nope")
        rc = run_workflow(self._abc, workflow=self._workflow(settings))

        self.assertEqual(rc, 0)
        self.assertEqual(self.ran, [])
        self.assertEqual(self._log_text(), "")
        self.assertEqual(self.out.getvalue(), "")

    def test_fatal_failure_stops_run_with_step_status(self) -> None:
        def body(wf: Workflow) -> None:
            for name, cmd in (("A", _echo("a")), ("B", _fail(7)), ("C", _echo("c"))):
                if wf.start_proc(name):
                    self.ran.append(name)
                    wf.run(name, cmd)
                    wf.end_proc()

        rc = run_workflow(body, workflow=self._workflow(self._settings(exit_on_error=True)))

        self.assertEqual(rc, 7)
        self.assertEqual(self.ran, ["A", "B"])
        self.assertEqual(self._outcomes(), [("A", "SUCCESS"), ("B", "FAIL")])

    def test_forgiven_failure_reports_success(self) -> None:
        def body(wf: Workflow) -> None:
            if wf.start_proc("A"):
                wf.run("flaky", _fail(1))
                wf.run("fine", _echo("ok"))
                wf.end_proc()

        rc = run_workflow(body, workflow=self._workflow(self._settings(), input_fn=lambda _p: "yes"))
        self.assertEqual(rc, 0)
        self.assertEqual(self._outcomes(), [("A", "SUCCESS")])

    def test_log_is_truncated_at_start(self) -> None:
        self.log_path.write_text("stale content\n", encoding="utf-8")
        run_workflow(self._abc, workflow=self._workflow(self._settings()))
        self.assertNotIn("stale content", self._log_text())

    def test_trace_records_selected_procedures_only(self) -> None:
        trace_path = self.td / "trace.jsonl"
        settings = self._settings(resume_from="B", trace_path=trace_path, run_id="run_test")
        run_workflow(self._abc, workflow=self._workflow(settings))

        events = list(Replay(trace_path).iter_events())
        types = [e["event_type"] for e in events]
        self.assertEqual(types[0], "run_started")
        self.assertEqual(types[-1], "run_finished")
        self.assertIn("step_finished", types)
        procs = [e.get("procedure") for e in events if e["event_type"] == "procedure_started"]
        self.assertEqual(procs, ["B", "C"])
        self.assertTrue(all(e["run_id"] == "run_test" for e in events))

    def test_coded_error_mid_run_still_traces_run_finished(self) -> None:
        trace_path = self.td / "trace.jsonl"
        settings = self._settings(trace_path=trace_path, run_id="run_err")

        def body(wf: Workflow) -> None:
            wf.start_proc("A")
            wf.run("nothing to run", "   ")

        with self.assertRaises(ValidationError) as cm:
            run_workflow(body, workflow=self._workflow(settings))
        self.assertEqual(cm.exception.code, "step.command_empty")

        events = list(Replay(trace_path).iter_events())
        self.assertEqual(events[-1]["event_type"], "run_finished")
        self.assertEqual(events[-1]["data"]["code"], "step.command_empty")


class TestExecuteWorkflowDocument(unittest.TestCase):
    def test_document_procedures_run_through_same_contract(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            marker = Path(td) / "marker.txt"
            doc = parse_workflow(
                {
                    "procedures": [
                        {"name": "prepare", "steps": [{"description": "noop", "command": [PY, "-c", "pass"]}]},
                        {
                            "name": "write",
                            "steps": [
                                {
                                    "description": "write marker",
                                    "command": [PY, "-c", f"open({str(marker)!r}, 'w').write('x')"],
                                }
                            ],
                        },
                        {"name": "empty", "steps": []},
                    ]
                }
            )
            log_path = Path(td) / "run.log"
            out = io.StringIO()
            settings = RunSettings(logfile=log_path, single_procedure="write")
            wf = Workflow(settings, console=Console(out=out, input_fn=_no_prompt))

            rc = execute_workflow(doc, workflow=wf)

            self.assertEqual(rc, 0)
            self.assertTrue(marker.exists())
            log = log_path.read_text(encoding="utf-8")
            self.assertIn("Procedure write - SUCCESS", log)
            self.assertEqual(re.findall(r"Starting procedure #\d+ - (\w+)", log), ["write"])


if __name__ == "__main__":
    unittest.main()
