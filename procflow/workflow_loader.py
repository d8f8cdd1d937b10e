from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from procflow.contract_store import ContractStore, read_document
from procflow.core.errors import ValidationError
from procflow.core.step_runner import build_argv
from procflow.resources import contracts_schemas_dir


WORKFLOW_SCHEMA = "workflow.schema.json"

_STORE: Optional[ContractStore] = None


def _contracts() -> ContractStore:
    global _STORE
    if _STORE is None:
        store = ContractStore(contracts_schemas_dir())
        store.load()
        _STORE = store
    return _STORE


@dataclass(frozen=True)
class StepDef:
    description: str
    command: Union[str, List[str]]
    shell: bool = False


@dataclass(frozen=True)
class ProcedureDef:
    name: str
    steps: List[StepDef] = field(default_factory=list)
    description: str = ""


@dataclass(frozen=True)
class WorkflowDocument:
    procedures: List[ProcedureDef]
    name: Optional[str] = None
    logfile: Optional[str] = None
    source: Optional[Path] = None

    def procedure_names(self) -> List[str]:
        return [p.name for p in self.procedures]


def _parse_step(procedure: str, index: int, raw: Dict[str, Any]) -> StepDef:
    step = StepDef(description=raw["description"], command=raw["command"], shell=bool(raw.get("shell", False)))
    try:
        build_argv(step.command, shell=step.shell)
    except ValidationError as e:
        raise ValidationError(
            code=e.code,
            message=f"Procedure {procedure}, step {index + 1}: {e.message}",
            data={**(e.data or {}), "procedure": procedure, "step": step.description},
        ) from e
    return step


def parse_workflow(data: Any, *, source: Optional[Path] = None) -> WorkflowDocument:
    """
    Validate a raw document against the workflow contract and build typed definitions.
    """
    errors = _contracts().validate(WORKFLOW_SCHEMA, data)
    if errors:
        raise ValidationError(
            code="workflow.schema_invalid",
            message="Workflow does not validate against workflow.schema.json",
            data={"errors": errors, "source": str(source) if source else None},
        )

    procedures: List[ProcedureDef] = []
    seen: Dict[str, int] = {}
    for i, raw in enumerate(data["procedures"]):
        name = raw["name"]
        if name in seen:
            raise ValidationError(
                code="workflow.duplicate_procedure",
                message=f"Procedure name declared twice: {name}",
                data={"procedure": name, "first_index": seen[name], "index": i},
            )
        seen[name] = i
        steps = [_parse_step(name, j, s) for j, s in enumerate(raw.get("steps", []))]
        procedures.append(ProcedureDef(name=name, steps=steps, description=raw.get("description", "")))

    return WorkflowDocument(
        procedures=procedures,
        name=data.get("name"),
        logfile=data.get("logfile"),
        source=source,
    )


def load_workflow(path: Path) -> WorkflowDocument:
    if not path.exists():
        raise ValidationError(code="workflow.not_found", message=f"Workflow file not found: {path}")
    try:
        data = read_document(path)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ValidationError(
            code="workflow.unreadable",
            message=f"Cannot read workflow file: {path}",
            data={"error": str(e)},
        ) from e
    return parse_workflow(data, source=path)
