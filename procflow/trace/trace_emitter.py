from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from .trace_store_jsonl import TraceStoreJSONL


class TraceEmitter:
    def __init__(self, store: TraceStoreJSONL, run_id: str):
        self._store = store
        self._run_id = run_id

    def emit(
        self,
        event_type: str,
        *,
        procedure: str | None = None,
        procedure_number: int | None = None,
        step: str | None = None,
        message: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> None:
        event: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "run_id": self._run_id,
            "event_type": event_type,
        }
        if procedure is not None:
            event["procedure"] = procedure
        if procedure_number is not None:
            event["procedure_number"] = procedure_number
        if step is not None:
            event["step"] = step
        if message is not None:
            event["message"] = message
        if data is not None:
            event["data"] = data

        self._store.append(event)


class NullTraceEmitter(TraceEmitter):
    """
    Used when no trace path is configured.
    """

    def __init__(self) -> None:
        pass

    def emit(self, event_type: str, **_kwargs: Any) -> None:
        return None
