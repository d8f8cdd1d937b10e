from .trace_emitter import NullTraceEmitter, TraceEmitter
from .trace_store_jsonl import TraceStoreJSONL
from .replay import Replay

__all__ = ["TraceEmitter", "NullTraceEmitter", "TraceStoreJSONL", "Replay"]
