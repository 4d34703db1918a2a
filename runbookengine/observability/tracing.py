"""Trace ids for trigger cycles."""

import uuid
from contextvars import ContextVar
from typing import Any

import structlog

# Context variable for trace ID
_trace_id: ContextVar[str] = ContextVar("trace_id", default="")


def generate_trace_id() -> str:
    """Generate a new trace ID."""
    return uuid.uuid4().hex[:16]


def get_trace_id() -> str:
    """Get current trace ID (empty outside a trace scope)."""
    return _trace_id.get()


class TraceContext:
    """Binds a trace ID and extra fields to every log line in the block.

    Usage:
        with TraceContext(user_id="u1") as trace_id:
            ...
    """

    def __init__(self, trace_id: str | None = None, **fields: Any):
        self._trace_id = trace_id or generate_trace_id()
        self._fields = {"trace_id": self._trace_id, **fields}
        self._tokens: dict[str, Any] = {}
        self._var_token: Any = None

    def __enter__(self) -> str:
        self._var_token = _trace_id.set(self._trace_id)
        self._tokens = structlog.contextvars.bind_contextvars(**self._fields)
        return self._trace_id

    def __exit__(self, *args: Any) -> None:
        structlog.contextvars.reset_contextvars(**self._tokens)
        _trace_id.reset(self._var_token)
