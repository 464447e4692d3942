"""Trace id propagation for log correlation."""

from contextvars import ContextVar
from typing import Optional
from uuid import uuid4

_trace_id: ContextVar[Optional[str]] = ContextVar("turnover_trace_id", default=None)


def set_trace_id(trace_id: Optional[str] = None) -> str:
    """Set the trace id for the current context, generating one if omitted."""
    value = trace_id or uuid4().hex
    _trace_id.set(value)
    return value


def get_trace_id() -> Optional[str]:
    return _trace_id.get()
