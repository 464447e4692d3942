"""Observability helpers for the turnover engine."""

from turnover.observability.metrics import metrics
from turnover.observability.trace import get_trace_id, set_trace_id

__all__ = ["metrics", "get_trace_id", "set_trace_id"]
