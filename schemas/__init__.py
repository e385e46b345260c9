"""
Schemas Module

Message types exchanged with the execution backend.
"""

from .execution_events import (
    EVENT_TYPES,
    ExecutingNode,
    ExecutionCached,
    ExecutionError,
    ExecutionEvent,
    ExecutionInterrupted,
    ExecutionProgress,
    ExecutionStart,
    NodeExecuted,
    QueueStatus,
    parse_event,
    parse_event_json,
)

__all__ = [
    "EVENT_TYPES",
    "ExecutingNode",
    "ExecutionCached",
    "ExecutionError",
    "ExecutionEvent",
    "ExecutionInterrupted",
    "ExecutionProgress",
    "ExecutionStart",
    "NodeExecuted",
    "QueueStatus",
    "parse_event",
    "parse_event_json",
]
