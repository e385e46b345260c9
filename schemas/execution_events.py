"""
Execution Event Types

Progress and result messages emitted by the execution backend while it runs
a submitted prompt. Node ids are the ids assigned in the prompt, so events
can be correlated back to graph nodes.

Messages arrive as `{"type": "<event>", "data": {...}}`.
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional
import json
import logging

logger = logging.getLogger(__name__)


@dataclass
class ExecutionEvent:
    """Base for all backend events"""
    EVENT_TYPE: ClassVar[str] = ""

    prompt_id: Optional[str] = None

    def payload(self) -> dict:
        return {"prompt_id": self.prompt_id}

    def to_dict(self) -> dict:
        """Convert to the backend message shape"""
        return {"type": self.EVENT_TYPE, "data": self.payload()}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict) -> "ExecutionEvent":
        """Create from the message `data` payload"""
        return cls(prompt_id=data.get("prompt_id"))


@dataclass
class ExecutionStart(ExecutionEvent):
    EVENT_TYPE: ClassVar[str] = "execution_start"


@dataclass
class ExecutionInterrupted(ExecutionEvent):
    EVENT_TYPE: ClassVar[str] = "execution_interrupted"


@dataclass
class ExecutingNode(ExecutionEvent):
    """Node currently executing; a null node marks the end of the prompt"""
    EVENT_TYPE: ClassVar[str] = "executing"

    node_id: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return self.node_id is None

    def payload(self) -> dict:
        return {"node": self.node_id, "prompt_id": self.prompt_id}

    @classmethod
    def from_dict(cls, data: dict) -> "ExecutingNode":
        return cls(node_id=_node_id(data.get("node")), prompt_id=data.get("prompt_id"))


@dataclass
class ExecutionCached(ExecutionEvent):
    """Nodes skipped because their outputs were cached"""
    EVENT_TYPE: ClassVar[str] = "execution_cached"

    nodes: List[str] = field(default_factory=list)

    def payload(self) -> dict:
        return {"nodes": list(self.nodes), "prompt_id": self.prompt_id}

    @classmethod
    def from_dict(cls, data: dict) -> "ExecutionCached":
        return cls(
            nodes=[str(node) for node in data.get("nodes") or []],
            prompt_id=data.get("prompt_id"),
        )


@dataclass
class NodeExecuted(ExecutionEvent):
    """A node finished and produced output"""
    EVENT_TYPE: ClassVar[str] = "executed"

    node_id: Optional[str] = None
    output: Dict[str, Any] = field(default_factory=dict)

    @property
    def images(self) -> List[Dict[str, Any]]:
        """Image descriptors (filename, subfolder, type) from the output"""
        return [image for image in self.output.get("images") or [] if isinstance(image, dict)]

    def payload(self) -> dict:
        return {"node": self.node_id, "output": self.output, "prompt_id": self.prompt_id}

    @classmethod
    def from_dict(cls, data: dict) -> "NodeExecuted":
        return cls(
            node_id=_node_id(data.get("node")),
            output=data.get("output") or {},
            prompt_id=data.get("prompt_id"),
        )


@dataclass
class ExecutionProgress(ExecutionEvent):
    """Step progress within a long-running node"""
    EVENT_TYPE: ClassVar[str] = "progress"

    value: int = 0
    max: int = 100
    node_id: Optional[str] = None

    @property
    def percentage(self) -> float:
        """Progress as 0-100; 0 when max is not positive"""
        if self.max <= 0:
            return 0.0
        return self.value / self.max * 100

    def payload(self) -> dict:
        return {
            "value": self.value,
            "max": self.max,
            "node": self.node_id,
            "prompt_id": self.prompt_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ExecutionProgress":
        return cls(
            value=int(data.get("value") or 0),
            max=int(data.get("max") if data.get("max") is not None else 100),
            node_id=_node_id(data.get("node")),
            prompt_id=data.get("prompt_id"),
        )


@dataclass
class ExecutionError(ExecutionEvent):
    EVENT_TYPE: ClassVar[str] = "execution_error"

    node_id: Optional[str] = None
    node_type: Optional[str] = None
    message: Optional[str] = None
    traceback: List[str] = field(default_factory=list)

    def payload(self) -> dict:
        return {
            "node_id": self.node_id,
            "node_type": self.node_type,
            "exception_message": self.message,
            "traceback": list(self.traceback),
            "prompt_id": self.prompt_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ExecutionError":
        return cls(
            node_id=_node_id(data.get("node_id")),
            node_type=data.get("node_type"),
            message=data.get("exception_message"),
            traceback=[str(line) for line in data.get("traceback") or []],
            prompt_id=data.get("prompt_id"),
        )

    def __str__(self) -> str:
        return f"ExecutionError: {self.message} (node: {self.node_id}, type: {self.node_type})"


@dataclass
class QueueStatus(ExecutionEvent):
    EVENT_TYPE: ClassVar[str] = "status"

    queue_remaining: int = 0

    def payload(self) -> dict:
        return {"status": {"exec_info": {"queue_remaining": self.queue_remaining}}}

    @classmethod
    def from_dict(cls, data: dict) -> "QueueStatus":
        exec_info = (data.get("status") or {}).get("exec_info") or {}
        return cls(queue_remaining=int(exec_info.get("queue_remaining") or 0))


EVENT_TYPES: Dict[str, type] = {
    event.EVENT_TYPE: event
    for event in (
        ExecutionStart,
        ExecutingNode,
        ExecutionCached,
        NodeExecuted,
        ExecutionProgress,
        ExecutionError,
        ExecutionInterrupted,
        QueueStatus,
    )
}


def _node_id(value: Any) -> Optional[str]:
    # Backends send node ids as strings or ints
    return None if value is None else str(value)


def parse_event(message: dict) -> Optional[ExecutionEvent]:
    """
    Parse one backend message.

    Returns:
        The typed event, or None for message types this module does not know
    """
    event_cls = EVENT_TYPES.get(message.get("type"))
    if event_cls is None:
        logger.debug(f"Ignoring unknown event type: {message.get('type')}")
        return None
    return event_cls.from_dict(message.get("data") or {})


def parse_event_json(json_str: str) -> Optional[ExecutionEvent]:
    """Deserialize and parse a backend message from JSON"""
    return parse_event(json.loads(json_str))
