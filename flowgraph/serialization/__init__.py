"""
Serialization Module

Persisted workflow JSON (round trip) and the outbound execution prompt.
"""

from .workflow_json import (
    WORKFLOW_VERSION,
    WireIdPolicy,
    WorkflowDeserializer,
    WorkflowFormatError,
    WorkflowMetadata,
    WorkflowSerializer,
)
from .api_format import ApiPromptSerializer, CyclicGraphError

__all__ = [
    "WORKFLOW_VERSION",
    "WireIdPolicy",
    "WorkflowDeserializer",
    "WorkflowFormatError",
    "WorkflowMetadata",
    "WorkflowSerializer",
    "ApiPromptSerializer",
    "CyclicGraphError",
]
