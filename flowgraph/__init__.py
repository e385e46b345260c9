"""
Flowgraph

Workflow graph engine: typed node graphs, execution ordering, validation,
and translation between the persisted editor format and the execution
prompt format.
"""

from .dag import Graph, InputPolicy, NodeRegistry, get_execution_order, topological_sort
from .serialization import ApiPromptSerializer, WorkflowDeserializer, WorkflowSerializer
from .validation import GraphValidator, validate_connection

__version__ = "0.1.0"

__all__ = [
    "Graph",
    "InputPolicy",
    "NodeRegistry",
    "get_execution_order",
    "topological_sort",
    "ApiPromptSerializer",
    "WorkflowDeserializer",
    "WorkflowSerializer",
    "GraphValidator",
    "validate_connection",
]
