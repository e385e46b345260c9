"""
DAG Module

Workflow graph data model, type registry, and execution ordering.
"""

from .slot_types import SlotSpec, SlotType, types_compatible
from .definition import NodeDefinition, WidgetKind, WidgetSpec
from .registry import DefinitionLookup, NodeRegistry
from .node import Edge, Group, Node, NodeMode
from .graph import Graph, InputPolicy
from .sorter import (
    SortResult,
    ancestor_closure,
    find_all_paths,
    find_longest_path,
    get_execution_order,
    output_ancestors,
    topological_sort,
)

__all__ = [
    "SlotSpec",
    "SlotType",
    "types_compatible",
    "NodeDefinition",
    "WidgetKind",
    "WidgetSpec",
    "DefinitionLookup",
    "NodeRegistry",
    "Edge",
    "Group",
    "Node",
    "NodeMode",
    "Graph",
    "InputPolicy",
    "SortResult",
    "ancestor_closure",
    "find_all_paths",
    "find_longest_path",
    "get_execution_order",
    "output_ancestors",
    "topological_sort",
]
