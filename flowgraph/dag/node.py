"""
Graph Node Model

Instances placed in a workflow graph: nodes, the edges connecting their
slots, and purely organizational groups. A node's `type` is a reference
resolved against a registry when connecting, validating or serializing,
never at construction.
"""

from copy import deepcopy
from dataclasses import dataclass, field, replace
from enum import IntEnum
from typing import Any, Dict, Optional, Tuple

from .definition import NodeDefinition
from .slot_types import SlotType

Position = Tuple[float, float]
Size = Tuple[float, float]
Bounds = Tuple[float, float, float, float]

DEFAULT_NODE_SIZE: Size = (200.0, 100.0)
DEFAULT_GROUP_COLOR = "#335533"


class NodeMode(IntEnum):
    """Execution mode of a node; values match the persisted format"""
    NORMAL = 0
    MUTED = 1
    BYPASSED = 2
    ALWAYS = 4


@dataclass
class Node:
    """
    A node instance in a workflow graph.

    Attributes:
        id: Unique identifier within the graph (assigned by the graph when empty)
        type: Node type name, resolved against the registry at use time
        title: Display title, defaults to the type name
        position/size: Canvas layout, passed through untouched
        order: Execution order, written only by the topological sorter
        mode: Normal, muted, bypassed or always-run
        widget_values: Widget name -> current value
    """
    type: str
    id: str = ""
    title: str = ""
    position: Position = (0.0, 0.0)
    size: Size = DEFAULT_NODE_SIZE
    order: int = 0
    mode: NodeMode = NodeMode.NORMAL
    widget_values: Dict[str, Any] = field(default_factory=dict)
    properties: Dict[str, Any] = field(default_factory=dict)
    collapsed: bool = False
    pinned: bool = False
    color: Optional[str] = None
    bgcolor: Optional[str] = None

    def __post_init__(self):
        if not self.title:
            self.title = self.type
        self.mode = NodeMode(self.mode)

    @classmethod
    def from_definition(
        cls,
        definition: NodeDefinition,
        position: Position = (0.0, 0.0),
        node_id: str = "",
    ) -> "Node":
        """Create a node with widget values seeded from the definition"""
        widget_values = {}
        for widget in definition.widgets:
            value = widget.initial_value()
            if value is not None:
                widget_values[widget.name] = value

        return cls(
            id=node_id,
            type=definition.name,
            title=definition.display_name,
            position=position,
            widget_values=widget_values,
        )

    @property
    def is_muted(self) -> bool:
        return self.mode is NodeMode.MUTED

    @is_muted.setter
    def is_muted(self, value: bool) -> None:
        self.mode = NodeMode.MUTED if value else NodeMode.NORMAL

    @property
    def is_bypassed(self) -> bool:
        return self.mode is NodeMode.BYPASSED

    @is_bypassed.setter
    def is_bypassed(self, value: bool) -> None:
        self.mode = NodeMode.BYPASSED if value else NodeMode.NORMAL

    @property
    def is_always_run(self) -> bool:
        return self.mode is NodeMode.ALWAYS

    def copy(self, **changes: Any) -> "Node":
        """Copy with independent widget/property maps"""
        changes.setdefault("widget_values", deepcopy(self.widget_values))
        changes.setdefault("properties", deepcopy(self.properties))
        return replace(self, **changes)


@dataclass(frozen=True)
class Edge:
    """
    Connection from an output slot to an input slot.

    The slot type is resolved from the source output when the edge is made.
    """
    id: str
    source_node_id: str
    source_slot: int
    target_node_id: str
    target_slot: int
    type: SlotType = SlotType.ANY

    @property
    def endpoints(self) -> Tuple[str, int, str, int]:
        """Structural identity of the edge, independent of its id"""
        return (self.source_node_id, self.source_slot, self.target_node_id, self.target_slot)

    def touches(self, node_id: str) -> bool:
        return self.source_node_id == node_id or self.target_node_id == node_id

    def __str__(self) -> str:
        return f"Edge({self.source_node_id}:{self.source_slot} -> {self.target_node_id}:{self.target_slot})"


@dataclass
class Group:
    """Titled rectangle used to organize nodes; ignored by validation and sorting"""
    title: str
    bounds: Bounds = (0.0, 0.0, 100.0, 100.0)
    id: str = ""
    color: str = DEFAULT_GROUP_COLOR
    font_size: float = 24.0
    locked: bool = False

    def contains(self, point: Position) -> bool:
        x, y, width, height = self.bounds
        px, py = point
        return x <= px < x + width and y <= py < y + height
