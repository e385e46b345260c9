"""
Workflow Graph

Mutable container of nodes, edges and groups. Every mutation keeps the
structural invariants:

- edge endpoints reference existing nodes and in-range slot indices
- an edge's cached type was compatible between source output and target
  input when it was connected
- removing a node removes every edge touching it
- at most one edge terminates at a given (target node, target slot)

Structural failures (unknown ids, out-of-range slots, incompatible types)
are reported by returning None and leave the graph unchanged.
"""

from enum import Enum
from itertools import count
from typing import Any, Dict, Iterable, List, Optional
import logging

from .definition import NodeDefinition
from .node import Edge, Group, Node, Position
from .registry import DefinitionLookup
from .slot_types import SlotType

logger = logging.getLogger(__name__)


class InputPolicy(Enum):
    """What `connect` does when the target input already has an edge"""
    REPLACE = "replace"  # single writer per input: the previous edge is dropped
    REJECT = "reject"    # the new connection fails


class Graph:
    """
    Container for a workflow graph.

    The registry is a reference used only for type lookups; the graph never
    owns or mutates it.

    Example usage:
        graph = Graph(registry=registry)
        loader = graph.add_node_by_type("CheckpointLoaderSimple", (0, 0))
        sampler = graph.add_node_by_type("KSampler", (300, 0))
        edge = graph.connect(loader.id, 0, sampler.id, 0)
        if edge is None:
            ...  # rejected: unknown node, bad slot or type mismatch
    """

    def __init__(
        self,
        registry: Optional[DefinitionLookup] = None,
        input_policy: InputPolicy = InputPolicy.REPLACE,
    ):
        self.registry = registry
        self.input_policy = input_policy
        self.extra: Dict[str, Any] = {}

        self._nodes: Dict[str, Node] = {}
        self._edges: Dict[str, Edge] = {}
        self._groups: Dict[str, Group] = {}

        self._node_ids = count(1)
        self._edge_ids = count(1)
        self._group_ids = count(1)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def nodes(self) -> List[Node]:
        return list(self._nodes.values())

    @property
    def edges(self) -> List[Edge]:
        return list(self._edges.values())

    @property
    def groups(self) -> List[Group]:
        return list(self._groups.values())

    @property
    def node_count(self) -> int:
        return len(self._nodes)

    @property
    def edge_count(self) -> int:
        return len(self._edges)

    def get_node(self, node_id: str) -> Optional[Node]:
        return self._nodes.get(node_id)

    def get_edge(self, edge_id: str) -> Optional[Edge]:
        return self._edges.get(edge_id)

    def get_group(self, group_id: str) -> Optional[Group]:
        return self._groups.get(group_id)

    def has_node(self, node_id: str) -> bool:
        return node_id in self._nodes

    def definition_for(self, node: Node) -> Optional[NodeDefinition]:
        """Resolve a node's type against the registry"""
        if self.registry is None:
            return None
        return self.registry.get(node.type)

    def get_incoming_edges(self, node_id: str) -> List[Edge]:
        return [e for e in self._edges.values() if e.target_node_id == node_id]

    def get_outgoing_edges(self, node_id: str) -> List[Edge]:
        return [e for e in self._edges.values() if e.source_node_id == node_id]

    def get_node_edges(self, node_id: str) -> List[Edge]:
        return [e for e in self._edges.values() if e.touches(node_id)]

    def get_input_edge(self, node_id: str, slot: int) -> Optional[Edge]:
        """Edge occupying an input slot, if any"""
        for edge in self._edges.values():
            if edge.target_node_id == node_id and edge.target_slot == slot:
                return edge
        return None

    def get_output_nodes(self) -> List[Node]:
        """All nodes whose resolved definition is an output node"""
        outputs = []
        for node in self._nodes.values():
            definition = self.definition_for(node)
            if definition is not None and definition.is_output_node:
                outputs.append(node)
        return outputs

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    def add_node(self, node: Node) -> Node:
        """
        Add a node instance. Always succeeds.

        A node without an id gets the next free sequential id; a node whose
        id is already taken replaces the previous node of that id.
        """
        if not node.id:
            node.id = self._next_id(self._node_ids, self._nodes)
        elif node.id in self._nodes:
            logger.warning(f"Replacing existing node with id {node.id}")
            self.remove_node(node.id)

        self._nodes[node.id] = node
        logger.debug(f"Added node {node.id} (type={node.type})")
        return node

    def add_node_by_type(self, type_name: str, position: Position = (0.0, 0.0)) -> Optional[Node]:
        """
        Create and add a node from its registered definition.

        Returns:
            The new node, or None if the type is unknown to the registry
        """
        definition = self.registry.get(type_name) if self.registry is not None else None
        if definition is None:
            logger.debug(f"Cannot add node: unknown type {type_name}")
            return None
        return self.add_node(Node.from_definition(definition, position=position))

    def remove_node(self, node_id: str) -> None:
        """Remove a node and every edge touching it; no-op for unknown ids"""
        if self._nodes.pop(node_id, None) is None:
            return

        touching = [edge_id for edge_id, edge in self._edges.items() if edge.touches(node_id)]
        for edge_id in touching:
            del self._edges[edge_id]

        logger.debug(f"Removed node {node_id} and {len(touching)} edges")

    def update_node_position(self, node_id: str, position: Position) -> None:
        node = self._nodes.get(node_id)
        if node is not None:
            node.position = position

    def update_widget_value(self, node_id: str, widget_name: str, value: Any) -> None:
        node = self._nodes.get(node_id)
        if node is not None:
            node.widget_values[widget_name] = value

    # ------------------------------------------------------------------
    # Edges
    # ------------------------------------------------------------------

    def can_connect(
        self,
        source_node_id: str,
        source_slot: int,
        target_node_id: str,
        target_slot: int,
    ) -> bool:
        """
        Check whether a connection is structurally valid.

        Both nodes must exist, both slot indices must be in range for the
        node definitions, and the source output type must be compatible with
        the target input type. Without a registry only node existence and
        non-negative slots are checked. Self-loops are allowed here and left
        to the validator.
        """
        return self._resolve_connection_type(
            source_node_id, source_slot, target_node_id, target_slot
        ) is not None

    def connect(
        self,
        source_node_id: str,
        source_slot: int,
        target_node_id: str,
        target_slot: int,
    ) -> Optional[Edge]:
        """
        Connect an output slot to an input slot.

        Under InputPolicy.REPLACE an edge already occupying the target input
        is removed first; under InputPolicy.REJECT the call fails instead.

        Returns:
            The new edge, or None if the connection is invalid
        """
        edge_type = self._resolve_connection_type(
            source_node_id, source_slot, target_node_id, target_slot
        )
        if edge_type is None:
            logger.debug(
                f"Rejected connection {source_node_id}:{source_slot} -> "
                f"{target_node_id}:{target_slot}"
            )
            return None

        existing = self.get_input_edge(target_node_id, target_slot)
        if existing is not None:
            if self.input_policy is InputPolicy.REJECT:
                logger.debug(f"Rejected connection: input {target_node_id}:{target_slot} is occupied")
                return None
            del self._edges[existing.id]
            logger.debug(f"Replaced {existing} on occupied input")

        edge = Edge(
            id=self._next_id(self._edge_ids, self._edges),
            source_node_id=source_node_id,
            source_slot=source_slot,
            target_node_id=target_node_id,
            target_slot=target_slot,
            type=edge_type,
        )
        self._edges[edge.id] = edge
        logger.debug(f"Connected {edge} as {edge.type.value}")
        return edge

    def remove_edge(self, edge_id: str) -> None:
        self._edges.pop(edge_id, None)

    def disconnect_slot(self, node_id: str, slot: int, is_input: bool) -> None:
        """Remove all edges attached to one slot of a node"""
        if is_input:
            doomed = [
                e.id for e in self._edges.values()
                if e.target_node_id == node_id and e.target_slot == slot
            ]
        else:
            doomed = [
                e.id for e in self._edges.values()
                if e.source_node_id == node_id and e.source_slot == slot
            ]

        for edge_id in doomed:
            del self._edges[edge_id]

    def _resolve_connection_type(
        self,
        source_node_id: str,
        source_slot: int,
        target_node_id: str,
        target_slot: int,
    ) -> Optional[SlotType]:
        """Type tag the new edge would carry, or None if the connection is invalid"""
        source = self._nodes.get(source_node_id)
        target = self._nodes.get(target_node_id)
        if source is None or target is None:
            return None
        if source_slot < 0 or target_slot < 0:
            return None

        if self.registry is None:
            return SlotType.ANY

        source_def = self.registry.get(source.type)
        target_def = self.registry.get(target.type)
        if source_def is None or target_def is None:
            return None
        if source_slot >= len(source_def.outputs) or target_slot >= len(target_def.inputs):
            return None

        source_type = source_def.outputs[source_slot].type
        target_type = target_def.inputs[target_slot].type
        if not source_type.can_connect_to(target_type):
            return None
        return source_type

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------

    def add_group(self, group: Group) -> Group:
        if not group.id:
            group.id = self._next_id(self._group_ids, self._groups)
        self._groups[group.id] = group
        return group

    def remove_group(self, group_id: str) -> None:
        self._groups.pop(group_id, None)

    def get_nodes_in_group(self, group_id: str) -> List[Node]:
        group = self._groups.get(group_id)
        if group is None:
            return []
        return [node for node in self._nodes.values() if group.contains(node.position)]

    # ------------------------------------------------------------------
    # Bulk operations
    # ------------------------------------------------------------------

    def duplicate_nodes(self, node_ids: Iterable[str], offset: Position) -> List[Node]:
        """
        Clone nodes with fresh ids, shifted by `offset`.

        Only edges with both endpoints inside the cloned set are copied
        (remapped to the clones); edges crossing the boundary are dropped.
        """
        selected = [node_id for node_id in dict.fromkeys(node_ids) if node_id in self._nodes]
        id_map: Dict[str, str] = {}
        clones: List[Node] = []

        for node_id in selected:
            original = self._nodes[node_id]
            x, y = original.position
            clone = original.copy(id="", position=(x + offset[0], y + offset[1]))
            self.add_node(clone)
            id_map[node_id] = clone.id
            clones.append(clone)

        for edge in self.edges:
            if edge.source_node_id in id_map and edge.target_node_id in id_map:
                self.connect(
                    id_map[edge.source_node_id],
                    edge.source_slot,
                    id_map[edge.target_node_id],
                    edge.target_slot,
                )

        logger.debug(f"Duplicated {len(clones)} nodes")
        return clones

    def clear(self) -> None:
        self._nodes.clear()
        self._edges.clear()
        self._groups.clear()
        self.extra.clear()
        self._node_ids = count(1)
        self._edge_ids = count(1)
        self._group_ids = count(1)

    @staticmethod
    def _next_id(counter, taken: Dict[str, Any]) -> str:
        while True:
            candidate = str(next(counter))
            if candidate not in taken:
                return candidate

    def __repr__(self) -> str:
        return f"Graph(nodes={self.node_count}, edges={self.edge_count}, groups={len(self._groups)})"
