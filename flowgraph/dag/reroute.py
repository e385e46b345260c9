"""
Reroute Nodes

A reroute is a pass-through node with one untyped input and one untyped
output. It has no semantic type of its own: it takes the type of whatever
feeds it (or, failing that, whatever it feeds) and can be chained,
inserted into an existing edge, removed, or collapsed.
"""

from typing import List, Optional, Set
import logging

from .definition import NodeDefinition
from .graph import Graph
from .node import Node, Position
from .slot_types import SlotSpec, SlotType

logger = logging.getLogger(__name__)

REROUTE_TYPE = "Reroute"
SLOT_TYPE_KEY = "_slot_type"


def reroute_definition() -> NodeDefinition:
    return NodeDefinition(
        name=REROUTE_TYPE,
        display_name="Reroute",
        category="utils",
        description="Routes connections through a point",
        inputs=(SlotSpec(name="", type=SlotType.ANY),),
        outputs=(SlotSpec(name="", type=SlotType.ANY),),
    )


def create_reroute_node(position: Position, slot_type: Optional[SlotType] = None) -> Node:
    properties = {}
    if slot_type is not None:
        properties[SLOT_TYPE_KEY] = slot_type.value
    return Node(type=REROUTE_TYPE, position=position, properties=properties)


def is_reroute(node: Optional[Node]) -> bool:
    return node is not None and node.type == REROUTE_TYPE


def reroute_slot_type(graph: Graph, node: Node) -> SlotType:
    """
    Effective type carried by a reroute node.

    Resolution order: the type stored on the node, then the type flowing in
    through the incoming chain, then the type of the outgoing chain, else ANY.
    Non-reroute nodes report ANY.
    """
    if not is_reroute(node):
        return SlotType.ANY

    stored = node.properties.get(SLOT_TYPE_KEY)
    if stored is not None:
        return SlotType.from_type_name(stored)

    upstream = _follow(graph, node, incoming=True)
    if upstream is not SlotType.ANY:
        return upstream
    return _follow(graph, node, incoming=False)


def _follow(graph: Graph, node: Node, incoming: bool) -> SlotType:
    visited: Set[str] = set()
    current = node
    while is_reroute(current) and current.id not in visited:
        visited.add(current.id)
        stored = current.properties.get(SLOT_TYPE_KEY)
        if stored is not None and current is not node:
            return SlotType.from_type_name(stored)

        edges = graph.get_incoming_edges(current.id) if incoming else graph.get_outgoing_edges(current.id)
        if not edges:
            return SlotType.ANY

        edge = edges[0]
        neighbor = graph.get_node(edge.source_node_id if incoming else edge.target_node_id)
        if not is_reroute(neighbor):
            if incoming:
                return edge.type
            definition = graph.definition_for(neighbor) if neighbor is not None else None
            if definition is not None and edge.target_slot < len(definition.inputs):
                return definition.inputs[edge.target_slot].type
            return edge.type
        current = neighbor

    return SlotType.ANY


def set_reroute_slot_type(node: Node, slot_type: SlotType) -> None:
    if is_reroute(node):
        node.properties[SLOT_TYPE_KEY] = slot_type.value


def reroute_chain(graph: Graph, node: Node) -> List[Node]:
    """All reroutes connected to `node` through other reroutes, in both directions"""
    if not is_reroute(node):
        return []

    chain = [node]
    seen = {node.id}
    pending = [node]
    while pending:
        current = pending.pop()
        neighbors = [graph.get_node(e.source_node_id) for e in graph.get_incoming_edges(current.id)]
        neighbors += [graph.get_node(e.target_node_id) for e in graph.get_outgoing_edges(current.id)]
        for neighbor in neighbors:
            if is_reroute(neighbor) and neighbor.id not in seen:
                seen.add(neighbor.id)
                chain.append(neighbor)
                pending.append(neighbor)

    return chain


def reroute_chain_source(graph: Graph, node: Node) -> Optional[Node]:
    """First non-reroute node feeding the chain; None if unfed or looping"""
    if not is_reroute(node):
        return node

    visited = {node.id}
    current = node
    while True:
        incoming = graph.get_incoming_edges(current.id)
        if not incoming:
            return None
        source = graph.get_node(incoming[0].source_node_id)
        if source is None:
            return None
        if not is_reroute(source):
            return source
        if source.id in visited:
            return None
        visited.add(source.id)
        current = source


def reroute_chain_targets(graph: Graph, node: Node) -> List[Node]:
    """All non-reroute nodes fed by the chain"""
    if not is_reroute(node):
        return [node]

    targets: List[Node] = []
    visited: Set[str] = set()
    pending = [node]
    while pending:
        current = pending.pop()
        if current.id in visited:
            continue
        visited.add(current.id)
        for edge in graph.get_outgoing_edges(current.id):
            target = graph.get_node(edge.target_node_id)
            if target is None:
                continue
            if is_reroute(target):
                pending.append(target)
            elif all(t.id != target.id for t in targets):
                targets.append(target)

    return targets


def insert_reroute_on_edge(graph: Graph, edge_id: str, position: Position) -> Optional[Node]:
    """
    Split an edge with a new reroute node.

    Returns:
        The reroute node, or None if the edge does not exist
    """
    edge = graph.get_edge(edge_id)
    if edge is None:
        return None

    reroute = graph.add_node(create_reroute_node(position, slot_type=edge.type))
    graph.remove_edge(edge_id)
    graph.connect(edge.source_node_id, edge.source_slot, reroute.id, 0)
    graph.connect(reroute.id, 0, edge.target_node_id, edge.target_slot)

    logger.debug(f"Inserted reroute {reroute.id} on {edge}")
    return reroute


def remove_reroute(graph: Graph, reroute_id: str) -> None:
    """Remove a reroute node, reconnecting its source directly to its targets"""
    node = graph.get_node(reroute_id)
    if not is_reroute(node):
        return

    incoming = graph.get_incoming_edges(reroute_id)
    targets = [(e.target_node_id, e.target_slot) for e in graph.get_outgoing_edges(reroute_id)]
    graph.remove_node(reroute_id)

    if incoming:
        source = incoming[0]
        for target_id, target_slot in targets:
            graph.connect(source.source_node_id, source.source_slot, target_id, target_slot)


def collapse_reroute_chain(graph: Graph, start: Node) -> Optional[Node]:
    """
    Replace a chain of reroutes with a single reroute at their mean position.

    Returns:
        The surviving reroute (`start` itself when there is nothing to collapse),
        or None when `start` is not a reroute
    """
    if not is_reroute(start):
        return None

    chain = reroute_chain(graph, start)
    if len(chain) <= 1:
        return start

    chain_ids = {node.id for node in chain}
    inbound = [
        e for node in chain for e in graph.get_incoming_edges(node.id)
        if e.source_node_id not in chain_ids
    ]
    outbound = [
        e for node in chain for e in graph.get_outgoing_edges(node.id)
        if e.target_node_id not in chain_ids
    ]
    if not inbound and not outbound:
        return start

    mean_x = sum(node.position[0] for node in chain) / len(chain)
    mean_y = sum(node.position[1] for node in chain) / len(chain)
    slot_type = inbound[0].type if inbound else reroute_slot_type(graph, start)

    for node in chain:
        graph.remove_node(node.id)

    reroute = graph.add_node(create_reroute_node((mean_x, mean_y), slot_type=slot_type))
    for edge in inbound[:1]:
        graph.connect(edge.source_node_id, edge.source_slot, reroute.id, 0)
    for edge in outbound:
        graph.connect(reroute.id, 0, edge.target_node_id, edge.target_slot)

    logger.debug(f"Collapsed {len(chain)} reroutes into {reroute.id}")
    return reroute
