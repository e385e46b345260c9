"""
Topological Sorter

Orders a graph for execution using Kahn's algorithm and restricts
execution to the nodes that feed an output node.

The only mutation performed on the graph is writing `Node.order` for the
nodes that were sorted.
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set
import logging

from .graph import Graph
from .node import Edge, Node

logger = logging.getLogger(__name__)


@dataclass
class SortResult:
    """
    Outcome of a topological sort.

    Attributes:
        ordered_nodes: Nodes in execution order (only the sortable prefix on a cycle)
        has_cycle: Whether some nodes could not be ordered
        cycle_nodes: Nodes reported as blocked by a cycle
    """
    ordered_nodes: List[Node] = field(default_factory=list)
    has_cycle: bool = False
    cycle_nodes: List[Node] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.has_cycle

    @property
    def ordered_ids(self) -> List[str]:
        return [node.id for node in self.ordered_nodes]

    def order_of(self, node_id: str) -> Optional[int]:
        for index, node in enumerate(self.ordered_nodes):
            if node.id == node_id:
                return index
        return None


def topological_sort(graph: Graph, exact_cycles: bool = False) -> SortResult:
    """
    Sort every node of the graph.

    Args:
        graph: Graph to sort
        exact_cycles: Narrow the cycle report to nodes that sit on a cycle
            (members of a non-trivial strongly connected component or with a
            self-loop). By default every node left unsorted is reported,
            which also includes nodes merely downstream of a cycle.

    Returns:
        SortResult with nodes in execution order
    """
    return _kahn(graph, graph.nodes, graph.edges, exact_cycles)


def ancestor_closure(graph: Graph, roots: Iterable[str]) -> Set[str]:
    """
    Collect every node reachable by walking incoming edges from `roots`.

    The roots themselves are included when they exist in the graph.
    """
    incoming: Dict[str, List[str]] = {}
    for edge in graph.edges:
        incoming.setdefault(edge.target_node_id, []).append(edge.source_node_id)

    closure: Set[str] = set()
    stack = [node_id for node_id in roots if graph.has_node(node_id)]
    while stack:
        node_id = stack.pop()
        if node_id in closure:
            continue
        closure.add(node_id)
        for source_id in incoming.get(node_id, []):
            if source_id not in closure:
                stack.append(source_id)

    return closure


def output_ancestors(graph: Graph) -> Set[str]:
    """Backward closure of all output nodes"""
    return ancestor_closure(graph, [node.id for node in graph.get_output_nodes()])


def get_execution_order(graph: Graph, exact_cycles: bool = False) -> SortResult:
    """
    Sort only the nodes needed to produce the graph's outputs.

    Nodes outside the backward closure of the output nodes are excluded.
    Without any output node the whole graph is sorted.
    """
    output_nodes = graph.get_output_nodes()
    if not output_nodes:
        logger.debug("No output nodes, sorting entire graph")
        return topological_sort(graph, exact_cycles=exact_cycles)

    required = ancestor_closure(graph, [node.id for node in output_nodes])
    nodes = [node for node in graph.nodes if node.id in required]
    edges = [
        edge for edge in graph.edges
        if edge.source_node_id in required and edge.target_node_id in required
    ]

    logger.debug(
        f"Execution subgraph: {len(nodes)} of {graph.node_count} nodes "
        f"required by {len(output_nodes)} outputs"
    )
    return _kahn(graph, nodes, edges, exact_cycles)


def _kahn(graph: Graph, nodes: List[Node], edges: List[Edge], exact_cycles: bool) -> SortResult:
    """
    Kahn's algorithm over an explicit node/edge subset.

    The ready queue is FIFO and seeded in node insertion order, so numbering
    is reproducible for the same graph.
    """
    in_degree: Dict[str, int] = {node.id: 0 for node in nodes}
    successors: Dict[str, List[str]] = {node.id: [] for node in nodes}

    for edge in edges:
        if edge.source_node_id not in in_degree or edge.target_node_id not in in_degree:
            continue
        in_degree[edge.target_node_id] += 1
        successors[edge.source_node_id].append(edge.target_node_id)

    queue = deque(node_id for node_id, degree in in_degree.items() if degree == 0)
    ordered: List[Node] = []

    while queue:
        node_id = queue.popleft()
        node = graph.get_node(node_id)
        node.order = len(ordered)
        ordered.append(node)

        for target_id in successors[node_id]:
            in_degree[target_id] -= 1
            if in_degree[target_id] == 0:
                queue.append(target_id)

    if len(ordered) == len(nodes):
        logger.debug(f"Computed topological order: {[n.id for n in ordered]}")
        return SortResult(ordered_nodes=ordered)

    sorted_ids = {node.id for node in ordered}
    remainder = [node for node in nodes if node.id not in sorted_ids]
    if exact_cycles:
        on_cycle = _cycle_members({node.id for node in remainder}, successors)
        remainder = [node for node in remainder if node.id in on_cycle]

    logger.debug(f"Topological sort found a cycle involving {len(remainder)} nodes")
    return SortResult(ordered_nodes=ordered, has_cycle=True, cycle_nodes=remainder)


def _cycle_members(candidates: Set[str], successors: Dict[str, List[str]]) -> Set[str]:
    """
    Nodes lying on a cycle among `candidates` (iterative Tarjan SCC).

    Every cycle of the graph is contained in the unsorted remainder, so
    restricting the search to it cannot miss a cycle member.
    """
    index: Dict[str, int] = {}
    lowlink: Dict[str, int] = {}
    on_stack: Set[str] = set()
    stack: List[str] = []
    members: Set[str] = set()
    counter = 0

    for root in candidates:
        if root in index:
            continue

        work = [(root, 0)]
        while work:
            node_id, child_pos = work.pop()
            if child_pos == 0:
                index[node_id] = lowlink[node_id] = counter
                counter += 1
                stack.append(node_id)
                on_stack.add(node_id)

            children = [t for t in successors.get(node_id, []) if t in candidates]
            advanced = False
            for pos in range(child_pos, len(children)):
                child = children[pos]
                if child not in index:
                    work.append((node_id, pos + 1))
                    work.append((child, 0))
                    advanced = True
                    break
                if child in on_stack:
                    lowlink[node_id] = min(lowlink[node_id], index[child])
            if advanced:
                continue

            if lowlink[node_id] == index[node_id]:
                component = []
                while True:
                    member = stack.pop()
                    on_stack.discard(member)
                    component.append(member)
                    if member == node_id:
                        break
                if len(component) > 1 or node_id in successors.get(node_id, []):
                    members.update(component)

            if work:
                parent = work[-1][0]
                lowlink[parent] = min(lowlink[parent], lowlink[node_id])

    return members


def find_all_paths(graph: Graph, start_node_id: str, end_node_id: str) -> List[List[Node]]:
    """All simple paths from start to end following edge direction"""
    paths: List[List[Node]] = []
    path: List[Node] = []
    visiting: Set[str] = set()

    def dfs(node_id: str) -> None:
        node = graph.get_node(node_id)
        if node is None or node_id in visiting:
            return

        visiting.add(node_id)
        path.append(node)
        if node_id == end_node_id:
            paths.append(list(path))
        else:
            for edge in graph.get_outgoing_edges(node_id):
                dfs(edge.target_node_id)
        path.pop()
        visiting.discard(node_id)

    dfs(start_node_id)
    return paths


def find_longest_path(graph: Graph) -> List[Node]:
    """
    Longest chain of nodes in the graph (critical path by hop count).

    Returns an empty list for cyclic graphs.
    """
    result = topological_sort(graph)
    if not result.is_valid or not result.ordered_nodes:
        return []

    distance: Dict[str, int] = {node.id: 0 for node in result.ordered_nodes}
    predecessor: Dict[str, Optional[str]] = {node.id: None for node in result.ordered_nodes}

    for node in result.ordered_nodes:
        for edge in graph.get_outgoing_edges(node.id):
            if distance[node.id] + 1 > distance[edge.target_node_id]:
                distance[edge.target_node_id] = distance[node.id] + 1
                predecessor[edge.target_node_id] = node.id

    end_id = max(distance, key=lambda node_id: distance[node_id])
    chain: List[Node] = []
    current: Optional[str] = end_id
    while current is not None:
        chain.append(graph.get_node(current))
        current = predecessor[current]
    chain.reverse()
    return chain
