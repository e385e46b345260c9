import pytest

from flowgraph.dag.graph import Graph
from flowgraph.dag.node import Node
from flowgraph.dag.sorter import (
    ancestor_closure,
    find_all_paths,
    find_longest_path,
    get_execution_order,
    output_ancestors,
    topological_sort,
)


def assert_respects_edges(graph, result):
    position = {node.id: index for index, node in enumerate(result.ordered_nodes)}
    for edge in graph.edges:
        if edge.source_node_id in position and edge.target_node_id in position:
            assert position[edge.source_node_id] < position[edge.target_node_id]


class TestTopologicalSort:
    def test_chain_order_and_numbering(self, chain):
        graph, a, b, c = chain
        result = topological_sort(graph)

        assert result.is_valid
        assert result.ordered_ids == [a.id, b.id, c.id]
        assert (a.order, b.order, c.order) == (0, 1, 2)
        assert result.order_of(c.id) == 2
        assert result.order_of("missing") is None

    def test_order_is_independent_of_insertion(self, graph):
        c = graph.add_node_by_type("C")
        b = graph.add_node_by_type("B")
        a = graph.add_node_by_type("A")
        graph.connect(a.id, 0, b.id, 0)
        graph.connect(b.id, 0, c.id, 0)

        result = topological_sort(graph)
        assert result.ordered_ids == [a.id, b.id, c.id]

    def test_diamond(self, graph):
        a = graph.add_node_by_type("A")
        left = graph.add_node_by_type("B")
        right = graph.add_node_by_type("B")
        out1 = graph.add_node_by_type("C")
        out2 = graph.add_node_by_type("C")
        graph.connect(a.id, 0, left.id, 0)
        graph.connect(a.id, 0, right.id, 0)
        graph.connect(left.id, 0, out1.id, 0)
        graph.connect(right.id, 0, out2.id, 0)

        result = topological_sort(graph)
        assert len(result.ordered_nodes) == 5
        assert_respects_edges(graph, result)

    def test_every_node_exactly_once(self, graph):
        for _ in range(4):
            graph.add_node_by_type("A")
        result = topological_sort(graph)
        assert sorted(result.ordered_ids) == sorted(node.id for node in graph.nodes)

    def test_empty_graph(self):
        result = topological_sort(Graph())
        assert result.is_valid
        assert result.ordered_nodes == []

    def test_repeatable(self, chain):
        graph, *_ = chain
        assert topological_sort(graph).ordered_ids == topological_sort(graph).ordered_ids


class TestCycles:
    @pytest.fixture
    def cyclic(self, graph):
        """src -> p1 <-> p2 -> out, with p1/p2 forming a cycle"""
        a = graph.add_node_by_type("A")
        b = graph.add_node_by_type("B")
        p1 = graph.add_node_by_type("Passthrough")
        p2 = graph.add_node_by_type("Passthrough")
        downstream = graph.add_node_by_type("Passthrough")
        out = graph.add_node_by_type("C")
        graph.connect(a.id, 0, b.id, 0)
        graph.connect(p1.id, 0, p2.id, 0)
        graph.connect(p2.id, 0, p1.id, 0)
        graph.connect(p2.id, 0, downstream.id, 0)
        graph.connect(b.id, 0, out.id, 0)
        return graph, (a, b, p1, p2, downstream, out)

    def test_cycle_reported(self, cyclic):
        graph, (a, b, p1, p2, downstream, out) = cyclic
        result = topological_sort(graph)

        assert result.has_cycle
        assert not result.is_valid
        cycle_ids = {node.id for node in result.cycle_nodes}
        assert {p1.id, p2.id} <= cycle_ids
        assert downstream.id in cycle_ids
        assert_respects_edges(graph, result)

    def test_sorted_prefix_excludes_cycle(self, cyclic):
        graph, (a, b, p1, p2, downstream, out) = cyclic
        result = topological_sort(graph)
        assert set(result.ordered_ids) == {a.id, b.id, out.id}

    def test_exact_cycles_narrows_to_members(self, cyclic):
        graph, (a, b, p1, p2, downstream, out) = cyclic
        result = topological_sort(graph, exact_cycles=True)

        assert result.has_cycle
        assert {node.id for node in result.cycle_nodes} == {p1.id, p2.id}

    def test_self_loop_is_a_cycle(self, graph):
        node = graph.add_node_by_type("Passthrough")
        graph.connect(node.id, 0, node.id, 0)

        result = topological_sort(graph, exact_cycles=True)
        assert result.has_cycle
        assert result.cycle_nodes == [node]

    def test_three_node_cycle(self):
        graph = Graph()
        nodes = [graph.add_node(Node(type="X")) for _ in range(3)]
        for source, target in zip(nodes, nodes[1:] + nodes[:1]):
            graph.connect(source.id, 0, target.id, 0)

        result = topological_sort(graph, exact_cycles=True)
        assert len(result.cycle_nodes) == 3


class TestExecutionOrder:
    def test_ancestor_closure(self, chain):
        graph, a, b, c = chain
        assert ancestor_closure(graph, [b.id]) == {a.id, b.id}
        assert ancestor_closure(graph, ["missing"]) == set()
        assert output_ancestors(graph) == {a.id, b.id, c.id}

    def test_unreachable_nodes_excluded(self, chain):
        graph, a, b, c = chain
        stray = graph.add_node_by_type("B")

        result = get_execution_order(graph)
        assert result.ordered_ids == [a.id, b.id, c.id]
        assert stray.id not in result.ordered_ids

    def test_without_outputs_sorts_everything(self, graph):
        a = graph.add_node_by_type("A")
        b = graph.add_node_by_type("B")
        graph.connect(a.id, 0, b.id, 0)

        result = get_execution_order(graph)
        assert result.ordered_ids == [a.id, b.id]

    def test_cycle_outside_execution_subgraph_is_ignored(self, graph):
        a = graph.add_node_by_type("A")
        b = graph.add_node_by_type("B")
        out = graph.add_node_by_type("C")
        loop = graph.add_node_by_type("Passthrough")
        graph.connect(a.id, 0, b.id, 0)
        graph.connect(b.id, 0, out.id, 0)
        graph.connect(loop.id, 0, loop.id, 0)

        assert topological_sort(graph).has_cycle
        assert get_execution_order(graph).is_valid


class TestPaths:
    def test_find_all_paths(self, graph):
        a = graph.add_node_by_type("A")
        left = graph.add_node_by_type("B")
        right = graph.add_node_by_type("B")
        graph.connect(a.id, 0, left.id, 0)
        graph.connect(a.id, 0, right.id, 0)

        assert len(find_all_paths(graph, a.id, left.id)) == 1
        assert find_all_paths(graph, left.id, a.id) == []

    def test_longest_path(self, chain):
        graph, a, b, c = chain
        graph.add_node_by_type("A")
        assert [node.id for node in find_longest_path(graph)] == [a.id, b.id, c.id]

    def test_longest_path_empty_for_cycles(self, graph):
        node = graph.add_node_by_type("Passthrough")
        graph.connect(node.id, 0, node.id, 0)
        assert find_longest_path(graph) == []
