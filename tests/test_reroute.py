from flowgraph.dag.reroute import (
    REROUTE_TYPE,
    collapse_reroute_chain,
    create_reroute_node,
    insert_reroute_on_edge,
    is_reroute,
    remove_reroute,
    reroute_chain,
    reroute_chain_source,
    reroute_chain_targets,
    reroute_slot_type,
    set_reroute_slot_type,
)
from flowgraph.dag.slot_types import SlotType


def add_reroute(graph, position=(0, 0), slot_type=None):
    return graph.add_node(create_reroute_node(position, slot_type))


class TestRerouteBasics:
    def test_create(self):
        node = create_reroute_node((5, 5), SlotType.LATENT)
        assert node.type == REROUTE_TYPE
        assert is_reroute(node)
        assert not is_reroute(None)

    def test_stored_type_wins(self, graph):
        reroute = add_reroute(graph, slot_type=SlotType.IMAGE)
        assert reroute_slot_type(graph, reroute) is SlotType.IMAGE

    def test_set_type(self, graph):
        reroute = add_reroute(graph)
        set_reroute_slot_type(reroute, SlotType.MASK)
        assert reroute_slot_type(graph, reroute) is SlotType.MASK

    def test_unconnected_is_any(self, graph):
        assert reroute_slot_type(graph, add_reroute(graph)) is SlotType.ANY

    def test_non_reroute_is_any(self, chain):
        graph, a, b, c = chain
        assert reroute_slot_type(graph, a) is SlotType.ANY


class TestTypeInheritance:
    def test_inherits_from_upstream_chain(self, graph):
        a = graph.add_node_by_type("A")
        r1 = add_reroute(graph)
        r2 = add_reroute(graph)
        graph.connect(a.id, 0, r1.id, 0)
        graph.connect(r1.id, 0, r2.id, 0)

        assert reroute_slot_type(graph, r2) is SlotType.MODEL

    def test_falls_back_to_downstream_input(self, graph):
        r1 = add_reroute(graph)
        c = graph.add_node_by_type("C")
        graph.connect(r1.id, 0, c.id, 0)

        assert reroute_slot_type(graph, r1) is SlotType.LATENT

    def test_reroute_loop_terminates(self, graph):
        r1 = add_reroute(graph)
        r2 = add_reroute(graph)
        graph.connect(r1.id, 0, r2.id, 0)
        graph.connect(r2.id, 0, r1.id, 0)

        assert reroute_slot_type(graph, r1) is SlotType.ANY
        assert reroute_chain_source(graph, r1) is None


class TestChains:
    def build(self, graph):
        a = graph.add_node_by_type("A")
        r1 = add_reroute(graph, (100, 0))
        r2 = add_reroute(graph, (200, 100))
        b1 = graph.add_node_by_type("B")
        b2 = graph.add_node_by_type("B")
        graph.connect(a.id, 0, r1.id, 0)
        graph.connect(r1.id, 0, r2.id, 0)
        graph.connect(r2.id, 0, b1.id, 0)
        graph.connect(r2.id, 0, b2.id, 0)
        return a, r1, r2, b1, b2

    def test_chain_members(self, graph):
        a, r1, r2, b1, b2 = self.build(graph)
        assert {node.id for node in reroute_chain(graph, r2)} == {r1.id, r2.id}
        assert reroute_chain(graph, a) == []

    def test_source_and_targets(self, graph):
        a, r1, r2, b1, b2 = self.build(graph)
        assert reroute_chain_source(graph, r2) is a
        assert {node.id for node in reroute_chain_targets(graph, r1)} == {b1.id, b2.id}

    def test_remove_reroute_reconnects(self, graph):
        a, r1, r2, b1, b2 = self.build(graph)
        remove_reroute(graph, r2.id)

        assert not graph.has_node(r2.id)
        assert graph.get_input_edge(b1.id, 0).source_node_id == r1.id
        assert graph.get_input_edge(b2.id, 0).source_node_id == r1.id

    def test_collapse_chain(self, graph):
        a, r1, r2, b1, b2 = self.build(graph)
        survivor = collapse_reroute_chain(graph, r1)

        assert not graph.has_node(r1.id)
        assert not graph.has_node(r2.id)
        assert survivor.position == (150.0, 50.0)
        assert reroute_slot_type(graph, survivor) is SlotType.MODEL
        assert graph.get_input_edge(survivor.id, 0).source_node_id == a.id
        assert len(graph.get_outgoing_edges(survivor.id)) == 2

    def test_collapse_single_reroute_is_noop(self, graph):
        reroute = add_reroute(graph)
        assert collapse_reroute_chain(graph, reroute) is reroute


def test_insert_reroute_on_edge(chain):
    graph, a, b, c = chain
    edge = graph.get_input_edge(b.id, 0)

    reroute = insert_reroute_on_edge(graph, edge.id, (125, 0))

    assert graph.get_edge(edge.id) is None
    assert graph.get_input_edge(reroute.id, 0).source_node_id == a.id
    assert graph.get_input_edge(b.id, 0).source_node_id == reroute.id
    assert reroute_slot_type(graph, reroute) is SlotType.MODEL
    assert insert_reroute_on_edge(graph, "missing", (0, 0)) is None
